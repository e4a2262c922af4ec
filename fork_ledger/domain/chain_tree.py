"""
ForkLedger - Chain Tree Core
==============================
Albero di blocchi con fork, snapshot del ledger per nodo e
finestra di recency (cutoff age) che limita la memoria.

Security Level: CRITICAL
Last Updated: 2026-10-17
Version: 1.0.0

Features:
- Ammissione blocchi (add_block) serializzata
- Best chain: profondita' massima, tie-break per ordine di arrivo
- Index hash -> nodo O(1)
- Pruning dei rami che non possono piu' essere estesi
- Query lock-free su best node e index
"""

from __future__ import annotations
from typing import Optional, List, Dict, Set, Tuple, Any
from dataclasses import dataclass, field
import threading

from fork_ledger.domain.models import Block, Transaction
from fork_ledger.domain.utxo import UTXOSet
from fork_ledger.domain.validation import TransactionValidator
from fork_ledger.domain.mempool import TransactionPool
from fork_ledger.domain.crypto_core import CryptoProvider, get_crypto_provider
from fork_ledger.constants import GENESIS_DEPTH, GENESIS_SEQUENCE
from fork_ledger.errors import (
    ChainTreeError,
    GenesisError,
    AdmissionError,
    NoParentGenesisRejectedError,
    UnknownParentError,
    TooOldError,
    InvalidTransactionsError,
    DuplicateBlockError,
)
from fork_ledger.logging_setup import get_logger, PerformanceLogger, AuditLogger
from fork_ledger.config import LedgerSettings, get_settings


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("chain")


# ============================================================================
# CHAIN NODE
# ============================================================================

@dataclass(eq=False)
class ChainNode:
    """
    Nodo dell'albero.

    Tutti i campi sono fissati alla costruzione tranne `children`,
    che viene sostituito (copy-on-write) con una nuova tupla: chi
    itera su un valore letto in precedenza non vede mai modifiche.

    Attributes:
        block: Blocco del nodo
        block_hash: Hash del blocco (chiave nell'index)
        parent_hash: Hash del parent (None solo per genesis)
        depth: parent.depth + 1 (genesis = 0)
        sequence: Ordine di creazione (tie-break best chain)
        snapshot: Ledger congelato dopo il blocco
        children: Hash dei figli ancora presenti nell'albero
    """

    block: Block
    block_hash: str
    parent_hash: Optional[str]
    depth: int
    sequence: int
    snapshot: UTXOSet
    children: Tuple[str, ...] = field(default=())

    def is_genesis(self) -> bool:
        return self.parent_hash is None

    def is_leaf(self) -> bool:
        return not self.children

    def __repr__(self) -> str:
        return (
            f"ChainNode(hash={self.block_hash[:16]}..., depth={self.depth}, "
            f"seq={self.sequence}, children={len(self.children)})"
        )


# ============================================================================
# ADMISSION RESULT
# ============================================================================

@dataclass(frozen=True)
class AdmissionResult:
    """
    Esito di add_block.

    Truthy se il blocco e' stato ammesso.

    Attributes:
        accepted: True se ammesso
        block_hash: Hash del blocco proposto
        error: AdmissionError se rifiutato
        node: Nodo creato se ammesso
        pruned: Numero di nodi rimossi dal pruning successivo
    """

    accepted: bool
    block_hash: str
    error: Optional[AdmissionError] = None
    node: Optional[ChainNode] = None
    pruned: int = 0

    @property
    def code(self) -> Optional[str]:
        """Codice errore (None se ammesso)"""
        return self.error.code if self.error else None

    def __bool__(self) -> bool:
        return self.accepted

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "accepted": self.accepted,
            "block_hash": self.block_hash,
            "pruned": self.pruned,
        }
        if self.node is not None:
            data["depth"] = self.node.depth
        if self.error is not None:
            data["error"] = self.error.to_dict()
        return data


# ============================================================================
# CHAIN TREE
# ============================================================================

class ChainTree:
    """
    Albero dei blocchi con snapshot del ledger per nodo.

    Gestisce:
    - Ammissione blocchi contro lo snapshot del parent
    - Best node (depth massima, a parita' sequence minore)
    - Pruning sotto la finestra di cutoff
    - Inbox transazioni pendenti

    Thread Safety:
        - add_block serializzato da RLock (ammissione + pruning)
        - best node letto da un riferimento sostituito atomicamente
        - nodi immutabili (children copy-on-write)

    Attributes:
        config: Ledger configuration
        cutoff_age: Finestra di profondita' ammissibile per i parent

    Examples:
        >>> tree = ChainTree(genesis_block)
        >>> result = tree.add_block(block)
        >>> result.accepted
        True
        >>> tree.get_best_block() is block
        True
    """

    def __init__(
        self,
        genesis_block: Block,
        config: Optional[LedgerSettings] = None,
        provider: Optional[CryptoProvider] = None,
        pool: Optional[TransactionPool] = None,
        audit: Optional[AuditLogger] = None
    ):
        """
        Inizializza l'albero dal genesis.

        Raises:
            GenesisError: Se il blocco ha un previous_hash
        """
        self.config = config or get_settings()
        self.cutoff_age = self.config.cutoff_age
        self.provider = provider or get_crypto_provider(self.config.crypto_algorithm)
        self.audit = audit

        self._pool = pool or TransactionPool(
            max_size_mb=self.config.mempool_max_size_mb,
            max_count=self.config.mempool_max_count,
            expiry_hours=self.config.mempool_expiry_hours,
        )

        # Arena: hash -> nodo, depth -> hash
        self._nodes: Dict[str, ChainNode] = {}
        self._by_depth: Dict[int, Set[str]] = {}

        self._next_sequence = GENESIS_SEQUENCE
        self._pruned_below = GENESIS_DEPTH
        self._lock = threading.RLock()

        genesis_node = self._create_genesis_node(genesis_block)
        self._insert_node(genesis_node)
        self._genesis_hash = genesis_node.block_hash
        self._best_node = genesis_node

        logger.info(
            "Chain tree initialized",
            extra_data={
                "genesis_hash": genesis_node.block_hash[:16] + "...",
                "cutoff_age": self.cutoff_age,
                "genesis_utxos": len(genesis_node.snapshot),
            }
        )

    def _create_genesis_node(self, genesis_block: Block) -> ChainNode:
        if genesis_block.previous_hash is not None:
            raise GenesisError(
                "Genesis block must not reference a parent",
                code="GENESIS_HAS_PARENT",
                details={"previous_hash": genesis_block.previous_hash}
            )

        validator = TransactionValidator(UTXOSet(), self.provider, self.config)
        validator.apply_coinbase(genesis_block.coinbase)
        accepted = validator.accept_batch(genesis_block.transactions)

        if len(accepted) != len(genesis_block.transactions):
            logger.warning(
                "Genesis body transactions dropped",
                extra_data={
                    "dropped": len(genesis_block.transactions) - len(accepted),
                    "reasons": {
                        txid[:16]: err.code
                        for txid, err in validator.last_rejections.items()
                    }
                }
            )

        return ChainNode(
            block=genesis_block,
            block_hash=genesis_block.block_hash,
            parent_hash=None,
            depth=GENESIS_DEPTH,
            sequence=self._take_sequence(),
            snapshot=validator.get_utxo_set().freeze(),
        )

    def _take_sequence(self) -> int:
        sequence = self._next_sequence
        self._next_sequence += 1
        return sequence

    # ========================================================================
    # QUERIES
    # ========================================================================

    def get_best_node(self) -> ChainNode:
        """Nodo piu' profondo; a parita' di profondita' il primo arrivato."""
        return self._best_node

    def get_best_block(self) -> Block:
        return self._best_node.block

    def get_best_utxo_set(self) -> UTXOSet:
        """Snapshot (congelato) del best node. Usare copy() per modificarlo."""
        return self._best_node.snapshot

    def get_height(self) -> int:
        """Profondita' del best node"""
        return self._best_node.depth

    def find_by_hash(self, block_hash: str) -> Optional[ChainNode]:
        """Lookup O(1). None se mai ammesso o gia' potato."""
        return self._nodes.get(block_hash)

    def contains_block(self, block_hash: str) -> bool:
        return block_hash in self._nodes

    def get_genesis_node(self) -> ChainNode:
        return self._nodes[self._genesis_hash]

    def node_count(self) -> int:
        return len(self._nodes)

    def get_tips(self) -> List[ChainNode]:
        """Foglie dell'albero, ordinate per (depth desc, sequence asc)"""
        with self._lock:
            leaves = [node for node in self._nodes.values() if node.is_leaf()]
        return sorted(leaves, key=lambda n: (-n.depth, n.sequence))

    def get_chain(self, block_hash: Optional[str] = None) -> List[Block]:
        """
        Blocchi dal genesis al nodo indicato (default: best node).

        Raises:
            ChainTreeError: Se l'hash non e' nell'albero
        """
        with self._lock:
            node = self._best_node if block_hash is None else self._nodes.get(block_hash)
            if node is None:
                raise ChainTreeError(
                    f"Block {block_hash[:16]}... not in tree",
                    code="UNKNOWN_BLOCK",
                    details={"block_hash": block_hash}
                )

            blocks = []
            while node is not None:
                blocks.append(node.block)
                node = self._nodes.get(node.parent_hash) if node.parent_hash else None

        blocks.reverse()
        return blocks

    def get_balance(self, owner: bytes) -> int:
        """Saldo di `owner` sulla best chain"""
        return self.get_best_utxo_set().get_balance(owner)

    # ========================================================================
    # ADMISSION
    # ========================================================================

    def add_block(self, block: Block) -> AdmissionResult:
        """
        Propone un blocco all'albero.

        Nessuna eccezione per i rifiuti: l'esito (con l'errore) e'
        nell'AdmissionResult. Nessuna modifica strutturale avviene
        prima che il blocco sia ammesso.

        Args:
            block: Blocco proposto

        Returns:
            AdmissionResult: accepted=True con il nuovo nodo, oppure
                accepted=False con un AdmissionError
        """
        block_hash = block.block_hash

        with self._lock:
            with PerformanceLogger(logger, "add_block", threshold_ms=1000):
                try:
                    node = self._admit(block, block_hash)
                except AdmissionError as e:
                    logger.info(
                        "Block rejected",
                        extra_data={"hash": block_hash[:16] + "...", "code": e.code}
                    )
                    if self.audit:
                        self.audit.log_block_rejected(block_hash, e.code, e.message)
                    return AdmissionResult(accepted=False, block_hash=block_hash, error=e)

                self._insert_node(node)
                if node.depth > self._best_node.depth:
                    self._best_node = node
                pruned = self._prune()

        logger.info(
            "Block admitted",
            extra_data={
                "hash": block_hash[:16] + "...",
                "depth": node.depth,
                "tx_count": block.get_transaction_count(),
                "best_depth": self._best_node.depth,
                "pruned": pruned,
            }
        )
        if self.audit:
            self.audit.log_block_admitted(node.depth, block_hash, block.get_transaction_count())

        return AdmissionResult(accepted=True, block_hash=block_hash, node=node, pruned=pruned)

    def _admit(self, block: Block, block_hash: str) -> ChainNode:
        """Verifica l'ammissibilita' e costruisce il nuovo nodo (non inserito)."""
        if block.previous_hash is None:
            raise NoParentGenesisRejectedError(
                "Block without parent cannot be added (genesis already set)",
                code="NO_PARENT"
            )

        if block_hash in self._nodes:
            raise DuplicateBlockError(
                f"Block {block_hash[:16]}... already in tree",
                code="DUPLICATE_BLOCK"
            )

        parent = self._nodes.get(block.previous_hash)
        if parent is None:
            raise UnknownParentError(
                f"Parent {block.previous_hash[:16]}... not in tree",
                code="UNKNOWN_PARENT",
                details={"previous_hash": block.previous_hash}
            )

        best_depth = self._best_node.depth
        if parent.depth < best_depth - self.cutoff_age:
            raise TooOldError(
                f"Parent depth {parent.depth} is outside the cutoff window",
                code="TOO_OLD",
                details={
                    "parent_depth": parent.depth,
                    "best_depth": best_depth,
                    "cutoff_age": self.cutoff_age,
                }
            )

        validator = TransactionValidator(parent.snapshot, self.provider, self.config)
        accepted = validator.accept_batch(block.transactions)

        if len(accepted) != len(block.transactions):
            raise InvalidTransactionsError(
                f"{len(block.transactions) - len(accepted)} of "
                f"{len(block.transactions)} transactions rejected",
                code="INVALID_TRANSACTIONS",
                details={
                    "rejected": {
                        txid: err.code for txid, err in validator.last_rejections.items()
                    }
                }
            )

        validator.apply_coinbase(block.coinbase)

        return ChainNode(
            block=block,
            block_hash=block_hash,
            parent_hash=parent.block_hash,
            depth=parent.depth + 1,
            sequence=self._take_sequence(),
            snapshot=validator.get_utxo_set().freeze(),
        )

    def _insert_node(self, node: ChainNode) -> None:
        self._nodes[node.block_hash] = node
        self._by_depth.setdefault(node.depth, set()).add(node.block_hash)

        if node.parent_hash is not None:
            parent = self._nodes[node.parent_hash]
            parent.children = parent.children + (node.block_hash,)

    # ========================================================================
    # PRUNING
    # ========================================================================

    def _prune(self) -> int:
        """
        Rimuove i nodi sotto la soglia che non hanno discendenti sopra.

        Soglia = best.depth - cutoff_age: un nodo piu' basso non puo'
        piu' essere parent. Viene rimosso quando non ha figli; la
        rimozione risale ai parent rimasti senza figli. Gli antenati
        del best node hanno sempre un figlio e non sono mai rimossi.
        Un ramo fuori dalla best chain resta, con tutti i suoi antenati,
        finche' una sua foglia ha depth >= soglia: quella foglia e' ancora
        un parent ammissibile.
        Ogni profondita' viene esaminata una sola volta.

        Returns:
            int: Numero nodi rimossi
        """
        threshold = self._best_node.depth - self.cutoff_age
        removed = 0

        while self._pruned_below < threshold:
            depth = self._pruned_below
            for block_hash in list(self._by_depth.get(depth, ())):
                node = self._nodes.get(block_hash)
                if node is not None and node.is_leaf():
                    removed += self._remove_upward(node, threshold)
            if not self._by_depth.get(depth):
                self._by_depth.pop(depth, None)
            self._pruned_below += 1

        if removed:
            logger.debug(
                "Pruned stale branches",
                extra_data={
                    "removed": removed,
                    "threshold": threshold,
                    "remaining": len(self._nodes),
                }
            )

        return removed

    def _remove_upward(self, node: ChainNode, threshold: int) -> int:
        removed = 0

        while node is not None and node.is_leaf() and node.depth < threshold:
            del self._nodes[node.block_hash]
            bucket = self._by_depth.get(node.depth)
            if bucket is not None:
                bucket.discard(node.block_hash)
                if not bucket:
                    del self._by_depth[node.depth]
            removed += 1

            parent = self._nodes.get(node.parent_hash) if node.parent_hash else None
            if parent is not None:
                parent.children = tuple(h for h in parent.children if h != node.block_hash)
            node = parent

        return removed

    # ========================================================================
    # PENDING TRANSACTIONS
    # ========================================================================

    @property
    def transaction_pool(self) -> TransactionPool:
        return self._pool

    def add_transaction(self, tx: Transaction) -> bool:
        """Inoltra `tx` al pool pendente, senza validazione."""
        return self._pool.add_transaction(tx)

    # ========================================================================
    # STATISTICS
    # ========================================================================

    def get_statistics(self) -> Dict[str, Any]:
        with self._lock:
            best = self._best_node
            return {
                "best_hash": best.block_hash,
                "best_depth": best.depth,
                "node_count": len(self._nodes),
                "tip_count": sum(1 for n in self._nodes.values() if n.is_leaf()),
                "oldest_depth": min(self._by_depth) if self._by_depth else GENESIS_DEPTH,
                "cutoff_age": self.cutoff_age,
                "best_utxos": len(best.snapshot),
                "best_value": best.snapshot.total_value(),
                "pending_transactions": self._pool.size(),
            }

    def __len__(self) -> int:
        return self.node_count()

    def __repr__(self) -> str:
        return (
            f"ChainTree(nodes={len(self._nodes)}, "
            f"best_depth={self._best_node.depth}, "
            f"best={self._best_node.block_hash[:16]}...)"
        )


# ============================================================================
# CALLER SURFACE
# ============================================================================

def new_chain(
    genesis_block: Block,
    config: Optional[LedgerSettings] = None,
    **kwargs
) -> ChainTree:
    """Crea un albero dal genesis."""
    return ChainTree(genesis_block, config=config, **kwargs)


def add_block(tree: ChainTree, block: Block) -> AdmissionResult:
    """Propone `block` a `tree`."""
    return tree.add_block(block)


def best_block(tree: ChainTree) -> Block:
    return tree.get_best_block()


def best_ledger_snapshot(tree: ChainTree) -> UTXOSet:
    return tree.get_best_utxo_set()


def submit_pending_transaction(tree: ChainTree, tx: Transaction) -> bool:
    """Aggiunge `tx` all'inbox delle transazioni pendenti."""
    return tree.add_transaction(tx)


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "ChainNode",
    "AdmissionResult",
    "ChainTree",
    "new_chain",
    "add_block",
    "best_block",
    "best_ledger_snapshot",
    "submit_pending_transaction",
]
