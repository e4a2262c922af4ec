"""
ForkLedger - UTXO Set Management
==================================
Set di output non spesi (ledger snapshot).

Security Level: CRITICAL
Last Updated: 2026-10-17
Version: 1.0.0

UTXO Set:
- Mapping UTXOKey -> TxOutput
- Index per owner
- Thread-safe operations
- Copia indipendente e congelamento (snapshot immutabile)

Performance:
- O(1) lookup per UTXO key
- O(1) add/remove
- O(n) copy
"""

from __future__ import annotations
from typing import Dict, List, Tuple, Set, Optional, Any, Iterator
from collections import defaultdict
import threading

from fork_ledger.domain.models import TxOutput, UTXOKey, Transaction
from fork_ledger.errors import UTXOError, UTXONotFoundError, UTXOFrozenError
from fork_ledger.logging_setup import get_logger


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("utxo")


# ============================================================================
# UTXO SET
# ============================================================================

class UTXOSet:
    """
    Set di UTXO (Unspent Transaction Outputs).

    Un set attaccato a un nodo dell'albero e' congelato con `freeze()`:
    da quel momento ogni mutazione solleva UTXOFrozenError e le letture
    concorrenti non vedono mai stati intermedi.

    Attributes:
        _utxos (dict): Mapping UTXOKey -> TxOutput
        _owner_index (dict): Index owner -> set[UTXOKey]
        _frozen (bool): Se True il set e' in sola lettura
        _lock (RLock): Lock per thread-safety

    Examples:
        >>> utxo_set = UTXOSet()
        >>> key = UTXOKey("ab" * 32, 0)
        >>> utxo_set.add_utxo(key, TxOutput(100, owner_pem))
        >>> key in utxo_set
        True
    """

    def __init__(self, utxos: Optional[Dict[UTXOKey, TxOutput]] = None):
        self._utxos: Dict[UTXOKey, TxOutput] = {}
        self._owner_index: Dict[bytes, Set[UTXOKey]] = defaultdict(set)
        self._frozen = False
        self._lock = threading.RLock()

        for utxo_key, output in (utxos or {}).items():
            self.add_utxo(utxo_key, output)

    # ------------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------------

    def _check_mutable(self) -> None:
        if self._frozen:
            raise UTXOFrozenError(
                "UTXO set is frozen (attached to a chain node)",
                code="UTXO_FROZEN"
            )

    def add_utxo(self, utxo_key: UTXOKey, output: TxOutput) -> None:
        """
        Aggiungi UTXO al set.

        Raises:
            UTXOError: Se UTXO gia' presente
            UTXOFrozenError: Se il set e' congelato
        """
        with self._lock:
            self._check_mutable()

            if utxo_key in self._utxos:
                raise UTXOError(
                    f"UTXO {utxo_key} already exists in set",
                    code="UTXO_DUPLICATE",
                    details={"utxo_key": str(utxo_key)}
                )

            self._utxos[utxo_key] = output
            self._owner_index[output.owner].add(utxo_key)

    def put_utxo(self, utxo_key: UTXOKey, output: TxOutput) -> None:
        """
        Inserisce un UTXO sostituendo quello eventualmente presente.

        Raises:
            UTXOFrozenError: Se il set e' congelato
        """
        with self._lock:
            self._check_mutable()

            if utxo_key in self._utxos:
                self.remove_utxo(utxo_key)

            self._utxos[utxo_key] = output
            self._owner_index[output.owner].add(utxo_key)

    def remove_utxo(self, utxo_key: UTXOKey) -> TxOutput:
        """
        Rimuovi UTXO dal set (quando speso).

        Returns:
            TxOutput: Output rimosso

        Raises:
            UTXONotFoundError: Se UTXO non trovato
            UTXOFrozenError: Se il set e' congelato
        """
        with self._lock:
            self._check_mutable()

            if utxo_key not in self._utxos:
                raise UTXONotFoundError(
                    f"UTXO {utxo_key} not found in set",
                    code="UTXO_NOT_FOUND"
                )

            output = self._utxos.pop(utxo_key)

            self._owner_index[output.owner].discard(utxo_key)
            if not self._owner_index[output.owner]:
                del self._owner_index[output.owner]

            return output

    def apply_transaction(self, tx: Transaction) -> None:
        """
        Applica transazione al set: consuma gli input, aggiunge gli output.

        Nessun controllo di firma o valore: chi chiama ha gia' validato.
        Se un input manca o un output collide, il set resta invariato.

        Raises:
            UTXONotFoundError: Se un input non e' presente
            UTXOError: Se un output esiste gia'
        """
        with self._lock:
            self._check_mutable()

            txid = tx.txid
            spent_keys = [inp.utxo_key for inp in tx.inputs]
            new_keys = [UTXOKey(txid, idx) for idx in range(len(tx.outputs))]

            for utxo_key in spent_keys:
                if utxo_key not in self._utxos:
                    raise UTXONotFoundError(
                        f"Input UTXO {utxo_key} not found",
                        code="INPUT_UTXO_NOT_FOUND"
                    )
            if len(set(spent_keys)) != len(spent_keys):
                raise UTXOError(
                    f"Transaction {txid[:16]} spends the same UTXO twice",
                    code="UTXO_DOUBLE_SPEND"
                )
            for utxo_key in new_keys:
                if utxo_key in self._utxos and utxo_key not in spent_keys:
                    raise UTXOError(
                        f"UTXO {utxo_key} already exists in set",
                        code="UTXO_DUPLICATE",
                        details={"utxo_key": str(utxo_key)}
                    )

            for utxo_key in spent_keys:
                self.remove_utxo(utxo_key)

            for utxo_key, output in zip(new_keys, tx.outputs):
                self.add_utxo(utxo_key, output)

            logger.debug(
                "Transaction applied to UTXO set",
                extra_data={
                    "txid": txid[:16] + "...",
                    "inputs_removed": len(spent_keys),
                    "outputs_added": len(new_keys),
                    "total_utxos": len(self._utxos)
                }
            )

    def freeze(self) -> UTXOSet:
        """Rende il set immutabile. Ritorna self."""
        with self._lock:
            self._frozen = True
        return self

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def copy(self) -> UTXOSet:
        """
        Copia indipendente e mutabile (anche da un set congelato).

        Le TxOutput sono immutabili e vengono condivise.
        """
        with self._lock:
            clone = UTXOSet()
            clone._utxos = dict(self._utxos)
            clone._owner_index = defaultdict(
                set,
                {owner: set(keys) for owner, keys in self._owner_index.items()}
            )
            return clone

    # ------------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------------

    def get_utxo(self, utxo_key: UTXOKey) -> Optional[TxOutput]:
        """Ottieni UTXO per chiave (None se assente)."""
        with self._lock:
            return self._utxos.get(utxo_key)

    def contains(self, utxo_key: UTXOKey) -> bool:
        with self._lock:
            return utxo_key in self._utxos

    def get_utxos_for_owner(self, owner: bytes) -> List[Tuple[UTXOKey, TxOutput]]:
        """
        Tutti gli UTXO di un owner, ordinati per chiave.

        Performance:
            O(n) dove n = numero UTXO dell'owner
        """
        with self._lock:
            keys = sorted(self._owner_index.get(owner, set()))
            return [(key, self._utxos[key]) for key in keys]

    def get_balance(self, owner: bytes) -> int:
        """Somma dei valori posseduti da `owner`."""
        return sum(output.amount for _, output in self.get_utxos_for_owner(owner))

    def total_value(self) -> int:
        """Somma di tutti gli UTXO"""
        with self._lock:
            return sum(output.amount for output in self._utxos.values())

    def utxo_count(self) -> int:
        with self._lock:
            return len(self._utxos)

    def owner_count(self) -> int:
        with self._lock:
            return len(self._owner_index)

    def items(self) -> List[Tuple[UTXOKey, TxOutput]]:
        """Coppie (key, output) ordinate per chiave"""
        with self._lock:
            return sorted(self._utxos.items())

    def keys(self) -> List[UTXOKey]:
        with self._lock:
            return sorted(self._utxos)

    def to_dict(self) -> Dict[str, Any]:
        """Serializza come {"txid:index": output_dict}"""
        return {str(key): output.to_dict() for key, output in self.items()}

    def get_statistics(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "total_utxos": len(self._utxos),
                "total_owners": len(self._owner_index),
                "total_value": self.total_value(),
                "frozen": self._frozen,
            }

    def __contains__(self, utxo_key: object) -> bool:
        return isinstance(utxo_key, UTXOKey) and self.contains(utxo_key)

    def __iter__(self) -> Iterator[UTXOKey]:
        return iter(self.keys())

    def __len__(self) -> int:
        return self.utxo_count()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UTXOSet):
            return NotImplemented
        return dict(self.items()) == dict(other.items())

    __hash__ = None

    def __repr__(self) -> str:
        """Safe repr"""
        return (
            f"UTXOSet(utxos={self.utxo_count()}, "
            f"owners={self.owner_count()}, "
            f"value={self.total_value()}, "
            f"frozen={self._frozen})"
        )


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "UTXOSet",
]
