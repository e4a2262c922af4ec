"""
ForkLedger - Pending Transaction Pool
=======================================
Inbox delle transazioni inviate dai client, in attesa di un blocco.

Security Level: MEDIUM
Last Updated: 2026-10-17
Version: 1.0.0

Features:
- Ordine FIFO di arrivo
- Duplicati (stesso txid) ignorati
- Size/count limits
- Expiry management
- Thread-safe operations

Il pool non valida: transazioni in conflitto tra loro possono
coesistere, la validazione avviene all'ammissione del blocco.
"""

from typing import List, Dict, Optional, Any
from dataclasses import dataclass
import json
import time
import threading

from fork_ledger.domain.models import Transaction, Block
from fork_ledger.errors import MempoolFullError
from fork_ledger.logging_setup import get_logger
from fork_ledger.constants import (
    MEMPOOL_MAX_COUNT,
    MEMPOOL_MAX_SIZE_MB,
    MEMPOOL_EXPIRY_HOURS,
)


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("mempool")


# ============================================================================
# POOL ENTRY
# ============================================================================

@dataclass
class PoolEntry:
    """
    Entry nel pool.

    Attributes:
        transaction: Transaction
        added_time: Timestamp aggiunta (secondi)
        size: Size serializzata in bytes
    """

    transaction: Transaction
    added_time: float
    size: int

    def is_expired(self, expiry_hours: int, now: Optional[float] = None) -> bool:
        """Check se entry e' scaduta"""
        current_time = time.time() if now is None else now
        return (current_time - self.added_time) / 3600 > expiry_hours

    def __repr__(self) -> str:
        return f"PoolEntry(txid={self.transaction.txid[:16]}..., size={self.size})"


# ============================================================================
# TRANSACTION POOL
# ============================================================================

class TransactionPool:
    """
    Pool transazioni pendenti.

    Thread Safety:
        - Protected da RLock

    Attributes:
        _entries: Mapping txid -> PoolEntry (ordine di inserimento)
        max_size: Max size in bytes
        max_count: Max numero tx
        expiry_hours: Ore prima expiry

    Examples:
        >>> pool = TransactionPool()
        >>> pool.add_transaction(tx)
        True
        >>> pool.get_all_transactions() == [tx]
        True
    """

    def __init__(
        self,
        max_size_mb: int = MEMPOOL_MAX_SIZE_MB,
        max_count: int = MEMPOOL_MAX_COUNT,
        expiry_hours: int = MEMPOOL_EXPIRY_HOURS
    ):
        self._entries: Dict[str, PoolEntry] = {}

        self.max_size = max_size_mb * 1024 * 1024
        self.max_count = max_count
        self.expiry_hours = expiry_hours

        self._current_size = 0
        self._lock = threading.RLock()

        logger.debug(
            "Transaction pool initialized",
            extra_data={
                "max_size_mb": max_size_mb,
                "max_count": max_count,
                "expiry_hours": expiry_hours
            }
        )

    def add_transaction(self, tx: Transaction) -> bool:
        """
        Aggiungi transazione al pool.

        Returns:
            bool: False se gia' presente, True se aggiunta

        Raises:
            MempoolFullError: Se pool pieno
        """
        with self._lock:
            txid = tx.txid

            if txid in self._entries:
                logger.debug(f"Transaction {txid[:16]} already in pool")
                return False

            tx_size = len(json.dumps(tx.to_dict()).encode('utf-8'))

            if len(self._entries) >= self.max_count:
                raise MempoolFullError(
                    f"Pool full: {len(self._entries)} transactions",
                    code="MEMPOOL_COUNT_LIMIT"
                )

            if self._current_size + tx_size > self.max_size:
                raise MempoolFullError(
                    f"Pool size limit reached: {self._current_size} bytes",
                    code="MEMPOOL_SIZE_LIMIT"
                )

            self._entries[txid] = PoolEntry(
                transaction=tx,
                added_time=time.time(),
                size=tx_size
            )
            self._current_size += tx_size

            logger.info(
                "Transaction added to pool",
                extra_data={
                    "txid": txid[:16] + "...",
                    "size": tx_size,
                    "pool_size": len(self._entries)
                }
            )

            return True

    def remove_transaction(self, txid: str) -> Optional[Transaction]:
        """Rimuovi transazione. Ritorna la tx rimossa o None."""
        with self._lock:
            entry = self._entries.pop(txid, None)

            if not entry:
                return None

            self._current_size -= entry.size
            return entry.transaction

    def get_transaction(self, txid: str) -> Optional[Transaction]:
        with self._lock:
            entry = self._entries.get(txid)
            return entry.transaction if entry else None

    def contains(self, txid: str) -> bool:
        with self._lock:
            return txid in self._entries

    def size(self) -> int:
        """Numero transazioni nel pool"""
        with self._lock:
            return len(self._entries)

    def is_empty(self) -> bool:
        return self.size() == 0

    def get_all_transactions(self) -> List[Transaction]:
        """Tutte le transazioni, in ordine di arrivo."""
        with self._lock:
            return [entry.transaction for entry in self._entries.values()]

    def get_transactions_for_block(
        self,
        max_count: Optional[int] = None,
        max_size: Optional[int] = None
    ) -> List[Transaction]:
        """
        Transazioni candidate per un nuovo blocco (FIFO).

        Args:
            max_count: Max numero tx (None = no limit)
            max_size: Max size totale in bytes (None = no limit)
        """
        with self._lock:
            selected = []
            total_size = 0

            for entry in self._entries.values():
                if max_count is not None and len(selected) >= max_count:
                    break

                if max_size is not None and total_size + entry.size > max_size:
                    break

                selected.append(entry.transaction)
                total_size += entry.size

            return selected

    def remove_transactions_in_block(self, block: Block) -> int:
        """
        Rimuovi le transazioni incluse nel corpo di un blocco ammesso.

        Returns:
            int: Numero tx rimosse
        """
        with self._lock:
            removed_count = 0

            for tx in block.transactions:
                if self.remove_transaction(tx.txid):
                    removed_count += 1

            if removed_count:
                logger.info(
                    "Removed block transactions from pool",
                    extra_data={
                        "removed": removed_count,
                        "remaining": len(self._entries)
                    }
                )

            return removed_count

    def cleanup_expired(self, now: Optional[float] = None) -> int:
        """
        Rimuovi transazioni scadute.

        Returns:
            int: Numero tx rimosse
        """
        with self._lock:
            expired_txids = [
                txid for txid, entry in self._entries.items()
                if entry.is_expired(self.expiry_hours, now)
            ]

            for txid in expired_txids:
                self.remove_transaction(txid)

            if expired_txids:
                logger.info(
                    "Removed expired transactions from pool",
                    extra_data={"count": len(expired_txids)}
                )

            return len(expired_txids)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._current_size = 0

            logger.warning("Transaction pool cleared")

    def get_statistics(self) -> Dict[str, Any]:
        with self._lock:
            oldest = min((e.added_time for e in self._entries.values()), default=None)
            return {
                "count": len(self._entries),
                "size_bytes": self._current_size,
                "size_mb": round(self._current_size / (1024 * 1024), 2),
                "max_count": self.max_count,
                "max_size_mb": self.max_size // (1024 * 1024),
                "oldest_entry": oldest,
            }

    def __len__(self) -> int:
        return self.size()

    def __contains__(self, txid: object) -> bool:
        return isinstance(txid, str) and self.contains(txid)

    def __repr__(self) -> str:
        return f"TransactionPool(count={self.size()}, size={self._current_size} bytes)"


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "PoolEntry",
    "TransactionPool",
]
