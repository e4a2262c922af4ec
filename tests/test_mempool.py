"""
ForkLedger - Transaction Pool Tests
=====================================
"""

import time

import pytest

from fork_ledger.domain.mempool import TransactionPool
from fork_ledger.domain.models import Block
from fork_ledger.errors import MempoolFullError


FUND_TXID = "ab" * 32


@pytest.fixture
def pending(make_tx, alice, bob):
    """Factory di transazioni pendenti indipendenti"""
    def _make(index=0, amount=10):
        return make_tx([(FUND_TXID, index, alice)], [(amount, bob)])
    return _make


class TestTransactionPool:
    """Test TransactionPool"""

    def test_add_and_get(self, pool, pending):
        tx = pending()

        assert pool.add_transaction(tx) is True
        assert pool.contains(tx.txid)
        assert tx.txid in pool
        assert pool.get_transaction(tx.txid) is tx
        assert len(pool) == 1
        assert not pool.is_empty()

    def test_duplicate_ignored(self, pool, pending):
        """Test re-submission returns False"""
        tx = pending()
        pool.add_transaction(tx)

        assert pool.add_transaction(tx) is False
        assert pool.size() == 1

    def test_fifo_order(self, pool, pending):
        txs = [pending(i) for i in range(4)]
        for tx in txs:
            pool.add_transaction(tx)

        assert pool.get_all_transactions() == txs
        assert pool.get_transactions_for_block(max_count=2) == txs[:2]

    def test_conflicting_transactions_kept(self, pool, make_tx, alice, bob):
        """Test the pool does not validate against any ledger"""
        first = make_tx([(FUND_TXID, 0, alice)], [(10, bob)])
        second = make_tx([(FUND_TXID, 0, alice)], [(10, alice)])

        assert pool.add_transaction(first)
        assert pool.add_transaction(second)
        assert pool.size() == 2

    def test_count_limit(self, pool, pending):
        """Test MempoolFullError on max_count"""
        for i in range(5):
            pool.add_transaction(pending(i))

        with pytest.raises(MempoolFullError) as exc_info:
            pool.add_transaction(pending(99))

        assert exc_info.value.code == "MEMPOOL_COUNT_LIMIT"

    def test_size_limit(self, pending):
        """Test MempoolFullError on max size"""
        tiny = TransactionPool(max_size_mb=0, max_count=10, expiry_hours=1)

        with pytest.raises(MempoolFullError) as exc_info:
            tiny.add_transaction(pending())

        assert exc_info.value.code == "MEMPOOL_SIZE_LIMIT"

    def test_remove_transaction(self, pool, pending):
        tx = pending()
        pool.add_transaction(tx)

        assert pool.remove_transaction(tx.txid) is tx
        assert pool.remove_transaction(tx.txid) is None
        assert pool.get_statistics()["size_bytes"] == 0

    def test_remove_transactions_in_block(self, pool, pending, make_coinbase):
        included = pending(0)
        other = pending(1)
        pool.add_transaction(included)
        pool.add_transaction(other)

        block = Block("cd" * 32, make_coinbase(), [included])

        assert pool.remove_transactions_in_block(block) == 1
        assert pool.get_all_transactions() == [other]

    def test_cleanup_expired(self, pool, pending):
        """Test expiry using an explicit clock"""
        pool.add_transaction(pending())

        assert pool.cleanup_expired(now=time.time()) == 0
        assert pool.cleanup_expired(now=time.time() + 2 * 3600) == 1
        assert pool.is_empty()

    def test_clear_and_statistics(self, pool, pending):
        pool.add_transaction(pending())

        stats = pool.get_statistics()
        assert stats["count"] == 1
        assert stats["max_count"] == 5
        assert stats["oldest_entry"] is not None

        pool.clear()
        assert pool.is_empty()
