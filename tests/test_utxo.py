"""
ForkLedger - UTXO Set Tests
=============================
Unit tests for the ledger snapshot.
"""

import pytest

from fork_ledger.domain.models import Transaction, TxInput, TxOutput, UTXOKey
from fork_ledger.domain.utxo import UTXOSet
from fork_ledger.errors import UTXOError, UTXONotFoundError, UTXOFrozenError


TXID_A = "aa" * 32
TXID_B = "bb" * 32


@pytest.fixture
def utxo_set(alice, bob):
    """UTXO set con due output"""
    return UTXOSet({
        UTXOKey(TXID_A, 0): TxOutput(30, alice.public_key),
        UTXOKey(TXID_B, 1): TxOutput(12, bob.public_key),
    })


class TestUTXOSet:
    """Test UTXOSet"""

    def test_add_and_get(self, utxo_set, alice):
        """Test lookup by key"""
        assert UTXOKey(TXID_A, 0) in utxo_set
        assert utxo_set.get_utxo(UTXOKey(TXID_A, 0)).amount == 30
        assert utxo_set.get_utxo(UTXOKey(TXID_A, 5)) is None
        assert len(utxo_set) == 2

    def test_duplicate_add_raises(self, utxo_set, alice):
        """Test keys are unique"""
        with pytest.raises(UTXOError) as exc_info:
            utxo_set.add_utxo(UTXOKey(TXID_A, 0), TxOutput(1, alice.public_key))

        assert exc_info.value.code == "UTXO_DUPLICATE"

    def test_put_replaces_existing(self, utxo_set, alice, bob):
        """Test put_utxo overwrites the entry and keeps the owner index consistent"""
        utxo_set.put_utxo(UTXOKey(TXID_A, 0), TxOutput(5, bob.public_key))

        assert len(utxo_set) == 2
        assert utxo_set.get_balance(alice.public_key) == 0
        assert utxo_set.get_balance(bob.public_key) == 17
        assert utxo_set.get_utxos_for_owner(alice.public_key) == []

    def test_remove_missing_raises(self, utxo_set):
        """Test removing an unknown key"""
        with pytest.raises(UTXONotFoundError):
            utxo_set.remove_utxo(UTXOKey(TXID_A, 9))

    def test_balance_by_owner(self, utxo_set, alice, bob):
        """Test owner index"""
        assert utxo_set.get_balance(alice.public_key) == 30
        assert utxo_set.get_balance(bob.public_key) == 12
        assert utxo_set.total_value() == 42
        assert utxo_set.owner_count() == 2

    def test_apply_transaction(self, utxo_set, alice, bob):
        """Test inputs consumed and outputs added"""
        tx = Transaction(
            inputs=[TxInput(TXID_A, 0)],
            outputs=[TxOutput(20, bob.public_key), TxOutput(10, alice.public_key)],
        )

        utxo_set.apply_transaction(tx)

        assert UTXOKey(TXID_A, 0) not in utxo_set
        assert utxo_set.get_utxo(UTXOKey(tx.txid, 0)).amount == 20
        assert utxo_set.get_balance(bob.public_key) == 32

    def test_apply_transaction_missing_input_is_atomic(self, utxo_set, alice):
        """Test failed application leaves the set unchanged"""
        before = utxo_set.copy()
        tx = Transaction(
            inputs=[TxInput(TXID_A, 0), TxInput(TXID_A, 7)],
            outputs=[TxOutput(1, alice.public_key)],
        )

        with pytest.raises(UTXONotFoundError):
            utxo_set.apply_transaction(tx)

        assert utxo_set == before

    def test_freeze_blocks_mutation(self, utxo_set, alice):
        """Test frozen snapshot is read-only"""
        utxo_set.freeze()

        assert utxo_set.is_frozen
        with pytest.raises(UTXOFrozenError):
            utxo_set.add_utxo(UTXOKey(TXID_B, 0), TxOutput(1, alice.public_key))
        with pytest.raises(UTXOFrozenError):
            utxo_set.remove_utxo(UTXOKey(TXID_A, 0))

    def test_copy_is_independent(self, utxo_set, alice):
        """Test copy of a frozen set is mutable and isolated"""
        utxo_set.freeze()
        clone = utxo_set.copy()

        clone.remove_utxo(UTXOKey(TXID_A, 0))
        clone.add_utxo(UTXOKey(TXID_B, 0), TxOutput(5, alice.public_key))

        assert not clone.is_frozen
        assert UTXOKey(TXID_A, 0) in utxo_set
        assert UTXOKey(TXID_B, 0) not in utxo_set
        assert utxo_set.get_balance(alice.public_key) == 30
        assert clone.get_balance(alice.public_key) == 5

    def test_equality(self, utxo_set):
        """Test equality is by content"""
        assert utxo_set == utxo_set.copy()
        assert utxo_set != UTXOSet()

    def test_items_sorted(self, utxo_set):
        """Test deterministic iteration"""
        assert [key for key, _ in utxo_set.items()] == sorted(utxo_set.keys())
        assert list(utxo_set) == utxo_set.keys()

    def test_statistics(self, utxo_set):
        stats = utxo_set.get_statistics()

        assert stats["total_utxos"] == 2
        assert stats["total_value"] == 42
        assert stats["frozen"] is False
