"""
ForkLedger - Transaction & Block Model Tests
==============================================
Unit tests for transaction and block models.
"""

import pytest

from fork_ledger.domain.models import Transaction, TxInput, TxOutput, Block, UTXOKey
from fork_ledger.errors import ValidationError, BlockError


TXID = "ab" * 32


class TestTransaction:
    """Test Transaction class"""

    def test_coinbase_creation(self, alice):
        """Test transaction without inputs is a coinbase"""
        tx = Transaction(inputs=[], outputs=[TxOutput(50, alice.public_key)])

        assert tx.is_coinbase()
        assert tx.total_output_amount() == 50

    def test_lists_become_tuples(self, alice):
        """Test inputs and outputs are stored immutably"""
        tx = Transaction(inputs=[TxInput(TXID, 0)], outputs=[TxOutput(1, alice.public_key)])

        assert isinstance(tx.inputs, tuple)
        assert isinstance(tx.outputs, tuple)
        assert not tx.is_coinbase()

    def test_txid_deterministic(self, alice):
        """Test transaction ID computation"""
        tx = Transaction(inputs=[TxInput(TXID, 0)], outputs=[TxOutput(10, alice.public_key)])

        assert tx.compute_txid() == tx.compute_txid()
        assert tx.txid == tx.compute_txid()
        assert len(tx.txid) == 64

    def test_txid_ignores_signatures(self, alice):
        """Test signing does not change the txid"""
        tx = Transaction(inputs=[TxInput(TXID, 0)], outputs=[TxOutput(10, alice.public_key)])
        signed = tx.sign_inputs([alice])

        assert signed.inputs[0].is_signed()
        assert signed.txid == tx.txid
        assert signed.compute_hash() != tx.compute_hash()

    def test_nonce_changes_txid(self, alice):
        """Test otherwise identical transactions differ by nonce"""
        outputs = [TxOutput(10, alice.public_key)]

        assert Transaction([], outputs, nonce=1).txid != Transaction([], outputs, nonce=2).txid

    def test_signing_message_per_input(self, alice):
        """Test each input signs a distinct message"""
        tx = Transaction(
            inputs=[TxInput(TXID, 0), TxInput(TXID, 1)],
            outputs=[TxOutput(10, alice.public_key)],
        )

        assert tx.signing_message(0) != tx.signing_message(1)

        with pytest.raises(ValidationError):
            tx.signing_message(2)

    def test_sign_inputs_requires_one_keypair_per_input(self, alice):
        """Test keypair count mismatch is rejected"""
        tx = Transaction(inputs=[TxInput(TXID, 0)], outputs=[TxOutput(10, alice.public_key)])

        with pytest.raises(ValidationError) as exc_info:
            tx.sign_inputs([])

        assert exc_info.value.code == "KEYPAIR_COUNT_MISMATCH"

    def test_negative_output_constructible(self, alice):
        """Test negative amounts are left to the validator"""
        output = TxOutput(-5, alice.public_key)

        assert output.amount == -5

    def test_invalid_output_owner(self):
        """Test empty owner is rejected"""
        with pytest.raises(ValidationError):
            TxOutput(5, b"")

    def test_invalid_prev_txid(self):
        """Test malformed input references are rejected"""
        with pytest.raises(ValidationError):
            TxInput("not-a-hash", 0)

        with pytest.raises(ValidationError):
            TxInput(TXID, -1)

    def test_transaction_serialization(self, alice):
        """Test transaction serialization/deserialization"""
        tx = Transaction(
            inputs=[TxInput(TXID, 3)],
            outputs=[TxOutput(7, alice.public_key)],
            nonce=9,
            metadata={"memo": "rent"},
        ).sign_inputs([alice])

        restored = Transaction.from_dict(tx.to_dict())

        assert restored == tx
        assert restored.txid == tx.txid


class TestUTXOKey:
    """Test UTXOKey"""

    def test_structural_equality(self):
        """Test keys compare and hash by value"""
        assert UTXOKey(TXID, 0) == UTXOKey(TXID, 0)
        assert len({UTXOKey(TXID, 0), UTXOKey(TXID, 0), UTXOKey(TXID, 1)}) == 2

    def test_input_utxo_key(self):
        """Test input exposes the referenced key"""
        assert TxInput(TXID, 2).utxo_key == UTXOKey(TXID, 2)

    def test_str(self):
        assert str(UTXOKey(TXID, 4)) == f"{TXID}:4"


class TestBlock:
    """Test Block class"""

    def test_genesis_block(self, genesis_block):
        """Test genesis has no parent"""
        assert genesis_block.is_genesis()
        assert len(genesis_block.block_hash) == 64
        assert genesis_block.get_transaction_count() == 0

    def test_coinbase_with_inputs_rejected(self, alice):
        """Test coinbase slot must hold a zero-input transaction"""
        not_coinbase = Transaction(inputs=[TxInput(TXID, 0)], outputs=[TxOutput(1, alice.public_key)])

        with pytest.raises(BlockError) as exc_info:
            Block(previous_hash=None, coinbase=not_coinbase)

        assert exc_info.value.code == "COINBASE_WITH_INPUTS"

    def test_coinbase_without_outputs_rejected(self):
        """Test coinbase must create at least one output"""
        with pytest.raises(BlockError):
            Block(previous_hash=None, coinbase=Transaction(inputs=[], outputs=[]))

    def test_invalid_previous_hash(self, make_coinbase):
        """Test malformed parent hash is rejected"""
        with pytest.raises(BlockError):
            Block(previous_hash="xyz", coinbase=make_coinbase())

    def test_hash_depends_on_parent(self, make_coinbase):
        """Test same content under different parents hashes differently"""
        coinbase = make_coinbase()

        first = Block(previous_hash="11" * 32, coinbase=coinbase)
        second = Block(previous_hash="22" * 32, coinbase=coinbase)

        assert first.block_hash != second.block_hash

    def test_coinbase_bound_to_parent(self, make_coinbase):
        """Test the same coinbase gets a distinct txid under each parent"""
        coinbase = make_coinbase()

        first = Block(previous_hash="11" * 32, coinbase=coinbase)
        second = Block(previous_hash="22" * 32, coinbase=coinbase)
        genesis = Block(previous_hash=None, coinbase=coinbase)

        assert first.coinbase.txid != second.coinbase.txid
        assert first.coinbase.metadata["previous_hash"] == "11" * 32
        assert genesis.coinbase is coinbase
        assert Block.from_dict(first.to_dict()).coinbase.txid == first.coinbase.txid

    def test_contains_transaction(self, genesis_block):
        """Test coinbase is found by txid"""
        assert genesis_block.contains_transaction(genesis_block.coinbase.txid)
        assert not genesis_block.contains_transaction(TXID)

    def test_block_serialization(self, make_block, make_tx, genesis_block, alice, bob):
        """Test block serialization/deserialization keeps the hash"""
        tx = make_tx([(genesis_block.coinbase.txid, 0, alice)], [(60, bob), (40, alice)])
        block = make_block(genesis_block, [tx])

        restored = Block.from_dict(block.to_dict())

        assert restored.block_hash == block.block_hash
        assert restored.transactions == block.transactions
