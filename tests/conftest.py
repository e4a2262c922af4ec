"""
ForkLedger - Pytest Configuration
===================================
Fixtures e configurazione per testing.

Last Updated: 2026-10-17
Version: 1.0.0
"""

import itertools

import pytest

from fork_ledger.config import LedgerSettings
from fork_ledger.domain.chain_tree import ChainTree
from fork_ledger.domain.keypairs import generate_keypair
from fork_ledger.domain.mempool import TransactionPool
from fork_ledger.domain.models import Block, Transaction, TxInput, TxOutput


_nonces = itertools.count(1)


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================

@pytest.fixture
def test_config():
    """Test configuration (cutoff di default)"""
    return LedgerSettings(cutoff_age=10, log_level="DEBUG", log_to_file=False)


@pytest.fixture
def short_cutoff_config():
    """Configuration con finestra corta per i test di pruning"""
    return LedgerSettings(cutoff_age=2, log_level="DEBUG", log_to_file=False)


# ============================================================================
# KEY FIXTURES
# ============================================================================

@pytest.fixture(scope="session")
def alice():
    """KeyPair proprietario del genesis"""
    return generate_keypair()


@pytest.fixture(scope="session")
def bob():
    return generate_keypair()


@pytest.fixture(scope="session")
def miner():
    """KeyPair che riceve le coinbase dei blocchi"""
    return generate_keypair()


# ============================================================================
# BUILDER FIXTURES
# ============================================================================

@pytest.fixture
def make_coinbase(miner):
    """Factory coinbase con nonce univoco"""
    def _make(owner=None, amount=25):
        return Transaction(
            inputs=[],
            outputs=[TxOutput(amount, (owner or miner).public_key)],
            nonce=next(_nonces),
        )
    return _make


@pytest.fixture
def make_tx():
    """
    Factory transazioni.

    spends: lista di (txid, output_index, keypair firmatario)
    outputs: lista di (amount, keypair destinatario)
    """
    def _make(spends, outputs, sign=True):
        tx = Transaction(
            inputs=[TxInput(txid, index) for txid, index, _ in spends],
            outputs=[TxOutput(amount, kp.public_key) for amount, kp in outputs],
            nonce=next(_nonces),
        )
        if sign:
            tx = tx.sign_inputs([kp for _, _, kp in spends])
        return tx
    return _make


@pytest.fixture
def make_block(make_coinbase):
    """Factory blocchi: parent puo' essere Block, hash o None"""
    def _make(parent, transactions=(), owner=None, amount=25):
        if parent is None or isinstance(parent, str):
            previous_hash = parent
        else:
            previous_hash = parent.block_hash
        return Block(
            previous_hash=previous_hash,
            coinbase=make_coinbase(owner, amount),
            transactions=transactions,
        )
    return _make


# ============================================================================
# CHAIN FIXTURES
# ============================================================================

@pytest.fixture
def genesis_block(alice):
    """Genesis: 100 ad alice"""
    coinbase = Transaction(inputs=[], outputs=[TxOutput(100, alice.public_key)], nonce=0)
    return Block(previous_hash=None, coinbase=coinbase)


@pytest.fixture
def chain(genesis_block, test_config):
    """ChainTree con cutoff 10"""
    return ChainTree(genesis_block, config=test_config)


@pytest.fixture
def short_chain(genesis_block, short_cutoff_config):
    """ChainTree con cutoff 2"""
    return ChainTree(genesis_block, config=short_cutoff_config)


@pytest.fixture
def extend(make_block):
    """Estende linearmente `tree` da `parent` con `count` blocchi vuoti"""
    def _extend(tree, parent, count):
        blocks = []
        for _ in range(count):
            block = make_block(parent)
            result = tree.add_block(block)
            assert result.accepted, result.error
            blocks.append(block)
            parent = block
        return blocks
    return _extend


@pytest.fixture
def pool():
    """TransactionPool per test"""
    return TransactionPool(max_size_mb=1, max_count=5, expiry_hours=1)
