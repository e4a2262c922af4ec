"""
ForkLedger - Domain Package
=============================
Core domain logic: modelli, ledger UTXO, validazione, albero dei blocchi.
"""

# Models
from fork_ledger.domain.models import (
    Transaction,
    TxInput,
    TxOutput,
    Block,
    UTXOKey,
)

# UTXO
from fork_ledger.domain.utxo import UTXOSet

# Validation
from fork_ledger.domain.validation import TransactionValidator

# Chain tree
from fork_ledger.domain.chain_tree import ChainTree, ChainNode, AdmissionResult

# Pending pool
from fork_ledger.domain.mempool import TransactionPool

# Crypto
from fork_ledger.domain.crypto_core import get_crypto_provider
from fork_ledger.domain.keypairs import KeyPair, generate_keypair

__all__ = [
    "Transaction",
    "TxInput",
    "TxOutput",
    "Block",
    "UTXOKey",
    "UTXOSet",
    "TransactionValidator",
    "ChainTree",
    "ChainNode",
    "AdmissionResult",
    "TransactionPool",
    "get_crypto_provider",
    "KeyPair",
    "generate_keypair",
]
