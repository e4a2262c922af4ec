"""
ForkLedger - UTXO Fork Tree
=============================
Albero di blocchi con fork e ledger UTXO per nodo.

Version: 1.0.0
Author: ForkLedger Team
License: MIT
"""

__version__ = "1.0.0"
__author__ = "ForkLedger Team"
__license__ = "MIT"

# Core imports
from fork_ledger.domain.chain_tree import (
    ChainTree,
    ChainNode,
    AdmissionResult,
    new_chain,
    add_block,
    best_block,
    best_ledger_snapshot,
    submit_pending_transaction,
)
from fork_ledger.domain.validation import TransactionValidator
from fork_ledger.domain.utxo import UTXOSet
from fork_ledger.domain.mempool import TransactionPool
from fork_ledger.domain.models import Block, Transaction, TxInput, TxOutput, UTXOKey
from fork_ledger.domain.keypairs import KeyPair, generate_keypair
from fork_ledger.config import LedgerSettings, get_settings

# Constants
from fork_ledger.constants import CUTOFF_AGE

__all__ = [
    # Version
    "__version__",

    # Core
    "ChainTree",
    "ChainNode",
    "AdmissionResult",
    "TransactionValidator",
    "UTXOSet",
    "TransactionPool",
    "LedgerSettings",
    "get_settings",

    # Models
    "Block",
    "Transaction",
    "TxInput",
    "TxOutput",
    "UTXOKey",
    "KeyPair",
    "generate_keypair",

    # Caller surface
    "new_chain",
    "add_block",
    "best_block",
    "best_ledger_snapshot",
    "submit_pending_transaction",

    # Constants
    "CUTOFF_AGE",
]
