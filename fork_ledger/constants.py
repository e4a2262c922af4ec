"""
ForkLedger - Core Constants
=============================
Costanti del protocollo: finestra di cutoff, profondita' genesis,
limiti del pool transazioni.

Security Level: CRITICAL
Last Updated: 2026-10-17
Version: 1.0.0
"""

from typing import Final


# ============================================================================
# IDENTIFICAZIONE PROGETTO
# ============================================================================

PROJECT_NAME: Final[str] = "ForkLedger"
SOFTWARE_VERSION: Final[str] = "1.0.0"


# ============================================================================
# ALBERO BLOCCHI
# ============================================================================

# Un blocco e' ammesso solo se parent.depth >= best.depth - CUTOFF_AGE
CUTOFF_AGE: Final[int] = 10

# Profondita' del nodo genesis
GENESIS_DEPTH: Final[int] = 0

# Sequenza di arrivo del genesis (tie-break: vince la sequenza minore)
GENESIS_SEQUENCE: Final[int] = 0


# ============================================================================
# CRITTOGRAFIA
# ============================================================================

SUPPORTED_CRYPTO_ALGORITHMS: Final[tuple] = ("ecdsa",)

DEFAULT_CRYPTO_ALGORITHM: Final[str] = "ecdsa"

# Lunghezza hex di un hash SHA-256
HASH_HEX_LENGTH: Final[int] = 64


# ============================================================================
# POOL TRANSAZIONI PENDENTI
# ============================================================================

MEMPOOL_MAX_COUNT: Final[int] = 50_000

MEMPOOL_MAX_SIZE_MB: Final[int] = 300

MEMPOOL_EXPIRY_HOURS: Final[int] = 72


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "PROJECT_NAME",
    "SOFTWARE_VERSION",
    "CUTOFF_AGE",
    "GENESIS_DEPTH",
    "GENESIS_SEQUENCE",
    "SUPPORTED_CRYPTO_ALGORITHMS",
    "DEFAULT_CRYPTO_ALGORITHM",
    "HASH_HEX_LENGTH",
    "MEMPOOL_MAX_COUNT",
    "MEMPOOL_MAX_SIZE_MB",
    "MEMPOOL_EXPIRY_HOURS",
]
