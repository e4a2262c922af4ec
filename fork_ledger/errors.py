"""
ForkLedger - Custom Exceptions
================================
Gerarchia completa di eccezioni per ledger UTXO e albero di fork.

Security Level: HIGH
Last Updated: 2026-10-17
Version: 1.0.0
"""

from typing import Optional


# ============================================================================
# BASE EXCEPTION
# ============================================================================

class ForkLedgerException(Exception):
    """
    Eccezione base per tutte le eccezioni ForkLedger.

    Attributes:
        message (str): Messaggio errore
        code (str): Codice errore (es. "TOO_OLD")
        details (dict): Dettagli aggiuntivi
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}

        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Serializza eccezione per CLI/logging"""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        if self.details:
            return f"[{self.code}] {self.message} | Details: {self.details}"
        return f"[{self.code}] {self.message}"


# ============================================================================
# CONFIGURATION ERRORS
# ============================================================================

class ConfigError(ForkLedgerException):
    """Errore configurazione sistema"""
    pass


# ============================================================================
# CHAIN TREE ERRORS
# ============================================================================

class ChainTreeError(ForkLedgerException):
    """Errore generico albero blocchi"""
    pass


class GenesisError(ChainTreeError):
    """Errore genesis block"""
    pass


class AdmissionError(ChainTreeError):
    """Blocco rifiutato da add_block"""
    pass


class NoParentGenesisRejectedError(AdmissionError):
    """Blocco senza parent: un secondo genesis non e' ammesso"""
    pass


class UnknownParentError(AdmissionError):
    """Parent non presente nell'indice (mai visto o gia' potato)"""
    pass


class TooOldError(AdmissionError):
    """Parent fuori dalla finestra di cutoff"""
    pass


class InvalidTransactionsError(AdmissionError):
    """Almeno una transazione del blocco non e' stata accettata"""
    pass


class DuplicateBlockError(AdmissionError):
    """Blocco gia' presente nell'albero"""
    pass


# ============================================================================
# VALIDATION ERRORS
# ============================================================================

class ValidationError(ForkLedgerException):
    """Errore validazione generico"""
    pass


class BlockError(ValidationError):
    """Blocco malformato"""
    pass


class TransactionError(ValidationError):
    """Transazione non valida rispetto al ledger corrente"""
    pass


class UnknownInputError(TransactionError):
    """Input che riferisce un output non presente nel ledger"""
    pass


class InvalidSignatureError(TransactionError):
    """Firma input non valida"""
    pass


class DoubleSpendError(TransactionError):
    """Stesso output speso due volte nella transazione"""
    pass


class NegativeOutputError(TransactionError):
    """Output con valore negativo"""
    pass


class ValueNotConservedError(TransactionError):
    """Somma output maggiore della somma input"""
    pass


# ============================================================================
# UTXO ERRORS
# ============================================================================

class UTXOError(ForkLedgerException):
    """Errore UTXO set"""
    pass


class UTXONotFoundError(UTXOError):
    """UTXO non trovato"""
    pass


class UTXOFrozenError(UTXOError):
    """Modifica di uno snapshot congelato"""
    pass


# ============================================================================
# MEMPOOL ERRORS
# ============================================================================

class MempoolError(ForkLedgerException):
    """Errore pool transazioni pendenti"""
    pass


class MempoolFullError(MempoolError):
    """Pool pieno"""
    pass


# ============================================================================
# CRYPTO ERRORS
# ============================================================================

class CryptoError(ForkLedgerException):
    """Errore crittografico"""
    pass


class InvalidKeyError(CryptoError):
    """Chiave invalida"""
    pass


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ForkLedgerException",
    "ConfigError",
    "ChainTreeError",
    "GenesisError",
    "AdmissionError",
    "NoParentGenesisRejectedError",
    "UnknownParentError",
    "TooOldError",
    "InvalidTransactionsError",
    "DuplicateBlockError",
    "ValidationError",
    "BlockError",
    "TransactionError",
    "UnknownInputError",
    "InvalidSignatureError",
    "DoubleSpendError",
    "NegativeOutputError",
    "ValueNotConservedError",
    "UTXOError",
    "UTXONotFoundError",
    "UTXOFrozenError",
    "MempoolError",
    "MempoolFullError",
    "CryptoError",
    "InvalidKeyError",
]
