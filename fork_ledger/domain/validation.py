"""
ForkLedger - Transaction Validation
=====================================
Validazione transazioni contro un ledger snapshot e accettazione
a punto fisso di un insieme di transazioni candidate.

Security Level: CRITICAL
Last Updated: 2026-10-17
Version: 1.0.0

Validation Rules (in ordine, short-circuit):
1. Ogni input riferisce un UTXO presente
2. Ogni firma e' valida per l'owner dell'UTXO riferito
3. Nessun UTXO riferito due volte nella stessa transazione
4. Nessun output negativo
5. Somma input >= somma output (differenza = fee implicita)

IMPORTANTE: Ogni modifica alle rules richiede security audit.
"""

from typing import Optional, List, Dict, Iterable

from fork_ledger.domain.models import Transaction, UTXOKey
from fork_ledger.domain.utxo import UTXOSet
from fork_ledger.domain.crypto_core import CryptoProvider, get_crypto_provider
from fork_ledger.errors import (
    ValidationError,
    TransactionError,
    UnknownInputError,
    InvalidSignatureError,
    DoubleSpendError,
    NegativeOutputError,
    ValueNotConservedError,
    UTXOError,
)
from fork_ledger.logging_setup import get_logger, PerformanceLogger
from fork_ledger.config import LedgerSettings, get_settings


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("validation")


# ============================================================================
# TRANSACTION VALIDATION
# ============================================================================

class TransactionValidator:
    """
    Validatore transazioni con ledger di lavoro privato.

    Il set passato al costruttore viene copiato: il validator non
    modifica mai il set del chiamante (puo' essere uno snapshot congelato).

    Attributes:
        config: Ledger configuration
        provider: Verificatore firme
        last_rejections: txid -> errore delle transazioni rifiutate
            dall'ultimo `accept_batch`

    Examples:
        >>> validator = TransactionValidator(parent_snapshot)
        >>> accepted = validator.accept_batch(block.transactions)
        >>> new_snapshot = validator.get_utxo_set()
    """

    def __init__(
        self,
        utxo_set: UTXOSet,
        provider: Optional[CryptoProvider] = None,
        config: Optional[LedgerSettings] = None
    ):
        self.config = config or get_settings()
        self.provider = provider or get_crypto_provider(self.config.crypto_algorithm)
        self._utxo_set = utxo_set.copy()
        self.last_rejections: Dict[str, TransactionError] = {}

    # ========================================================================
    # SINGLE TRANSACTION
    # ========================================================================

    def check_transaction(self, tx: Transaction) -> None:
        """
        Verifica le cinque regole sul ledger di lavoro.

        Nessun side effect.

        Raises:
            UnknownInputError: Input verso UTXO assente
            InvalidSignatureError: Firma mancante o non valida
            DoubleSpendError: Stesso UTXO riferito due volte
            NegativeOutputError: Output con valore negativo
            ValueNotConservedError: Output totali > input totali
        """
        self._validate_inputs_exist(tx)
        self._validate_signatures(tx)
        self._validate_no_double_spend(tx)
        self._validate_amounts(tx)
        self._validate_balance(tx)

    def is_valid(self, tx: Transaction) -> bool:
        """True se `tx` supera tutte le regole contro il ledger corrente."""
        try:
            self.check_transaction(tx)
        except TransactionError:
            return False
        return True

    def _validate_inputs_exist(self, tx: Transaction) -> None:
        for idx, inp in enumerate(tx.inputs):
            if not self._utxo_set.contains(inp.utxo_key):
                raise UnknownInputError(
                    f"Input {idx} references non-existent UTXO: {inp.utxo_key}",
                    code="UTXO_NOT_FOUND",
                    details={"input_index": idx, "utxo_key": str(inp.utxo_key)}
                )

    def _validate_signatures(self, tx: Transaction) -> None:
        for idx, inp in enumerate(tx.inputs):
            if not inp.is_signed():
                raise InvalidSignatureError(
                    f"Input {idx} not signed",
                    code="INPUT_NOT_SIGNED",
                    details={"input_index": idx}
                )

            owner = self._utxo_set.get_utxo(inp.utxo_key).owner
            if not self.provider.verify(tx.signing_message(idx), inp.signature, owner):
                raise InvalidSignatureError(
                    f"Invalid signature for input {idx}",
                    code="SIGNATURE_INVALID",
                    details={"input_index": idx}
                )

    def _validate_no_double_spend(self, tx: Transaction) -> None:
        seen = set()
        for idx, inp in enumerate(tx.inputs):
            if inp.utxo_key in seen:
                raise DoubleSpendError(
                    f"Input {idx} double-spend detected: {inp.utxo_key}",
                    code="DOUBLE_SPEND",
                    details={"input_index": idx, "utxo_key": str(inp.utxo_key)}
                )
            seen.add(inp.utxo_key)

    def _validate_amounts(self, tx: Transaction) -> None:
        for idx, output in enumerate(tx.outputs):
            if output.amount < 0:
                raise NegativeOutputError(
                    f"Output {idx} has negative amount: {output.amount}",
                    code="NEGATIVE_OUTPUT",
                    details={"output_index": idx, "amount": output.amount}
                )

    def _validate_balance(self, tx: Transaction) -> None:
        """Input >= Output (differenza = fee implicita)"""
        total_input = sum(
            self._utxo_set.get_utxo(inp.utxo_key).amount for inp in tx.inputs
        )
        total_output = tx.total_output_amount()

        if total_input < total_output:
            raise ValueNotConservedError(
                f"Insufficient funds: input={total_input}, output={total_output}",
                code="INSUFFICIENT_FUNDS",
                details={
                    "input_amount": total_input,
                    "output_amount": total_output,
                    "deficit": total_output - total_input
                }
            )

    # ========================================================================
    # BATCH ACCEPTANCE
    # ========================================================================

    def _try_accept(self, tx: Transaction) -> bool:
        try:
            self.check_transaction(tx)
            self._utxo_set.apply_transaction(tx)
        except TransactionError as e:
            self.last_rejections[tx.txid] = e
            return False
        except UTXOError as e:
            self.last_rejections[tx.txid] = TransactionError(
                f"Transaction outputs collide with existing UTXO: {e.message}",
                code="OUTPUT_EXISTS",
                details=e.details
            )
            return False

        self.last_rejections.pop(tx.txid, None)
        return True

    def accept_batch(self, candidates: Iterable[Transaction]) -> List[Transaction]:
        """
        Accetta il sottoinsieme massimale di transazioni mutuamente valide.

        Un primo passaggio greedy nell'ordine dato, poi ripassaggi della
        lista pendente finche' un intero passaggio non accetta nulla.
        Cosi' una transazione che spende l'output di una successiva nello
        stesso batch viene accettata al ripassaggio.

        Args:
            candidates: Transazioni candidate, in ordine

        Returns:
            List[Transaction]: Accettate, in ordine di accettazione
        """
        self.last_rejections = {}
        accepted: List[Transaction] = []
        pending: List[Transaction] = []

        with PerformanceLogger(logger, "accept_batch", threshold_ms=500):
            for tx in candidates:
                if self._try_accept(tx):
                    accepted.append(tx)
                else:
                    pending.append(tx)

            passes = 1
            progress = bool(pending) and bool(accepted)
            while pending and progress:
                passes += 1
                progress = False
                still_pending = []
                for tx in pending:
                    if self._try_accept(tx):
                        accepted.append(tx)
                        progress = True
                    else:
                        still_pending.append(tx)
                pending = still_pending

        if pending:
            logger.debug(
                "Batch partially rejected",
                extra_data={
                    "accepted": len(accepted),
                    "rejected": len(pending),
                    "passes": passes,
                    "reasons": {
                        txid[:16]: err.code for txid, err in self.last_rejections.items()
                    }
                }
            )

        return accepted

    # ========================================================================
    # COINBASE & SNAPSHOT
    # ========================================================================

    def apply_coinbase(self, tx: Transaction) -> None:
        """
        Accredita incondizionatamente gli output della coinbase.

        Un output con la stessa chiave di un UTXO esistente lo sostituisce.

        Raises:
            ValidationError: Se `tx` ha input
        """
        if not tx.is_coinbase():
            raise ValidationError(
                "apply_coinbase requires a transaction with no inputs",
                code="NOT_COINBASE"
            )
        txid = tx.txid
        for index, output in enumerate(tx.outputs):
            self._utxo_set.put_utxo(UTXOKey(txid, index), output)

        logger.debug(
            "Coinbase credited",
            extra_data={"txid": txid[:16] + "...", "outputs": len(tx.outputs)}
        )

    def get_utxo_set(self) -> UTXOSet:
        """Ledger di lavoro corrente (dopo le transazioni accettate)."""
        return self._utxo_set

    current_snapshot = get_utxo_set


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "TransactionValidator",
]
