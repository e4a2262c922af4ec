"""
ForkLedger - Core Domain Models
=================================
Strutture dati fondamentali del ledger.

Security Level: CRITICAL
Last Updated: 2026-10-17
Version: 1.0.0

Models:
- TxOutput: Output transazione (amount + owner)
- TxInput: Input transazione (riferimento UTXO + firma)
- Transaction: Transazione con input/output
- Block: Blocco (previous hash + coinbase + corpo)
- UTXOKey: Chiave UTXO (txid + index)

Tutte le strutture sono immutabili (frozen) per thread-safety.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from functools import cached_property
from typing import Optional, Tuple, Dict, Any, Sequence
import json

from fork_ledger.constants import HASH_HEX_LENGTH
from fork_ledger.domain.crypto_core import compute_sha256, compute_merkle_root
from fork_ledger.errors import ValidationError, BlockError


# ============================================================================
# HELPERS
# ============================================================================

def _is_hex_hash(value: Any) -> bool:
    if not isinstance(value, str) or len(value) != HASH_HEX_LENGTH:
        return False
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True


def _canonical_json(data: Dict[str, Any]) -> bytes:
    return json.dumps(data, sort_keys=True, separators=(',', ':')).encode('utf-8')


# ============================================================================
# UTXO KEY
# ============================================================================

@dataclass(frozen=True, order=True)
class UTXOKey:
    """
    Chiave univoca per identificare un output non speso.

    Attributes:
        txid (str): Transaction ID (64 hex)
        output_index (int): Indice output (0, 1, 2, ...)

    Examples:
        >>> key = UTXOKey("ab" * 32, 0)
        >>> str(key).endswith(":0")
        True
    """

    txid: str
    output_index: int

    def __post_init__(self):
        if not _is_hex_hash(self.txid):
            raise ValidationError(
                "txid must be 64 hex characters",
                code="INVALID_UTXO_TXID"
            )

        if not isinstance(self.output_index, int) or self.output_index < 0:
            raise ValidationError(
                f"output_index must be non-negative, got {self.output_index}",
                code="INVALID_OUTPUT_INDEX"
            )

    def __str__(self) -> str:
        return f"{self.txid}:{self.output_index}"

    def __repr__(self) -> str:
        return f"UTXOKey({self.txid[:16]}...:{self.output_index})"


# ============================================================================
# TRANSACTION OUTPUT
# ============================================================================

@dataclass(frozen=True)
class TxOutput:
    """
    Output di transazione.

    Il segno di `amount` non e' controllato qui: un output negativo
    e' costruibile ma rifiutato dal validator.

    Attributes:
        amount (int): Valore
        owner (bytes): Public key (PEM) autorizzata a spenderlo
    """

    amount: int
    owner: bytes

    def __post_init__(self):
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise ValidationError(
                f"amount must be int, got {type(self.amount).__name__}",
                code="INVALID_AMOUNT_TYPE"
            )

        if not isinstance(self.owner, bytes) or not self.owner:
            raise ValidationError(
                "owner must be non-empty public key bytes",
                code="INVALID_OWNER"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {"amount": self.amount, "owner": self.owner.hex()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TxOutput:
        return cls(amount=data["amount"], owner=bytes.fromhex(data["owner"]))

    def __repr__(self) -> str:
        return f"TxOutput(amount={self.amount}, owner={self.owner.hex()[-16:]})"


# ============================================================================
# TRANSACTION INPUT
# ============================================================================

@dataclass(frozen=True)
class TxInput:
    """
    Input di transazione: riferimento a un output precedente.

    Attributes:
        prev_txid (str): TXID della transazione che ha creato l'output
        prev_output_index (int): Indice dell'output
        signature (Optional[bytes]): Firma del proprietario sull'input
    """

    prev_txid: str
    prev_output_index: int
    signature: Optional[bytes] = None

    def __post_init__(self):
        if not _is_hex_hash(self.prev_txid):
            raise ValidationError(
                "prev_txid must be 64 hex characters",
                code="INVALID_PREV_TXID"
            )

        if not isinstance(self.prev_output_index, int) or self.prev_output_index < 0:
            raise ValidationError(
                f"prev_output_index must be non-negative, got {self.prev_output_index}",
                code="INVALID_OUTPUT_INDEX"
            )

        if self.signature is not None and not isinstance(self.signature, bytes):
            raise ValidationError(
                "signature must be bytes",
                code="INVALID_SIGNATURE_TYPE"
            )

    @property
    def utxo_key(self) -> UTXOKey:
        """UTXOKey dell'output referenziato"""
        return UTXOKey(self.prev_txid, self.prev_output_index)

    def is_signed(self) -> bool:
        return self.signature is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prev_txid": self.prev_txid,
            "prev_output_index": self.prev_output_index,
            "signature": self.signature.hex() if self.signature is not None else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> TxInput:
        signature = data.get("signature")
        return cls(
            prev_txid=data["prev_txid"],
            prev_output_index=data["prev_output_index"],
            signature=bytes.fromhex(signature) if signature else None,
        )

    def __repr__(self) -> str:
        return (
            f"TxInput({self.prev_txid[:16]}...:{self.prev_output_index}, "
            f"signed={self.is_signed()})"
        )


# ============================================================================
# TRANSACTION
# ============================================================================

@dataclass(frozen=True)
class Transaction:
    """
    Transazione: lista ordinata di input e lista ordinata di output.

    Una transazione senza input e' una coinbase (conia valore).

    Attributes:
        inputs (Tuple[TxInput, ...]): Input (liste convertite in tuple)
        outputs (Tuple[TxOutput, ...]): Output
        nonce (int): Distingue transazioni altrimenti identiche
        metadata (Optional[dict]): Metadata applicativi

    Security:
        - TXID calcolato senza firme (le firme coprono il TXID stesso)
        - Ogni input firma `signing_message(index)`

    Examples:
        >>> coinbase = Transaction(inputs=[], outputs=[TxOutput(50, owner_pem)])
        >>> coinbase.is_coinbase()
        True
    """

    inputs: Tuple[TxInput, ...]
    outputs: Tuple[TxOutput, ...]
    nonce: int = 0
    metadata: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))

        if not all(isinstance(inp, TxInput) for inp in self.inputs):
            raise ValidationError("inputs must be TxInput instances", code="INVALID_INPUTS")

        if not all(isinstance(out, TxOutput) for out in self.outputs):
            raise ValidationError("outputs must be TxOutput instances", code="INVALID_OUTPUTS")

        if not isinstance(self.nonce, int) or self.nonce < 0:
            raise ValidationError(
                f"nonce must be non-negative int, got {self.nonce}",
                code="INVALID_NONCE"
            )

    # ------------------------------------------------------------------------
    # Hashing
    # ------------------------------------------------------------------------

    def _unsigned_body(self) -> Dict[str, Any]:
        data = {
            "inputs": [
                {"prev_txid": inp.prev_txid, "prev_output_index": inp.prev_output_index}
                for inp in self.inputs
            ],
            "outputs": [out.to_dict() for out in self.outputs],
            "nonce": self.nonce,
        }
        if self.metadata:
            data["metadata"] = self.metadata
        return data

    def compute_txid(self) -> str:
        """
        Calcola Transaction ID.

        SHA-256 del JSON canonico del corpo senza firme.

        Returns:
            str: TXID (64 caratteri hex)
        """
        return compute_sha256(_canonical_json(self._unsigned_body())).hex()

    @cached_property
    def txid(self) -> str:
        """TXID (cached)"""
        return self.compute_txid()

    def compute_hash(self) -> str:
        """Hash della transazione completa (firme incluse), foglia del merkle tree"""
        return compute_sha256(_canonical_json(self.to_dict())).hex()

    def signing_message(self, input_index: int) -> bytes:
        """
        Messaggio firmato dall'input `input_index`.

        Copre il corpo non firmato e la posizione dell'input.

        Raises:
            ValidationError: Se l'indice e' fuori range
        """
        if not 0 <= input_index < len(self.inputs):
            raise ValidationError(
                f"input_index {input_index} out of range",
                code="INVALID_INPUT_INDEX",
                details={"inputs": len(self.inputs)}
            )
        return _canonical_json({"tx": self._unsigned_body(), "input_index": input_index})

    # ------------------------------------------------------------------------
    # Signing helpers
    # ------------------------------------------------------------------------

    def with_signature(self, input_index: int, signature: bytes) -> Transaction:
        """Nuova transazione con la firma dell'input sostituita"""
        if not 0 <= input_index < len(self.inputs):
            raise ValidationError(
                f"input_index {input_index} out of range",
                code="INVALID_INPUT_INDEX",
                details={"inputs": len(self.inputs)}
            )
        inputs = list(self.inputs)
        inputs[input_index] = replace(inputs[input_index], signature=signature)
        return replace(self, inputs=tuple(inputs))

    def sign_inputs(self, keypairs: Sequence) -> Transaction:
        """
        Firma tutti gli input.

        Args:
            keypairs: Una KeyPair per input, nello stesso ordine

        Returns:
            Transaction: Nuova transazione firmata
        """
        if len(keypairs) != len(self.inputs):
            raise ValidationError(
                "one keypair per input required",
                code="KEYPAIR_COUNT_MISMATCH",
                details={"inputs": len(self.inputs), "keypairs": len(keypairs)}
            )

        signed = self
        for index, keypair in enumerate(keypairs):
            signed = signed.with_signature(index, keypair.sign(self.signing_message(index)))
        return signed

    # ------------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------------

    def is_coinbase(self) -> bool:
        """Check se tx e' coinbase (nessun input)"""
        return len(self.inputs) == 0

    def total_output_amount(self) -> int:
        return sum(out.amount for out in self.outputs)

    def to_dict(self, include_signatures: bool = True, include_txid: bool = False) -> Dict[str, Any]:
        """
        Serializza transaction in dict.

        Args:
            include_signatures: Se True, include firme input
            include_txid: Se True, include TXID calcolato
        """
        data = {
            "inputs": [
                inp.to_dict() if include_signatures else {
                    "prev_txid": inp.prev_txid,
                    "prev_output_index": inp.prev_output_index,
                    "signature": None,
                }
                for inp in self.inputs
            ],
            "outputs": [out.to_dict() for out in self.outputs],
            "nonce": self.nonce,
        }

        if self.metadata:
            data["metadata"] = self.metadata

        if include_txid:
            data["txid"] = self.txid

        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Transaction:
        return cls(
            inputs=[TxInput.from_dict(inp) for inp in data.get("inputs", [])],
            outputs=[TxOutput.from_dict(out) for out in data.get("outputs", [])],
            nonce=data.get("nonce", 0),
            metadata=data.get("metadata"),
        )

    def __repr__(self) -> str:
        """Safe repr"""
        return (
            f"Transaction(txid={self.txid[:16]}..., "
            f"inputs={len(self.inputs)}, "
            f"outputs={len(self.outputs)})"
        )


# ============================================================================
# BLOCK
# ============================================================================

@dataclass(frozen=True)
class Block:
    """
    Blocco proposto all'albero.

    Attributes:
        previous_hash (Optional[str]): Hash del parent (None solo per genesis)
        coinbase (Transaction): Transazione di conio (zero input, >=1 output).
            Se il blocco ha un parent, la coinbase porta `previous_hash`
            nei metadata, quindi il suo txid e' unico per parent.
        transactions (Tuple[Transaction, ...]): Corpo del blocco, in ordine
        nonce (int): Distingue blocchi altrimenti identici

    Examples:
        >>> genesis = Block(previous_hash=None, coinbase=coinbase)
        >>> len(genesis.block_hash)
        64
    """

    previous_hash: Optional[str]
    coinbase: Transaction
    transactions: Tuple[Transaction, ...] = ()
    nonce: int = 0

    def __post_init__(self):
        object.__setattr__(self, "transactions", tuple(self.transactions))

        if self.previous_hash is not None and not _is_hex_hash(self.previous_hash):
            raise BlockError(
                "previous_hash must be None or 64 hex characters",
                code="INVALID_PREVIOUS_HASH"
            )

        if not isinstance(self.coinbase, Transaction):
            raise BlockError("coinbase must be a Transaction", code="MISSING_COINBASE")

        if not self.coinbase.is_coinbase():
            raise BlockError(
                "coinbase transaction must have no inputs",
                code="COINBASE_WITH_INPUTS"
            )

        if not self.coinbase.outputs:
            raise BlockError(
                "coinbase transaction must have at least one output",
                code="COINBASE_NO_OUTPUTS"
            )

        if not all(isinstance(tx, Transaction) for tx in self.transactions):
            raise BlockError("transactions must be Transaction instances", code="INVALID_BODY")

        # Coinbase legata al parent: chiavi UTXO distinte per ogni blocco
        if self.previous_hash is not None:
            metadata = dict(self.coinbase.metadata or {})
            if metadata.get("previous_hash") != self.previous_hash:
                metadata["previous_hash"] = self.previous_hash
                object.__setattr__(self, "coinbase", replace(self.coinbase, metadata=metadata))

    def compute_merkle_root(self) -> str:
        """Merkle root degli hash completi (coinbase + corpo)"""
        return compute_merkle_root([tx.compute_hash() for tx in self.all_transactions()])

    def compute_block_hash(self) -> str:
        """
        Calcola block hash.

        SHA-256 del JSON canonico di previous_hash, merkle root e nonce.
        """
        header = {
            "previous_hash": self.previous_hash,
            "merkle_root": self.compute_merkle_root(),
            "nonce": self.nonce,
        }
        return compute_sha256(_canonical_json(header)).hex()

    @cached_property
    def block_hash(self) -> str:
        """Block hash (cached)"""
        return self.compute_block_hash()

    def is_genesis(self) -> bool:
        return self.previous_hash is None

    def all_transactions(self) -> Tuple[Transaction, ...]:
        """Coinbase seguita dal corpo"""
        return (self.coinbase,) + self.transactions

    def get_transaction_count(self) -> int:
        """Numero transazioni nel corpo (coinbase esclusa)"""
        return len(self.transactions)

    def contains_transaction(self, txid: str) -> bool:
        return any(tx.txid == txid for tx in self.all_transactions())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "previous_hash": self.previous_hash,
            "coinbase": self.coinbase.to_dict(),
            "transactions": [tx.to_dict() for tx in self.transactions],
            "nonce": self.nonce,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Block:
        return cls(
            previous_hash=data.get("previous_hash"),
            coinbase=Transaction.from_dict(data["coinbase"]),
            transactions=[Transaction.from_dict(tx) for tx in data.get("transactions", [])],
            nonce=data.get("nonce", 0),
        )

    def __repr__(self) -> str:
        """Safe repr"""
        parent = self.previous_hash[:16] + "..." if self.previous_hash else None
        return (
            f"Block(hash={self.block_hash[:16]}..., "
            f"parent={parent}, "
            f"txs={len(self.transactions)})"
        )


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "UTXOKey",
    "TxOutput",
    "TxInput",
    "Transaction",
    "Block",
]
