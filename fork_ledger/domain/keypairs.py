"""
ForkLedger - KeyPair Management
=================================
Coppie chiavi per firmare gli input delle transazioni.

Security Level: CRITICAL
Last Updated: 2026-10-17
Version: 1.0.0
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, Any

from fork_ledger.domain.crypto_core import get_crypto_provider, CryptoProvider
from fork_ledger.errors import InvalidKeyError, CryptoError
from fork_ledger.logging_setup import get_logger


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("keypairs")


# ============================================================================
# KEYPAIR CLASS
# ============================================================================

@dataclass(frozen=True)
class KeyPair:
    """
    Coppia chiavi crittografiche immutabile.

    La public key (PEM) e' l'`owner` degli output; la private key
    firma il messaggio canonico della transazione che li spende.

    Attributes:
        private_key (bytes): Chiave privata (PEM format)
        public_key (bytes): Chiave pubblica (PEM format)
        _provider (CryptoProvider): Provider crittografico interno

    Examples:
        >>> keypair = generate_keypair()
        >>> signature = keypair.sign(b"transaction_data")
        >>> keypair.verify(b"transaction_data", signature)
        True
    """

    private_key: bytes
    public_key: bytes
    _provider: CryptoProvider = field(repr=False, compare=False)

    def __post_init__(self):
        if not self.private_key or not isinstance(self.private_key, bytes):
            raise InvalidKeyError(
                "Invalid private_key: must be non-empty bytes",
                code="INVALID_PRIVATE_KEY"
            )

        if not self.public_key or not isinstance(self.public_key, bytes):
            raise InvalidKeyError(
                "Invalid public_key: must be non-empty bytes",
                code="INVALID_PUBLIC_KEY"
            )

        if not self.private_key.startswith(b'-----BEGIN'):
            raise InvalidKeyError(
                "private_key must be in PEM format",
                code="INVALID_KEY_FORMAT"
            )

        if not self.public_key.startswith(b'-----BEGIN'):
            raise InvalidKeyError(
                "public_key must be in PEM format",
                code="INVALID_KEY_FORMAT"
            )

    def sign(self, message: bytes) -> bytes:
        """
        Firma messaggio con chiave privata.

        Raises:
            CryptoError: Se message non e' bytes o e' vuoto
            InvalidKeyError: Se firma fallisce
        """
        if not isinstance(message, bytes):
            raise CryptoError(
                f"Message must be bytes, got {type(message).__name__}",
                code="INVALID_MESSAGE_TYPE"
            )

        if len(message) == 0:
            raise CryptoError("Message cannot be empty", code="EMPTY_MESSAGE")

        return self._provider.sign(message, self.private_key)

    def verify(self, message: bytes, signature: bytes) -> bool:
        """Verifica firma con la public key di questa coppia."""
        return self._provider.verify(message, signature, self.public_key)

    def get_public_key_hex(self) -> str:
        """Public key in hex (per display e file JSON)"""
        return self.public_key.hex()

    def to_dict(self, include_private: bool = False) -> Dict[str, Any]:
        """
        Serializza keypair.

        La private key e' inclusa solo se richiesto esplicitamente.
        """
        data = {"public_key": self.public_key.hex()}
        if include_private:
            data["private_key"] = self.private_key.hex()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], algorithm: str = "ecdsa") -> KeyPair:
        """Deserializza keypair (richiede private_key)"""
        if "private_key" not in data:
            raise InvalidKeyError(
                "Cannot restore KeyPair without private_key",
                code="MISSING_PRIVATE_KEY"
            )
        return cls(
            private_key=bytes.fromhex(data["private_key"]),
            public_key=bytes.fromhex(data["public_key"]),
            _provider=get_crypto_provider(algorithm),
        )

    def __repr__(self) -> str:
        """Safe repr (no private key)"""
        return f"KeyPair(public_key={self.public_key.hex()[:16]}...)"


# ============================================================================
# FACTORY
# ============================================================================

def generate_keypair(algorithm: str = "ecdsa") -> KeyPair:
    """
    Genera nuova KeyPair.

    Examples:
        >>> kp = generate_keypair()
        >>> kp.public_key.startswith(b"-----BEGIN PUBLIC KEY")
        True
    """
    provider = get_crypto_provider(algorithm)
    private_key, public_key = provider.generate_keypair()

    logger.debug("KeyPair generated", extra_data={"algorithm": algorithm})

    return KeyPair(private_key=private_key, public_key=public_key, _provider=provider)


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "KeyPair",
    "generate_keypair",
]
