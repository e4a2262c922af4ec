"""
ForkLedger - Cryptographic Core Layer
=======================================
Primitive crittografiche: hashing e verifica firme.

Security Level: CRITICAL
Last Updated: 2026-10-17
Version: 1.0.0

Algorithms:
- Hash: SHA-256
- Signature: ECDSA (secp256k1)

Dependencies:
- cryptography (>=41.0.0)
- hashlib (stdlib)
"""

import hashlib
from typing import Tuple, Protocol, List
from abc import abstractmethod

from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.exceptions import InvalidSignature as CryptoInvalidSignature

from fork_ledger.constants import SUPPORTED_CRYPTO_ALGORITHMS
from fork_ledger.errors import CryptoError, InvalidKeyError
from fork_ledger.logging_setup import get_logger


# ============================================================================
# MODULE LOGGER
# ============================================================================

logger = get_logger("crypto")


# ============================================================================
# HASH FUNCTIONS
# ============================================================================

def compute_sha256(data: bytes) -> bytes:
    """
    Compute SHA-256 hash.

    SHA-256 e' l'hash usato per:
    - Transaction IDs
    - Block hashes
    - Merkle root

    Args:
        data: Input data da hashare

    Returns:
        bytes: 32-byte hash digest

    Examples:
        >>> compute_sha256(b"").hex()
        'e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855'
    """
    if not isinstance(data, bytes):
        raise CryptoError(
            f"compute_sha256 requires bytes, got {type(data).__name__}",
            code="INVALID_INPUT_TYPE"
        )

    return hashlib.sha256(data).digest()


def compute_merkle_root(hex_hashes: List[str]) -> str:
    """
    Calcola merkle root (hex) da lista di hash hex.

    Livelli dispari duplicano l'ultimo elemento. Lista vuota: hash di b"".
    """
    if not hex_hashes:
        return compute_sha256(b"").hex()

    level = [bytes.fromhex(h) for h in hex_hashes]

    while len(level) > 1:
        if len(level) % 2 == 1:
            level.append(level[-1])
        level = [
            compute_sha256(level[i] + level[i + 1])
            for i in range(0, len(level), 2)
        ]

    return level[0].hex()


# ============================================================================
# CRYPTO PROVIDER PROTOCOL
# ============================================================================

class CryptoProvider(Protocol):
    """
    Protocol per provider crittografici.

    Il ledger usa solo `verify`; `generate_keypair` e `sign`
    servono ai client che costruiscono transazioni.
    """

    @abstractmethod
    def generate_keypair(self) -> Tuple[bytes, bytes]:
        """
        Genera coppia chiavi.

        Returns:
            tuple: (private_key, public_key) in formato serializzato
        """
        pass

    @abstractmethod
    def sign(self, message: bytes, private_key: bytes) -> bytes:
        """Firma messaggio"""
        pass

    @abstractmethod
    def verify(self, message: bytes, signature: bytes, public_key: bytes) -> bool:
        """
        Verifica firma.

        Returns:
            bool: True se firma valida (mai eccezioni per firme errate)
        """
        pass


# ============================================================================
# ECDSA PROVIDER (secp256k1)
# ============================================================================

class ECDSAProvider:
    """
    Provider ECDSA con curva secp256k1.

    Features:
    - Hash: SHA-256
    - Signature: DER encoded
    - Key format: PEM
    """

    name = "ecdsa"

    def __init__(self):
        self.curve = ec.SECP256K1()
        self.hash_algo = hashes.SHA256()

    def generate_keypair(self) -> Tuple[bytes, bytes]:
        """
        Genera keypair ECDSA.

        Returns:
            tuple: (private_key_pem, public_key_pem)
        """
        private_key_obj = ec.generate_private_key(self.curve)

        private_pem = private_key_obj.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        )

        public_pem = private_key_obj.public_key().public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo
        )

        logger.debug("ECDSA keypair generated")

        return (private_pem, public_pem)

    def sign(self, message: bytes, private_key: bytes) -> bytes:
        """
        Firma messaggio con ECDSA.

        Raises:
            InvalidKeyError: Se la chiave privata non e' caricabile
        """
        try:
            private_key_obj = serialization.load_pem_private_key(
                private_key,
                password=None
            )
        except (ValueError, TypeError) as e:
            raise InvalidKeyError(f"ECDSA signing failed: {e}", code="SIGN_ERROR")

        return private_key_obj.sign(message, ec.ECDSA(self.hash_algo))

    def verify(self, message: bytes, signature: bytes, public_key: bytes) -> bool:
        """
        Verifica firma ECDSA.

        Chiavi pubbliche malformate o firme non DER sono trattate
        come firme non valide.

        Examples:
            >>> provider = ECDSAProvider()
            >>> priv, pub = provider.generate_keypair()
            >>> sig = provider.sign(b"test", priv)
            >>> provider.verify(b"test", sig, pub)
            True
            >>> provider.verify(b"wrong", sig, pub)
            False
        """
        try:
            public_key_obj = serialization.load_pem_public_key(public_key)
            public_key_obj.verify(signature, message, ec.ECDSA(self.hash_algo))
            return True

        except CryptoInvalidSignature:
            logger.debug("ECDSA signature verification failed: invalid signature")
            return False

        except (ValueError, TypeError) as e:
            logger.debug(
                "ECDSA verification error",
                extra_data={"error": str(e)}
            )
            return False


# ============================================================================
# PROVIDER FACTORY
# ============================================================================

def get_crypto_provider(algorithm: str = "ecdsa") -> CryptoProvider:
    """
    Factory per ottenere crypto provider.

    Raises:
        CryptoError: Se algorithm non supportato
    """
    algorithm = algorithm.lower()

    if algorithm == "ecdsa":
        return ECDSAProvider()

    raise CryptoError(
        f"Unsupported crypto algorithm: {algorithm}",
        code="UNSUPPORTED_ALGORITHM",
        details={"supported": list(SUPPORTED_CRYPTO_ALGORITHMS)}
    )


# ============================================================================
# CONVENIENCE FUNCTIONS
# ============================================================================

def sign_message(message: bytes, private_key: bytes, algorithm: str = "ecdsa") -> bytes:
    """Firma messaggio usando provider specificato."""
    return get_crypto_provider(algorithm).sign(message, private_key)


def verify_signature(
    message: bytes,
    signature: bytes,
    public_key: bytes,
    algorithm: str = "ecdsa"
) -> bool:
    """Verifica firma usando provider specificato."""
    return get_crypto_provider(algorithm).verify(message, signature, public_key)


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "compute_sha256",
    "compute_merkle_root",
    "CryptoProvider",
    "ECDSAProvider",
    "get_crypto_provider",
    "sign_message",
    "verify_signature",
]
