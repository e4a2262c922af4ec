"""
ForkLedger - Configuration Management
=======================================
Gestione centralizzata configurazione con Pydantic Settings.
Supporta environment variables, file .env, override runtime.

Security Level: HIGH
Last Updated: 2026-10-17
Version: 1.0.0

Features:
- Validazione automatica tipi
- Environment variables con prefisso FORKLEDGER_
- File .env support
"""

import json
from pathlib import Path
from typing import Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fork_ledger.constants import (
    CUTOFF_AGE,
    DEFAULT_CRYPTO_ALGORITHM,
    SUPPORTED_CRYPTO_ALGORITHMS,
    MEMPOOL_MAX_COUNT,
    MEMPOOL_MAX_SIZE_MB,
    MEMPOOL_EXPIRY_HOURS,
)
from fork_ledger.errors import ConfigError


# ============================================================================
# MAIN CONFIGURATION CLASS
# ============================================================================

class LedgerSettings(BaseSettings):
    """
    Configurazione principale ForkLedger.

    Example:
        # Da environment
        export FORKLEDGER_CUTOFF_AGE=20

        # Da codice
        config = LedgerSettings(cutoff_age=5, log_level="DEBUG")
    """

    model_config = SettingsConfigDict(
        env_prefix='FORKLEDGER_',
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
    )

    # ========================================================================
    # CHAIN TREE
    # ========================================================================

    cutoff_age: int = Field(
        default=CUTOFF_AGE,
        ge=1,
        le=10_000,
        description="Finestra di profondita' entro cui un parent e' ammissibile"
    )

    # ========================================================================
    # CRYPTOGRAPHY
    # ========================================================================

    crypto_algorithm: str = Field(
        default=DEFAULT_CRYPTO_ALGORITHM,
        description="Algoritmo firma: ecdsa"
    )

    # ========================================================================
    # PENDING TRANSACTION POOL
    # ========================================================================

    mempool_max_count: int = Field(
        default=MEMPOOL_MAX_COUNT,
        ge=1,
        description="Numero massimo transazioni pendenti"
    )

    mempool_max_size_mb: int = Field(
        default=MEMPOOL_MAX_SIZE_MB,
        ge=1,
        description="Dimensione massima pool (MB)"
    )

    mempool_expiry_hours: int = Field(
        default=MEMPOOL_EXPIRY_HOURS,
        ge=1,
        description="Ore prima della scadenza di una transazione pendente"
    )

    # ========================================================================
    # LOGGING
    # ========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level: DEBUG, INFO, WARNING, ERROR, CRITICAL"
    )

    log_to_file: bool = Field(
        default=False,
        description="Scrivi log su file"
    )

    log_dir: Path = Field(
        default=Path("./logs"),
        description="Directory log files"
    )

    log_format: str = Field(
        default="text",
        description="Formato log: json, text"
    )

    log_rotation_mb: int = Field(
        default=100,
        ge=1,
        le=10_000,
        description="MB prima di rotation"
    )

    log_retention_days: int = Field(
        default=30,
        ge=1,
        le=3650,
        description="Numero file di backup mantenuti"
    )

    # ========================================================================
    # VALIDATORS
    # ========================================================================

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Valida log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in valid_levels:
            raise ValueError(f"Invalid log_level: {v}. Must be one of {valid_levels}")
        return v

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Valida formato log"""
        v = v.lower()
        if v not in ("json", "text"):
            raise ValueError(f"Invalid log_format: {v}. Must be json or text")
        return v

    @field_validator('crypto_algorithm')
    @classmethod
    def validate_crypto_algorithm(cls, v: str) -> str:
        """Valida algoritmo crypto"""
        v = v.lower()
        if v not in SUPPORTED_CRYPTO_ALGORITHMS:
            raise ValueError(
                f"Invalid crypto_algorithm: {v}. Must be one of {list(SUPPORTED_CRYPTO_ALGORITHMS)}"
            )
        return v

    # ========================================================================
    # SERIALIZATION
    # ========================================================================

    def to_dict(self) -> dict:
        """Export configurazione come dict (Path serializzati)"""
        return self.model_dump(mode="json")

    def to_json(self, indent: int = 2) -> str:
        """Export configurazione come JSON"""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> "LedgerSettings":
        """
        Carica configurazione da JSON.

        Raises:
            ConfigError: Se JSON malformato
        """
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ConfigError(
                f"Invalid configuration JSON: {e}",
                code="CONFIG_JSON_INVALID"
            )
        return cls(**data)

    def __repr__(self) -> str:
        return (
            f"LedgerSettings(cutoff_age={self.cutoff_age}, "
            f"crypto={self.crypto_algorithm}, log_level={self.log_level})"
        )


# ============================================================================
# SINGLETON ACCESS
# ============================================================================

_config_instance: Optional[LedgerSettings] = None


@lru_cache(maxsize=1)
def get_settings() -> LedgerSettings:
    """
    Ottieni singleton instance di LedgerSettings.

    Returns:
        LedgerSettings: Instance configurazione
    """
    global _config_instance

    if _config_instance is None:
        _config_instance = LedgerSettings()

    return _config_instance


def reload_settings() -> LedgerSettings:
    """
    Ricarica settings (invalida cache).

    Usare quando si cambiano environment variables runtime.
    """
    global _config_instance

    get_settings.cache_clear()
    _config_instance = None

    return get_settings()


def override_settings(**kwargs) -> LedgerSettings:
    """
    Override settings con valori custom.

    Utile per testing.

    Example:
        >>> test_config = override_settings(cutoff_age=3)
    """
    return LedgerSettings(**kwargs)


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "LedgerSettings",
    "get_settings",
    "reload_settings",
    "override_settings",
]
