"""
ForkLedger - Logging System
=============================
Sistema logging strutturato JSON per audit e debugging dell'albero.

Security Level: HIGH
Last Updated: 2026-10-17
Version: 1.0.0

Features:
- Logging JSON strutturato
- Rotation automatica
- Context enrichment
- Performance tracking
- Audit trail ammissioni
"""

import logging
import logging.handlers
import json
import sys
import time
from pathlib import Path
from typing import Optional, Dict, Any
from datetime import datetime, timezone
import traceback


# ============================================================================
# JSON FORMATTER
# ============================================================================

class JSONFormatter(logging.Formatter):
    """
    Formatter per log in formato JSON.

    Output structure:
    {
        "timestamp": "2026-10-17T10:00:00.000000Z",
        "level": "INFO",
        "logger": "forkledger.chain",
        "message": "Block admitted",
        "extra_data": {...},
        "exception": {...}
    }
    """

    def __init__(
        self,
        include_extra: bool = True,
        include_stack: bool = True
    ):
        super().__init__()
        self.include_extra = include_extra
        self.include_stack = include_stack

    def format(self, record: logging.LogRecord) -> str:
        """
        Formatta LogRecord in JSON.

        Args:
            record: LogRecord da formattare

        Returns:
            str: JSON string
        """
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_data = {
            "timestamp": created.replace(tzinfo=None).isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.thread:
            log_data["thread_id"] = record.thread
            log_data["thread_name"] = record.threadName

        if self.include_extra and hasattr(record, 'extra_data'):
            log_data["extra_data"] = record.extra_data

        if record.exc_info and self.include_stack:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info)
            }

        return json.dumps(log_data, default=str)


# ============================================================================
# TEXT FORMATTER (Human-Readable)
# ============================================================================

class ColoredTextFormatter(logging.Formatter):
    """
    Formatter colorato per console.

    Colors:
    - DEBUG: Gray
    - INFO: Green
    - WARNING: Yellow
    - ERROR: Red
    - CRITICAL: Bold Red
    """

    COLORS = {
        'DEBUG': '\033[90m',
        'INFO': '\033[92m',
        'WARNING': '\033[93m',
        'ERROR': '\033[91m',
        'CRITICAL': '\033[1;91m',
        'RESET': '\033[0m'
    }

    def format(self, record: logging.LogRecord) -> str:
        """Formatta con colori"""
        levelname = record.levelname
        if levelname in self.COLORS:
            levelname = f"{self.COLORS[levelname]}{levelname}{self.COLORS['RESET']}"

        timestamp = datetime.fromtimestamp(
            record.created, tz=timezone.utc
        ).strftime('%Y-%m-%d %H:%M:%S')

        message = f"{timestamp} [{levelname}] {record.name}: {record.getMessage()}"

        if hasattr(record, 'extra_data'):
            message += f" | {record.extra_data}"

        if record.exc_info:
            message += f"\n{self.formatException(record.exc_info)}"

        return message


# ============================================================================
# LOGGER CLASS
# ============================================================================

class ForkLedgerLogger:
    """
    Wrapper logger con context enrichment e dati strutturati.
    """

    def __init__(self, logger: logging.Logger):
        self._logger = logger
        self._context: Dict[str, Any] = {}

    @property
    def name(self) -> str:
        return self._logger.name

    def set_context(self, **kwargs):
        """
        Imposta context globale (aggiunto a tutti i log).

        Example:
            >>> logger.set_context(tree_id="main")
        """
        self._context.update(kwargs)

    def clear_context(self):
        """Clear context"""
        self._context.clear()

    def _log(
        self,
        level: int,
        message: str,
        extra_data: Optional[Dict[str, Any]] = None,
        exc_info=None
    ):
        merged_extra = {**self._context}
        if extra_data:
            merged_extra.update(extra_data)

        self._logger.log(
            level,
            message,
            exc_info=exc_info,
            extra={'extra_data': merged_extra} if merged_extra else {}
        )

    def debug(self, message: str, extra_data: Optional[Dict] = None):
        """Log DEBUG"""
        self._log(logging.DEBUG, message, extra_data)

    def info(self, message: str, extra_data: Optional[Dict] = None):
        """Log INFO"""
        self._log(logging.INFO, message, extra_data)

    def warning(self, message: str, extra_data: Optional[Dict] = None):
        """Log WARNING"""
        self._log(logging.WARNING, message, extra_data)

    def error(self, message: str, extra_data: Optional[Dict] = None, exc_info=None):
        """Log ERROR"""
        self._log(logging.ERROR, message, extra_data, exc_info)

    def exception(self, message: str, extra_data: Optional[Dict] = None):
        """Log exception con traceback"""
        self._log(logging.ERROR, message, extra_data, exc_info=sys.exc_info())


# ============================================================================
# SETUP FUNCTION
# ============================================================================

def setup_logging(
    log_level: str = "INFO",
    log_to_file: bool = False,
    log_dir: Path = Path("./logs"),
    log_format: str = "json",
    log_rotation_mb: int = 100,
    log_retention_days: int = 30,
    enable_console: bool = True,
) -> ForkLedgerLogger:
    """
    Setup logging system completo.

    Args:
        log_level: Level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_to_file: Salva su file
        log_dir: Directory log files
        log_format: Formato (json, text)
        log_rotation_mb: MB prima rotation
        log_retention_days: Numero file di backup
        enable_console: Log anche su console

    Returns:
        ForkLedgerLogger: Logger root configurato

    Example:
        >>> logger = setup_logging(log_level="DEBUG", log_format="text")
        >>> logger.info("Replay started", extra_data={"blocks": 12})
    """
    root_logger = logging.getLogger("forkledger")
    root_logger.setLevel(getattr(logging, log_level.upper()))

    root_logger.handlers.clear()

    # ========================================================================
    # FILE HANDLERS (with rotation)
    # ========================================================================

    if log_to_file:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_dir / "forkledger.log",
            maxBytes=log_rotation_mb * 1024 * 1024,
            backupCount=log_retention_days,
            encoding='utf-8'
        )

        if log_format == "json":
            file_handler.setFormatter(JSONFormatter())
        else:
            file_handler.setFormatter(
                logging.Formatter(
                    '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
                )
            )

        root_logger.addHandler(file_handler)

        error_handler = logging.handlers.RotatingFileHandler(
            filename=log_dir / "forkledger_errors.log",
            maxBytes=log_rotation_mb * 1024 * 1024,
            backupCount=log_retention_days,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(JSONFormatter(include_stack=True))

        root_logger.addHandler(error_handler)

    # ========================================================================
    # CONSOLE HANDLER
    # ========================================================================

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)

        if log_format == "json":
            console_handler.setFormatter(JSONFormatter(include_stack=False))
        else:
            console_handler.setFormatter(ColoredTextFormatter())

        root_logger.addHandler(console_handler)

    return ForkLedgerLogger(root_logger)


# ============================================================================
# CATEGORY LOGGERS
# ============================================================================

def get_logger(category: str) -> ForkLedgerLogger:
    """
    Ottieni logger per categoria specifica.

    Args:
        category: Categoria (chain, validation, utxo, mempool, cli)

    Returns:
        ForkLedgerLogger: Logger per categoria
    """
    return ForkLedgerLogger(logging.getLogger(f"forkledger.{category}"))


# ============================================================================
# PERFORMANCE TRACKING
# ============================================================================

class PerformanceLogger:
    """
    Context manager per tracking performance.

    Example:
        >>> logger = get_logger("chain")
        >>> with PerformanceLogger(logger, "add_block"):
        ...     tree.add_block(block)
        # Logs: "add_block completed in 0.123ms"
    """

    def __init__(
        self,
        logger: ForkLedgerLogger,
        operation: str,
        threshold_ms: Optional[int] = None
    ):
        self.logger = logger
        self.operation = operation
        self.threshold_ms = threshold_ms
        self.start_time: Optional[float] = None
        self.elapsed_ms: float = 0.0

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed_ms = (time.perf_counter() - self.start_time) * 1000

        extra = {
            "operation": self.operation,
            "duration_ms": round(self.elapsed_ms, 2)
        }

        if self.threshold_ms and self.elapsed_ms > self.threshold_ms:
            self.logger.warning(
                f"{self.operation} took {self.elapsed_ms:.2f}ms "
                f"(threshold: {self.threshold_ms}ms)",
                extra_data=extra
            )
        else:
            self.logger.debug(
                f"{self.operation} completed in {self.elapsed_ms:.2f}ms",
                extra_data=extra
            )


# ============================================================================
# AUDIT LOGGER
# ============================================================================

class AuditLogger:
    """
    Logger specializzato per audit trail delle ammissioni.

    Scrive un record JSON per ogni blocco ammesso o rifiutato
    in `audit.log` (nessuna rotation).
    """

    def __init__(self, log_dir: Path = Path("./logs")):
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.logger = logging.getLogger("forkledger.audit")
        self.logger.setLevel(logging.INFO)

        self._handler = logging.FileHandler(self.log_dir / "audit.log", encoding='utf-8')
        self._handler.setFormatter(JSONFormatter(include_extra=True))
        self.logger.addHandler(self._handler)

    def _emit(self, message: str, data: Dict[str, Any]):
        data["timestamp"] = datetime.now(timezone.utc).isoformat()
        self.logger.info(message, extra={'extra_data': data})

    def log_block_admitted(self, depth: int, block_hash: str, tx_count: int):
        """Log ammissione blocco"""
        self._emit("Block admitted", {
            "action": "block_admitted",
            "depth": depth,
            "hash": block_hash,
            "tx_count": tx_count,
        })

    def log_block_rejected(self, block_hash: str, code: str, reason: str):
        """Log rifiuto blocco"""
        self._emit("Block rejected", {
            "action": "block_rejected",
            "hash": block_hash,
            "code": code,
            "reason": reason,
        })

    def close(self):
        """Rimuove e chiude il file handler"""
        self.logger.removeHandler(self._handler)
        self._handler.close()


# ============================================================================
# EXPORT
# ============================================================================

__all__ = [
    "setup_logging",
    "get_logger",
    "ForkLedgerLogger",
    "PerformanceLogger",
    "AuditLogger",
    "JSONFormatter",
    "ColoredTextFormatter",
]
