"""
HTLC SDK - Structured Logging

JSON log entries for swap operations, suitable for audit trails and log
aggregation. Secret preimages and key material are redacted before any
entry is emitted.
"""

import logging
import json
import time
from typing import Optional, Dict, Any, Callable
from dataclasses import dataclass, asdict
from enum import Enum


# Detail keys whose values never reach a log sink
REDACTED_KEYS = frozenset({"secret", "secret_preimage", "preimage", "private_key", "wif"})


class LogLevel(Enum):
    """Log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


@dataclass
class LogEntry:
    """Structured log entry."""
    timestamp: float
    level: str
    message: str
    component: str
    operation: Optional[str] = None
    outpoint: Optional[str] = None
    txid: Optional[str] = None
    duration_ms: Optional[float] = None
    details: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_type: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary, excluding None values."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), default=str)


def redact(details: Dict[str, Any]) -> Dict[str, Any]:
    """Replace sensitive detail values with a marker."""
    return {k: ("<redacted>" if k in REDACTED_KEYS else v) for k, v in details.items()}


class StructuredLogger:
    """
    Structured logger for HTLC operations.

    Example:
        logger = StructuredLogger(component="htlc-wallet")

        with logger.operation("deploy", amount_sats=100000) as op:
            txid = wallet_internals()
            op.set_txid(txid)
        # Logs completion (or failure) with duration

        logger.info("Swap funded", outpoint="ab..:0")
    """

    def __init__(
        self,
        component: str = "htlc-sdk",
        logger: Optional[logging.Logger] = None,
        json_output: bool = True
    ):
        """
        Args:
            component: Component name for log entries.
            logger: Underlying Python logger (created if None).
            json_output: Emit JSON (True) or a short text line (False).
        """
        self.component = component
        self.json_output = json_output
        self._logger = logger or logging.getLogger(f"htlc_sdk.{component}")

    def _log(
        self,
        level: LogLevel,
        message: str,
        operation: Optional[str] = None,
        outpoint: Optional[str] = None,
        txid: Optional[str] = None,
        duration_ms: Optional[float] = None,
        error: Optional[BaseException] = None,
        **details
    ) -> LogEntry:
        entry = LogEntry(
            timestamp=time.time(),
            level=level.value,
            message=message,
            component=self.component,
            operation=operation,
            outpoint=outpoint,
            txid=txid,
            duration_ms=round(duration_ms, 2) if duration_ms is not None else None,
            details=redact(details) if details else None,
            error=str(error) if error is not None else None,
            error_type=type(error).__name__ if error is not None else None
        )

        if self.json_output:
            line = entry.to_json()
        else:
            line = f"[{entry.level}] {entry.message}"
            if entry.txid:
                line += f" txid={entry.txid}"
            if entry.error:
                line += f" error={entry.error}"

        self._logger.log(getattr(logging, level.value), line)
        return entry

    def debug(self, message: str, **kwargs) -> LogEntry:
        return self._log(LogLevel.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs) -> LogEntry:
        return self._log(LogLevel.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs) -> LogEntry:
        return self._log(LogLevel.WARNING, message, **kwargs)

    def error(self, message: str, error: Optional[BaseException] = None, **kwargs) -> LogEntry:
        return self._log(LogLevel.ERROR, message, error=error, **kwargs)

    def operation(self, name: str, **details) -> "OperationContext":
        """
        Create an operation context for timing.

        Example:
            with logger.operation("redeem_with_secret") as op:
                op.set_outpoint(outpoint)
                op.set_txid(broadcast())
        """
        return OperationContext(self, name, details)

    def set_level(self, level: LogLevel) -> None:
        """Set minimum log level."""
        self._logger.setLevel(getattr(logging, level.value))


class OperationContext:
    """Context manager that logs the outcome and duration of an operation."""

    def __init__(self, logger: StructuredLogger, operation: str, details: Optional[Dict[str, Any]] = None):
        self.logger = logger
        self.operation = operation
        self.start_time: float = 0
        self.txid: Optional[str] = None
        self.outpoint: Optional[str] = None
        self.details: Dict[str, Any] = dict(details or {})

    def __enter__(self) -> "OperationContext":
        self.start_time = time.monotonic()
        self.logger.debug(f"Starting {self.operation}", operation=self.operation, **self.details)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        duration_ms = (time.monotonic() - self.start_time) * 1000

        if exc_val is not None:
            self.logger.error(
                f"Failed {self.operation}",
                error=exc_val,
                operation=self.operation,
                outpoint=self.outpoint,
                txid=self.txid,
                duration_ms=duration_ms,
                **self.details
            )
        else:
            self.logger.info(
                f"Completed {self.operation}",
                operation=self.operation,
                outpoint=self.outpoint,
                txid=self.txid,
                duration_ms=duration_ms,
                **self.details
            )

    def set_txid(self, txid: str) -> None:
        self.txid = txid

    def set_outpoint(self, outpoint: str) -> None:
        self.outpoint = outpoint

    def add_detail(self, key: str, value: Any) -> None:
        self.details[key] = value


# Factory functions

def create_file_logger(
    filepath: str,
    component: str = "htlc-sdk",
    level: LogLevel = LogLevel.INFO
) -> StructuredLogger:
    """
    Create a logger that writes JSON lines to a file.
    """
    logger = logging.getLogger(f"htlc_sdk.{component}.file")
    handler = logging.FileHandler(filepath)
    handler.setFormatter(logging.Formatter('%(message)s'))
    logger.addHandler(handler)
    logger.setLevel(getattr(logging, level.value))
    return StructuredLogger(component=component, logger=logger)


def create_audit_logger(
    audit_callback: Callable[[dict], None],
    component: str = "htlc-audit"
) -> StructuredLogger:
    """
    Create a logger that hands every entry to an audit callback as a dict.
    """
    class AuditHandler(logging.Handler):
        def emit(self, record):
            try:
                entry = json.loads(record.getMessage())
            except json.JSONDecodeError:
                entry = {"message": record.getMessage()}
            audit_callback(entry)

    logger = logging.getLogger(f"htlc_sdk.{component}.audit")
    logger.addHandler(AuditHandler())
    logger.setLevel(logging.DEBUG)
    return StructuredLogger(component=component, logger=logger)
