"""
Logging configuration for the quality ledger.

Structured JSON logging for audit trails and debugging. The audit
logger records transaction outcomes and security-relevant rejections.
It is handed handle ids and reason codes, never ciphertext payloads or
plaintext scores.
"""

import json
import logging
import sys
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, List, Optional

# Id of the ledger transaction being executed in this context
transaction_id_var: ContextVar[str] = ContextVar('transaction_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    One JSON object per line, suitable for log aggregation systems.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        transaction_id = transaction_id_var.get()
        if transaction_id:
            log_data["transaction_id"] = transaction_id

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class LedgerAuditLogger:
    """
    Audit events of the ledger.

    Commits log at INFO, rejections at WARNING, security events at a
    level chosen by severity.
    """

    def __init__(self, name: str = "qualityledger.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        extra = {
            "event_type": event_type,
            "transaction_id": transaction_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def transaction_committed(self, operation: str, caller: str, version: int, writes: int) -> None:
        self._log(
            logging.INFO,
            "TRANSACTION_COMMITTED",
            operation=operation,
            caller=caller,
            ledger_version=version,
            writes=writes,
            message=f"{operation} committed at version {version}"
        )

    def transaction_rejected(self, operation: str, caller: str, reason: str, detail: str = "") -> None:
        self._log(
            logging.WARNING,
            "TRANSACTION_REJECTED",
            operation=operation,
            caller=caller,
            reason=reason,
            detail=detail,
            message=f"{operation} rejected: {reason}"
        )

    def facility_created(self, facility_id: int, creator: str) -> None:
        self._log(
            logging.INFO,
            "FACILITY_CREATED",
            facility_id=facility_id,
            creator=creator,
            message=f"Facility {facility_id} created"
        )

    def facility_status_changed(self, facility_id: int, active: bool, changed: bool) -> None:
        self._log(
            logging.INFO,
            "FACILITY_STATUS_CHANGED",
            facility_id=facility_id,
            active=active,
            changed=changed,
            message=f"Facility {facility_id} {'activated' if active else 'deactivated'}"
                    + ("" if changed else " (no change)")
        )

    def rating_accepted(self, participant: str, facility_id: Optional[int], handle_ids: List[str]) -> None:
        self._log(
            logging.INFO,
            "RATING_ACCEPTED",
            participant=participant,
            facility_id=facility_id,
            new_handles=len(handle_ids),
            message=f"Rating accepted from {participant}"
        )

    def operational_state_changed(self, caller: str, previous: str, current: str) -> None:
        self._log(
            logging.WARNING,
            "OPERATIONAL_STATE_CHANGED",
            caller=caller,
            previous=previous,
            current=current,
            message=f"Ledger {previous} -> {current} by {caller}"
        )

    def security_event(self, event: str, severity: str = "medium", **details) -> None:
        """Log a security-relevant event."""
        level = {
            "low": logging.INFO,
            "medium": logging.WARNING,
            "high": logging.ERROR,
            "critical": logging.CRITICAL
        }.get(severity, logging.WARNING)

        self._log(
            level,
            "SECURITY_EVENT",
            security_event=event,
            severity=severity,
            **details,
            message=f"Security event: {event}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure root logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def configure_from_settings(settings: Any) -> None:
    """Apply the logging fields of a LedgerSettings."""
    configure_logging(
        level=settings.log_level,
        json_format=settings.log_json,
        log_file=settings.log_file,
    )


def new_transaction_id() -> str:
    return f"tx-{uuid.uuid4().hex[:16]}"


def set_transaction_id(transaction_id: Optional[str] = None) -> str:
    """Set the transaction id for the current context, generating one if needed."""
    if transaction_id is None:
        transaction_id = new_transaction_id()
    transaction_id_var.set(transaction_id)
    return transaction_id


def get_transaction_id() -> str:
    return transaction_id_var.get()


@contextmanager
def transaction_context(transaction_id: Optional[str] = None) -> Iterator[str]:
    """
    Bind a transaction id to the current context for the duration of the block.

    The previous id is restored on exit.
    """
    token = transaction_id_var.set(transaction_id or new_transaction_id())
    try:
        yield transaction_id_var.get()
    finally:
        transaction_id_var.reset(token)


audit_log = LedgerAuditLogger()
