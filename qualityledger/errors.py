"""
Ledger error taxonomy.

Every rejected transaction raises exactly one LedgerError subclass. The
reason code is stable and is what audit records and callers match on;
the message is for humans.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorReason(str, Enum):
    """Stable rejection codes."""
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_STATE = "INVALID_STATE"
    NOT_FOUND = "NOT_FOUND"
    INVALID_FACILITY = "INVALID_FACILITY"
    DUPLICATE_SUBMISSION = "DUPLICATE_SUBMISSION"
    INVALID_PROOF = "INVALID_PROOF"
    INVALID_ARGUMENT = "INVALID_ARGUMENT"


class LedgerError(Exception):
    """Base class for all transaction rejections."""

    reason: ErrorReason = ErrorReason.INVALID_STATE

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(f"{self.reason.value}: {message}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "reason": self.reason.value,
            "message": self.message,
            "details": self.details,
        }


class Unauthorized(LedgerError):
    """Caller is not the administrator."""
    reason = ErrorReason.UNAUTHORIZED


class InvalidState(LedgerError):
    """Operation not allowed in the current operational state."""
    reason = ErrorReason.INVALID_STATE


class NotFound(LedgerError):
    """Unknown facility id."""
    reason = ErrorReason.NOT_FOUND


class InvalidFacility(LedgerError):
    """Facility missing or inactive at submission time."""
    reason = ErrorReason.INVALID_FACILITY


class DuplicateSubmission(LedgerError):
    """Participant already submitted for this facility (or anywhere, in single-facility mode)."""
    reason = ErrorReason.DUPLICATE_SUBMISSION


class InvalidProof(LedgerError):
    """Ciphertext or its proof failed validation."""
    reason = ErrorReason.INVALID_PROOF


class InvalidArgument(LedgerError, ValueError):
    """Malformed request: empty metadata, wrong category set, misplaced facility id."""
    reason = ErrorReason.INVALID_ARGUMENT
