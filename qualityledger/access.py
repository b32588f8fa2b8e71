"""
Access control and the operational state machine.

    ACTIVE --emergency_stop--> STOPPED --resume--> ACTIVE

Both transitions are administrator-only. Stopping an already stopped
ledger, or resuming an active one, fails with InvalidState. While
STOPPED every mutating operation other than resume is rejected; reads
are always allowed.
"""

import logging
from typing import TYPE_CHECKING

from .errors import InvalidState, Unauthorized
from .models import OperationalState

if TYPE_CHECKING:
    from .state import LedgerState

logger = logging.getLogger(__name__)


class AccessController:
    """Administrator checks and pause/resume transitions."""

    def is_administrator(self, state: "LedgerState", caller: str) -> bool:
        return caller == state.admin.administrator

    def require_admin(self, state: "LedgerState", caller: str, operation: str) -> None:
        if not self.is_administrator(state, caller):
            raise Unauthorized(
                f"Only the administrator may {operation}",
                {"caller": caller, "operation": operation},
            )

    def require_active(self, state: "LedgerState", operation: str) -> None:
        if state.admin.operational != OperationalState.ACTIVE:
            raise InvalidState(
                f"Ledger is stopped; {operation} rejected",
                {"operation": operation, "operational": state.admin.operational.value},
            )

    def stop(self, state: "LedgerState", caller: str) -> None:
        """ACTIVE -> STOPPED."""
        self.require_admin(state, caller, "stop the ledger")
        if state.admin.operational != OperationalState.ACTIVE:
            raise InvalidState("Ledger is already stopped", {"operational": state.admin.operational.value})
        self._transition(state, OperationalState.STOPPED)

    def resume(self, state: "LedgerState", caller: str) -> None:
        """STOPPED -> ACTIVE."""
        self.require_admin(state, caller, "resume the ledger")
        if state.admin.operational != OperationalState.STOPPED:
            raise InvalidState("Ledger is not stopped", {"operational": state.admin.operational.value})
        self._transition(state, OperationalState.ACTIVE)

    def _transition(self, state: "LedgerState", target: OperationalState) -> None:
        previous = state.admin.operational
        state.admin.operational = target
        state.journal.record(lambda: setattr(state.admin, "operational", previous))
        logger.debug("Operational state %s -> %s", previous.value, target.value)
