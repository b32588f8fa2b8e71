"""
Facility registry.

Ids are assigned sequentially from 1 and never reused. Facilities are
never deleted; deactivation only hides them from submission and from
the active listing.

Redundant status changes (deactivating an inactive facility, reactivating
an active one) are no-ops: the call succeeds, returns False and changes
nothing.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Callable, List, Optional

from .errors import InvalidArgument, InvalidFacility, NotFound
from .models import Facility, FacilityView

if TYPE_CHECKING:
    from .state import LedgerState


class FacilityRegistry:
    """Owns facility records and their active flag."""

    def __init__(self, clock: Callable[[], datetime]):
        self.clock = clock

    def create(self, state: "LedgerState", name: str, location: str) -> Facility:
        """
        Register a facility.

        Raises:
            InvalidArgument: if name or location is empty
        """
        name = name.strip() if isinstance(name, str) else ""
        location = location.strip() if isinstance(location, str) else ""
        if not name:
            raise InvalidArgument("Facility name must not be empty")
        if not location:
            raise InvalidArgument("Facility location must not be empty")

        facility_id = state.next_facility_id
        facility = Facility(
            id=facility_id,
            name=name,
            location=location,
            created_at=self.clock(),
            is_active=True,
        )
        state.facilities[facility_id] = facility
        state.next_facility_id = facility_id + 1

        def undo():
            state.facilities.pop(facility_id, None)
            state.next_facility_id = facility_id

        state.journal.record(undo)
        return facility

    def set_active(self, state: "LedgerState", facility_id: int, active: bool) -> bool:
        """
        Toggle a facility's active flag.

        Returns:
            True if the flag changed, False if it already had that value
        """
        facility = self._require(state, facility_id)
        if facility.is_active == active:
            return False
        facility.is_active = active
        state.journal.record(lambda: setattr(facility, "is_active", not active))
        return True

    def get(self, state: "LedgerState", facility_id: int) -> FacilityView:
        return self._require(state, facility_id).view()

    def list_all(self, state: "LedgerState") -> List[int]:
        return list(state.facilities)

    def list_active(self, state: "LedgerState") -> List[int]:
        return [fid for fid, f in state.facilities.items() if f.is_active]

    def count(self, state: "LedgerState") -> int:
        return len(state.facilities)

    def require_submittable(self, state: "LedgerState", facility_id: Optional[int]) -> Facility:
        """The facility a submission targets must exist and be active."""
        facility = state.facilities.get(facility_id) if _is_facility_id(facility_id) else None
        if facility is None:
            raise InvalidFacility(f"Facility {facility_id} does not exist", {"facility_id": facility_id})
        if not facility.is_active:
            raise InvalidFacility(f"Facility {facility_id} is inactive", {"facility_id": facility_id})
        return facility

    def _require(self, state: "LedgerState", facility_id: int) -> Facility:
        facility = state.facilities.get(facility_id) if _is_facility_id(facility_id) else None
        if facility is None:
            raise NotFound(f"Facility {facility_id} not found", {"facility_id": facility_id})
        return facility


def _is_facility_id(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 1
