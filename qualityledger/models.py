"""
Ledger data model: categories, operational state, facilities and the
encrypted submission a participant sends.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Tuple

from .sealed import CiphertextHandle


class Category(str, Enum):
    """Quality categories a participant scores."""
    SERVICE = "service"
    MEDICINE = "medicine"
    STAFF = "staff"
    FACILITY_CONDITION = "facility_condition"
    ENVIRONMENT = "environment"
    GUIDANCE = "guidance"


DEFAULT_CATEGORIES: Tuple[str, ...] = tuple(c.value for c in Category)


class OperationalState(str, Enum):
    """
    Administrative state machine.

    ACTIVE: all operations allowed
    STOPPED: every mutating operation except resume is rejected
    """
    ACTIVE = "ACTIVE"
    STOPPED = "STOPPED"


def isoformat(ts: datetime) -> str:
    return ts.isoformat().replace("+00:00", "Z")


@dataclass
class Facility:
    """
    A registered facility.

    Facilities are never deleted. Deactivation is the only removal
    mechanism, so ids stay stable and historical aggregates stay valid.
    """
    id: int
    name: str
    location: str
    created_at: datetime
    is_active: bool = True

    def view(self) -> "FacilityView":
        return FacilityView(
            id=self.id,
            name=self.name,
            location=self.location,
            created_at=self.created_at,
            is_active=self.is_active,
        )


@dataclass(frozen=True)
class FacilityView:
    """Read-only snapshot of a facility handed to callers."""
    id: int
    name: str
    location: str
    created_at: datetime
    is_active: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "created_at": isoformat(self.created_at),
            "is_active": self.is_active,
        }


@dataclass(frozen=True)
class EncryptedInput:
    """One ciphertext handle plus the proof binding it to (sender, ledger)."""
    handle: CiphertextHandle
    proof: Any


@dataclass(frozen=True)
class RatingSubmission:
    """
    Everything a participant sends with one rating.

    `identity` is an encrypted placeholder for the participant's identity;
    it is validated like the scores but never aggregated.
    """
    identity: EncryptedInput
    scores: Mapping[str, EncryptedInput]

    def inputs(self) -> List[Tuple[str, EncryptedInput]]:
        return [("identity", self.identity), *self.scores.items()]
