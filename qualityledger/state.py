"""
Versioned ledger state.

All mutable ledger data lives in one LedgerState passed by reference to
the component operations. Components write only through their own
operations, and every write records an undo entry in the state's
Journal. A transaction that raises is rolled back by replaying those
entries in reverse; one that completes bumps `version`.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Set, Tuple

from .aggregation import EncryptedAggregate, PermissionTable
from .models import Facility, OperationalState, isoformat


class Journal:
    """Undo log for the transaction in progress."""

    def __init__(self):
        self._undo: List[Callable[[], None]] = []
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def begin(self) -> None:
        if self._open:
            raise RuntimeError("Transaction already open")
        self._undo = []
        self._open = True

    def record(self, undo: Callable[[], None]) -> None:
        """Register how to revert a write that just happened."""
        if not self._open:
            raise RuntimeError("Ledger state mutated outside a transaction")
        self._undo.append(undo)

    def rollback(self) -> int:
        """Revert all writes of the open transaction. Returns count reverted."""
        reverted = 0
        while self._undo:
            self._undo.pop()()
            reverted += 1
        self._open = False
        return reverted

    def commit(self) -> int:
        """Close the transaction, keeping its writes. Returns count of writes."""
        writes = len(self._undo)
        self._undo = []
        self._open = False
        return writes


@dataclass
class AdminState:
    """Administrator identity (immutable) and operational state."""
    administrator: str
    operational: OperationalState = OperationalState.ACTIVE


@dataclass
class LedgerState:
    """Everything the ledger persists."""
    ledger_address: str
    admin: AdminState
    categories: Tuple[str, ...]
    global_aggregate: EncryptedAggregate
    facilities: Dict[int, Facility] = field(default_factory=dict)
    next_facility_id: int = 1
    submitted: Set[Tuple[str, int]] = field(default_factory=set)
    submitted_any: Set[str] = field(default_factory=set)
    consumed_inputs: Set[str] = field(default_factory=set)
    facility_aggregates: Dict[int, EncryptedAggregate] = field(default_factory=dict)
    permissions: PermissionTable = field(default_factory=PermissionTable)
    version: int = 0
    journal: Journal = field(default_factory=Journal, repr=False)

    def snapshot(self) -> Dict[str, Any]:
        """
        JSON-able view of the persisted state, for digests and audits.

        Contains handle ids only, never ciphertext payloads.
        """
        return {
            "ledger_address": self.ledger_address,
            "administrator": self.admin.administrator,
            "operational": self.admin.operational.value,
            "categories": list(self.categories),
            "next_facility_id": self.next_facility_id,
            "facilities": [
                {
                    "id": f.id,
                    "name": f.name,
                    "location": f.location,
                    "created_at": isoformat(f.created_at),
                    "is_active": f.is_active,
                }
                for f in self.facilities.values()
            ],
            "submitted": sorted([p, fid] for p, fid in self.submitted),
            "submitted_any": sorted(self.submitted_any),
            "consumed_inputs": sorted(self.consumed_inputs),
            "global_aggregate": self.global_aggregate.handle_ids(),
            "facility_aggregates": {
                str(fid): agg.handle_ids() for fid, agg in self.facility_aggregates.items()
            },
            "permissions": self.permissions.snapshot(),
        }
