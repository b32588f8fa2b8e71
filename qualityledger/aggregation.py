"""
Encrypted aggregation.

The AggregationEngine is the only write path into EncryptedAggregates.
An accepted submission is folded into the global aggregate and, when a
facility is named, into that facility's aggregate in the same step:

    sum[c]  <- sum[c] (+) value[c]        for every category c
    total   <- total  (+) sum_c value[c]
    count   <- count  (+) 1

(+) is homomorphic addition. Nothing is ever subtracted, overwritten
with an unrelated value, or decrypted here. Every handle the engine
creates is granted to the ledger and the administrator, and optionally
marked publicly decryptable. Submitters are granted their own input
handles only.
"""

import logging
from dataclasses import dataclass
from functools import reduce
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Mapping, Optional, Set

from .errors import InvalidArgument, NotFound
from .sealed import UNINITIALIZED_HANDLE, CiphertextHandle, SealedBackend

if TYPE_CHECKING:
    from .state import Journal, LedgerState
    from .validator import ValidatedValue

logger = logging.getLogger(__name__)

COUNT_KEY = "count"
TOTAL_KEY = "total"


@dataclass
class EncryptedAggregate:
    """Encrypted running statistics for one scope."""
    count: CiphertextHandle
    sums: Dict[str, CiphertextHandle]
    total: CiphertextHandle

    @classmethod
    def empty(cls, categories: Iterable[str]) -> "EncryptedAggregate":
        return cls(
            count=UNINITIALIZED_HANDLE,
            sums={c: UNINITIALIZED_HANDLE for c in categories},
            total=UNINITIALIZED_HANDLE,
        )

    def handle_ids(self) -> Dict[str, str]:
        ids = {COUNT_KEY: self.count.handle_id, TOTAL_KEY: self.total.handle_id}
        for category, handle in self.sums.items():
            ids[f"sum:{category}"] = handle.handle_id
        return ids


@dataclass(frozen=True)
class Statistics:
    """Ciphertext handles of one scope's running statistics."""
    scope: Optional[int]
    count: CiphertextHandle
    sums: Mapping[str, CiphertextHandle]
    total: CiphertextHandle

    def handles(self) -> List[CiphertextHandle]:
        return [self.count, *self.sums.values(), self.total]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scope": "global" if self.scope is None else self.scope,
            "count": self.count.handle_id,
            "sums": {c: h.handle_id for c, h in self.sums.items()},
            "total": self.total.handle_id,
        }


class PermissionTable:
    """
    Decryption permissions per handle id.

    A principal listed for a handle may ask the decryption service for
    its plaintext; a public handle may be decrypted by anyone. Grants are
    never revoked outside transaction rollback.
    """

    def __init__(self):
        self._grants: Dict[str, Set[str]] = {}
        self._public: Set[str] = set()

    def allow(self, handle_id: str, principal: str, journal: "Journal") -> bool:
        principals = self._grants.setdefault(handle_id, set())
        if principal in principals:
            return False
        principals.add(principal)

        def undo():
            principals.discard(principal)
            if not principals and self._grants.get(handle_id) is principals:
                del self._grants[handle_id]

        journal.record(undo)
        return True

    def make_public(self, handle_id: str, journal: "Journal") -> bool:
        if handle_id in self._public:
            return False
        self._public.add(handle_id)
        journal.record(lambda: self._public.discard(handle_id))
        return True

    def is_allowed(self, handle_id: str, principal: str) -> bool:
        return principal in self._grants.get(handle_id, ())

    def is_public(self, handle_id: str) -> bool:
        return handle_id in self._public

    def knows(self, handle_id: str) -> bool:
        """True if any grant or public flag exists for the handle."""
        return handle_id in self._grants or handle_id in self._public

    def principals(self, handle_id: str) -> Set[str]:
        return set(self._grants.get(handle_id, ()))

    def snapshot(self) -> Dict[str, Any]:
        return {
            "grants": {h: sorted(p) for h, p in sorted(self._grants.items())},
            "public": sorted(self._public),
        }


class AggregationEngine:
    """Folds validated encrypted submissions into running statistics."""

    def __init__(self, backend: SealedBackend, categories: Iterable[str], public_aggregates: bool = True):
        self.backend = backend
        self.categories = tuple(categories)
        self.public_aggregates = public_aggregates

    def open_scope(self, state: "LedgerState", facility_id: int) -> None:
        """Create the empty aggregate of a newly registered facility."""
        if facility_id in state.facility_aggregates:
            raise InvalidArgument(f"Aggregate for facility {facility_id} already exists")
        state.facility_aggregates[facility_id] = EncryptedAggregate.empty(self.categories)
        state.journal.record(lambda: state.facility_aggregates.pop(facility_id, None))

    def absorb(
        self,
        state: "LedgerState",
        facility_id: Optional[int],
        values: Mapping[str, "ValidatedValue"],
    ) -> List[str]:
        """
        Add one submission to the global scope and, if given, a facility scope.

        Args:
            state: ledger state (mutated in place, journaled)
            facility_id: facility scope, or None for global only
            values: validated ciphertext per category; must cover exactly
                    the ledger's categories

        Returns:
            Ids of every handle created by this step
        """
        missing = [c for c in self.categories if c not in values]
        unknown = [c for c in values if c not in self.categories]
        if missing or unknown:
            raise InvalidArgument(
                "Submission must cover exactly the ledger categories",
                {"missing": missing, "unknown": unknown},
            )

        scopes = [state.global_aggregate]
        if facility_id is not None:
            if facility_id not in state.facility_aggregates:
                raise NotFound(f"Facility {facility_id} has no aggregate", {"facility_id": facility_id})
            scopes.append(state.facility_aggregates[facility_id])

        deltas = [values[c].handle for c in self.categories]
        submission_total = reduce(self.backend.add, deltas)

        created: List[str] = []
        for aggregate in scopes:
            for category in self.categories:
                updated = self._accumulate(aggregate.sums[category], values[category].handle)
                self._set_sum(state, aggregate, category, updated)
                created.append(updated.handle_id)

            total = self._accumulate(aggregate.total, submission_total)
            self._set_field(state, aggregate, "total", total)
            created.append(total.handle_id)

            count = self._increment(aggregate.count)
            self._set_field(state, aggregate, "count", count)
            created.append(count.handle_id)

        self._grant_aggregate_permissions(state, created)
        logger.debug("Absorbed submission into %d scope(s), %d new handles", len(scopes), len(created))
        return created

    def grant_submitter(self, state: "LedgerState", participant: str, handles: Iterable[CiphertextHandle]) -> None:
        """Let a participant decrypt the inputs it submitted, and nothing else."""
        for handle in handles:
            state.permissions.allow(handle.handle_id, participant, state.journal)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def statistics(self, state: "LedgerState", scope: Optional[int] = None) -> Statistics:
        aggregate = self._resolve(state, scope)
        return Statistics(
            scope=scope,
            count=aggregate.count,
            sums=dict(aggregate.sums),
            total=aggregate.total,
        )

    def aggregate_handles(self, state: "LedgerState", scope: Optional[int] = None) -> Dict[str, str]:
        return self._resolve(state, scope).handle_ids()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _resolve(self, state: "LedgerState", scope: Optional[int]) -> EncryptedAggregate:
        if scope is None:
            return state.global_aggregate
        aggregate = state.facility_aggregates.get(scope)
        if aggregate is None:
            raise NotFound(f"Facility {scope} not found", {"facility_id": scope})
        return aggregate

    def _accumulate(self, current: CiphertextHandle, delta: CiphertextHandle) -> CiphertextHandle:
        # An uninitialized accumulator is zero; start from a fresh encryption
        # of zero so the result never shares a handle with a participant input.
        base = current if current.is_initialized else self.backend.encrypt(0)
        return self.backend.add(base, delta)

    def _increment(self, current: CiphertextHandle) -> CiphertextHandle:
        base = current if current.is_initialized else self.backend.encrypt(0)
        return self.backend.add_plain(base, 1)

    def _set_sum(self, state: "LedgerState", aggregate: EncryptedAggregate, category: str, handle: CiphertextHandle):
        previous = aggregate.sums[category]
        aggregate.sums[category] = handle
        state.journal.record(lambda: aggregate.sums.__setitem__(category, previous))

    def _set_field(self, state: "LedgerState", aggregate: EncryptedAggregate, name: str, handle: CiphertextHandle):
        previous = getattr(aggregate, name)
        setattr(aggregate, name, handle)
        state.journal.record(lambda: setattr(aggregate, name, previous))

    def _grant_aggregate_permissions(self, state: "LedgerState", handle_ids: Iterable[str]) -> None:
        for handle_id in handle_ids:
            state.permissions.allow(handle_id, state.ledger_address, state.journal)
            state.permissions.allow(handle_id, state.admin.administrator, state.journal)
            if self.public_aggregates:
                state.permissions.make_public(handle_id, state.journal)
