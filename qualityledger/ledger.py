"""
Quality Ledger

The confidential aggregation ledger. Participants submit encrypted
per-category scores for registered facilities; the ledger keeps
encrypted running counts and sums, globally and per facility, and never
operates on plaintext.

Every mutating call is one transaction:

    lock -> begin journal -> checks and writes -> commit | rollback

Transactions are serialized by a process-wide lock. A transaction that
raises is rolled back completely (registry, guard flags, aggregates,
permissions, admin state) and its staged events are dropped. A
transaction that completes bumps the state version and publishes its
events in emission order.

Submission path:

    AccessController (active)
      -> FacilityRegistry (exists and active)
      -> SubmissionGuard (first submission)
      -> CiphertextValidator (every input bound to caller and ledger)
      -> SubmissionGuard (every input handle new to the ledger)
      -> AggregationEngine (fold in, grant permissions)
      -> EventLog (RatingSubmitted, StatisticsUpdated)
"""

import logging
import secrets
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence

from .access import AccessController
from .aggregation import AggregationEngine, EncryptedAggregate, Statistics
from .errors import ErrorReason, InvalidArgument, LedgerError
from .events import (
    ContractResumed,
    EmergencyStop,
    EventLog,
    FacilityCreated,
    RatingSubmitted,
    StatisticsUpdated,
)
from .guard import SubmissionGuard
from .hashing import PROTOCOL_ID, state_digest
from .logging_config import LedgerAuditLogger, audit_log, transaction_context
from .models import DEFAULT_CATEGORIES, FacilityView, OperationalState, RatingSubmission
from .registry import FacilityRegistry
from .sealed import SealedBackend
from .state import AdminState, LedgerState
from .validator import CiphertextValidator, ValidatedValue

logger = logging.getLogger(__name__)


def generate_ledger_address() -> str:
    """Random 20-byte address for a new ledger instance."""
    return "0x" + secrets.token_hex(20)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SubmissionReceipt:
    """Returned for an accepted rating. Says that it happened, not what it was."""
    participant: str
    facility_id: Optional[int]
    ledger_version: int
    timestamp: datetime


class QualityLedger:
    """
    Ledger facade over the five components.

    Usage:
        backend = PlaintextBackend()
        ledger = QualityLedger("0xadmin", backend, DigestInputValidator(backend))
        fid = ledger.create_facility("0xadmin", "City General", "123 Main St")
        ledger.submit_rating("0xalice", submission, facility_id=fid)
        stats = ledger.get_statistics()        # ciphertext handles only
    """

    def __init__(
        self,
        administrator: str,
        backend: SealedBackend,
        validator: CiphertextValidator,
        categories: Sequence[str] = DEFAULT_CATEGORIES,
        multi_facility: bool = True,
        ledger_address: Optional[str] = None,
        clock: Optional[Callable[[], datetime]] = None,
        public_aggregates: bool = True,
        audit: Optional[LedgerAuditLogger] = None,
    ):
        if not isinstance(administrator, str) or not administrator:
            raise ValueError("administrator must be a non-empty address")
        if validator.backend is not backend:
            raise ValueError("validator must be bound to the ledger's backend")
        categories = tuple(categories)
        if not categories:
            raise ValueError("At least one category is required")
        if len(set(categories)) != len(categories):
            raise ValueError("Categories must be unique")

        self.backend = backend
        self.validator = validator
        self.categories = categories
        self.multi_facility = multi_facility
        self.ledger_address = ledger_address or generate_ledger_address()
        self._clock = clock or utc_now
        self._audit = audit or audit_log

        self._state = LedgerState(
            ledger_address=self.ledger_address,
            admin=AdminState(administrator=administrator),
            categories=categories,
            global_aggregate=EncryptedAggregate.empty(categories),
        )
        self.access = AccessController()
        self.registry = FacilityRegistry(clock=self._clock)
        self.guard = SubmissionGuard(multi_facility=multi_facility)
        self.engine = AggregationEngine(backend, categories, public_aggregates=public_aggregates)
        self.events = EventLog()
        self._lock = threading.RLock()

    @classmethod
    def from_settings(
        cls,
        administrator: str,
        backend: SealedBackend,
        validator: CiphertextValidator,
        settings: Any = None,
        **kwargs,
    ) -> "QualityLedger":
        """Build a ledger from LedgerSettings (environment settings by default)."""
        if settings is None:
            from .config import load_settings
            settings = load_settings()
        if backend.value_bits != settings.value_bits:
            raise ValueError(
                f"Backend is uint{backend.value_bits} but settings require uint{settings.value_bits}"
            )
        return cls(
            administrator,
            backend,
            validator,
            categories=settings.categories,
            multi_facility=settings.multi_facility,
            public_aggregates=settings.public_aggregates,
            **kwargs,
        )

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    @contextmanager
    def _operation(self) -> Iterator[str]:
        """Lock and transaction id for one mutating call, post-commit audit included."""
        with self._lock, transaction_context() as transaction_id:
            yield transaction_id

    @contextmanager
    def _transaction(self, operation: str, caller: str) -> Iterator[LedgerState]:
        with self._lock:
            state = self._state
            state.journal.begin()
            try:
                yield state
            except BaseException as exc:
                reverted = state.journal.rollback()
                self.events.discard_staged()
                logger.debug("%s rolled back %d write(s)", operation, reverted)
                if isinstance(exc, Exception):
                    self._audit_rejection(operation, caller, exc)
                raise
            writes = state.journal.commit()
            state.version += 1
            self.events.publish(state.version)
            self._audit.transaction_committed(operation, caller, state.version, writes)

    def _audit_rejection(self, operation: str, caller: str, exc: BaseException) -> None:
        if not isinstance(exc, LedgerError):
            logger.error("%s aborted by unexpected %s", operation, type(exc).__name__)
            self._audit.transaction_rejected(operation, caller, "INTERNAL_ERROR", str(exc))
            return
        self._audit.transaction_rejected(operation, caller, exc.reason.value, exc.message)
        if exc.reason == ErrorReason.UNAUTHORIZED:
            self._audit.security_event("unauthorized_admin_call", "medium", caller=caller, operation=operation)
        elif exc.reason == ErrorReason.INVALID_PROOF:
            self._audit.security_event("invalid_input_proof", "high", caller=caller, operation=operation)

    # =========================================================================
    # ADMINISTRATION
    # =========================================================================

    def create_facility(self, caller: str, name: str, location: str) -> int:
        """Register a facility. Returns its id (1, 2, 3, ...)."""
        with self._operation():
            with self._transaction("create_facility", caller) as state:
                self.access.require_admin(state, caller, "create facilities")
                self.access.require_active(state, "create_facility")
                facility = self.registry.create(state, name, location)
                self.engine.open_scope(state, facility.id)
                self.events.stage(FacilityCreated(
                    timestamp=facility.created_at,
                    facility_id=facility.id,
                    name=facility.name,
                    location=facility.location,
                    creator=caller,
                ))
            self._audit.facility_created(facility.id, caller)
        return facility.id

    def deactivate_facility(self, caller: str, facility_id: int) -> bool:
        """Hide a facility from submissions. Returns False if already inactive."""
        return self._set_facility_active(caller, facility_id, False)

    def reactivate_facility(self, caller: str, facility_id: int) -> bool:
        """Accept submissions for a facility again. Returns False if already active."""
        return self._set_facility_active(caller, facility_id, True)

    def _set_facility_active(self, caller: str, facility_id: int, active: bool) -> bool:
        operation = "reactivate_facility" if active else "deactivate_facility"
        with self._operation():
            with self._transaction(operation, caller) as state:
                self.access.require_admin(state, caller, operation.replace("_", " "))
                self.access.require_active(state, operation)
                changed = self.registry.set_active(state, facility_id, active)
            self._audit.facility_status_changed(facility_id, active, changed)
        return changed

    def emergency_stop(self, caller: str) -> None:
        """ACTIVE -> STOPPED."""
        with self._operation():
            with self._transaction("emergency_stop", caller) as state:
                self.access.stop(state, caller)
                self.events.stage(EmergencyStop(timestamp=self._clock(), caller=caller))
            self._audit.operational_state_changed(
                caller, OperationalState.ACTIVE.value, OperationalState.STOPPED.value
            )

    def resume(self, caller: str) -> None:
        """STOPPED -> ACTIVE."""
        with self._operation():
            with self._transaction("resume", caller) as state:
                self.access.resume(state, caller)
                self.events.stage(ContractResumed(timestamp=self._clock(), caller=caller))
            self._audit.operational_state_changed(
                caller, OperationalState.STOPPED.value, OperationalState.ACTIVE.value
            )

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    def submit_rating(
        self,
        caller: str,
        submission: RatingSubmission,
        facility_id: Optional[int] = None,
    ) -> SubmissionReceipt:
        """
        Submit one encrypted rating.

        Every input handle is single-use: a handle already ingested by
        this ledger (by anyone), an aggregate handle, or a handle repeated
        within the submission fails InvalidProof.

        Args:
            caller: participant address (the sender every proof must name)
            submission: identity placeholder plus one ciphertext per category
            facility_id: target facility; must be None in single-facility mode

        Raises:
            InvalidState, InvalidFacility, InvalidArgument,
            DuplicateSubmission, InvalidProof
        """
        with self._operation():
            with self._transaction("submit_rating", caller) as state:
                self.access.require_active(state, "submit_rating")

                if self.multi_facility:
                    self.registry.require_submittable(state, facility_id)
                elif facility_id is not None:
                    raise InvalidArgument(
                        "This ledger has no facility dimension",
                        {"facility_id": facility_id},
                    )

                self._check_shape(submission)
                self.guard.record_submission(state, caller, facility_id)

                identity = self._validate(submission.identity.handle, submission.identity.proof, caller)
                values: Dict[str, ValidatedValue] = {
                    category: self._validate(
                        submission.scores[category].handle,
                        submission.scores[category].proof,
                        caller,
                    )
                    for category in self.categories
                }
                inputs = [identity.handle, *(v.handle for v in values.values())]
                self.guard.consume_inputs(state, [h.handle_id for h in inputs])

                created = self.engine.absorb(state, facility_id, values)
                self.engine.grant_submitter(state, caller, inputs)

                now = self._clock()
                self.events.stage(RatingSubmitted(timestamp=now, participant=caller, facility_id=facility_id))
                self.events.stage(StatisticsUpdated(timestamp=now))

            version = state.version
            self._audit.rating_accepted(caller, facility_id, created)

        return SubmissionReceipt(
            participant=caller,
            facility_id=facility_id,
            ledger_version=version,
            timestamp=now,
        )

    def _check_shape(self, submission: Any) -> None:
        if not isinstance(submission, RatingSubmission):
            raise InvalidArgument(f"Expected RatingSubmission, got {type(submission).__name__}")
        missing = [c for c in self.categories if c not in submission.scores]
        unknown = [c for c in submission.scores if c not in self.categories]
        if missing or unknown:
            raise InvalidArgument(
                "Submission must score exactly the ledger categories",
                {"missing": missing, "unknown": unknown},
            )

    def _validate(self, handle: Any, proof: Any, caller: str) -> ValidatedValue:
        return self.validator.validate(handle, proof, caller, self.ledger_address)

    # =========================================================================
    # READS
    # =========================================================================

    def get_facility(self, facility_id: int) -> FacilityView:
        with self._lock:
            return self.registry.get(self._state, facility_id)

    def list_facilities(self) -> List[int]:
        with self._lock:
            return self.registry.list_all(self._state)

    def list_active_facilities(self) -> List[int]:
        with self._lock:
            return self.registry.list_active(self._state)

    def total_facilities(self) -> int:
        with self._lock:
            return self.registry.count(self._state)

    def get_statistics(self, scope: Optional[int] = None) -> Statistics:
        """Ciphertext handles of count, per-category sums and total. None = global."""
        with self._lock:
            return self.engine.statistics(self._state, scope)

    def get_aggregate(self, scope: Optional[int] = None) -> Dict[str, str]:
        """Opaque handle ids of a scope's accumulators."""
        with self._lock:
            return self.engine.aggregate_handles(self._state, scope)

    def get_batch_statistics(self, facility_ids: Iterable[int]) -> List[Statistics]:
        with self._lock:
            return [self.engine.statistics(self._state, fid) for fid in facility_ids]

    def has_submitted(self, participant: str, facility_id: Optional[int] = None) -> bool:
        with self._lock:
            return self.guard.has_submitted(self._state, participant, facility_id)

    def is_decryption_allowed(self, handle_id: str, principal: str) -> bool:
        with self._lock:
            return self._state.permissions.is_allowed(handle_id, principal)

    def is_publicly_decryptable(self, handle_id: str) -> bool:
        with self._lock:
            return self._state.permissions.is_public(handle_id)

    @property
    def administrator(self) -> str:
        return self._state.admin.administrator

    @property
    def operational_state(self) -> OperationalState:
        with self._lock:
            return self._state.admin.operational

    @property
    def version(self) -> int:
        with self._lock:
            return self._state.version

    @property
    def protocol_id(self) -> int:
        return PROTOCOL_ID

    def snapshot(self) -> Dict[str, Any]:
        """Persisted state as JSON-able data (handle ids, no payloads)."""
        with self._lock:
            return self._state.snapshot()

    def state_digest(self) -> str:
        with self._lock:
            return state_digest(self._state.snapshot())
