"""
Ledger event log.

Append-only and totally ordered. Events emitted during a transaction are
staged and only published (sequenced, stored, delivered to subscribers)
when the transaction commits; a rolled-back transaction leaves no trace
here. Published records are never mutated or removed.
"""

import logging
import threading
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from .models import isoformat

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerEvent:
    """Base event. `kind` is the event name seen by observers."""
    timestamp: datetime

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"kind": self.kind}
        for f in fields(self):
            value = getattr(self, f.name)
            d[f.name] = isoformat(value) if isinstance(value, datetime) else value
        return d


@dataclass(frozen=True)
class FacilityCreated(LedgerEvent):
    facility_id: int
    name: str
    location: str
    creator: str


@dataclass(frozen=True)
class RatingSubmitted(LedgerEvent):
    participant: str
    facility_id: Optional[int] = None


@dataclass(frozen=True)
class StatisticsUpdated(LedgerEvent):
    pass


@dataclass(frozen=True)
class EmergencyStop(LedgerEvent):
    caller: str


@dataclass(frozen=True)
class ContractResumed(LedgerEvent):
    caller: str


EVENT_TYPES: Dict[str, Type[LedgerEvent]] = {
    cls.__name__: cls
    for cls in (FacilityCreated, RatingSubmitted, StatisticsUpdated, EmergencyStop, ContractResumed)
}


@dataclass(frozen=True)
class EventRecord:
    """A published event with its position in the log."""
    sequence: int
    ledger_version: int
    event: LedgerEvent

    @property
    def kind(self) -> str:
        return self.event.kind

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sequence": self.sequence,
            "ledger_version": self.ledger_version,
            **self.event.to_dict(),
        }


Subscriber = Callable[[EventRecord], None]


class EventLog:
    """
    In-process event log.

    Observers either poll (`records`, `query`) or subscribe. Subscribers
    are called synchronously after commit, in sequence order.
    """

    def __init__(self):
        self._records: List[EventRecord] = []
        self._staged: List[LedgerEvent] = []
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def stage(self, event: LedgerEvent) -> None:
        """Queue an event for the transaction in progress."""
        with self._lock:
            self._staged.append(event)

    def discard_staged(self) -> int:
        with self._lock:
            count = len(self._staged)
            self._staged = []
            return count

    def publish(self, ledger_version: int) -> List[EventRecord]:
        """Sequence and store staged events, then notify subscribers."""
        with self._lock:
            published = []
            for event in self._staged:
                record = EventRecord(
                    sequence=len(self._records) + 1,
                    ledger_version=ledger_version,
                    event=event,
                )
                self._records.append(record)
                published.append(record)
            self._staged = []
            subscribers = list(self._subscribers)

        for record in published:
            for callback in subscribers:
                try:
                    callback(record)
                except Exception:
                    # The transaction is already committed; an observer
                    # failure must not affect the ledger or other observers.
                    logger.exception("Event subscriber failed on %s #%d", record.kind, record.sequence)
        return published

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback. Returns a function that unsubscribes it."""
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def records(self) -> Tuple[EventRecord, ...]:
        with self._lock:
            return tuple(self._records)

    def query(
        self,
        kind: Optional[str] = None,
        facility_id: Optional[int] = None,
        participant: Optional[str] = None,
        after_sequence: Optional[int] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None,
    ) -> List[EventRecord]:
        """Filter published records. All filters are conjunctive."""
        if kind and kind not in EVENT_TYPES:
            raise ValueError(f"Unknown event kind: {kind}")

        with self._lock:
            records = self._records[:]

        if kind:
            records = [r for r in records if r.kind == kind]
        if facility_id is not None:
            records = [r for r in records if getattr(r.event, "facility_id", None) == facility_id]
        if participant:
            records = [r for r in records if getattr(r.event, "participant", None) == participant]
        if after_sequence is not None:
            records = [r for r in records if r.sequence > after_sequence]
        if start_time:
            records = [r for r in records if r.event.timestamp >= start_time]
        if end_time:
            records = [r for r in records if r.event.timestamp <= end_time]

        return records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
