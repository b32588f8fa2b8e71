"""
Submission uniqueness.

Records who has submitted where, never what. Each (participant,
facility) key is write-once. A global per-participant flag is kept as
well; in single-facility mode it is the flag that enforces uniqueness.

Input ciphertexts are single-use as well: a handle the ledger has already
ingested, or one it derived itself, is rejected whoever submits it.

The check-and-set runs inside the submission transaction, so a flag set
here is reverted if a later step (proof validation, aggregation) fails.
"""

from typing import TYPE_CHECKING, Iterable, Optional

from .errors import DuplicateSubmission, InvalidProof

if TYPE_CHECKING:
    from .state import LedgerState


class SubmissionGuard:
    """Exactly-once submission flags."""

    def __init__(self, multi_facility: bool = True):
        self.multi_facility = multi_facility

    def has_submitted(self, state: "LedgerState", participant: str, facility_id: Optional[int] = None) -> bool:
        if facility_id is None:
            return participant in state.submitted_any
        return (participant, facility_id) in state.submitted

    def record_submission(self, state: "LedgerState", participant: str, facility_id: Optional[int] = None) -> None:
        """
        Atomically check and set the submission flags.

        Raises:
            DuplicateSubmission: if the scoped flag (multi-facility) or the
                                 global flag (single-facility) is already set
        """
        if self.multi_facility:
            key = (participant, facility_id)
            if key in state.submitted:
                raise DuplicateSubmission(
                    f"Participant already rated facility {facility_id}",
                    {"participant": participant, "facility_id": facility_id},
                )
            state.submitted.add(key)
            state.journal.record(lambda: state.submitted.discard(key))
        elif participant in state.submitted_any:
            raise DuplicateSubmission("Participant already submitted", {"participant": participant})

        if participant not in state.submitted_any:
            state.submitted_any.add(participant)
            state.journal.record(lambda: state.submitted_any.discard(participant))

    def consume_inputs(self, state: "LedgerState", handle_ids: Iterable[str]) -> None:
        """
        Mark the input handles of one submission as used.

        Raises:
            InvalidProof: if a handle was already ingested, is an aggregate
                          handle, or appears twice in the submission
        """
        handle_ids = list(handle_ids)
        seen = set()
        for handle_id in handle_ids:
            if handle_id in seen or handle_id in state.consumed_inputs or state.permissions.knows(handle_id):
                raise InvalidProof("Ciphertext was already submitted to this ledger", {"handle": handle_id})
            seen.add(handle_id)

        for handle_id in handle_ids:
            state.consumed_inputs.add(handle_id)
            state.journal.record(lambda h=handle_id: state.consumed_inputs.discard(h))
