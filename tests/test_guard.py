"""Exactly-once submission flags, tested directly against ledger state."""

import unittest

from qualityledger import (
    AdminState,
    DuplicateSubmission,
    EncryptedAggregate,
    InvalidProof,
    LedgerState,
    SubmissionGuard,
)

from support import ADMIN, ALICE, BOB


def _state():
    return LedgerState(
        ledger_address="0xledger",
        admin=AdminState(administrator=ADMIN),
        categories=("service",),
        global_aggregate=EncryptedAggregate.empty(("service",)),
    )


class TestMultiFacilityGuard(unittest.TestCase):

    def setUp(self):
        self.guard = SubmissionGuard(multi_facility=True)
        self.state = _state()
        self.state.journal.begin()

    def test_first_submission_sets_both_flags(self):
        self.guard.record_submission(self.state, ALICE, 1)
        self.assertTrue(self.guard.has_submitted(self.state, ALICE, 1))
        self.assertTrue(self.guard.has_submitted(self.state, ALICE))
        self.assertFalse(self.guard.has_submitted(self.state, ALICE, 2))
        self.assertFalse(self.guard.has_submitted(self.state, BOB, 1))

    def test_duplicate_rejected(self):
        self.guard.record_submission(self.state, ALICE, 1)
        with self.assertRaises(DuplicateSubmission) as ctx:
            self.guard.record_submission(self.state, ALICE, 1)
        self.assertEqual(ctx.exception.details["facility_id"], 1)

    def test_same_participant_other_facility(self):
        self.guard.record_submission(self.state, ALICE, 1)
        self.guard.record_submission(self.state, ALICE, 2)
        self.assertEqual(self.state.submitted, {(ALICE, 1), (ALICE, 2)})
        self.assertEqual(self.state.submitted_any, {ALICE})

    def test_rollback_clears_flags(self):
        self.guard.record_submission(self.state, ALICE, 1)
        self.state.journal.rollback()
        self.assertFalse(self.guard.has_submitted(self.state, ALICE, 1))
        self.assertFalse(self.guard.has_submitted(self.state, ALICE))

    def test_rollback_keeps_earlier_global_flag(self):
        self.guard.record_submission(self.state, ALICE, 1)
        self.state.journal.commit()

        self.state.journal.begin()
        self.guard.record_submission(self.state, ALICE, 2)
        self.state.journal.rollback()

        self.assertTrue(self.guard.has_submitted(self.state, ALICE))
        self.assertTrue(self.guard.has_submitted(self.state, ALICE, 1))
        self.assertFalse(self.guard.has_submitted(self.state, ALICE, 2))

    def test_write_outside_transaction_refused(self):
        self.state.journal.commit()
        with self.assertRaises(RuntimeError):
            self.guard.record_submission(self.state, ALICE, 1)


class TestInputConsumption(unittest.TestCase):

    def setUp(self):
        self.guard = SubmissionGuard()
        self.state = _state()
        self.state.journal.begin()

    def test_inputs_single_use(self):
        self.guard.consume_inputs(self.state, ["0x01", "0x02"])
        self.assertEqual(self.state.consumed_inputs, {"0x01", "0x02"})
        with self.assertRaises(InvalidProof):
            self.guard.consume_inputs(self.state, ["0x03", "0x02"])
        self.assertNotIn("0x03", self.state.consumed_inputs)

    def test_repeat_within_call_rejected(self):
        with self.assertRaises(InvalidProof):
            self.guard.consume_inputs(self.state, ["0x01", "0x01"])
        self.assertEqual(self.state.consumed_inputs, set())

    def test_handle_known_to_permissions_rejected(self):
        self.state.permissions.allow("0xagg", "0xledger", self.state.journal)
        with self.assertRaises(InvalidProof):
            self.guard.consume_inputs(self.state, ["0xagg"])

    def test_rollback_releases_inputs(self):
        self.guard.consume_inputs(self.state, ["0x01"])
        self.state.journal.rollback()
        self.assertEqual(self.state.consumed_inputs, set())


class TestSingleFacilityGuard(unittest.TestCase):

    def setUp(self):
        self.guard = SubmissionGuard(multi_facility=False)
        self.state = _state()
        self.state.journal.begin()

    def test_global_flag_enforces_uniqueness(self):
        self.guard.record_submission(self.state, ALICE)
        self.assertTrue(self.guard.has_submitted(self.state, ALICE))
        with self.assertRaises(DuplicateSubmission):
            self.guard.record_submission(self.state, ALICE)
        self.guard.record_submission(self.state, BOB)
        self.assertEqual(self.state.submitted, set())


if __name__ == "__main__":
    unittest.main()
