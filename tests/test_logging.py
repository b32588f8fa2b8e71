"""Structured logging and the audit trail of ledger transactions."""

import json
import logging
import unittest
from dataclasses import replace

from qualityledger import InvalidProof, RatingSubmission, Unauthorized, load_settings
from qualityledger.logging_config import (
    LedgerAuditLogger,
    StructuredFormatter,
    configure_from_settings,
    configure_logging,
    get_transaction_id,
    set_transaction_id,
    transaction_context,
)

from support import ADMIN, ALICE, BOB, SCORES_A, make_ledger


class TestStructuredFormatter(unittest.TestCase):

    def _record(self, msg, **extra_fields):
        record = logging.LogRecord("qualityledger.test", logging.INFO, __file__, 10, msg, (), None)
        if extra_fields:
            record.extra_fields = extra_fields
        return record

    def test_json_line(self):
        set_transaction_id("tx-fixed")
        data = json.loads(StructuredFormatter().format(self._record("hello", facility_id=3)))
        self.assertEqual(data["message"], "hello")
        self.assertEqual(data["level"], "INFO")
        self.assertEqual(data["logger"], "qualityledger.test")
        self.assertEqual(data["transaction_id"], "tx-fixed")
        self.assertEqual(data["facility_id"], 3)
        self.assertTrue(data["timestamp"].endswith("Z"))

    def test_generated_transaction_ids(self):
        first = set_transaction_id()
        second = set_transaction_id()
        self.assertTrue(first.startswith("tx-"))
        self.assertNotEqual(first, second)
        self.assertEqual(get_transaction_id(), second)

    def test_configure_logging_installs_one_handler(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_logging(level="debug", json_format=True)
            configure_logging(level="WARNING", json_format=False)
            self.assertEqual(len(root.handlers), 1)
            self.assertEqual(root.level, logging.WARNING)
            self.assertNotIsInstance(root.handlers[0].formatter, StructuredFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

    def test_configure_from_settings(self):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            configure_from_settings(replace(load_settings(), log_level="ERROR", log_json=True))
            self.assertEqual(root.level, logging.ERROR)
            self.assertIsInstance(root.handlers[0].formatter, StructuredFormatter)
        finally:
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


class TestAuditTrail(unittest.TestCase):

    def setUp(self):
        self.ledger, self.client, _ = make_ledger()

    def _fields(self, captured, event_type):
        return [r.extra_fields for r in captured.records if r.extra_fields["event_type"] == event_type]

    def test_commit_recorded(self):
        with self.assertLogs("qualityledger.audit", level="INFO") as captured:
            self.ledger.create_facility(ADMIN, "Test Hospital", "Test Location")
        committed = self._fields(captured, "TRANSACTION_COMMITTED")
        self.assertEqual(len(committed), 1)
        self.assertEqual(committed[0]["operation"], "create_facility")
        self.assertEqual(committed[0]["ledger_version"], 1)
        self.assertTrue(committed[0]["transaction_id"].startswith("tx-"))
        self.assertEqual(len(self._fields(captured, "FACILITY_CREATED")), 1)

    def test_unauthorized_is_security_event(self):
        with self.assertLogs("qualityledger.audit", level="INFO") as captured:
            with self.assertRaises(Unauthorized):
                self.ledger.emergency_stop(ALICE)
        rejected = self._fields(captured, "TRANSACTION_REJECTED")
        self.assertEqual(rejected[0]["reason"], "UNAUTHORIZED")
        self.assertEqual(rejected[0]["caller"], ALICE)
        security = self._fields(captured, "SECURITY_EVENT")
        self.assertEqual(security[0]["security_event"], "unauthorized_admin_call")
        self.assertEqual(self._fields(captured, "TRANSACTION_COMMITTED"), [])

    def test_invalid_proof_logged_at_error_without_scores(self):
        fid = self.ledger.create_facility(ADMIN, "Test Hospital", "Test Location")
        good = self.client.build_from_sequence(ALICE, SCORES_A)
        scores = dict(good.scores)
        scores["service"] = self.client.build_from_sequence(BOB, SCORES_A).scores["service"]

        with self.assertLogs("qualityledger.audit", level="INFO") as captured:
            with self.assertRaises(InvalidProof):
                self.ledger.submit_rating(ALICE, RatingSubmission(good.identity, scores), facility_id=fid)

        security = [r for r in captured.records if r.extra_fields["event_type"] == "SECURITY_EVENT"]
        self.assertEqual(security[0].levelno, logging.ERROR)
        self.assertEqual(security[0].extra_fields["security_event"], "invalid_input_proof")
        for record in captured.records:
            self.assertNotIn("scores", record.extra_fields)

    def test_transaction_id_scoped_to_operation(self):
        set_transaction_id("tx-outer")
        with self.assertLogs("qualityledger.audit", level="INFO") as captured:
            self.ledger.create_facility(ADMIN, "Test Hospital", "Test Location")
        self.assertEqual(get_transaction_id(), "tx-outer")

        committed = self._fields(captured, "TRANSACTION_COMMITTED")[0]
        created = self._fields(captured, "FACILITY_CREATED")[0]
        self.assertNotEqual(committed["transaction_id"], "tx-outer")
        self.assertEqual(created["transaction_id"], committed["transaction_id"])

    def test_transaction_id_restored_after_rejection(self):
        set_transaction_id("tx-outer")
        with self.assertRaises(Unauthorized):
            self.ledger.emergency_stop(ALICE)
        self.assertEqual(get_transaction_id(), "tx-outer")

    def test_transaction_context_nests(self):
        set_transaction_id("tx-outer")
        with transaction_context("tx-a") as first:
            self.assertEqual(first, "tx-a")
            with transaction_context() as second:
                self.assertTrue(second.startswith("tx-"))
                self.assertEqual(get_transaction_id(), second)
            self.assertEqual(get_transaction_id(), "tx-a")
        self.assertEqual(get_transaction_id(), "tx-outer")

    def test_custom_audit_logger(self):
        ledger, _, _ = make_ledger(audit=LedgerAuditLogger("qualityledger.audit.custom"))
        with self.assertLogs("qualityledger.audit.custom", level="WARNING") as captured:
            ledger.emergency_stop(ADMIN)
        changed = [r.extra_fields for r in captured.records]
        self.assertEqual(changed[0]["event_type"], "OPERATIONAL_STATE_CHANGED")
        self.assertEqual((changed[0]["previous"], changed[0]["current"]), ("ACTIVE", "STOPPED"))


if __name__ == "__main__":
    unittest.main()
