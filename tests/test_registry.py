"""Facility registry lifecycle."""

import unittest

from qualityledger import (
    FacilityCreated,
    InvalidArgument,
    InvalidFacility,
    NotFound,
    Unauthorized,
)

from support import ADMIN, ALICE, SCORES_A, make_ledger


class TestFacilityRegistry(unittest.TestCase):

    def setUp(self):
        self.ledger, self.client, _ = make_ledger()

    def test_ids_sequential_from_one(self):
        ids = [self.ledger.create_facility(ADMIN, f"Hospital {i}", f"Street {i}") for i in range(3)]
        self.assertEqual(ids, [1, 2, 3])
        self.assertEqual(self.ledger.total_facilities(), 3)

    def test_get_facility(self):
        fid = self.ledger.create_facility(ADMIN, "City General Hospital", "123 Main St")
        view = self.ledger.get_facility(fid)
        self.assertEqual(view.name, "City General Hospital")
        self.assertEqual(view.location, "123 Main St")
        self.assertTrue(view.is_active)
        self.assertEqual(view.to_dict()["created_at"], "2026-01-14T12:00:00Z")

    def test_creation_event(self):
        fid = self.ledger.create_facility(ADMIN, "City General Hospital", "123 Main St")
        record = self.ledger.events.records()[-1]
        self.assertIsInstance(record.event, FacilityCreated)
        self.assertEqual(record.event.facility_id, fid)
        self.assertEqual(record.event.creator, ADMIN)
        self.assertEqual(record.event.location, "123 Main St")

    def test_non_admin_cannot_create(self):
        before = self.ledger.state_digest()
        with self.assertRaises(Unauthorized):
            self.ledger.create_facility(ALICE, "Unauthorized Hospital", "Somewhere")
        self.assertEqual(self.ledger.state_digest(), before)
        self.assertEqual(len(self.ledger.events), 0)

    def test_empty_metadata_rejected(self):
        with self.assertRaises(InvalidArgument):
            self.ledger.create_facility(ADMIN, "", "Somewhere")
        with self.assertRaises(InvalidArgument):
            self.ledger.create_facility(ADMIN, "Name", "   ")
        # A rejected create does not consume an id
        self.assertEqual(self.ledger.create_facility(ADMIN, "Name", "Place"), 1)

    def test_unknown_facility(self):
        with self.assertRaises(NotFound):
            self.ledger.get_facility(999)
        with self.assertRaises(NotFound):
            self.ledger.deactivate_facility(ADMIN, 999)
        with self.assertRaises(NotFound):
            self.ledger.reactivate_facility(ADMIN, 999)

    def test_listing_order_and_active_filter(self):
        for i in range(3):
            self.ledger.create_facility(ADMIN, f"Hospital {i}", f"Street {i}")
        self.ledger.deactivate_facility(ADMIN, 2)
        self.assertEqual(self.ledger.list_facilities(), [1, 2, 3])
        self.assertEqual(self.ledger.list_active_facilities(), [1, 3])

    def test_deactivate_and_reactivate(self):
        fid = self.ledger.create_facility(ADMIN, "Hospital", "Street")
        self.assertTrue(self.ledger.deactivate_facility(ADMIN, fid))
        self.assertFalse(self.ledger.get_facility(fid).is_active)
        self.assertTrue(self.ledger.reactivate_facility(ADMIN, fid))
        self.assertTrue(self.ledger.get_facility(fid).is_active)

    def test_redundant_status_change_is_noop(self):
        fid = self.ledger.create_facility(ADMIN, "Hospital", "Street")
        self.assertFalse(self.ledger.reactivate_facility(ADMIN, fid))
        self.ledger.deactivate_facility(ADMIN, fid)
        before = self.ledger.snapshot()
        self.assertFalse(self.ledger.deactivate_facility(ADMIN, fid))
        self.assertEqual(self.ledger.snapshot(), before)

    def test_non_admin_cannot_toggle(self):
        fid = self.ledger.create_facility(ADMIN, "Hospital", "Street")
        with self.assertRaises(Unauthorized):
            self.ledger.deactivate_facility(ALICE, fid)
        self.assertTrue(self.ledger.get_facility(fid).is_active)

    def test_deactivated_facility_rejects_submissions(self):
        fid = self.ledger.create_facility(ADMIN, "Hospital", "Street")
        self.ledger.deactivate_facility(ADMIN, fid)
        submission = self.client.build_from_sequence(ALICE, SCORES_A)
        with self.assertRaises(InvalidFacility):
            self.ledger.submit_rating(ALICE, submission, facility_id=fid)
        self.assertFalse(self.ledger.has_submitted(ALICE, fid))

        self.ledger.reactivate_facility(ADMIN, fid)
        self.ledger.submit_rating(ALICE, submission, facility_id=fid)
        self.assertTrue(self.ledger.has_submitted(ALICE, fid))

    def test_deactivation_keeps_aggregates(self):
        fid = self.ledger.create_facility(ADMIN, "Hospital", "Street")
        self.ledger.submit_rating(ALICE, self.client.build_from_sequence(ALICE, SCORES_A), facility_id=fid)
        handles = self.ledger.get_aggregate(fid)
        self.ledger.deactivate_facility(ADMIN, fid)
        self.assertEqual(self.ledger.get_aggregate(fid), handles)


if __name__ == "__main__":
    unittest.main()
