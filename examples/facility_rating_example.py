#!/usr/bin/env python3
"""
Quality Ledger Example - Complete End-to-End Flow

An administrator registers two facilities, participants submit encrypted
ratings, and an analyst decrypts the aggregates through the decryption
service. Individual scores never reach the ledger in the clear.

Run with: python examples/facility_rating_example.py
"""

from qualityledger import (
    AttesterTrustStore,
    DecryptionService,
    DuplicateSubmission,
    EncryptedInput,
    InputAttester,
    InvalidFacility,
    InvalidProof,
    QualityLedger,
    RatingClient,
    RatingSubmission,
    SignedInputValidator,
    Unauthorized,
    load_settings,
    paillier_keypair_from_settings,
)
from qualityledger.logging_config import configure_logging

ADMIN = "0xadmin000000000000000000000000000000000001"
ALICE = "0xa11ce00000000000000000000000000000000002"
BOB = "0xb0b0000000000000000000000000000000000003"
MALLORY = "0x3a110e7000000000000000000000000000000004"


def main():
    configure_logging(level="WARNING", json_format=True)

    print("=" * 70)
    print("Quality Ledger - Confidential Facility Ratings")
    print("=" * 70)

    # =========================================================================
    # SETUP: keys, attester, ledger
    # =========================================================================

    settings = load_settings()
    print(f"\n[SETUP] Generating Paillier key pair ({settings.paillier_bits} bits)...")
    backend, decryptor = paillier_keypair_from_settings(settings)

    attester = InputAttester.generate("demo-attester")
    trust_store = AttesterTrustStore([attester.trust_store_entry()])
    validator = SignedInputValidator(backend, trust_store)

    ledger = QualityLedger.from_settings(ADMIN, backend, validator, settings)
    client = RatingClient.from_settings(backend, ledger.ledger_address, settings, attester=attester)
    service = DecryptionService(decryptor, ledger)

    print(f"  Ledger address: {ledger.ledger_address}")
    print(f"  Protocol id: {ledger.protocol_id}")
    print(f"  Categories: {list(ledger.categories)}")
    print(f"  Trusted attesters: {trust_store.key_ids()}")

    # =========================================================================
    # SCENARIO 1: Register facilities and collect ratings
    # =========================================================================

    print("\n" + "-" * 70)
    print("SCENARIO 1: Ratings for two facilities")
    print("-" * 70)

    general = ledger.create_facility(ADMIN, "City General Hospital", "123 Main St")
    clinic = ledger.create_facility(ADMIN, "Riverside Clinic", "9 River Rd")
    print(f"\n[STEP 1] Registered facilities {ledger.list_facilities()}")

    print("\n[STEP 2] Participants encrypt and submit...")
    ledger.submit_rating(ALICE, client.build_from_sequence(ALICE, [8, 7, 9, 6, 8, 7]), facility_id=general)
    ledger.submit_rating(BOB, client.build_from_sequence(BOB, [5, 5, 5, 5, 5, 5]), facility_id=general)
    alice_clinic = client.build_from_sequence(ALICE, [9, 9, 8, 9, 10, 9])
    receipt = ledger.submit_rating(ALICE, alice_clinic, facility_id=clinic)
    print(f"  Last receipt: participant={receipt.participant} facility={receipt.facility_id} "
          f"version={receipt.ledger_version}")

    stats = ledger.get_statistics(general)
    print(f"\n[STEP 3] On-ledger statistics for facility {general} (handles only):")
    print(f"  count: {stats.count.handle_id[:26]}...")
    print(f"  sum(service): {stats.sums['service'].handle_id[:26]}...")

    print("\n[STEP 4] Decrypting published aggregates...")
    for fid in (general, clinic):
        report = service.decrypt_statistics(fid)
        facility = ledger.get_facility(fid)
        print(f"\n  {facility.name} ({report.count} rating(s))")
        for category, average in report.averages.items():
            print(f"    {category:<20} {average:5.2f}")
        print(f"    {'overall':<20} {report.average_total / len(report.sums):5.2f}")

    overall = service.decrypt_statistics()
    print(f"\n  All facilities: {overall.count} rating(s)")

    # =========================================================================
    # SCENARIO 2: Rejections
    # =========================================================================

    print("\n" + "-" * 70)
    print("SCENARIO 2: Rejected transactions (nothing changes)")
    print("-" * 70)

    digest_before = ledger.state_digest()

    try:
        ledger.submit_rating(ALICE, client.build_from_sequence(ALICE, [1, 1, 1, 1, 1, 1]), facility_id=general)
    except DuplicateSubmission as e:
        print(f"\n  ✗ Second rating by Alice: {e.reason.value}")

    try:
        ledger.submit_rating(BOB, client.build_from_sequence(BOB, [5, 5, 5, 5, 5, 5]), facility_id=999)
    except InvalidFacility as e:
        print(f"  ✗ Rating for unknown facility: {e.reason.value}")

    # Mallory replays Bob's encrypted service score under her own name
    bob_inputs = client.build_from_sequence(BOB, [10, 10, 10, 10, 10, 10])
    own = client.build_from_sequence(MALLORY, [1, 1, 1, 1, 1, 1])
    replayed = RatingSubmission(identity=own.identity, scores={**own.scores, "service": bob_inputs.scores["service"]})
    try:
        ledger.submit_rating(MALLORY, replayed, facility_id=clinic)
    except InvalidProof as e:
        print(f"  ✗ Replayed ciphertext: {e.reason.value}")

    # Mallory re-binds Alice's already-ingested ciphertext to her own address
    alice_handle = alice_clinic.scores["service"].handle
    rebound = EncryptedInput(alice_handle, attester.attest(alice_handle.handle_id, MALLORY, ledger.ledger_address))
    try:
        ledger.submit_rating(MALLORY, RatingSubmission(own.identity, {**own.scores, "service": rebound}), facility_id=general)
    except InvalidProof as e:
        print(f"  ✗ Re-bound ingested ciphertext: {e.reason.value}")

    try:
        ledger.emergency_stop(MALLORY)
    except Unauthorized as e:
        print(f"  ✗ Non-admin emergency stop: {e.reason.value}")

    unchanged = ledger.state_digest() == digest_before
    print(f"\n  State digest unchanged: {unchanged}")
    print(f"  Mallory recorded as submitter: {ledger.has_submitted(MALLORY, clinic)}")

    # =========================================================================
    # SCENARIO 3: Emergency stop
    # =========================================================================

    print("\n" + "-" * 70)
    print("SCENARIO 3: Emergency stop and resume")
    print("-" * 70)

    ledger.emergency_stop(ADMIN)
    print(f"\n  State: {ledger.operational_state.value}")
    ledger.resume(ADMIN)
    print(f"  State: {ledger.operational_state.value}")

    # =========================================================================
    # EVENT LOG
    # =========================================================================

    print("\n" + "-" * 70)
    print("EVENT LOG")
    print("-" * 70)

    records = ledger.events.records()
    print(f"\nTotal events: {len(records)}")
    for record in records:
        event = record.to_dict()
        detail = {k: v for k, v in event.items() if k not in ("sequence", "ledger_version", "kind", "timestamp")}
        print(f"  #{record.sequence:<3} v{record.ledger_version:<3} {record.kind:<18} {detail}")

    print("\n" + "=" * 70)
    print("Example Complete")
    print("=" * 70)


if __name__ == "__main__":
    main()
