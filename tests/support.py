"""Shared builders for the ledger test suites."""

from datetime import datetime, timedelta, timezone

from qualityledger import (
    DigestInputValidator,
    PlaintextBackend,
    PlaintextDecryptor,
    QualityLedger,
    RatingClient,
)

ADMIN = "0xadmin000000000000000000000000000000000001"
ALICE = "0xa11ce00000000000000000000000000000000002"
BOB = "0xb0b0000000000000000000000000000000000003"
CHARLIE = "0xc4a411e000000000000000000000000000000004"

SCORES_A = [8, 7, 9, 6, 8, 7]
SCORES_B = [5, 5, 5, 5, 5, 5]


class TickingClock:
    """Deterministic clock: each call is one second after the previous."""

    def __init__(self, start=None):
        self.now = start or datetime(2026, 1, 14, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self):
        current = self.now
        self.now = current + timedelta(seconds=1)
        return current


def make_ledger(**kwargs):
    """Plaintext-backed ledger with the digest validator, plus its client and decryptor."""
    backend = kwargs.pop("backend", None) or PlaintextBackend()
    validator = kwargs.pop("validator", None) or DigestInputValidator(backend)
    kwargs.setdefault("clock", TickingClock())
    ledger = QualityLedger(ADMIN, backend, validator, **kwargs)
    client = RatingClient(backend, ledger.ledger_address, categories=ledger.categories)
    return ledger, client, PlaintextDecryptor(backend)


def reveal(decryptor, handle):
    """Test-only plaintext of a handle; uninitialized handles read as zero."""
    return decryptor.decrypt(handle) if handle.is_initialized else 0
