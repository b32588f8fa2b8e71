import os
import sys

import pytest

# Make tests/support.py importable regardless of how pytest is invoked
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from qualityledger import invalidate_settings_cache  # noqa: E402
from support import ADMIN, make_ledger  # noqa: E402


@pytest.fixture(autouse=True)
def _fresh_settings():
    invalidate_settings_cache()
    yield
    invalidate_settings_cache()


@pytest.fixture
def ledger_bundle():
    """(ledger, client, decryptor) with one facility already registered."""
    ledger, client, decryptor = make_ledger()
    ledger.create_facility(ADMIN, "Test Hospital", "Test Location")
    return ledger, client, decryptor
