import pytest

from qualityledger import (
    DigestInputValidator,
    PlaintextBackend,
    QualityLedger,
    RatingClient,
    load_settings,
    paillier_keypair_from_settings,
)
from qualityledger.config import settings_from_env

from support import ADMIN


def test_defaults(monkeypatch):
    for name in ("ENV", "VALUE_BITS", "MULTI_FACILITY", "CATEGORIES", "PUBLIC_AGGREGATES"):
        monkeypatch.delenv("QUALITY_LEDGER_" + name, raising=False)
    settings = load_settings()
    assert settings.env == "dev"
    assert settings.value_bits == 32
    assert settings.multi_facility is True
    assert settings.public_aggregates is True
    assert settings.categories == (
        "service", "medicine", "staff", "facility_condition", "environment", "guidance",
    )
    assert (settings.score_min, settings.score_max) == (0, 10)
    assert not settings.is_production()


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("QUALITY_LEDGER_ENV", "PROD")
    monkeypatch.setenv("QUALITY_LEDGER_MULTI_FACILITY", "false")
    monkeypatch.setenv("QUALITY_LEDGER_CATEGORIES", "service, staff")
    monkeypatch.setenv("QUALITY_LEDGER_LOG_LEVEL", "debug")
    settings = load_settings()
    assert settings.is_production()
    assert settings.multi_facility is False
    assert settings.categories == ("service", "staff")
    assert settings.log_level == "DEBUG"


def test_settings_cached_until_invalidated(monkeypatch):
    first = load_settings()
    monkeypatch.setenv("QUALITY_LEDGER_SCORE_MAX", "5")
    assert load_settings() is first
    assert settings_from_env().score_max == 5


@pytest.mark.parametrize(
    "name,value",
    [
        ("ENV", "qa"),
        ("VALUE_BITS", "abc"),
        ("VALUE_BITS", "4"),
        ("SCORE_MIN", "11"),
        ("PAILLIER_BITS", "256"),
        ("CATEGORIES", "service,service"),
        ("CATEGORIES", "service,parking"),
        ("CATEGORIES", " , "),
        ("LOG_LEVEL", "LOUD"),
    ],
)
def test_invalid_settings(monkeypatch, name, value):
    monkeypatch.setenv("QUALITY_LEDGER_" + name, value)
    with pytest.raises(ValueError):
        settings_from_env()


def test_ledger_and_client_from_settings(monkeypatch):
    monkeypatch.setenv("QUALITY_LEDGER_CATEGORIES", "service,staff")
    monkeypatch.setenv("QUALITY_LEDGER_MULTI_FACILITY", "false")
    monkeypatch.setenv("QUALITY_LEDGER_SCORE_MAX", "5")
    backend = PlaintextBackend()

    ledger = QualityLedger.from_settings(ADMIN, backend, DigestInputValidator(backend))
    assert ledger.categories == ("service", "staff")
    assert ledger.multi_facility is False

    client = RatingClient.from_settings(backend, ledger.ledger_address, load_settings())
    with pytest.raises(ValueError):
        client.build_submission("0xalice", {"service": 6, "staff": 1})
    ledger.submit_rating("0xalice", client.build_submission("0xalice", {"service": 5, "staff": 1}))
    assert ledger.has_submitted("0xalice")


def test_from_settings_rejects_mismatched_width():
    backend = PlaintextBackend(value_bits=16)
    with pytest.raises(ValueError):
        QualityLedger.from_settings(ADMIN, backend, DigestInputValidator(backend))


def test_paillier_keypair_sized_by_settings(monkeypatch):
    monkeypatch.setenv("QUALITY_LEDGER_PAILLIER_BITS", "512")
    monkeypatch.setenv("QUALITY_LEDGER_VALUE_BITS", "16")
    backend, decryptor = paillier_keypair_from_settings()

    assert backend.public_key.n.bit_length() == 512
    assert backend.value_bits == decryptor.value_bits == 16
    assert decryptor.decrypt(backend.add_plain(backend.encrypt(65535), 2)) == 1
