"""
Configuration for the quality ledger.

Environment variables with defaults, validated into a cached
LedgerSettings. Call invalidate_settings_cache() after changing the
environment (tests do).
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Tuple

from .models import DEFAULT_CATEGORIES, Category

# ============================================================
# Environment Configuration
# ============================================================

ENV_PREFIX = "QUALITY_LEDGER_"

DEFAULTS = {
    "ENV": "dev",  # dev|stage|prod
    "LOG_LEVEL": "INFO",
    "LOG_JSON": "true",
    "LOG_FILE": "",
    "VALUE_BITS": "32",
    "SCORE_MIN": "0",
    "SCORE_MAX": "10",
    "PAILLIER_BITS": "2048",
    "MULTI_FACILITY": "true",
    "PUBLIC_AGGREGATES": "true",
    "CATEGORIES": ",".join(DEFAULT_CATEGORIES),
}

VALID_ENVS = ("dev", "stage", "prod")
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _env(name: str) -> str:
    return os.getenv(ENV_PREFIX + name, DEFAULTS[name])


def _env_bool(name: str) -> bool:
    return _env(name).strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str) -> int:
    raw = _env(name).strip()
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class LedgerSettings:
    env: str
    log_level: str
    log_json: bool
    log_file: str
    value_bits: int
    score_min: int
    score_max: int
    paillier_bits: int
    multi_facility: bool
    public_aggregates: bool
    categories: Tuple[str, ...]

    def validate(self) -> "LedgerSettings":
        if self.env not in VALID_ENVS:
            raise ValueError(f"env must be one of {VALID_ENVS}, got {self.env!r}")
        if self.log_level not in VALID_LOG_LEVELS:
            raise ValueError(f"log_level must be one of {VALID_LOG_LEVELS}, got {self.log_level!r}")
        if not 8 <= self.value_bits <= 256:
            raise ValueError(f"value_bits must be in 8..256, got {self.value_bits}")
        if self.score_min < 0 or self.score_min > self.score_max:
            raise ValueError(f"Invalid score range {self.score_min}..{self.score_max}")
        if self.score_max >= 1 << self.value_bits:
            raise ValueError("score_max does not fit in value_bits")
        if self.paillier_bits < 512:
            raise ValueError("paillier_bits must be at least 512")
        if not self.categories:
            raise ValueError("At least one category is required")
        if len(set(self.categories)) != len(self.categories):
            raise ValueError("Categories must be unique")
        known = {c.value for c in Category}
        unknown = [c for c in self.categories if c not in known]
        if unknown:
            raise ValueError(f"Unknown categories: {unknown}")
        return self

    def is_production(self) -> bool:
        return self.env == "prod"


def settings_from_env() -> LedgerSettings:
    """Read and validate settings from the environment (uncached)."""
    categories = tuple(c.strip() for c in _env("CATEGORIES").split(",") if c.strip())
    return LedgerSettings(
        env=_env("ENV").strip().lower(),
        log_level=_env("LOG_LEVEL").strip().upper(),
        log_json=_env_bool("LOG_JSON"),
        log_file=_env("LOG_FILE").strip(),
        value_bits=_env_int("VALUE_BITS"),
        score_min=_env_int("SCORE_MIN"),
        score_max=_env_int("SCORE_MAX"),
        paillier_bits=_env_int("PAILLIER_BITS"),
        multi_facility=_env_bool("MULTI_FACILITY"),
        public_aggregates=_env_bool("PUBLIC_AGGREGATES"),
        categories=categories,
    ).validate()


@lru_cache(maxsize=1)
def load_settings() -> LedgerSettings:
    """Settings from the environment, cached for the process."""
    return settings_from_env()


def invalidate_settings_cache() -> None:
    load_settings.cache_clear()
