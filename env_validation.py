"""Environment variable validation and typed settings."""

import os
import logging
from dataclasses import dataclass
from typing import Dict

logger = logging.getLogger(__name__)


class EnvironmentError(Exception):
    """Raised when required environment variables are missing or invalid."""
    pass


DEFAULTS: Dict[str, str] = {
    "ITEM_BANK_PATH": "item-bank.json",
    "LOW_COVERAGE_THRESHOLD": "5",
    "AUTO_ASSIGN_MIN_SCORE": "0.3",
    "GENERATION_DELAY_SECONDS": "0.01",
}


def validate_environment() -> None:
    """Apply defaults and validate the configured values.

    Raises EnvironmentError if validation fails.
    """
    for var, value in DEFAULTS.items():
        if not os.getenv(var):
            os.environ[var] = value
            logger.info("Environment variable %s not set; using default '%s'", var, value)

    optional_vars = {
        "LLM_API_URL": "Chat completions endpoint used for AI generation",
        "LLM_API_KEY": "Bearer token for the completions endpoint",
    }

    url = os.getenv("LLM_API_URL")
    if url and not (url.startswith("http://") or url.startswith("https://")):
        raise EnvironmentError(f"Invalid URL format for LLM_API_URL: {url}")

    # Parse once so that bad numbers fail at startup rather than mid-request.
    Settings.from_env()

    for var, description in optional_vars.items():
        if not os.getenv(var):
            logger.debug("Optional environment variable not set: %s (%s)", var, description)


def get_env_bool(name: str, default: bool = False) -> bool:
    """Get boolean value from environment variable."""
    value = os.getenv(name)
    if value is None:
        return default
    return value.lower() in {"1", "true", "yes", "on", "enabled"}


def get_env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return float(value)
    except ValueError as exc:
        raise EnvironmentError(f"{name} must be a number, got {value!r}") from exc


def get_env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError as exc:
        raise EnvironmentError(f"{name} must be an integer, got {value!r}") from exc


@dataclass(frozen=True)
class Settings:
    item_bank_path: str = DEFAULTS["ITEM_BANK_PATH"]
    low_coverage_threshold: int = 5
    match_threshold: float = 0.3
    generation_delay_seconds: float = 0.01

    @classmethod
    def from_env(cls) -> "Settings":
        match_threshold = get_env_float("AUTO_ASSIGN_MIN_SCORE", 0.3)
        if not 0.0 <= match_threshold <= 1.0:
            raise EnvironmentError(
                f"AUTO_ASSIGN_MIN_SCORE must be between 0 and 1, got {match_threshold}"
            )
        low_coverage = get_env_int("LOW_COVERAGE_THRESHOLD", 5)
        if low_coverage < 0:
            raise EnvironmentError(f"LOW_COVERAGE_THRESHOLD cannot be negative, got {low_coverage}")
        return cls(
            item_bank_path=os.getenv("ITEM_BANK_PATH") or DEFAULTS["ITEM_BANK_PATH"],
            low_coverage_threshold=low_coverage,
            match_threshold=match_threshold,
            generation_delay_seconds=max(0.0, get_env_float("GENERATION_DELAY_SECONDS", 0.01)),
        )
