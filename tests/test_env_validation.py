import pytest

import env_validation
from env_validation import EnvironmentError, Settings, get_env_bool, get_env_int, validate_environment


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    # setenv first so teardown also undoes the defaults validate_environment writes
    for name in [*env_validation.DEFAULTS, "LLM_API_URL", "LLM_API_KEY", "FEATURE_FLAG"]:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


def test_validate_environment_applies_defaults(monkeypatch):
    validate_environment()
    settings = Settings.from_env()
    assert settings.item_bank_path == "item-bank.json"
    assert settings.low_coverage_threshold == 5
    assert settings.match_threshold == pytest.approx(0.3)
    assert settings.generation_delay_seconds == pytest.approx(0.01)


def test_invalid_llm_url_rejected(monkeypatch):
    monkeypatch.setenv("LLM_API_URL", "localhost:4891")
    with pytest.raises(EnvironmentError):
        validate_environment()


@pytest.mark.parametrize(
    "name, value",
    [
        ("AUTO_ASSIGN_MIN_SCORE", "1.5"),
        ("AUTO_ASSIGN_MIN_SCORE", "high"),
        ("LOW_COVERAGE_THRESHOLD", "-1"),
        ("LOW_COVERAGE_THRESHOLD", "five"),
    ],
)
def test_settings_reject_bad_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)
    with pytest.raises(EnvironmentError):
        Settings.from_env()


def test_settings_read_overrides(monkeypatch):
    monkeypatch.setenv("ITEM_BANK_PATH", "/data/bank.json")
    monkeypatch.setenv("LOW_COVERAGE_THRESHOLD", "3")
    monkeypatch.setenv("AUTO_ASSIGN_MIN_SCORE", "0.5")
    monkeypatch.setenv("GENERATION_DELAY_SECONDS", "-2")

    settings = Settings.from_env()

    assert settings.item_bank_path == "/data/bank.json"
    assert settings.low_coverage_threshold == 3
    assert settings.match_threshold == pytest.approx(0.5)
    assert settings.generation_delay_seconds == 0.0


def test_typed_getters(monkeypatch):
    assert get_env_bool("FEATURE_FLAG") is False
    monkeypatch.setenv("FEATURE_FLAG", "Yes")
    assert get_env_bool("FEATURE_FLAG") is True
    monkeypatch.setenv("FEATURE_FLAG", "12")
    assert get_env_int("FEATURE_FLAG", 0) == 12
