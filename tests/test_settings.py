"""Tests for environment-backed settings."""

from __future__ import annotations

from wipecert.settings import WipeCertSettings, get_settings


def test_defaults(clean_env):
    settings = get_settings()
    assert settings.ledger_backend == "file"
    assert settings.index_path == "data/cert_index.json"
    assert settings.ledger_timeout == 10.0
    assert settings.recursive_canonical is True


def test_environment_overrides(clean_env):
    clean_env.setenv("WIPECERT_LEDGER_BACKEND", "http")
    clean_env.setenv("WIPECERT_LEDGER_URL", "https://bridge.test")
    clean_env.setenv("WIPECERT_CONFIRM_TIMEOUT", "120")
    clean_env.setenv("WIPECERT_CANONICAL_MODE", "top_level")
    clean_env.setenv("WIPECERT_ISSUER", "0xabc")

    settings = WipeCertSettings()
    assert settings.ledger_backend == "http"
    assert settings.ledger_url == "https://bridge.test"
    assert settings.confirm_timeout == 120.0
    assert settings.recursive_canonical is False
    assert settings.issuer == "0xabc"


def test_malformed_timeouts_fall_back_to_defaults(clean_env):
    clean_env.setenv("WIPECERT_LEDGER_TIMEOUT", "soon")
    clean_env.setenv("WIPECERT_WIPE_TIMEOUT", "-5")
    settings = get_settings()
    assert settings.ledger_timeout == 10.0
    assert settings.wipe_timeout == 3600.0


def test_blank_values_are_unset(clean_env):
    clean_env.setenv("WIPECERT_PUBLIC_KEY_PATH", "")
    clean_env.setenv("WIPECERT_LEDGER_TOKEN", "  ")
    settings = get_settings()
    assert settings.public_key_path is None
    assert settings.ledger_token is None


def test_construct_by_field_name():
    settings = WipeCertSettings(ledger_backend="memory", issuer="tests")
    assert settings.ledger_backend == "memory"
    assert settings.issuer == "tests"
