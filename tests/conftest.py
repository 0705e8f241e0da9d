"""Shared pytest fixtures for sales tracker tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402

_SETTINGS_ENV = (
    "PROOF_WINDOW_MINUTES",
    "ARS_PER_USD",
    "USD_PER_EUR",
    "SALES_GROUP_JID",
    "OUTGOING_WEBHOOK_URL",
    "OUTGOING_WEBHOOK_TIMEOUT",
    "EVOLUTION_WEBHOOK_SECRET",
    "APP_ENV",
)


@pytest.fixture(autouse=True)
def _clean_settings_env(monkeypatch):
    """Start every test from default settings, whatever the shell exports."""
    for name in _SETTINGS_ENV:
        monkeypatch.delenv(name, raising=False)
    yield
