"""Service settings loaded from environment variables.

Conversion factors and the proof window are business constants that get
tuned without code changes, so they live here rather than in the domain.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal, InvalidOperation

from salestracker.domain.closer_stats import ConversionRates
from salestracker.domain.proof_linking import DEFAULT_PROOF_WINDOW


@dataclass(frozen=True)
class Settings:
    """Runtime configuration.

    Attributes:
        proof_window: How far back the proof fallback looks (inclusive).
        rates: USD-equivalent conversion factors for closer rollups.
        sales_group_jid: If set, only messages from this group are ingested.
        outgoing_webhook_url: If set, new/verified sales are POSTed here.
        outgoing_webhook_timeout: Seconds before the outgoing POST gives up.
        evolution_webhook_secret: Shared secret expected in X-Webhook-Secret.
        app_env: "local" disables the fail-closed secret check.
    """

    proof_window: timedelta = DEFAULT_PROOF_WINDOW
    rates: ConversionRates = field(default_factory=ConversionRates)
    sales_group_jid: str | None = None
    outgoing_webhook_url: str | None = None
    outgoing_webhook_timeout: float = 10.0
    evolution_webhook_secret: str | None = None
    app_env: str = "production"

    @property
    def is_local(self) -> bool:
        return self.app_env == "local"


def _decimal_env(name: str, default: str) -> Decimal:
    raw = os.environ.get(name, default)
    try:
        value = Decimal(raw)
    except InvalidOperation as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e
    if not value.is_finite() or value <= 0:
        raise ValueError(f"{name} must be a positive number, got {raw!r}")
    return value


def _optional_env(name: str) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or None


def load_settings() -> Settings:
    """Read Settings from the environment.

    Raises:
        ValueError: If a numeric variable is malformed or not positive.
    """
    window_minutes = _decimal_env("PROOF_WINDOW_MINUTES", "10")
    return Settings(
        proof_window=timedelta(minutes=float(window_minutes)),
        rates=ConversionRates(
            ars_per_usd=_decimal_env("ARS_PER_USD", "1000"),
            usd_per_eur=_decimal_env("USD_PER_EUR", "1.1"),
        ),
        sales_group_jid=_optional_env("SALES_GROUP_JID"),
        outgoing_webhook_url=_optional_env("OUTGOING_WEBHOOK_URL"),
        outgoing_webhook_timeout=float(_decimal_env("OUTGOING_WEBHOOK_TIMEOUT", "10")),
        evolution_webhook_secret=_optional_env("EVOLUTION_WEBHOOK_SECRET"),
        app_env=os.environ.get("APP_ENV", "production"),
    )
