"""Closer leaderboard rollups.

USD-equivalent amounts use fixed, configurable business factors. They are
approximate and for display only.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from salestracker.domain.sales import CloserRollup, Currency
from salestracker.infra.time import utc_now


@dataclass(frozen=True)
class ConversionRates:
    """Ad hoc conversion factors to USD-equivalent."""

    ars_per_usd: Decimal = Decimal("1000")
    usd_per_eur: Decimal = Decimal("1.1")


class CloserStore(Protocol):
    def get(self, closer_id: str) -> CloserRollup | None:
        ...

    def upsert_sale(
        self,
        closer_id: str,
        display_name: str,
        amount_usd: Decimal,
        sale_at: datetime,
    ) -> CloserRollup:
        """Atomically fold one sale into the closer's rollup (see fold_sale)."""
        ...


def to_usd_equivalent(
    amount: Decimal, currency: Currency, rates: ConversionRates
) -> Decimal:
    if currency == Currency.ARS:
        return amount / rates.ars_per_usd
    if currency == Currency.EUR:
        return amount * rates.usd_per_eur
    return amount


def fold_sale(
    existing: CloserRollup | None,
    *,
    closer_id: str,
    display_name: str,
    amount_usd: Decimal,
    sale_at: datetime,
) -> CloserRollup:
    """Pure rollup arithmetic shared by every CloserStore implementation.

    The latest display name wins; last_sale_at never moves backwards.
    """
    if existing is None:
        return CloserRollup(
            closer_id=closer_id,
            display_name=display_name,
            total_sale_count=1,
            total_amount_usd=amount_usd,
            last_sale_at=sale_at,
        )
    return CloserRollup(
        closer_id=closer_id,
        display_name=display_name,
        total_sale_count=existing.total_sale_count + 1,
        total_amount_usd=existing.total_amount_usd + amount_usd,
        last_sale_at=max(existing.last_sale_at, sale_at),
    )


def apply_sale(
    store: CloserStore,
    *,
    closer_id: str,
    display_name: str,
    amount: Decimal,
    currency: Currency,
    rates: ConversionRates | None = None,
    now: datetime | None = None,
) -> CloserRollup:
    """Add a confirmed sale to the closer's running totals.

    Args:
        store: Closer rollup store (performs the atomic read-modify-write).
        closer_id: Closer identity (sender phone / id).
        display_name: Latest known display name.
        amount: Sale amount in its own currency.
        currency: Sale currency.
        rates: Conversion factors (default: ConversionRates()).
        now: Timestamp recorded as last_sale_at (default: utc_now()).

    Returns:
        Updated CloserRollup.
    """
    amount_usd = to_usd_equivalent(amount, currency, rates or ConversionRates())
    return store.upsert_sale(
        closer_id,
        display_name,
        amount_usd,
        now or utc_now(),
    )
