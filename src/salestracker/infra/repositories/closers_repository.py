"""Closers repository - leaderboard rollups.

Uses raw SQL with psycopg2 (no ORM).
The sale fold is one INSERT ... ON CONFLICT DO UPDATE, so concurrent sales
from the same closer never lose an increment.
"""

from datetime import datetime
from decimal import Decimal

from psycopg2.extensions import cursor as PgCursor

from salestracker.domain.sales import CloserRollup


def _row_to_rollup(row: tuple) -> CloserRollup:
    return CloserRollup(
        closer_id=row[0],
        display_name=row[1],
        total_sale_count=row[2],
        total_amount_usd=Decimal(row[3]),
        last_sale_at=row[4],
    )


def get_closer(cur: PgCursor, closer_id: str) -> CloserRollup | None:
    cur.execute(
        """
        SELECT closer_id, display_name, total_sale_count, total_amount_usd, last_sale_at
        FROM closers
        WHERE closer_id = %s
        """,
        (closer_id,),
    )
    row = cur.fetchone()
    return _row_to_rollup(row) if row else None


def upsert_closer_sale(
    cur: PgCursor,
    *,
    closer_id: str,
    display_name: str,
    amount_usd: Decimal,
    sale_at: datetime,
) -> CloserRollup:
    """Create the rollup on first sale, else increment it.

    Same arithmetic as domain.closer_stats.fold_sale, expressed in SQL.
    """
    cur.execute(
        """
        INSERT INTO closers (
            closer_id, display_name, total_sale_count, total_amount_usd, last_sale_at
        )
        VALUES (%s, %s, 1, %s, %s)
        ON CONFLICT (closer_id) DO UPDATE SET
            display_name = EXCLUDED.display_name,
            total_sale_count = closers.total_sale_count + 1,
            total_amount_usd = closers.total_amount_usd + EXCLUDED.total_amount_usd,
            last_sale_at = GREATEST(closers.last_sale_at, EXCLUDED.last_sale_at),
            updated_at = now()
        RETURNING closer_id, display_name, total_sale_count, total_amount_usd, last_sale_at
        """,
        (closer_id, display_name, amount_usd, sale_at),
    )
    return _row_to_rollup(cur.fetchone())


def list_closers(cur: PgCursor) -> list[CloserRollup]:
    """All closers ordered by USD-equivalent total, highest first."""
    cur.execute(
        """
        SELECT closer_id, display_name, total_sale_count, total_amount_usd, last_sale_at
        FROM closers
        ORDER BY total_amount_usd DESC
        """
    )
    return [_row_to_rollup(row) for row in cur.fetchall()]


class PgCloserStore:
    """CloserStore bound to one transaction cursor."""

    def __init__(self, cur: PgCursor) -> None:
        self._cur = cur

    def get(self, closer_id: str) -> CloserRollup | None:
        return get_closer(self._cur, closer_id)

    def upsert_sale(
        self,
        closer_id: str,
        display_name: str,
        amount_usd: Decimal,
        sale_at: datetime,
    ) -> CloserRollup:
        return upsert_closer_sale(
            self._cur,
            closer_id=closer_id,
            display_name=display_name,
            amount_usd=amount_usd,
            sale_at=sale_at,
        )
