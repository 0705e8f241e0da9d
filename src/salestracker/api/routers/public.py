"""Public read-only routes."""

from fastapi import APIRouter

from salestracker.infra.db import txn
from salestracker.infra.repositories.closers_repository import list_closers

router = APIRouter()


@router.get("/health")
def health() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.get("/closers")
def closers_leaderboard() -> dict:
    """Closer rollups ordered by USD-equivalent total."""
    with txn() as cur:
        rollups = list_closers(cur)
    closers = [
        {
            "closerId": r.closer_id,
            "name": r.display_name,
            "totalSales": r.total_sale_count,
            "totalAmountUsd": str(r.total_amount_usd),
            "lastSaleAt": r.last_sale_at.isoformat(),
        }
        for r in rollups
    ]
    return {"closers": closers, "count": len(closers)}
