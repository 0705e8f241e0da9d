"""Maintenance route: re-detect sales in stored chat history."""

from contextlib import contextmanager
from typing import Iterator

from fastapi import APIRouter, Query

from salestracker.domain.ingest import Stores
from salestracker.domain.reprocess import DEFAULT_REPROCESS_LIMIT, reprocess_history
from salestracker.infra.db import txn
from salestracker.infra.repositories.stores import pg_stores
from salestracker.infra.settings import load_settings

router = APIRouter(tags=["maintenance"])


@contextmanager
def _stores_scope() -> Iterator[Stores]:
    """One transaction for the whole scan (allows test injection)."""
    with txn() as cur:
        yield pg_stores(cur)


@router.post("/reprocess")
def reprocess(limit: int = Query(DEFAULT_REPROCESS_LIMIT, ge=1, le=1000)) -> dict:
    """Scan recent chat texts and create any sales that were missed."""
    settings = load_settings()
    with _stores_scope() as stores:
        report = reprocess_history(stores=stores, settings=settings, limit=limit)
    return {
        "status": "success",
        "processed": report.processed,
        "newSalesFound": report.new_sales_found,
        "saleIds": report.sale_ids,
        "errors": report.errors,
    }
