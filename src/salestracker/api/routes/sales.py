"""Sale verification routes."""

from contextlib import contextmanager
from typing import Iterator

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from salestracker.domain.ingest import SaleStore
from salestracker.domain.verification import (
    SaleNotFoundError,
    verify_sale,
    verify_sales_bulk,
)
from salestracker.infra.db import txn
from salestracker.infra.repositories.sales_repository import PgSaleStore
from salestracker.infra.settings import load_settings
from salestracker.notify.outgoing_webhook import EVENT_SALE_VERIFIED, send_event
from salestracker.observability.logging import get_logger
from salestracker.observability.redaction import safe_log_context

router = APIRouter(prefix="/sales", tags=["sales"])

logger = get_logger(__name__)


class VerifyRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    verified: bool
    verified_by: str | None = None


class VerifyResponse(BaseModel):
    status: str
    sale_id: str
    verified: bool
    new_status: str


class BulkVerifyRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sale_ids: list[str] = Field(min_length=1, max_length=500)
    verified: bool
    verified_by: str | None = None


class BulkFailureItem(BaseModel):
    id: str
    error: str


class BulkResults(BaseModel):
    success: list[str]
    failed: list[BulkFailureItem]


class BulkVerifyResponse(BaseModel):
    status: str
    verified: bool
    new_status: str
    results: BulkResults


@contextmanager
def _sale_store_scope() -> Iterator[SaleStore]:
    """One transaction per verification (allows test injection)."""
    with txn() as cur:
        yield PgSaleStore(cur)


@router.post("/{sale_id}/verify", response_model=VerifyResponse)
def verify(sale_id: str, body: VerifyRequest) -> VerifyResponse:
    """Verify or reject a sale and record the audit entry."""
    try:
        with _sale_store_scope() as store:
            sale = verify_sale(
                sale_id,
                verified=body.verified,
                verified_by=body.verified_by,
                sales=store,
            )
    except SaleNotFoundError:
        raise HTTPException(status_code=404, detail="Sale not found")

    logger.info(
        "sale verification recorded",
        extra={
            "extra_fields": safe_log_context(sale_id=sale_id, new_status=sale.status)
        },
    )

    if sale.verified:
        settings = load_settings()
        send_event(
            settings.outgoing_webhook_url,
            EVENT_SALE_VERIFIED,
            sale,
            timeout=settings.outgoing_webhook_timeout,
        )

    return VerifyResponse(
        status="success",
        sale_id=sale_id,
        verified=sale.verified,
        new_status=sale.status.value,
    )


@router.post("/bulk-verify", response_model=BulkVerifyResponse)
def bulk_verify(body: BulkVerifyRequest) -> BulkVerifyResponse:
    """Verify or reject a batch of sales in one transaction.

    Unknown ids land in results.failed; the rest of the batch is applied.
    """
    with _sale_store_scope() as store:
        report = verify_sales_bulk(
            body.sale_ids,
            verified=body.verified,
            verified_by=body.verified_by,
            sales=store,
        )

    return BulkVerifyResponse(
        status="completed",
        verified=report.verified,
        new_status=report.new_status.value,
        results=BulkResults(
            success=report.success,
            failed=[BulkFailureItem(id=f.sale_id, error=f.error) for f in report.failed],
        ),
    )
