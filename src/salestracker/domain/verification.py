"""Manual verification of sales (verify / reject) with audit trail."""

from dataclasses import dataclass, field, replace
from datetime import datetime

from salestracker.domain.ingest import AuditEntry, SaleStore
from salestracker.domain.sales import SaleRecord, SaleStatus
from salestracker.infra.time import utc_now
from salestracker.observability.logging import get_logger
from salestracker.observability.redaction import safe_log_context

logger = get_logger(__name__)

DEFAULT_VERIFIER = "admin"
NOT_FOUND = "Not found"


class SaleNotFoundError(Exception):
    """Raised when the sale to verify does not exist."""

    pass


@dataclass
class BulkFailure:
    sale_id: str
    error: str


@dataclass
class BulkVerifyReport:
    verified: bool
    new_status: SaleStatus
    success: list[str] = field(default_factory=list)
    failed: list[BulkFailure] = field(default_factory=list)


def _apply(
    sale_id: str,
    *,
    verified: bool,
    sales: SaleStore,
    verified_by: str | None,
    now: datetime,
    total_in_batch: int | None,
) -> SaleRecord:
    sale = sales.get(sale_id)
    if sale is None:
        raise SaleNotFoundError(sale_id)

    performer = verified_by or DEFAULT_VERIFIER
    new_status = SaleStatus.VERIFIED if verified else SaleStatus.REJECTED
    bulk = total_in_batch is not None
    action = "verify" if verified else "reject"

    updated = replace(
        sale,
        status=new_status,
        verified=verified,
        verified_at=now,
        verified_by=performer,
        updated_at=now,
    )
    sales.update_verification(updated)
    sales.insert_audit_entry(
        AuditEntry(
            action=f"bulk_{action}" if bulk else action,
            entity_id=sale_id,
            previous_status=sale.status,
            new_status=new_status,
            performed_by=performer,
            entity_data={
                "clientName": sale.client_name,
                "amount": str(sale.amount),
                "currency": sale.currency.value,
                "closerName": sale.closer_name,
            },
            created_at=now,
            bulk_operation=bulk,
            total_in_batch=total_in_batch,
        )
    )
    return updated


def verify_sale(
    sale_id: str,
    *,
    verified: bool,
    sales: SaleStore,
    verified_by: str | None = None,
    now: datetime | None = None,
) -> SaleRecord:
    """Mark a sale as verified or rejected and record an audit entry.

    Raises:
        SaleNotFoundError: If sale_id is unknown.
    """
    return _apply(
        sale_id,
        verified=verified,
        sales=sales,
        verified_by=verified_by,
        now=now or utc_now(),
        total_in_batch=None,
    )


def verify_sales_bulk(
    sale_ids: list[str],
    *,
    verified: bool,
    sales: SaleStore,
    verified_by: str | None = None,
    now: datetime | None = None,
) -> BulkVerifyReport:
    """Verify or reject several sales with one timestamp and performer.

    Unknown ids are reported as failed; the rest of the batch still applies.
    Store errors propagate so the caller can roll the whole batch back.

    Raises:
        ValueError: If sale_ids is empty.
    """
    if not sale_ids:
        raise ValueError("sale_ids must not be empty")

    now = now or utc_now()
    report = BulkVerifyReport(
        verified=verified,
        new_status=SaleStatus.VERIFIED if verified else SaleStatus.REJECTED,
    )
    for sale_id in sale_ids:
        try:
            _apply(
                sale_id,
                verified=verified,
                sales=sales,
                verified_by=verified_by,
                now=now,
                total_in_batch=len(sale_ids),
            )
        except SaleNotFoundError:
            report.failed.append(BulkFailure(sale_id=sale_id, error=NOT_FOUND))
            continue
        report.success.append(sale_id)

    logger.info(
        "bulk verification finished",
        extra={
            "extra_fields": safe_log_context(
                new_status=report.new_status,
                total=len(sale_ids),
                succeeded=len(report.success),
                failed=len(report.failed),
            )
        },
    )
    return report
