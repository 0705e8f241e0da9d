"""Outgoing webhook - tell an external system about new and verified sales.

Best effort: failures are logged and never propagate to ingestion or
verification.
"""

from datetime import datetime
from typing import Any

import requests

from salestracker.domain.sales import SaleRecord
from salestracker.observability.correlation import get_correlation_id
from salestracker.observability.logging import get_logger
from salestracker.observability.redaction import safe_log_context

logger = get_logger(__name__)

EVENT_NEW_SALE = "new_sale"
EVENT_SALE_VERIFIED = "sale_verified"


def _sale_summary(sale: SaleRecord) -> dict[str, Any]:
    return {
        "client": sale.client_name,
        "clientEmail": sale.client_email,
        "clientPhone": sale.client_phone,
        "amount": str(sale.amount),
        "currency": sale.currency.value,
        "product": sale.product,
        "closer": sale.closer_name,
        "closerPhone": sale.closer_id,
        "proofUrl": sale.proof_url,
        "createdAt": sale.created_at.isoformat(),
    }


def build_event(event: str, sale: SaleRecord) -> dict[str, Any]:
    """JSON body for an outgoing event."""
    data = _sale_summary(sale)
    if event == EVENT_SALE_VERIFIED:
        verified_at: datetime | None = sale.verified_at
        data["verifiedAt"] = verified_at.isoformat() if verified_at else None
        data["verifiedBy"] = sale.verified_by
    return {"event": event, "saleId": sale.id, "data": data}


def send_event(
    url: str | None,
    event: str,
    sale: SaleRecord,
    *,
    timeout: float = 10.0,
) -> bool:
    """POST an event to url.

    Returns:
        True if delivered (2xx), False if not configured or on any HTTP error.
    """
    if not url:
        return False

    headers = {
        "Content-Type": "application/json",
        "X-Correlation-Id": get_correlation_id(),
    }
    try:
        response = requests.post(
            url,
            json=build_event(event, sale),
            headers=headers,
            timeout=timeout,
        )
        response.raise_for_status()
    except requests.RequestException as e:
        logger.error(
            "outgoing webhook failed",
            extra={
                "extra_fields": safe_log_context(
                    event=event, sale_id=sale.id, error=type(e).__name__
                )
            },
        )
        return False

    logger.info(
        "outgoing webhook sent",
        extra={"extra_fields": safe_log_context(event=event, sale_id=sale.id)},
    )
    return True
