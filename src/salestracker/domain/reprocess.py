"""Reprocess chat history to pick up sale reports that were missed.

Typical trigger: a label synonym was added to the extraction table after
some reports had already been stored as plain chat.
"""

from dataclasses import dataclass, field
from datetime import datetime

from salestracker.domain.ingest import Stores, create_sale_from_text
from salestracker.domain.parsing import is_sale_report
from salestracker.infra.settings import Settings
from salestracker.observability.logging import get_logger
from salestracker.observability.redaction import safe_log_context

logger = get_logger(__name__)

DEFAULT_REPROCESS_LIMIT = 200


@dataclass
class ReprocessReport:
    processed: int = 0
    new_sales_found: int = 0
    sale_ids: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def reprocess_history(
    *,
    stores: Stores,
    settings: Settings,
    limit: int = DEFAULT_REPROCESS_LIMIT,
    now: datetime | None = None,
) -> ReprocessReport:
    """Re-run sale detection over recent unclassified text messages.

    Args:
        stores: Store bundle.
        settings: Proof window and conversion rates.
        limit: How many recent chat texts to scan.
        now: Processing time for updated_at / rollups.

    Returns:
        ReprocessReport with counts and created sale ids.
    """
    if limit <= 0:
        raise ValueError("limit must be positive")

    report = ReprocessReport()
    for message in stores.history.list_unclassified_texts(limit):
        report.processed += 1
        if not is_sale_report(message.text):
            continue
        result = create_sale_from_text(message, stores=stores, settings=settings, now=now)
        if result is None or result.sale is None:
            report.errors.append(f"could not parse message {message.message_id[:8]}")
            continue
        report.new_sales_found += 1
        report.sale_ids.append(result.sale.id or "")

    logger.info(
        "reprocess finished",
        extra={
            "extra_fields": safe_log_context(
                processed=report.processed,
                new_sales_found=report.new_sales_found,
            )
        },
    )
    return report
