"""Deterministic sale report detection and parsing.

NO LLM. Uses the label table from extraction.
Security: NEVER log raw text (PII).
"""

from salestracker.domain.extraction import (
    CONFIRMATION_MARK,
    extract_fields,
    has_label,
)
from salestracker.domain.sales import SaleFields


class NotASaleReport(Exception):
    """Raised when a message lacks the name or amount needed for a sale.

    Callers treat the message as ordinary chat history.
    """

    pass


def is_sale_report(text: str) -> bool:
    """Cheap pre-filter: both the name and the amount labels are present."""
    return has_label("name", text) and has_label("amount", text)


def _clean(value: str | None) -> str:
    return value.strip() if value else ""


def parse_sale_message(text: str) -> SaleFields:
    """Parse a sale report into structured fields.

    Args:
        text: Message body. NEVER logged.

    Returns:
        SaleFields with trimmed strings ("" for absent fields).

    Raises:
        NotASaleReport: If name or a valid amount is missing.
    """
    fields = extract_fields(text)

    client_name = _clean(fields.name)
    if not client_name:
        raise NotASaleReport("missing client name")
    if fields.amount is None or fields.currency is None:
        raise NotASaleReport("missing or invalid amount")

    return SaleFields(
        client_name=client_name,
        client_email=_clean(fields.email),
        client_phone=_clean(fields.phone),
        amount=fields.amount,
        currency=fields.currency,
        product=_clean(fields.product),
        funnel=_clean(fields.funnel),
        payment_method=_clean(fields.payment_method),
        payment_type=_clean(fields.payment_type),
        extras=_clean(fields.extras),
        has_confirmation_mark=CONFIRMATION_MARK in text,
    )
