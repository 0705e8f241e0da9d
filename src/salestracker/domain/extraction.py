"""Label-based field extraction from sale report text.

NO LLM. Uses a declarative table of label regexes.
Security: NEVER log raw text (PII).
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Literal

from salestracker.domain.sales import Currency

ValueShape = Literal["line", "amount"]


@dataclass(frozen=True)
class FieldRule:
    """How one field is located in a message.

    Labels are regex fragments (accents and optional words allowed).
    """

    name: str
    labels: tuple[str, ...]
    requires_colon: bool = True
    value_shape: ValueShape = "line"


# Order matters only for readability; every rule is searched independently.
FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule("name", (r"Nombre",)),
    FieldRule("email", (r"Email", r"Correo")),
    FieldRule("phone", (r"Tel[eé]fono",)),
    FieldRule("amount", (r"Monto",), value_shape="amount"),
    # "PRODUCTO Silver" shows up without a colon
    FieldRule("product", (r"Producto",), requires_colon=False),
    FieldRule("funnel", (r"Funnel",)),
    FieldRule("payment_method", (r"Medio\s+de\s+Pago",)),
    # "Tipo:", "Tipo de pago:", "Tipo de Unico:"
    FieldRule("payment_type", (r"Tipo(?:\s+de\s+\w+)?",)),
    FieldRule("extras", (r"Extras",)),
)

# Monto: 100usd | Monto (USD): 100 | Monto(usd): 100 USD | Monto: 100,50 euros
_AMOUNT_TAIL = (
    r"(?:[ \t]*\((?P<hint>[^)\n]*)\))?[ \t]*:[ \t]*"
    r"(?P<number>\d+(?:[.,]\d+)?)"
    r"(?:[ \t]*(?P<unit>usd|ars|euros?|pesos?)\b)?"
)

_LINE_TAIL_COLON = r"[ \t]*:[ \t]*(?P<value>.+)"
# Colon or blanks separate label and value; the value never starts with either
_LINE_TAIL_OPTIONAL_COLON = r"(?:[ \t]*:[ \t]*|[ \t]+)(?P<value>[^:\s].*)"

CONFIRMATION_MARK = "✅"

# Larger figures are typos or pasted ids, not sale amounts
MAX_AMOUNT = Decimal("1e15")


def _compile(rule: FieldRule) -> re.Pattern[str]:
    labels = "|".join(rule.labels)
    if rule.value_shape == "amount":
        tail = _AMOUNT_TAIL
    elif rule.requires_colon:
        tail = _LINE_TAIL_COLON
    else:
        tail = _LINE_TAIL_OPTIONAL_COLON
    return re.compile(rf"\b(?:{labels}){tail}", re.IGNORECASE)


_PATTERNS: dict[str, re.Pattern[str]] = {rule.name: _compile(rule) for rule in FIELD_RULES}


@dataclass(frozen=True)
class ExtractedFields:
    """Every recognized label/value pair of one message.

    Absent labels stay None. amount is the parsed number, amount_text the
    literal digits as written.
    """

    name: str | None = None
    email: str | None = None
    phone: str | None = None
    amount: Decimal | None = None
    amount_text: str | None = None
    currency: Currency | None = None
    product: str | None = None
    funnel: str | None = None
    payment_method: str | None = None
    payment_type: str | None = None
    extras: str | None = None


def has_label(field_name: str, text: str) -> bool:
    """True if the label+value pattern for field_name matches somewhere in text."""
    return _PATTERNS[field_name].search(text) is not None


def normalize_currency(token: str | None) -> Currency:
    """Map a currency hint or unit word to a 3-letter code.

    "peso(s)"/"ARS" -> ARS, "euro(s)"/"EUR" -> EUR, anything else -> USD.
    """
    if not token:
        return Currency.USD
    upper = token.strip().upper()
    if "PESO" in upper or upper == "ARS":
        return Currency.ARS
    if "EURO" in upper or upper == "EUR":
        return Currency.EUR
    return Currency.USD


def _parse_amount(number: str) -> Decimal | None:
    try:
        value = Decimal(number.replace(",", "."))
    except InvalidOperation:
        return None
    if not value.is_finite() or value < 0 or value >= MAX_AMOUNT:
        return None
    return value


def extract_fields(text: str) -> ExtractedFields:
    """Extract all recognized fields from text. Pure; never raises on bad input."""
    values: dict[str, object] = {}

    for rule in FIELD_RULES:
        match = _PATTERNS[rule.name].search(text)
        if match is None:
            continue

        if rule.value_shape == "amount":
            number = match.group("number")
            values["amount_text"] = number
            values["amount"] = _parse_amount(number)
            # Parenthesized hint wins over the trailing unit word
            hint = (match.group("hint") or "").strip()
            values["currency"] = normalize_currency(hint or match.group("unit"))
        else:
            values[rule.name] = match.group("value")

    return ExtractedFields(**values)  # type: ignore[arg-type]
