"""Sale, proof and closer rollup models.

SaleRecord and ProofRecord are independent entities joined only by
proof_message_id -> source_message_id.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from enum import Enum


class Currency(str, Enum):
    USD = "USD"
    ARS = "ARS"
    EUR = "EUR"


class ProofKind(str, Enum):
    """Media kind of a proof-of-payment message."""

    IMAGE = "image"
    DOCUMENT = "document"


class ProofType(str, Enum):
    """Proof type as shown on a sale (documents are treated as PDF)."""

    IMAGE = "image"
    PDF = "pdf"


class SaleStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


@dataclass(frozen=True)
class SaleFields:
    """Structured result of parsing a sale report."""

    client_name: str
    client_email: str
    client_phone: str
    amount: Decimal
    currency: Currency
    product: str
    funnel: str
    payment_method: str
    payment_type: str
    extras: str
    has_confirmation_mark: bool


@dataclass(frozen=True)
class ProofRecord:
    """A proof-of-payment media message waiting to be claimed by a sale.

    received_at is the message send time reported by the gateway.
    """

    source_message_id: str
    media_url: str
    media_kind: ProofKind
    mime_type: str
    sender_id: str
    group_id: str
    received_at: datetime
    linked: bool = False
    caption: str = ""

    @property
    def proof_type(self) -> ProofType:
        if self.media_kind == ProofKind.IMAGE:
            return ProofType.IMAGE
        return ProofType.PDF


@dataclass(frozen=True)
class SaleRecord:
    """A parsed sale report plus its (optional) linked proof.

    Invariants:
        status == VERIFIED implies verified is True
        status == PENDING implies verified_at is None
    """

    closer_id: str
    closer_name: str
    client_name: str
    client_email: str
    client_phone: str
    amount: Decimal
    currency: Currency
    product: str
    funnel: str
    payment_method: str
    payment_type: str
    extras: str
    proof_url: str
    proof_type: ProofType | None
    proof_message_id: str
    raw_text: str
    group_id: str
    source_message_id: str
    created_at: datetime
    updated_at: datetime
    status: SaleStatus = SaleStatus.PENDING
    verified: bool = False
    verified_at: datetime | None = None
    verified_by: str | None = None
    id: str | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if self.status == SaleStatus.VERIFIED and not self.verified:
            raise ValueError("verified sale must have verified=True")
        if self.status == SaleStatus.PENDING and self.verified_at is not None:
            raise ValueError("pending sale cannot have verified_at")

    def with_id(self, sale_id: str) -> "SaleRecord":
        return replace(self, id=sale_id)


@dataclass(frozen=True)
class CloserRollup:
    """Running per-closer totals for the leaderboard."""

    closer_id: str
    display_name: str
    total_sale_count: int
    total_amount_usd: Decimal
    last_sale_at: datetime
