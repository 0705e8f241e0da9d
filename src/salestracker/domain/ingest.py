"""Message ingestion - classify one group message and persist its effects.

Flow per message:
    history receipt (dedupe) -> proof? -> sale report? -> proof linking
    -> sale insert -> closer rollup

Security: NEVER log text, sender ids or client data (PII).
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Literal, Protocol

from salestracker.domain.closer_stats import CloserStore, apply_sale
from salestracker.domain.parsing import (
    NotASaleReport,
    is_sale_report,
    parse_sale_message,
)
from salestracker.domain.proof_linking import ProofStore, SaleEvent, resolve_proof
from salestracker.domain.sales import (
    CloserRollup,
    ProofKind,
    ProofRecord,
    SaleRecord,
    SaleStatus,
)
from salestracker.infra.settings import Settings
from salestracker.infra.time import utc_now
from salestracker.observability.logging import get_logger
from salestracker.observability.redaction import safe_log_context
from salestracker.whatsapp.models import MediaMessage, RawMessage, TextMessage

logger = get_logger(__name__)

IngestStatus = Literal["duplicate", "proof_saved", "sale_created", "history"]


class MessageClass(str, Enum):
    CHAT = "chat"
    PROOF = "proof"
    SALE = "sale"


@dataclass(frozen=True)
class AuditEntry:
    action: str
    entity_id: str
    previous_status: SaleStatus
    new_status: SaleStatus
    performed_by: str
    entity_data: dict
    created_at: datetime
    entity_type: str = "sale"
    bulk_operation: bool = False
    total_in_batch: int | None = None


class SaleStore(Protocol):
    def insert(self, sale: SaleRecord) -> str:
        """Persist a new sale and return its id."""
        ...

    def get(self, sale_id: str) -> SaleRecord | None:
        ...

    def update_verification(self, sale: SaleRecord) -> None:
        """Persist status/verified/verified_at/verified_by/updated_at of sale."""
        ...

    def insert_audit_entry(self, entry: AuditEntry) -> None:
        ...


class HistoryStore(Protocol):
    """Every received group message, classified."""

    def record(self, message: RawMessage) -> bool:
        """Store message as chat. False if the message id was already recorded."""
        ...

    def classify(
        self,
        message_id: str,
        classification: MessageClass,
        *,
        sale_id: str | None = None,
    ) -> None:
        ...

    def list_unclassified_texts(self, limit: int) -> list[TextMessage]:
        """Most recent text messages still classified as chat, newest first."""
        ...


@dataclass(frozen=True)
class Stores:
    proofs: ProofStore
    sales: SaleStore
    closers: CloserStore
    history: HistoryStore


@dataclass(frozen=True)
class IngestResult:
    status: IngestStatus
    message_id: str
    sale: SaleRecord | None = None
    proof: ProofRecord | None = None
    rollup: CloserRollup | None = field(default=None, compare=False)


def _prefix(message_id: str) -> str:
    return message_id[:8]


def _proof_from_media(message: MediaMessage) -> ProofRecord:
    is_image = message.mime_type.startswith("image/") or (
        not message.mime_type and message.media_kind == "image"
    )
    return ProofRecord(
        source_message_id=message.message_id,
        media_url=message.media_url,
        media_kind=ProofKind.IMAGE if is_image else ProofKind.DOCUMENT,
        mime_type=message.mime_type,
        sender_id=message.sender_id,
        group_id=message.group_id,
        received_at=message.sent_at,
        caption=message.caption,
    )


def create_sale_from_text(
    message: TextMessage,
    *,
    stores: Stores,
    settings: Settings,
    now: datetime | None = None,
) -> IngestResult | None:
    """Parse a text message and, if it is a sale, persist it with its proof.

    Shared by live ingestion and reprocessing. The message's own send time
    drives both created_at and the proof window.

    Returns:
        IngestResult with status "sale_created", or None if not a sale.
    """
    if not is_sale_report(message.text):
        return None
    try:
        fields = parse_sale_message(message.text)
    except NotASaleReport as e:
        logger.info(
            "sale report rejected by parser",
            extra={
                "extra_fields": safe_log_context(
                    message_id_prefix=_prefix(message.message_id),
                    reason=str(e),
                )
            },
        )
        return None

    now = now or utc_now()

    proof = resolve_proof(
        SaleEvent(
            sender_id=message.sender_id,
            group_id=message.group_id,
            arrival_time=message.sent_at,
            quoted_message_id=message.quoted_message_id,
        ),
        stores.proofs,
        window=settings.proof_window,
    )

    sale = SaleRecord(
        closer_id=message.sender_id,
        closer_name=message.sender_name,
        client_name=fields.client_name,
        client_email=fields.client_email,
        client_phone=fields.client_phone,
        amount=fields.amount,
        currency=fields.currency,
        product=fields.product,
        funnel=fields.funnel,
        payment_method=fields.payment_method,
        payment_type=fields.payment_type,
        extras=fields.extras,
        proof_url=proof.media_url if proof else "",
        proof_type=proof.proof_type if proof else None,
        # Keep the quoted id as a breadcrumb even when nothing was linked
        proof_message_id=(
            proof.source_message_id if proof else (message.quoted_message_id or "")
        ),
        raw_text=message.text,
        group_id=message.group_id,
        source_message_id=message.message_id,
        created_at=message.sent_at,
        updated_at=now,
    )

    sale_id = stores.sales.insert(sale)
    sale = sale.with_id(sale_id)
    stores.history.classify(message.message_id, MessageClass.SALE, sale_id=sale_id)

    rollup = apply_sale(
        stores.closers,
        closer_id=message.sender_id,
        display_name=message.sender_name,
        amount=fields.amount,
        currency=fields.currency,
        rates=settings.rates,
        now=now,
    )

    logger.info(
        "sale created",
        extra={
            "extra_fields": safe_log_context(
                sale_id=sale_id,
                message_id_prefix=_prefix(message.message_id),
                currency=fields.currency,
                has_proof=proof is not None,
                confirmed=fields.has_confirmation_mark,
            )
        },
    )
    return IngestResult(
        status="sale_created",
        message_id=message.message_id,
        sale=sale,
        proof=proof,
        rollup=rollup,
    )


def process_message(
    message: RawMessage,
    *,
    stores: Stores,
    settings: Settings,
    now: datetime | None = None,
) -> IngestResult:
    """Ingest one normalized group message.

    Store failures propagate; the caller owns the transaction and retries.

    Args:
        message: Normalized message. Text and sender data are NEVER logged.
        stores: Store bundle (usually bound to one transaction).
        settings: Proof window and conversion rates.
        now: Processing time (default: utc_now()).

    Returns:
        IngestResult describing what the message turned out to be.
    """
    if not stores.history.record(message):
        logger.info(
            "duplicate message ignored",
            extra={
                "extra_fields": safe_log_context(
                    message_id_prefix=_prefix(message.message_id),
                )
            },
        )
        return IngestResult(status="duplicate", message_id=message.message_id)

    if isinstance(message, MediaMessage) and message.media_url:
        proof = _proof_from_media(message)
        stores.proofs.insert(proof)
        stores.history.classify(message.message_id, MessageClass.PROOF)
        logger.info(
            "proof saved",
            extra={
                "extra_fields": safe_log_context(
                    message_id_prefix=_prefix(message.message_id),
                    media_kind=proof.media_kind,
                )
            },
        )
        return IngestResult(status="proof_saved", message_id=message.message_id, proof=proof)

    if isinstance(message, TextMessage):
        result = create_sale_from_text(message, stores=stores, settings=settings, now=now)
        if result is not None:
            return result

    return IngestResult(status="history", message_id=message.message_id)
