"""Shared test helpers: in-memory stores and message builders.

These are NOT fixtures - they are regular functions and classes that can be
imported by conftest.py and individual test files.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

from salestracker.domain.closer_stats import fold_sale
from salestracker.domain.ingest import AuditEntry, MessageClass, Stores
from salestracker.domain.sales import CloserRollup, ProofKind, ProofRecord, SaleRecord
from salestracker.whatsapp.models import MediaMessage, RawMessage, TextMessage

GROUP_JID = "120363000000000000@g.us"
T0 = datetime(2026, 3, 10, 15, 0, 0, tzinfo=timezone.utc)


class InMemoryProofStore:
    """ProofStore with a lock standing in for the DB row guard."""

    def __init__(self, proofs: list[ProofRecord] | None = None) -> None:
        self._lock = threading.Lock()
        self.proofs: dict[str, ProofRecord] = {p.source_message_id: p for p in proofs or []}
        self.claim_calls = 0

    def insert(self, proof: ProofRecord) -> bool:
        with self._lock:
            if proof.source_message_id in self.proofs:
                return False
            self.proofs[proof.source_message_id] = proof
            return True

    def find_unlinked_by_source_id(self, source_message_id: str) -> ProofRecord | None:
        proof = self.proofs.get(source_message_id)
        if proof is None or proof.linked:
            return None
        return proof

    def find_unlinked_by_sender_in_window(
        self, sender_id: str, start: datetime, end: datetime
    ) -> list[ProofRecord]:
        return [
            p
            for p in self.proofs.values()
            if p.sender_id == sender_id and not p.linked and start <= p.received_at <= end
        ]

    def claim(self, source_message_id: str) -> bool:
        with self._lock:
            self.claim_calls += 1
            proof = self.proofs.get(source_message_id)
            if proof is None or proof.linked:
                return False
            self.proofs[source_message_id] = replace(proof, linked=True)
            return True


class InMemorySaleStore:
    def __init__(self) -> None:
        self.sales: dict[str, SaleRecord] = {}
        self.audit: list[AuditEntry] = []

    def insert(self, sale: SaleRecord) -> str:
        sale_id = str(uuid.uuid4())
        self.sales[sale_id] = sale.with_id(sale_id)
        return sale_id

    def get(self, sale_id: str) -> SaleRecord | None:
        return self.sales.get(sale_id)

    def update_verification(self, sale: SaleRecord) -> None:
        self.sales[sale.id] = sale

    def insert_audit_entry(self, entry: AuditEntry) -> None:
        self.audit.append(entry)


class InMemoryCloserStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.rollups: dict[str, CloserRollup] = {}

    def get(self, closer_id: str) -> CloserRollup | None:
        return self.rollups.get(closer_id)

    def upsert_sale(
        self,
        closer_id: str,
        display_name: str,
        amount_usd: Decimal,
        sale_at: datetime,
    ) -> CloserRollup:
        with self._lock:
            rollup = fold_sale(
                self.rollups.get(closer_id),
                closer_id=closer_id,
                display_name=display_name,
                amount_usd=amount_usd,
                sale_at=sale_at,
            )
            self.rollups[closer_id] = rollup
            return rollup


class InMemoryHistoryStore:
    def __init__(self) -> None:
        self.messages: dict[str, RawMessage] = {}
        self.classes: dict[str, MessageClass] = {}
        self.sale_ids: dict[str, str] = {}

    def record(self, message: RawMessage) -> bool:
        if message.message_id in self.messages:
            return False
        self.messages[message.message_id] = message
        self.classes[message.message_id] = MessageClass.CHAT
        return True

    def classify(
        self,
        message_id: str,
        classification: MessageClass,
        *,
        sale_id: str | None = None,
    ) -> None:
        self.classes[message_id] = classification
        if sale_id:
            self.sale_ids[message_id] = sale_id

    def list_unclassified_texts(self, limit: int) -> list[TextMessage]:
        texts = [
            m
            for m in self.messages.values()
            if isinstance(m, TextMessage) and self.classes[m.message_id] == MessageClass.CHAT
        ]
        texts.sort(key=lambda m: m.sent_at, reverse=True)
        return texts[:limit]


def memory_stores() -> Stores:
    return Stores(
        proofs=InMemoryProofStore(),
        sales=InMemorySaleStore(),
        closers=InMemoryCloserStore(),
        history=InMemoryHistoryStore(),
    )


def make_proof(
    source_message_id: str,
    *,
    sender_id: str = "5493515551234",
    received_at: datetime = T0,
    linked: bool = False,
    media_kind: ProofKind = ProofKind.IMAGE,
) -> ProofRecord:
    return ProofRecord(
        source_message_id=source_message_id,
        media_url=f"https://media.example.com/{source_message_id}.jpg",
        media_kind=media_kind,
        mime_type="image/jpeg" if media_kind == ProofKind.IMAGE else "application/pdf",
        sender_id=sender_id,
        group_id=GROUP_JID,
        received_at=received_at,
        linked=linked,
    )


def make_text(
    message_id: str,
    text: str,
    *,
    sender_id: str = "5493515551234",
    sender_name: str = "Closer Uno",
    sent_at: datetime = T0,
    quoted_message_id: str | None = None,
) -> TextMessage:
    return TextMessage(
        message_id=message_id,
        sender_id=sender_id,
        sender_name=sender_name,
        group_id=GROUP_JID,
        sent_at=sent_at,
        text=text,
        quoted_message_id=quoted_message_id,
    )


def make_media(
    message_id: str,
    *,
    sender_id: str = "5493515551234",
    sent_at: datetime = T0,
    media_kind: str = "image",
    media_url: str = "https://media.example.com/receipt.jpg",
    mime_type: str = "image/jpeg",
) -> MediaMessage:
    return MediaMessage(
        message_id=message_id,
        sender_id=sender_id,
        sender_name="Closer Uno",
        group_id=GROUP_JID,
        sent_at=sent_at,
        media_kind=media_kind,  # type: ignore[arg-type]
        media_url=media_url,
        mime_type=mime_type,
    )


SALE_REPORT = """✅ VENTA CERRADA
Nombre: Juan Pérez
Email: juan@example.com
Teléfono: +54 9 351 555 1234
Monto: 1500 USD
Producto: Mentoría Gold
Funnel: VSL
Medio de Pago: Stripe
Tipo de pago: Completo
Extras: Bonus call"""
