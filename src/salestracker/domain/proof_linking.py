"""Proof linking - attach a previously received payment proof to a sale.

Resolution order (first success wins):
1. Explicit reference: the sale report quotes the proof message.
2. Temporal proximity: latest unlinked proof from the same sender received
   within [arrival - window, arrival].

Claiming is a compare-and-swap on the store; a lost race means the proof is
not available, never an error.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Protocol

from salestracker.domain.sales import ProofRecord
from salestracker.observability.logging import get_logger
from salestracker.observability.redaction import safe_log_context

logger = get_logger(__name__)

DEFAULT_PROOF_WINDOW = timedelta(minutes=10)


class ProofStore(Protocol):
    """Persistence for proof records. Implementations must make claim() atomic."""

    def insert(self, proof: ProofRecord) -> bool:
        """Insert an unlinked proof. Returns False if the id already exists."""
        ...

    def find_unlinked_by_source_id(self, source_message_id: str) -> ProofRecord | None:
        ...

    def find_unlinked_by_sender_in_window(
        self, sender_id: str, start: datetime, end: datetime
    ) -> list[ProofRecord]:
        """Unlinked proofs from sender with start <= received_at <= end."""
        ...

    def claim(self, source_message_id: str) -> bool:
        """Set linked=True if still unlinked. False if someone else got it first."""
        ...


@dataclass(frozen=True)
class SaleEvent:
    """The parts of a sale report message that matter for proof resolution."""

    sender_id: str
    group_id: str
    arrival_time: datetime
    quoted_message_id: str | None = None


def _id_prefix(message_id: str) -> str:
    return message_id[:8]


def _claim(store: ProofStore, proof: ProofRecord, stage: str) -> ProofRecord | None:
    if not store.claim(proof.source_message_id):
        logger.info(
            "proof claim lost race",
            extra={
                "extra_fields": safe_log_context(
                    stage=stage,
                    proof_id_prefix=_id_prefix(proof.source_message_id),
                )
            },
        )
        return None
    return replace(proof, linked=True)


def _resolve_quoted(event: SaleEvent, store: ProofStore) -> ProofRecord | None:
    if not event.quoted_message_id:
        return None
    proof = store.find_unlinked_by_source_id(event.quoted_message_id)
    if proof is None:
        return None
    return _claim(store, proof, "quoted")


def _resolve_recent(
    event: SaleEvent, store: ProofStore, window: timedelta
) -> ProofRecord | None:
    start = event.arrival_time - window
    candidates = [
        p
        for p in store.find_unlinked_by_sender_in_window(
            event.sender_id, start, event.arrival_time
        )
        # Stores may be loose about bounds; the closed interval is enforced here
        if start <= p.received_at <= event.arrival_time and not p.linked
    ]
    if not candidates:
        return None
    latest = max(candidates, key=lambda p: p.received_at)
    return _claim(store, latest, "recent")


def resolve_proof(
    event: SaleEvent,
    store: ProofStore,
    *,
    window: timedelta = DEFAULT_PROOF_WINDOW,
) -> ProofRecord | None:
    """Find and claim the proof for a sale report.

    Args:
        event: Sender, group, arrival time and optional quoted id of the report.
        store: Proof store.
        window: How far back the temporal fallback looks (inclusive).

    Returns:
        The claimed ProofRecord (linked=True) or None when no proof applies.
    """
    proof = _resolve_quoted(event, store)
    stage = "quoted"
    if proof is None:
        proof = _resolve_recent(event, store, window)
        stage = "recent"

    logger.info(
        "proof resolution finished",
        extra={
            "extra_fields": safe_log_context(
                stage=stage if proof else "none",
                had_quoted=bool(event.quoted_message_id),
                linked=proof is not None,
            )
        },
    )
    return proof
