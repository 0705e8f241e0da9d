"""Proofs repository - persistence for proof-of-payment media messages.

Uses raw SQL with psycopg2 (no ORM).
Claiming is a guarded UPDATE (linked = false) so two concurrent claims on
the same proof have exactly one winner.
"""

from datetime import datetime

from psycopg2.extensions import cursor as PgCursor

from salestracker.domain.sales import ProofKind, ProofRecord

_PROOF_COLUMNS = """
    source_message_id, media_url, media_kind, mime_type, sender_id,
    group_id, received_at, linked, caption
"""


def _row_to_proof(row: tuple) -> ProofRecord:
    return ProofRecord(
        source_message_id=row[0],
        media_url=row[1],
        media_kind=ProofKind(row[2]),
        mime_type=row[3],
        sender_id=row[4],
        group_id=row[5],
        received_at=row[6],
        linked=row[7],
        caption=row[8] or "",
    )


def insert_proof(cur: PgCursor, proof: ProofRecord) -> bool:
    """Insert an unlinked proof.

    Returns:
        True if inserted, False if the source message id already existed.
    """
    cur.execute(
        """
        INSERT INTO proofs (
            source_message_id, media_url, media_kind, mime_type, sender_id,
            group_id, received_at, linked, caption
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, false, %s)
        ON CONFLICT (source_message_id) DO NOTHING
        """,
        (
            proof.source_message_id,
            proof.media_url,
            proof.media_kind.value,
            proof.mime_type,
            proof.sender_id,
            proof.group_id,
            proof.received_at,
            proof.caption,
        ),
    )
    return cur.rowcount == 1


def get_unlinked_proof(cur: PgCursor, source_message_id: str) -> ProofRecord | None:
    cur.execute(
        f"""
        SELECT {_PROOF_COLUMNS}
        FROM proofs
        WHERE source_message_id = %s AND linked = false
        """,
        (source_message_id,),
    )
    row = cur.fetchone()
    return _row_to_proof(row) if row else None


def list_unlinked_proofs_in_window(
    cur: PgCursor,
    *,
    sender_id: str,
    start: datetime,
    end: datetime,
) -> list[ProofRecord]:
    """Unlinked proofs of sender with start <= received_at <= end, newest first."""
    cur.execute(
        f"""
        SELECT {_PROOF_COLUMNS}
        FROM proofs
        WHERE sender_id = %s
          AND linked = false
          AND received_at BETWEEN %s AND %s
        ORDER BY received_at DESC
        """,
        (sender_id, start, end),
    )
    return [_row_to_proof(row) for row in cur.fetchall()]


def claim_proof(cur: PgCursor, source_message_id: str) -> bool:
    """Mark a proof as linked if it is still unlinked.

    Returns:
        True if this call flipped linked, False if already claimed or missing.
    """
    cur.execute(
        """
        UPDATE proofs
        SET linked = true, linked_at = now()
        WHERE source_message_id = %s AND linked = false
        """,
        (source_message_id,),
    )
    return cur.rowcount == 1


def delete_stale_unlinked_proofs(cur: PgCursor, *, older_than: datetime) -> int:
    """Delete unlinked proofs received before older_than. Returns rows deleted."""
    cur.execute(
        """
        DELETE FROM proofs
        WHERE linked = false AND received_at < %s
        """,
        (older_than,),
    )
    return cur.rowcount


class PgProofStore:
    """ProofStore bound to one transaction cursor."""

    def __init__(self, cur: PgCursor) -> None:
        self._cur = cur

    def insert(self, proof: ProofRecord) -> bool:
        return insert_proof(self._cur, proof)

    def find_unlinked_by_source_id(self, source_message_id: str) -> ProofRecord | None:
        return get_unlinked_proof(self._cur, source_message_id)

    def find_unlinked_by_sender_in_window(
        self, sender_id: str, start: datetime, end: datetime
    ) -> list[ProofRecord]:
        return list_unlinked_proofs_in_window(
            self._cur, sender_id=sender_id, start=start, end=end
        )

    def claim(self, source_message_id: str) -> bool:
        return claim_proof(self._cur, source_message_id)
