"""Chat history repository - every received group message, classified.

Uses raw SQL with psycopg2 (no ORM).
The primary key on message_id doubles as the webhook dedupe receipt.
"""

from __future__ import annotations

from psycopg2.extensions import cursor as PgCursor

from salestracker.domain.ingest import MessageClass
from salestracker.whatsapp.models import MediaMessage, RawMessage, TextMessage


def insert_message(cur: PgCursor, message: RawMessage) -> bool:
    """Record a message as plain chat.

    Returns:
        True if inserted, False if the message id was already recorded.
    """
    text = None
    quoted = None
    media_url = None
    mime_type = None
    if isinstance(message, TextMessage):
        text = message.text
        quoted = message.quoted_message_id
    elif isinstance(message, MediaMessage):
        text = message.caption or None
        media_url = message.media_url or None
        mime_type = message.mime_type or None

    cur.execute(
        """
        INSERT INTO chat_messages (
            message_id, group_id, sender_id, sender_name, kind, text,
            media_url, mime_type, quoted_message_id, sent_at, classification
        )
        VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
        ON CONFLICT (message_id) DO NOTHING
        """,
        (
            message.message_id,
            message.group_id,
            message.sender_id,
            message.sender_name,
            message.kind,
            text,
            media_url,
            mime_type,
            quoted,
            message.sent_at,
            MessageClass.CHAT.value,
        ),
    )
    return cur.rowcount == 1


def update_classification(
    cur: PgCursor,
    *,
    message_id: str,
    classification: MessageClass,
    sale_id: str | None = None,
) -> None:
    cur.execute(
        """
        UPDATE chat_messages
        SET classification = %s, sale_id = %s, processed_at = now()
        WHERE message_id = %s
        """,
        (classification.value, sale_id, message_id),
    )


def list_unclassified_texts(cur: PgCursor, *, limit: int) -> list[TextMessage]:
    """Most recent text messages still classified as chat, newest first."""
    cur.execute(
        """
        SELECT message_id, sender_id, sender_name, group_id, sent_at, text,
               quoted_message_id
        FROM chat_messages
        WHERE kind = 'text' AND classification = %s
        ORDER BY sent_at DESC
        LIMIT %s
        """,
        (MessageClass.CHAT.value, limit),
    )
    return [
        TextMessage(
            message_id=row[0],
            sender_id=row[1],
            sender_name=row[2],
            group_id=row[3],
            sent_at=row[4],
            text=row[5] or "",
            quoted_message_id=row[6],
        )
        for row in cur.fetchall()
    ]


class PgHistoryStore:
    """HistoryStore bound to one transaction cursor."""

    def __init__(self, cur: PgCursor) -> None:
        self._cur = cur

    def record(self, message: RawMessage) -> bool:
        return insert_message(self._cur, message)

    def classify(
        self,
        message_id: str,
        classification: MessageClass,
        *,
        sale_id: str | None = None,
    ) -> None:
        update_classification(
            self._cur,
            message_id=message_id,
            classification=classification,
            sale_id=sale_id,
        )

    def list_unclassified_texts(self, limit: int) -> list[TextMessage]:
        return list_unclassified_texts(self._cur, limit=limit)
