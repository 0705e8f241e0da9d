"""Normalized WhatsApp group messages.

The gateway payload is decided once, at the adapter boundary, into one of
three shapes. Core code branches on the class, never on which optional
payload field happens to be set.

ATTENTION PII: sender_id, sender_name and text are PII. Never log them.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Union

MediaKind = Literal["image", "document"]
OtherKind = Literal["audio", "video", "sticker", "reaction", "unknown"]


@dataclass(frozen=True)
class TextMessage:
    message_id: str
    sender_id: str
    sender_name: str
    group_id: str
    sent_at: datetime
    text: str
    quoted_message_id: str | None = None

    @property
    def kind(self) -> str:
        return "text"


@dataclass(frozen=True)
class MediaMessage:
    """Image or document message; candidate proof of payment."""

    message_id: str
    sender_id: str
    sender_name: str
    group_id: str
    sent_at: datetime
    media_kind: MediaKind
    media_url: str
    mime_type: str
    caption: str = ""
    file_name: str = ""

    @property
    def kind(self) -> str:
        return self.media_kind


@dataclass(frozen=True)
class OtherMessage:
    message_id: str
    sender_id: str
    sender_name: str
    group_id: str
    sent_at: datetime
    other_kind: OtherKind = "unknown"

    @property
    def kind(self) -> str:
        return self.other_kind


RawMessage = Union[TextMessage, MediaMessage, OtherMessage]
