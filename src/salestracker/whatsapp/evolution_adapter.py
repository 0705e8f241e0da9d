"""Evolution API adapter - validate and normalize group webhook payloads."""

import re
from datetime import datetime
from typing import Any

from salestracker.infra.time import from_epoch_seconds, utc_now

from .models import MediaMessage, OtherMessage, RawMessage, TextMessage

MESSAGE_EVENTS = frozenset({"messages.upsert", "MESSAGES_UPSERT"})
GROUP_JID_SUFFIX = "@g.us"

_OTHER_KINDS = {
    "audioMessage": "audio",
    "videoMessage": "video",
    "stickerMessage": "sticker",
    "reactionMessage": "reaction",
}

_LEADING_DIGITS = re.compile(r"^(\d+)")


class InvalidPayloadError(Exception):
    """Raised when Evolution payload has invalid shape."""

    pass


class UnsupportedEventError(Exception):
    """Raised for well-formed payloads this service deliberately ignores."""

    pass


def extract_phone_from_jid(jid: str) -> str:
    """Phone digits of a JID ("5493515551234:5@s.whatsapp.net" -> "5493515551234").

    Returns the input unchanged when it does not start with digits.
    """
    match = _LEADING_DIGITS.match(jid)
    return match.group(1) if match else jid



def _as_dict(value: Any, field: str) -> dict[str, Any]:
    """Optional object field: missing -> {}, wrong type -> InvalidPayloadError."""
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise InvalidPayloadError(f"invalid {field}")
    return value


def _as_str(value: Any, field: str) -> str:
    """Optional string field: missing -> "", wrong type -> InvalidPayloadError."""
    if value is None:
        return ""
    if not isinstance(value, str):
        raise InvalidPayloadError(f"invalid {field}")
    return value


def _sent_at(data: dict[str, Any]) -> datetime:
    raw = data.get("messageTimestamp")
    if raw in (None, ""):
        # Missing send time: fall back to receipt time
        return utc_now()
    if isinstance(raw, bool):
        raise InvalidPayloadError("invalid messageTimestamp")
    try:
        return from_epoch_seconds(raw)
    except (TypeError, ValueError, OverflowError, OSError) as e:
        raise InvalidPayloadError("invalid messageTimestamp") from e


def _quoted_message_id(data: dict[str, Any], message: dict[str, Any]) -> str | None:
    # contextInfo sits at data level for "conversation" replies and inside
    # extendedTextMessage otherwise
    context = data.get("contextInfo")
    if not isinstance(context, dict) or not context:
        extended = message.get("extendedTextMessage")
        context = extended.get("contextInfo") if isinstance(extended, dict) else None
    if not isinstance(context, dict):
        return None
    stanza_id = context.get("stanzaId")
    return stanza_id if isinstance(stanza_id, str) and stanza_id else None


def normalize(payload: dict[str, Any]) -> RawMessage:
    """Normalize an Evolution webhook payload into a RawMessage.

    Args:
        payload: Raw webhook payload from Evolution API.

    Returns:
        TextMessage, MediaMessage or OtherMessage.

    Raises:
        UnsupportedEventError: Not a message event, or not from a group.
        InvalidPayloadError: If required fields are missing or have the wrong type.
    """
    event = payload.get("event")
    if event not in MESSAGE_EVENTS:
        raise UnsupportedEventError("not a message event")

    data = payload.get("data")
    if not isinstance(data, dict):
        raise InvalidPayloadError("missing data")
    key = _as_dict(data.get("key"), "key")

    message_id = key.get("id")
    if not message_id or not isinstance(message_id, str):
        raise InvalidPayloadError("missing or invalid message_id")

    group_id = _as_str(key.get("remoteJid"), "remoteJid")
    if not group_id:
        raise InvalidPayloadError("missing remoteJid")
    if not group_id.endswith(GROUP_JID_SUFFIX):
        raise UnsupportedEventError("not from a group")

    # participantAlt carries the real phone when participant is a LID
    sender_source = (
        _as_str(data.get("participantAlt"), "participantAlt")
        or _as_str(key.get("participant"), "participant")
        or group_id
    )
    sender_id = extract_phone_from_jid(sender_source)
    push_name = data.get("pushName")
    sender_name = push_name if isinstance(push_name, str) and push_name else sender_id

    common = {
        "message_id": message_id,
        "sender_id": sender_id,
        "sender_name": sender_name,
        "group_id": group_id,
        "sent_at": _sent_at(data),
    }

    message = _as_dict(data.get("message"), "message")

    image = _as_dict(message.get("imageMessage"), "imageMessage")
    document = _as_dict(message.get("documentMessage"), "documentMessage")
    if image or document:
        is_image = bool(image)
        media = image or document
        media_url = message.get("mediaUrl") or media.get("mediaUrl")
        return MediaMessage(
            **common,
            media_kind="image" if is_image else "document",
            media_url=media_url if isinstance(media_url, str) else "",
            mime_type=_as_str(media.get("mimetype"), "mimetype"),
            caption=_as_str(media.get("caption"), "caption"),
            file_name=_as_str(media.get("fileName"), "fileName"),
        )

    extended = _as_dict(message.get("extendedTextMessage"), "extendedTextMessage")
    text = message.get("conversation") or extended.get("text")
    if text:
        if not isinstance(text, str):
            raise InvalidPayloadError("invalid text")
        return TextMessage(
            **common,
            text=text,
            quoted_message_id=_quoted_message_id(data, message),
        )

    message_type = data.get("messageType")
    other_kind = "unknown"
    if isinstance(message_type, str):
        other_kind = _OTHER_KINDS.get(message_type, "unknown")
    return OtherMessage(**common, other_kind=other_kind)
