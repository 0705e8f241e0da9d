"""Evolution API webhook - ingest WhatsApp group messages.

Security:
- Shared secret checked with constant-time compare (fail-closed)
- Message text, sender ids and client data are never logged

ACK 2xx only after the whole message (history, proof, sale, rollup) has
been committed in one transaction. Any store failure returns 500 so the
gateway redelivers; redeliveries are deduplicated by message id.
"""

import hmac
from contextlib import contextmanager
from typing import Any, Iterator

from fastapi import APIRouter, BackgroundTasks, Header, Request
from fastapi.responses import JSONResponse

from salestracker.domain.ingest import Stores, process_message
from salestracker.infra.db import txn
from salestracker.infra.repositories.stores import pg_stores
from salestracker.infra.settings import Settings, load_settings
from salestracker.notify.outgoing_webhook import EVENT_NEW_SALE, send_event
from salestracker.observability.correlation import get_correlation_id
from salestracker.observability.logging import get_logger
from salestracker.observability.redaction import safe_log_context
from salestracker.whatsapp.evolution_adapter import (
    InvalidPayloadError,
    UnsupportedEventError,
    normalize,
)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

logger = get_logger(__name__)


def _get_settings() -> Settings:
    """Settings for this request (allows test injection)."""
    return load_settings()


@contextmanager
def _stores_scope() -> Iterator[Stores]:
    """One transaction per message (allows test injection)."""
    with txn() as cur:
        yield pg_stores(cur)


def _secret_ok(settings: Settings, provided: str | None) -> bool:
    correlation_id = get_correlation_id()
    expected = settings.evolution_webhook_secret
    if not expected:
        if settings.is_local:
            logger.warning(
                "EVOLUTION_WEBHOOK_SECRET not set - skipping validation (local dev)",
                extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
            )
            return True
        logger.error(
            "EVOLUTION_WEBHOOK_SECRET not configured - rejecting webhook (fail-closed)",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return False
    if not provided or not hmac.compare_digest(provided, expected):
        logger.warning(
            "evolution webhook secret mismatch",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return False
    return True


@router.post("/evolution")
async def evolution_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    x_webhook_secret: str | None = Header(None, alias="X-Webhook-Secret"),
) -> JSONResponse:
    """Receive an Evolution API webhook.

    Returns:
        200 with {"status": ...} for processed, duplicate or ignored events.
        400 if the payload is not valid JSON or has an invalid shape.
        401 if secret validation fails.
        500 if processing fails (transaction rolled back).
    """
    settings = _get_settings()
    correlation_id = get_correlation_id()

    if not _secret_ok(settings, x_webhook_secret):
        return JSONResponse({"status": "unauthorized"}, status_code=401)

    try:
        payload: dict[str, Any] = await request.json()
    except ValueError:
        logger.warning(
            "invalid json body",
            extra={"extra_fields": safe_log_context(correlationId=correlation_id)},
        )
        return JSONResponse({"status": "error", "reason": "invalid json"}, status_code=400)

    if not isinstance(payload, dict):
        return JSONResponse(
            {"status": "error", "reason": "invalid payload shape"}, status_code=400
        )

    try:
        message = normalize(payload)
    except UnsupportedEventError as e:
        return JSONResponse({"status": "ignored", "reason": str(e)})
    except InvalidPayloadError as e:
        logger.warning(
            "invalid evolution payload shape",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id, reason=str(e)
                )
            },
        )
        return JSONResponse(
            {"status": "error", "reason": "invalid payload shape"}, status_code=400
        )

    if settings.sales_group_jid and message.group_id != settings.sales_group_jid:
        return JSONResponse({"status": "ignored", "reason": "not the sales group"})

    try:
        with _stores_scope() as stores:
            result = process_message(message, stores=stores, settings=settings)
    except Exception:
        logger.exception(
            "webhook processing failed",
            extra={
                "extra_fields": safe_log_context(
                    correlationId=correlation_id,
                    message_id_prefix=message.message_id[:8],
                    kind=message.kind,
                )
            },
        )
        return JSONResponse(
            {"status": "error", "reason": "processing failed"}, status_code=500
        )

    logger.info(
        "evolution webhook processed",
        extra={
            "extra_fields": safe_log_context(
                correlationId=correlation_id,
                message_id_prefix=message.message_id[:8],
                kind=message.kind,
                status=result.status,
            )
        },
    )

    body: dict[str, Any] = {"status": result.status, "messageId": result.message_id}
    if result.sale is not None:
        # Runs in the threadpool after the response; never blocks the event loop
        background_tasks.add_task(
            send_event,
            settings.outgoing_webhook_url,
            EVENT_NEW_SALE,
            result.sale,
            timeout=settings.outgoing_webhook_timeout,
        )
        body["saleId"] = result.sale.id
        body["data"] = {
            "amount": str(result.sale.amount),
            "currency": result.sale.currency.value,
            "proofUrl": "attached" if result.sale.proof_url else "none",
        }
    return JSONResponse(body)
