"""Payment processor webhook."""

import json

import structlog
from fastapi import APIRouter, Header, Request

from sharecrm.config.app_config import load_app_config
from sharecrm.core import payments
from sharecrm.core.errors import ValidationError
from sharecrm.web.schemas import WebhookResponse

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("/webhook", response_model=WebhookResponse)
async def payment_webhook(
    request: Request,
    payment_signature: str | None = Header(default=None, alias="Payment-Signature"),
) -> WebhookResponse:
    """Receive a signed payment_intent event from the processor."""
    payload = await request.body()
    config = load_app_config().payments
    payments.verify_signature(
        payload,
        payment_signature,
        config.get_webhook_secret(),
        tolerance=config.signature_tolerance_seconds,
    )
    try:
        event = json.loads(payload)
    except json.JSONDecodeError:
        raise ValidationError("Webhook body is not valid JSON") from None

    result = payments.handle_event(event)
    logger.info("payments.webhook", event_type=result.event_type, handled=result.handled)
    return WebhookResponse(
        received=True,
        handled=result.handled,
        event_type=result.event_type,
        enrollment_id=result.enrollment_id,
    )
