"""Identity-provider webhook endpoint."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from rethoric.api.deps import SessionDep
from rethoric.auth.webhooks import (
    WebhookPayloadError,
    WebhookVerificationError,
    handle_identity_event,
    verify_delivery,
)
from rethoric.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["webhooks"])


@router.post("/webhooks/clerk", response_class=PlainTextResponse)
async def clerk_webhook(request: Request, session: SessionDep) -> PlainTextResponse:
    """Provision users from signed identity-provider events."""
    body = await request.body()
    try:
        payload = verify_delivery(settings.CLERK_WEBHOOK_SECRET, request.headers, body)
    except ValueError as e:
        logger.error(f"Webhook secret misconfigured: {e}")
        return PlainTextResponse("Webhook secret not configured", status_code=500)
    except (WebhookVerificationError, WebhookPayloadError) as e:
        logger.error(f"Webhook verification failed: {e}")
        return PlainTextResponse(str(e), status_code=400)

    try:
        await handle_identity_event(session, payload)
    except WebhookPayloadError as e:
        logger.error(f"Webhook payload rejected: {e}")
        return PlainTextResponse(str(e), status_code=400)

    return PlainTextResponse("OK", status_code=200)
