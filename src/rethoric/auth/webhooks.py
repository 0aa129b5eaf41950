"""Identity-provider webhooks.

Deliveries are signed by Svix; verification and the timestamp window are
left to the ``svix`` library.
"""

import binascii
import json
import logging
from collections.abc import Mapping
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession
from svix.webhooks import Webhook, WebhookVerificationError

from rethoric.auth.users import display_name, provision_user
from rethoric.db.models import User

logger = logging.getLogger(__name__)

__all__ = [
    "WebhookPayloadError",
    "WebhookVerificationError",
    "handle_identity_event",
    "verify_delivery",
]


class WebhookPayloadError(Exception):
    """A verified delivery whose payload cannot be applied."""

    pass


def verify_delivery(secret: str, headers: Mapping[str, str], body: bytes) -> dict[str, Any]:
    """Check a signed delivery and return its decoded JSON payload.

    Raises:
        ValueError: If the secret is empty or not a valid ``whsec_`` key
        WebhookVerificationError: On missing headers, stale timestamp or
            signature mismatch
        WebhookPayloadError: If the signed body is not a JSON object
    """
    if not secret:
        raise ValueError("Webhook secret is not configured")
    try:
        webhook = Webhook(secret)
    except binascii.Error as e:
        raise ValueError("Webhook secret is not valid base64") from e

    try:
        payload = webhook.verify(body, dict(headers))
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise WebhookPayloadError("Payload is not valid JSON") from None
    if not isinstance(payload, dict):
        raise WebhookPayloadError("Payload is not a JSON object")
    return payload


async def handle_identity_event(session: AsyncSession, payload: dict[str, Any]) -> User | None:
    """Apply a verified identity event. Only ``user.created`` has an effect."""
    event_type = payload.get("type")
    logger.info(f"Received identity webhook: {event_type}")
    if event_type != "user.created":
        return None

    data = payload.get("data") or {}
    external_id = data.get("id")
    if not external_id:
        raise WebhookPayloadError("user.created event without user id")

    addresses = data.get("email_addresses") or []
    email = (addresses[0] or {}).get("email_address", "") if addresses else ""
    user, _ = await provision_user(
        session,
        external_id=external_id,
        email=email,
        name=display_name(data.get("first_name"), data.get("last_name")),
    )
    return user
