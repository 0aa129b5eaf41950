"""Identity: user records and provider webhooks."""

from rethoric.auth.users import (
    display_name,
    get_current_user,
    get_user_by_external_id,
    provision_user,
    update_display_name,
)
from rethoric.auth.webhooks import (
    WebhookPayloadError,
    WebhookVerificationError,
    handle_identity_event,
    verify_delivery,
)

__all__ = [
    "display_name",
    "get_current_user",
    "get_user_by_external_id",
    "provision_user",
    "update_display_name",
    "WebhookPayloadError",
    "WebhookVerificationError",
    "handle_identity_event",
    "verify_delivery",
]
