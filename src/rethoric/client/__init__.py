"""Client library: HTTP client and optimistic chat state."""

from rethoric.client.api import ApiError, RethoricClient
from rethoric.client.overlay import (
    DisplayMessage,
    OptimisticMessageReconciler,
    OverlayEntry,
    OverlayStatus,
    merge_messages,
)
from rethoric.client.session import ChatSession

__all__ = [
    "ApiError",
    "ChatSession",
    "DisplayMessage",
    "OptimisticMessageReconciler",
    "OverlayEntry",
    "OverlayStatus",
    "RethoricClient",
    "merge_messages",
]
