"""LLM-related exceptions with provider-specific handling.

Errors split into two families: ``TransientProviderError`` is worth
retrying, ``PermanentProviderError`` is not.
"""

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
RETRYABLE_MESSAGE_MARKERS = ("timeout", "network", "connection")


class LLMError(Exception):
    """Base exception for LLM operations."""

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        status_code: int | None = None,
    ):
        self.provider = provider
        self.status_code = status_code
        super().__init__(f"[{provider}] {message}")


class TransientProviderError(LLMError):
    """Retryable failure from the text-generation service."""

    pass


class PermanentProviderError(LLMError):
    """Non-retryable failure from the text-generation service."""

    pass


class LLMConnectionError(TransientProviderError):
    """Failed to connect to the LLM service."""

    pass


class LLMRateLimitError(TransientProviderError):
    """Rate limit exceeded (primarily for cloud providers)."""

    def __init__(
        self, message: str, provider: str, retry_after: float | None = None
    ):
        self.retry_after = retry_after
        super().__init__(message, provider, status_code=429)


class LLMServerError(TransientProviderError):
    """Provider answered with a 5xx."""

    pass


class LLMAuthenticationError(PermanentProviderError):
    """Authentication failed (invalid API key, etc.)."""

    pass


class LLMModelNotFoundError(PermanentProviderError):
    """Requested model is not available."""

    def __init__(self, message: str, provider: str, model: str):
        self.model = model
        super().__init__(message, provider, status_code=404)


class LLMResponseError(PermanentProviderError):
    """Error parsing or processing LLM response."""

    pass


class LLMProviderNotConfiguredError(PermanentProviderError):
    """Provider is not properly configured or not registered."""

    pass


def is_retryable_error(exc: BaseException) -> bool:
    """Decide whether a failed generation attempt should be retried.

    Typed provider errors answer for themselves. Anything else is judged
    by an HTTP-like ``status_code`` attribute (429 and 5xx gateway codes)
    or, failing that, by the wording of its message.
    """
    if isinstance(exc, TransientProviderError):
        return True
    if isinstance(exc, PermanentProviderError):
        return False

    status_code = getattr(exc, "status_code", None)
    if status_code is None:
        response = getattr(exc, "response", None)
        status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int) and status_code in RETRYABLE_STATUS_CODES:
        return True

    message = str(exc).lower()
    return any(marker in message for marker in RETRYABLE_MESSAGE_MARKERS)


def error_for_status(
    status_code: int,
    message: str,
    provider: str,
    retry_after: float | None = None,
) -> LLMError:
    """Map an HTTP status from a provider onto the exception hierarchy."""
    if status_code in (401, 403):
        return LLMAuthenticationError(message, provider=provider, status_code=status_code)
    if status_code == 429:
        return LLMRateLimitError(message, provider=provider, retry_after=retry_after)
    if status_code in RETRYABLE_STATUS_CODES:
        return LLMServerError(message, provider=provider, status_code=status_code)
    return LLMResponseError(message, provider=provider, status_code=status_code)
