"""Async HTTP client for the query and mutation surface."""

import logging
from typing import Any

import httpx

from rethoric.api.schemas import (
    AddMessageResponse,
    CompleteConversationResponse,
    ConversationOut,
    MessagesResponse,
    NextQuestionResponse,
    ReplyResponse,
    StartConversationResponse,
    UserOut,
)
from rethoric.config import settings
from rethoric.errors import ERRORS_BY_STATUS, RethoricError

logger = logging.getLogger(__name__)


class ApiError(RethoricError):
    """Server answered with a status that has no domain meaning (e.g. 502)."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class RethoricClient:
    """Client for one authenticated user."""

    def __init__(
        self,
        base_url: str,
        subject: str,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
        subject_header: str | None = None,
    ):
        """Initialize the client.

        Args:
            base_url: Server root, e.g. ``http://localhost:8000``
            subject: Identity-provider subject of the user
            timeout: Request timeout in seconds (replies can take a while)
            transport: Optional httpx transport (tests use ASGITransport)
            subject_header: Header carrying the subject
        """
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
            headers={subject_header or settings.AUTH_SUBJECT_HEADER: subject},
        )

    async def __aenter__(self) -> "RethoricClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._client.request(method, path, **kwargs)
        if response.status_code >= 400:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            error_cls = ERRORS_BY_STATUS.get(response.status_code)
            logger.debug(f"{method} {path} -> {response.status_code}: {detail}")
            if error_cls is not None:
                raise error_cls(str(detail))
            raise ApiError(str(detail), response.status_code)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    async def next_question(self) -> NextQuestionResponse:
        data = await self._request("GET", "/api/v1/questions/next")
        return NextQuestionResponse.model_validate(data)

    async def list_conversations(self, status: str | None = None) -> list[ConversationOut]:
        params = {"status": status} if status else None
        data = await self._request("GET", "/api/v1/conversations", params=params)
        return [ConversationOut.model_validate(item) for item in data]

    async def start_conversation(self, question_id: int) -> StartConversationResponse:
        data = await self._request(
            "POST", "/api/v1/conversations", json={"question_id": question_id}
        )
        return StartConversationResponse.model_validate(data)

    async def get_messages(self, conversation_id: int) -> MessagesResponse:
        data = await self._request("GET", f"/api/v1/conversations/{conversation_id}/messages")
        return MessagesResponse.model_validate(data)

    async def add_message(
        self, conversation_id: int, content: str, role: str = "user"
    ) -> AddMessageResponse:
        data = await self._request(
            "POST",
            f"/api/v1/conversations/{conversation_id}/messages",
            json={"role": role, "content": content},
        )
        return AddMessageResponse.model_validate(data)

    async def complete_conversation(self, conversation_id: int) -> CompleteConversationResponse:
        data = await self._request("POST", f"/api/v1/conversations/{conversation_id}/complete")
        return CompleteConversationResponse.model_validate(data)

    async def request_reply(
        self, conversation_id: int, user_message: str, thread_id: str | None = None
    ) -> ReplyResponse:
        data = await self._request(
            "POST",
            f"/api/v1/conversations/{conversation_id}/reply",
            json={"user_message": user_message, "thread_id": thread_id},
        )
        return ReplyResponse.model_validate(data)

    async def get_me(self) -> UserOut:
        return UserOut.model_validate(await self._request("GET", "/api/v1/users/me"))

    async def update_profile(self, name: str | None) -> UserOut:
        data = await self._request("PATCH", "/api/v1/users/me", json={"name": name})
        return UserOut.model_validate(data)
