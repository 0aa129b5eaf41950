"""Optimistic overlay for messages the server has not confirmed yet.

A submitted message shows up immediately as a pending entry. When the add
succeeds the entry is dropped, because the durable copy arrives with the next
transcript refresh. When it fails the entry stays, marked as an error, so the
user can retry or take the text back into the draft.
"""

import enum
import logging
import time
import uuid
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any

import httpx

from rethoric.api.schemas import MessageOut
from rethoric.errors import InvalidArgumentError, RethoricError

logger = logging.getLogger(__name__)

AddMessageFn = Callable[[str], Awaitable[Any]]


def local_ms() -> int:
    return int(time.time() * 1000)


class OverlayStatus(str, enum.Enum):
    PENDING = "pending"
    ERROR = "error"


@dataclass
class OverlayEntry:
    """A user message that exists only on this client."""

    temp_id: str
    content: str
    timestamp: int
    status: OverlayStatus = OverlayStatus.PENDING
    role: str = "user"
    error: str | None = None


@dataclass(frozen=True)
class DisplayMessage:
    """One row of the rendered transcript."""

    id: str
    role: str
    content: str
    timestamp: int
    status: str = "confirmed"

    @property
    def is_pending(self) -> bool:
        return self.status == OverlayStatus.PENDING.value

    @property
    def is_error(self) -> bool:
        return self.status == OverlayStatus.ERROR.value


def merge_messages(
    durable: Iterable[MessageOut], overlay: Iterable[OverlayEntry]
) -> list[DisplayMessage]:
    """Durable messages followed by overlay entries, stably sorted by timestamp.

    Ties keep durable-before-overlay order, and within each group the input order.
    """
    rows = [
        DisplayMessage(
            id=str(message.id),
            role=message.role,
            content=message.content,
            timestamp=message.timestamp,
        )
        for message in durable
    ]
    rows.extend(
        DisplayMessage(
            id=entry.temp_id,
            role=entry.role,
            content=entry.content,
            timestamp=entry.timestamp,
            status=entry.status.value,
        )
        for entry in overlay
    )
    return sorted(rows, key=lambda row: row.timestamp)


class OptimisticMessageReconciler:
    """Overlay state for the conversation currently on screen."""

    def __init__(
        self,
        conversation_id: int | None = None,
        clock: Callable[[], int] = local_ms,
    ):
        self.conversation_id = conversation_id
        self.draft = ""
        self._clock = clock
        self._entries: dict[str, OverlayEntry] = {}

    @property
    def entries(self) -> list[OverlayEntry]:
        return list(self._entries.values())

    @property
    def pending(self) -> list[OverlayEntry]:
        return [e for e in self._entries.values() if e.status == OverlayStatus.PENDING]

    @property
    def failed(self) -> list[OverlayEntry]:
        return [e for e in self._entries.values() if e.status == OverlayStatus.ERROR]

    def submit(self, content: str | None = None) -> OverlayEntry:
        """Add a pending entry for ``content`` (or the draft) and clear the draft.

        Raises:
            InvalidArgumentError: If the text is blank
        """
        text = (self.draft if content is None else content).strip()
        if not text:
            raise InvalidArgumentError("Message content cannot be empty")
        entry = OverlayEntry(
            temp_id=f"temp_{uuid.uuid4().hex}",
            content=text,
            timestamp=self._clock(),
        )
        self._entries[entry.temp_id] = entry
        self.draft = ""
        return entry

    def confirm(self, temp_id: str) -> None:
        """The server accepted the message; the durable copy replaces the entry."""
        self._entries.pop(temp_id, None)

    def fail(self, temp_id: str, error: str) -> None:
        entry = self._entries.get(temp_id)
        if entry is None:
            # Overlay was reset while the add was in flight
            return
        entry.status = OverlayStatus.ERROR
        entry.error = error

    def recover(self, temp_id: str) -> str | None:
        """Remove a failed entry and put its text back into the draft."""
        entry = self._entries.pop(temp_id, None)
        if entry is None:
            return None
        self.draft = entry.content
        return entry.content

    def reset(self, conversation_id: int | None) -> None:
        """Switch conversations. Entries never carry over, whatever their state."""
        if self._entries:
            logger.debug(
                f"Dropping {len(self._entries)} overlay entries on switch "
                f"{self.conversation_id} -> {conversation_id}"
            )
        self._entries.clear()
        self.draft = ""
        self.conversation_id = conversation_id

    def merged(self, durable: Iterable[MessageOut]) -> list[DisplayMessage]:
        return merge_messages(durable, self._entries.values())

    async def _deliver(self, entry: OverlayEntry, add_message: AddMessageFn) -> OverlayEntry:
        try:
            await add_message(entry.content)
        except (RethoricError, httpx.HTTPError) as e:
            logger.warning(f"Message {entry.temp_id} was not accepted: {e}")
            self.fail(entry.temp_id, str(e))
            return entry
        self.confirm(entry.temp_id)
        return entry

    async def send(
        self, add_message: AddMessageFn, content: str | None = None
    ) -> OverlayEntry:
        """Submit, call ``add_message`` and reconcile with its outcome.

        Failures are recorded on the returned entry rather than raised.
        """
        entry = self.submit(content)
        return await self._deliver(entry, add_message)

    async def retry(self, temp_id: str, add_message: AddMessageFn) -> OverlayEntry | None:
        """Send a failed entry again."""
        entry = self._entries.get(temp_id)
        if entry is None:
            return None
        entry.status = OverlayStatus.PENDING
        entry.error = None
        return await self._deliver(entry, add_message)
