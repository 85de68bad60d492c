"""Message store.

Client-side cache of the current inbox's message list. Fetches are
keyed to the bound inbox; results that complete after the inbox was
unbound or replaced are discarded. Among fetches for the same inbox the
last one to complete wins.
"""

from __future__ import annotations

import logging
from typing import Any

from .client import MessageApi
from .errors import (
    ApiError,
    InboxError,
    MalformedPayloadError,
    MessageDeleteError,
    MessageFetchError,
)
from .models import Message, MessageView

logger = logging.getLogger(__name__)


class MessageStore:
    """Tracks messages plus loading/error state for one inbox at a time.

    `items` is None when the last payload was not a proper sequence
    (the malformed-payload state), otherwise the list in server order.
    """

    def __init__(self, api: MessageApi) -> None:
        self._api = api
        self._inbox_id: str | None = None
        # Bumped on every bind/unbind; in-flight calls compare against it.
        self._epoch = 0
        self._items: list[Message] | None = []
        self._outstanding = 0
        self._error: MessageFetchError | None = None
        self._malformed: MalformedPayloadError | None = None
        self._delete_error: MessageDeleteError | None = None
        self._pending_deletes: set[str] = set()

    # --- Session binding ---

    @property
    def inbox_id(self) -> str | None:
        return self._inbox_id

    def bind(self, inbox_id: str) -> None:
        """Attach the store to a freshly authenticated inbox."""
        self._epoch += 1
        self._inbox_id = inbox_id
        self._clear()

    def unbind(self) -> None:
        """Drop the inbox; any in-flight results become stale."""
        self._epoch += 1
        self._inbox_id = None
        self._clear()

    def _clear(self) -> None:
        self._items = []
        self._outstanding = 0
        self._error = None
        self._malformed = None
        self._delete_error = None
        self._pending_deletes.clear()

    # --- State ---

    @property
    def items(self) -> list[Message]:
        return list(self._items or [])

    @property
    def is_loading(self) -> bool:
        return self._outstanding > 0

    @property
    def is_error(self) -> bool:
        return self._error is not None

    @property
    def error(self) -> MessageFetchError | None:
        return self._error

    @property
    def malformed(self) -> MalformedPayloadError | None:
        return self._malformed

    @property
    def delete_error(self) -> MessageDeleteError | None:
        return self._delete_error

    @property
    def view(self) -> MessageView:
        """Mutually exclusive render state, highest priority first."""
        if self.is_loading:
            return MessageView.LOADING
        if self.is_error:
            return MessageView.ERROR
        if self._items is None:
            return MessageView.MALFORMED
        if not self._items:
            return MessageView.EMPTY
        return MessageView.POPULATED

    # --- Operations ---

    async def fetch(self) -> bool:
        """Fetch the message list. Returns True when the result was applied.

        A no-op while no inbox is bound.
        """
        inbox_id = self._inbox_id
        if inbox_id is None:
            logger.debug("Skipping message fetch: no inbox bound")
            return False

        epoch = self._epoch
        self._outstanding += 1
        try:
            payload = await self._api.list_messages(inbox_id)
        except ApiError as exc:
            if epoch != self._epoch:
                return False
            self._error = MessageFetchError.from_api(exc, "Failed to load messages")
            logger.warning("Message fetch failed for %s: %s", inbox_id, exc)
            return False
        finally:
            if epoch == self._epoch:
                self._outstanding -= 1

        if epoch != self._epoch:
            logger.debug("Discarding stale message list for %s", inbox_id)
            return False

        self._error = None
        try:
            self._items = self._parse(payload)
            self._malformed = None
        except MalformedPayloadError as exc:
            logger.warning("Malformed message payload for %s: %s", inbox_id, exc)
            self._items = None
            self._malformed = exc
        return True

    def _parse(self, payload: Any) -> list[Message]:
        if not isinstance(payload, list | tuple):
            raise MalformedPayloadError(
                "Messages data is not in expected format: "
                f"{type(payload).__name__}",
                payload_type=type(payload).__name__,
            )
        messages = [Message.from_payload(item) for item in payload]
        return [m for m in messages if m.id not in self._pending_deletes]

    async def delete_message(self, message_id: str) -> bool:
        """Delete one message, removing it from the local list.

        The item is removed optimistically and put back at its old
        position if the backend refuses.
        """
        inbox_id = self._inbox_id
        if inbox_id is None:
            logger.debug("Skipping message delete: no inbox bound")
            return False

        epoch = self._epoch
        removed: tuple[int, Message] | None = None
        if self._items:
            for i, m in enumerate(self._items):
                if m.id == message_id:
                    removed = (i, self._items.pop(i))
                    break
        self._pending_deletes.add(message_id)
        self._delete_error = None

        try:
            await self._api.delete_message(inbox_id, message_id)
        except ApiError as exc:
            if epoch != self._epoch:
                return False
            self._pending_deletes.discard(message_id)
            self._delete_error = MessageDeleteError.from_api(
                exc, "Failed to delete message"
            )
            logger.warning("Failed to delete message %s: %s", message_id, exc)
            if removed is not None and self._items is not None:
                index, message = removed
                if all(m.id != message_id for m in self._items):
                    self._items.insert(min(index, len(self._items)), message)
            return False

        if epoch == self._epoch:
            self._pending_deletes.discard(message_id)
            if self._items:
                self._items = [m for m in self._items if m.id != message_id]
        logger.info("Deleted message %s", message_id)
        return True

    def last_error(self) -> InboxError | None:
        """The most relevant recorded error, if any."""
        return self._error or self._delete_error or self._malformed
