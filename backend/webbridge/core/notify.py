# webbridge/core/notify.py
"""
Best-effort side channel.

Admin notifications, authorization notices and the audit forward run here as
detached asyncio tasks. The request path never awaits them, every outbound
send is bounded by a timeout, and failures are logged per recipient.
"""
import asyncio
import logging
from typing import Awaitable, Optional, Set

from webbridge.core.chat_client import ChatClient, ChatTarget
from webbridge.core.errors import NotificationFailure

logger = logging.getLogger("uvicorn.error")


class Notifier:
    def __init__(self, client: ChatClient, timeout: float = 10.0):
        self._client = client
        self._timeout = timeout
        self._tasks: Set[asyncio.Task] = set()

    @property
    def client(self) -> ChatClient:
        return self._client

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def spawn(self, coro: Awaitable, label: str) -> asyncio.Task:
        """
        Run coro in the background. The caller gets the task back but is not
        expected to await it; exceptions are logged when the task finishes.
        """
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._finished(t, label))
        return task

    def _finished(self, task: asyncio.Task, label: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            logger.warning("[notify] %s cancelled", label)
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("[notify] %s failed: %r", label, exc)

    async def _bounded(self, aw: Awaitable, what: str):
        try:
            return await asyncio.wait_for(aw, timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise NotificationFailure(f"{what} timed out after {self._timeout:.1f}s") from e
        except Exception as e:
            raise NotificationFailure(f"{what} failed: {e!r}") from e

    async def send(
        self,
        chat_id: ChatTarget,
        text: str,
        reply_to: Optional[int] = None,
    ) -> bool:
        """
        Send one message within the configured timeout.

        Returns:
            True when the message went out, False on timeout or error
            (already logged).
        """
        try:
            await self._bounded(
                self._client.send_message(chat_id, text, reply_to=reply_to),
                f"send to chat={chat_id}",
            )
            return True
        except NotificationFailure as e:
            logger.warning("[notify] %s", e)
            return False

    async def forward(self, from_chat_id: int, channel_id: ChatTarget, message_id: int) -> Optional[int]:
        """Time-bounded forward; returns the new message ID or None."""
        try:
            return await self._bounded(
                self._client.forward_to_channel(from_chat_id, channel_id, message_id),
                f"forward of msg={message_id} to {channel_id}",
            )
        except NotificationFailure as e:
            logger.warning("[notify] %s", e)
            return None

    async def drain(self) -> None:
        """Wait for every pending background task (shutdown, tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
