# webbridge/core/pubsub.py
"""
PubSub (Publish-Subscribe) module for WebSocket fan-out.
Tracks the live web sessions of each chat and delivers push payloads to
every session registered for that chat, and to no other.
"""
import asyncio
import json
import logging
import threading
from typing import Any, Dict, Hashable, Protocol, Set

logger = logging.getLogger("uvicorn.error")


class SessionHandle(Protocol):
    """Anything that can send a text frame (starlette WebSocket in production)."""

    async def send_text(self, data: str) -> None: ...


class FanoutRegistry:
    """
    Registry of live web sessions keyed by chat ID.

    Architecture:
    - The WebSocket router accepts connections and calls register/deregister;
      this class only keeps the mapping and performs delivery
    - publish() delivers to a snapshot of the chat's sessions, so sessions
      connecting or leaving mid-publish never corrupt iteration
    - No queuing: a chat with no sessions simply drops the payload

    Data structure:
    - _sessions: Dict[chat_id, Set[SessionHandle]]
      Example: {1001: {ws1, ws2}, 1002: {ws3}}

    The map is guarded by a plain lock held only for non-awaiting critical
    sections, so it is safe from both event-loop code and other threads.
    """

    def __init__(self, send_timeout: float | None = 10.0):
        self._sessions: Dict[int, Set[Hashable]] = {}
        self._lock = threading.Lock()
        self._send_timeout = send_timeout

    # -------- register / deregister (no accept, only bookkeeping) --------
    def register(self, chat_id: int, session: SessionHandle) -> None:
        """
        Register a session for a chat.

        Args:
            chat_id: Chat whose pushes the session should receive
            session: Connected transport handle
        """
        with self._lock:
            self._sessions.setdefault(chat_id, set()).add(session)
        logger.info("[pubsub] session registered chat=%s", chat_id)

    def deregister(self, chat_id: int, session: SessionHandle) -> None:
        """
        Remove a session from a chat. Unknown sessions are ignored, so a
        double disconnect is harmless.
        """
        with self._lock:
            sessions = self._sessions.get(chat_id)
            if not sessions:
                return
            sessions.discard(session)
            if not sessions:
                del self._sessions[chat_id]
        logger.info("[pubsub] session deregistered chat=%s", chat_id)

    def sessions(self, chat_id: int) -> Set[Any]:
        """Snapshot of the sessions currently registered for chat_id."""
        with self._lock:
            return set(self._sessions.get(chat_id, ()))

    def session_count(self) -> int:
        with self._lock:
            return sum(len(s) for s in self._sessions.values())

    # -------- publish --------
    async def publish(self, chat_id: int, payload: dict) -> int:
        """
        Publish a JSON message to every session registered for chat_id.

        Args:
            chat_id: Chat to publish to
            payload: Dictionary payload to send (will be JSON-encoded)

        Returns:
            Number of sessions the payload was delivered to.

        Note: A failing or slow session is logged and skipped; it never stops
        delivery to its siblings and never raises to the caller.
        """
        conns = self.sessions(chat_id)
        if not conns:
            logger.debug("[pubsub] no sessions for chat=%s, payload dropped", chat_id)
            return 0

        msg = json.dumps(payload)  # Serialize payload once for all sessions
        results = await asyncio.gather(
            *(self._send(s, msg) for s in conns),
            return_exceptions=True,
        )
        delivered = 0
        for result in results:
            if isinstance(result, BaseException):
                logger.warning("[pubsub] delivery to chat=%s failed: %r", chat_id, result)
            else:
                delivered += 1
        return delivered

    async def _send(self, session: SessionHandle, msg: str) -> None:
        if self._send_timeout is None:
            await session.send_text(msg)
        else:
            await asyncio.wait_for(session.send_text(msg), timeout=self._send_timeout)


# Global registry instance (singleton pattern)
# Import this instance in other modules to publish/register sessions
registry = FanoutRegistry()
