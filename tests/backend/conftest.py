import os
from dataclasses import dataclass
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tortoise import Tortoise

from webbridge.config import Settings
from webbridge.core import db as db_module
from webbridge.core.chat_client import ChatClient
from webbridge.core.pubsub import FanoutRegistry
from webbridge.main import app
from webbridge.schemas.events import Profile
from webbridge.services.bridge import build_orchestrator


TEST_DB_URL = "sqlite://:memory:"
os.environ["DATABASE_URL"] = TEST_DB_URL
db_module.DB_URL = TEST_DB_URL
db_module.TORTOISE_ORM["connections"]["default"] = TEST_DB_URL


async def _init_test_db() -> None:
    """
    Initialize a clean in-memory SQLite database for every test.
    Ensures tables are recreated from scratch.
    """
    if Tortoise._inited:
        await Tortoise.close_connections()
    await Tortoise.init(config=db_module.TORTOISE_ORM)
    await Tortoise.generate_schemas()


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory database, closed after the test."""
    await _init_test_db()
    yield
    await Tortoise.close_connections()


@pytest_asyncio.fixture
async def client():
    """
    Provide an HTTPX AsyncClient bound to the FastAPI app with a fresh DB.
    Startup hooks do not run, so no Telegram bot is started.
    """
    await _init_test_db()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client
    await Tortoise.close_connections()


@dataclass
class SentMessage:
    chat_id: object
    text: str
    button_url: Optional[str] = None
    reply_to: Optional[int] = None


class FakeChatClient(ChatClient):
    """
    Recording chat client.

    Chats listed in fail_chats raise on send, to exercise best-effort paths.
    """

    def __init__(self):
        self.sent: list[SentMessage] = []
        self.forwards: list[tuple] = []
        self.fail_chats: set = set()
        self._next_id = 1000

    async def send_message(self, chat_id, text, button_url=None, reply_to=None):
        if chat_id in self.fail_chats:
            raise RuntimeError(f"chat {chat_id} unreachable")
        self.sent.append(SentMessage(chat_id, text, button_url, reply_to))
        self._next_id += 1
        return self._next_id

    async def forward_to_channel(self, from_chat_id, channel_id, message_id):
        self.forwards.append((from_chat_id, channel_id, message_id))
        self._next_id += 1
        return self._next_id

    def texts(self, chat_id) -> list[str]:
        return [m.text for m in self.sent if m.chat_id == chat_id]


class MockWebSocket:
    """Mock WebSocket session handle for registry tests."""

    def __init__(self):
        self.sent_texts = []

    async def send_text(self, text: str):
        self.sent_texts.append(text)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        base_url="https://bridge.example.com/",
        port=8443,
        hash_length=10,
        log_channel_id="",
        notify_timeout=0.5,
        list_page_size=2,
    )


@pytest.fixture
def chat() -> FakeChatClient:
    return FakeChatClient()


@pytest.fixture
def fanout() -> FanoutRegistry:
    return FanoutRegistry(send_timeout=0.5)


@pytest.fixture
def make_profile():
    """
    Factory fixture for sender profiles; chat_id defaults to user_id as in
    private chats.
    """

    def _make_profile(user_id: int, **kwargs) -> Profile:
        kwargs.setdefault("chat_id", user_id)
        kwargs.setdefault("first_name", f"User{user_id}")
        return Profile(user_id=user_id, **kwargs)

    return _make_profile


@pytest_asyncio.fixture
async def bridge(db, settings, chat, fanout):
    """Orchestrator wired to the fake chat client and an isolated registry."""
    orchestrator = build_orchestrator(settings, chat, fanout)
    yield orchestrator
    await orchestrator.drain()
