# webbridge/api/v1/deps.py
from typing import Awaitable, Callable

from webbridge.core.pubsub import FanoutRegistry, registry
from webbridge.core.user_store import UserStore

# Callable deciding whether a chat's web sessions may connect
ChatAccessChecker = Callable[[int], Awaitable[bool]]


def get_registry() -> FanoutRegistry:
    """
    FastAPI dependency returning the process-wide fan-out registry.

    Tests override it through app.dependency_overrides to get an isolated
    registry.
    """
    return registry


async def _chat_is_authorized(chat_id: int) -> bool:
    user = await UserStore().get_user_by_chat(chat_id)
    return bool(user and user.is_authorized)


def get_chat_access_checker() -> ChatAccessChecker:
    """
    FastAPI dependency returning the access check used before a web session
    is registered: only chats owned by an authorized user may connect.

    Raises (from the returned callable):
        StorageError: the user store is unavailable
    """
    return _chat_is_authorized
