# webbridge/core/user_store.py
"""
Authorization store adapter.
Exposes user authorization queries and mutations over the Tortoise User
model. Every ORM failure is re-raised as StorageError so callers can tell
"storage is down" apart from "user does not exist" (None / False results).
"""
import functools
import logging
from typing import List, Optional, Tuple

from tortoise.exceptions import BaseORMException
from tortoise.transactions import in_transaction

from webbridge.core.errors import StorageError
from webbridge.models.user import User
from webbridge.schemas.events import Profile

logger = logging.getLogger("uvicorn.error")


def _storage_errors(fn):
    """Translate ORM exceptions raised by fn into StorageError."""
    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except BaseORMException as e:
            raise StorageError(f"{fn.__name__} failed: {e}") from e
    return wrapper


class UserStore:
    """Persistence adapter for bridge users."""

    @_storage_errors
    async def get_user(self, user_id: int) -> Optional[User]:
        return await User.get_or_none(user_id=user_id)

    @_storage_errors
    async def get_user_by_chat(self, chat_id: int) -> Optional[User]:
        return await User.filter(chat_id=chat_id).first()

    @_storage_errors
    async def store_user(self, profile: Profile, is_authorized: bool, is_admin: bool) -> User:
        """Insert a user with explicit flags (admin implies authorized)."""
        return await User.create(
            user_id=profile.user_id,
            chat_id=profile.chat_id,
            first_name=profile.first_name,
            last_name=profile.last_name,
            username=profile.username,
            is_authorized=is_authorized or is_admin,
            is_admin=is_admin,
        )

    @_storage_errors
    async def create_user(self, profile: Profile) -> Tuple[User, bool]:
        """
        Insert-if-absent with the bootstrap rule applied atomically.

        Inside one transaction: return the existing row if there is one,
        otherwise count users and insert; the very first user is created as
        authorized admin.

        Returns:
            (user, created)
        """
        async with in_transaction() as conn:
            existing = await User.filter(user_id=profile.user_id).using_db(conn).first()
            if existing is not None:
                return existing, False
            first = await User.all().using_db(conn).count() == 0
            user = await User.create(
                using_db=conn,
                user_id=profile.user_id,
                chat_id=profile.chat_id,
                first_name=profile.first_name,
                last_name=profile.last_name,
                username=profile.username,
                is_authorized=first,
                is_admin=first,
            )
            return user, True

    @_storage_errors
    async def set_authorization(self, user_id: int, authorized: bool, admin: bool) -> bool:
        """
        Update both flags. Returns False when the user does not exist.
        """
        updated = await User.filter(user_id=user_id).update(
            is_authorized=authorized or admin,
            is_admin=admin,
        )
        return updated > 0

    @_storage_errors
    async def count_users(self) -> int:
        return await User.all().count()

    @_storage_errors
    async def list_users(self, offset: int, limit: int) -> List[User]:
        return await User.all().order_by("created_at", "id").offset(offset).limit(limit)

    @_storage_errors
    async def list_admins(self) -> List[User]:
        return await User.filter(is_admin=True).order_by("created_at", "id")

    @_storage_errors
    async def is_first_user(self) -> bool:
        return not await User.all().exists()
