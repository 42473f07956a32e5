# webbridge/core/authz.py
"""
Authorization state machine.

    Unregistered -> Registered -> Authorized -> Admin

- register() creates Registered users; the very first user becomes Admin
  (bootstrap rule)
- authorize() / deauthorize() are admin-only; deauthorize always lands in
  Registered, dropping admin rights too
- Notifications triggered by these transitions are detached and best-effort
"""
import asyncio
import logging
from dataclasses import dataclass

from webbridge.core.errors import NotFound, PermissionDenied
from webbridge.core.notify import Notifier
from webbridge.core.user_store import UserStore
from webbridge.models.user import User
from webbridge.schemas.events import Profile

logger = logging.getLogger("uvicorn.error")

SERVICE_NAME = "WebBridge"


@dataclass(frozen=True)
class Access:
    """Result of check_access()."""
    authorized: bool
    is_admin: bool


def new_user_notice(user: User) -> str:
    name = " ".join(p for p in (user.first_name, user.last_name) if p)
    who = f"@{user.username} ({name})" if user.username else name
    return (
        f"A new user has joined: {who}\n"
        f"ID: {user.user_id}\n\n"
        f"Use /authorize {user.user_id} to grant access "
        f"or /authorize {user.user_id} admin to grant admin rights."
    )


class AuthorizationService:
    def __init__(self, store: UserStore, notifier: Notifier):
        self._store = store
        self._notifier = notifier
        # Single-writer point for registration; the store's transactional
        # insert-if-first backs this up across processes.
        self._register_lock = asyncio.Lock()

    async def register(self, profile: Profile) -> User:
        """
        Idempotently register a user.

        Existing users are returned unchanged. A new user is Registered
        (unauthorized) unless they are the first user ever, in which case
        they become admin. Admins are notified about every other newcomer in
        the background.

        Raises:
            StorageError: persistence failed; nothing was registered
        """
        async with self._register_lock:
            user, created = await self._store.create_user(profile)

        if not created:
            logger.info("[authz] user %s already registered (authorized=%s admin=%s)",
                        user.user_id, user.is_authorized, user.is_admin)
            return user

        if user.is_admin:
            logger.warning("[authz] user %s is the first user and was granted admin rights", user.user_id)
        else:
            logger.info("[authz] registered new user %s", user.user_id)
            self._notifier.spawn(self._notify_admins(user), label=f"admin notice for {user.user_id}")
        return user

    async def _notify_admins(self, newcomer: User) -> None:
        admins = await self._store.list_admins()
        text = new_user_notice(newcomer)
        recipients = [a for a in admins if a.user_id != newcomer.user_id]
        # Each send is bounded and isolated; one failing admin never blocks others
        await asyncio.gather(*(self._notifier.send(a.chat_id, text) for a in recipients))

    async def is_first_user(self) -> bool:
        return await self._store.is_first_user()

    async def check_access(self, user_id: int) -> Access:
        user = await self._store.get_user(user_id)
        if user is None:
            return Access(authorized=False, is_admin=False)
        return Access(authorized=user.is_authorized, is_admin=user.is_admin)

    async def require_admin(self, acting_user_id: int) -> None:
        if not (await self.check_access(acting_user_id)).is_admin:
            logger.info("[authz] user %s denied admin action", acting_user_id)
            raise PermissionDenied("admin rights required")

    async def authorize(self, acting_admin_id: int, target_user_id: int, grant_admin: bool = False) -> None:
        """
        Raises:
            PermissionDenied: acting user is not an admin (checked first)
            NotFound: target user does not exist
            StorageError: persistence failed
        """
        await self.require_admin(acting_admin_id)
        if not await self._store.set_authorization(target_user_id, authorized=True, admin=grant_admin):
            raise NotFound(f"User {target_user_id} not found.")
        logger.info("[authz] user %s authorized by %s (admin=%s)", target_user_id, acting_admin_id, grant_admin)

        suffix = " as an admin" if grant_admin else ""
        self._notifier.spawn(
            self._notify_user(target_user_id, f"You have been authorized{suffix} to use {SERVICE_NAME}!"),
            label=f"authorize notice for {target_user_id}",
        )

    async def deauthorize(self, acting_admin_id: int, target_user_id: int) -> None:
        """Same contract as authorize(); clears both flags."""
        await self.require_admin(acting_admin_id)
        if not await self._store.set_authorization(target_user_id, authorized=False, admin=False):
            raise NotFound(f"User {target_user_id} not found.")
        logger.info("[authz] user %s deauthorized by %s", target_user_id, acting_admin_id)

        self._notifier.spawn(
            self._notify_user(target_user_id, f"You have been deauthorized from using {SERVICE_NAME}."),
            label=f"deauthorize notice for {target_user_id}",
        )

    async def _notify_user(self, user_id: int, text: str) -> None:
        user = await self._store.get_user(user_id)
        if user is None:
            return
        await self._notifier.send(user.chat_id, text)
