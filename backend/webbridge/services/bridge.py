"""
Bridge orchestrator

Drives one inbound event end to end:

    event -> authorization -> [media] capability URL -> chat reply
                                                      -> fan-out publish

Admin commands are permission-checked and otherwise read/format the user
store. Every error from the core is turned into reply text here; nothing
below this layer talks to the user directly.
"""
import ipaddress
import logging
import math
from typing import Awaitable, Optional
from urllib.parse import urlencode, urlparse

from webbridge.config import Settings
from webbridge.core import addressing
from webbridge.core.authz import AuthorizationService
from webbridge.core.chat_client import ChatClient, ChatTarget
from webbridge.core.errors import NotFound, PermissionDenied, StorageError, UnsupportedMedia
from webbridge.core.notify import Notifier
from webbridge.core.pubsub import FanoutRegistry
from webbridge.core.user_store import UserStore
from webbridge.models.user import User
from webbridge.schemas.events import CommandEvent, MediaEvent, Profile, StartEvent
from webbridge.schemas.media import MediaDescriptor, PushPayload
from webbridge.services.media import descriptor_from_link, looks_like_file_hosting

logger = logging.getLogger("uvicorn.error")

NOT_AUTHORIZED_MSG = (
    "You are not authorized to use this bot yet. Please ask one of the administrators "
    "to authorize you and wait until you receive a confirmation."
)
ADMIN_ONLY_MSG = "You are not authorized to perform this action."
GENERIC_FAILURE_MSG = "Something went wrong while processing your request. Please try again later."
UNSUPPORTED_MSG = "Unsupported media type. Send an audio, video, photo or document, or a direct media link."
FILE_HOSTING_MSG = (
    "Note: This appears to be a file hosting page. If the media doesn't play, please:\n"
    "• Send the file directly (not forwarded)\n"
    "• Or provide a direct download link"
)
WELCOME_MSG = (
    "Hello {name}, I am your bridge between Telegram and the Web!\n\n"
    "You can forward or directly upload media files (audio, video, photos or documents) to me. "
    "I will instantly generate a streaming link and play it on your web player:\n"
    "{entry_url}"
)


# ------------------------------------------------------------------------------
# Proxy gate
# ------------------------------------------------------------------------------
def _is_loopback_host(host: Optional[str]) -> bool:
    if not host:
        return False
    if host == "localhost" or host.endswith(".localhost"):
        return True
    try:
        return ipaddress.ip_address(host).is_loopback
    except ValueError:
        return False


def is_loopback_url(url: str) -> bool:
    """True when the URL points at this machine (unreachable from a remote browser)."""
    return _is_loopback_host(urlparse(url).hostname)


def wrap_if_needed(url: str, base_url: str, port: int) -> str:
    """
    Route third-party http(s) URLs through the same-origin proxy.

    URLs addressed to this service (base URL or port) and loopback URLs pass
    through unchanged, as does anything that is not http(s).
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        return url
    if url.startswith(base_url.rstrip("/")):
        return url
    try:
        if parsed.port == port:
            return url
    except ValueError:
        # Malformed port; treat as third-party
        pass
    if _is_loopback_host(parsed.hostname):
        return url
    return "/proxy?" + urlencode({"url": url})


def _channel_target(value: str) -> ChatTarget:
    return int(value) if value.lstrip("-").isdigit() else value


def _username(user) -> str:
    return f"@{user.username}" if user.username else "N/A"


class BridgeOrchestrator:
    def __init__(
        self,
        settings: Settings,
        authz: AuthorizationService,
        store: UserStore,
        registry: FanoutRegistry,
        notifier: Notifier,
    ):
        self._settings = settings
        self._authz = authz
        self._store = store
        self._registry = registry
        self._notifier = notifier

    @property
    def client(self) -> ChatClient:
        return self._notifier.client

    async def drain(self) -> None:
        """Wait for background notifications and audit forwards to finish."""
        await self._notifier.drain()

    # -------- entry points --------
    async def handle_start(self, event: StartEvent) -> None:
        await self._guard(event.profile, self._on_start(event))

    async def handle_media(self, event: MediaEvent) -> None:
        if not event.is_private:
            logger.info("[bridge] chat %s is not a private chat, media ignored", event.profile.chat_id)
            return
        await self._guard(event.profile, self._on_media(event))

    async def handle_command(self, event: CommandEvent) -> None:
        handlers = {
            "authorize": self._cmd_authorize,
            "deauthorize": self._cmd_deauthorize,
            "listusers": self._cmd_list_users,
            "userinfo": self._cmd_user_info,
        }
        handler = handlers.get(event.command)
        if handler is None:
            logger.debug("[bridge] unknown command /%s", event.command)
            return
        logger.info("[bridge] /%s from user %s", event.command, event.profile.user_id)
        await self._guard(event.profile, handler(event))

    async def _guard(self, profile: Profile, work: Awaitable) -> None:
        """Resolve core errors into reply text for the requesting chat."""
        try:
            await work
        except PermissionDenied:
            await self._reply(profile.chat_id, ADMIN_ONLY_MSG)
        except NotFound as e:
            await self._reply(profile.chat_id, str(e))
        except UnsupportedMedia:
            await self._reply(profile.chat_id, UNSUPPORTED_MSG)
        except StorageError:
            logger.exception("[bridge] storage failure while handling chat %s", profile.chat_id)
            await self._reply(profile.chat_id, GENERIC_FAILURE_MSG)

    async def _reply(self, chat_id: ChatTarget, text: str, button_url: Optional[str] = None) -> bool:
        try:
            await self.client.send_message(chat_id, text, button_url=button_url)
            return True
        except Exception:
            logger.exception("[bridge] failed to send reply to chat %s", chat_id)
            return False

    # -------- /start --------
    async def _on_start(self, event: StartEvent) -> None:
        profile = event.profile
        user = await self._authz.register(profile)
        entry = addressing.entry_url(self._settings.base_url, profile.chat_id)
        name = profile.first_name or profile.display_name
        await self._reply(profile.chat_id, WELCOME_MSG.format(name=name, entry_url=entry))
        if not user.is_authorized:
            await self._reply(profile.chat_id, NOT_AUTHORIZED_MSG)

    # -------- media --------
    def file_url(self, message_id: int, media: MediaDescriptor) -> str:
        token = addressing.token_for(media, self._settings.hash_length)
        return addressing.build_url(self._settings.base_url, message_id, token)

    def wrap_if_needed(self, url: str) -> str:
        return wrap_if_needed(url, self._settings.base_url, self._settings.port)

    async def _on_media(self, event: MediaEvent) -> None:
        profile = event.profile
        access = await self._authz.check_access(profile.user_id)
        if not access.authorized:
            logger.info("[bridge] user %s not authorized, media refused", profile.user_id)
            await self._reply(profile.chat_id, NOT_AUTHORIZED_MSG)
            return

        kind = "forwarded message" if event.is_forwarded else "direct upload"
        logger.info("[bridge] media %s from user %s in chat %s", kind, profile.user_id, profile.chat_id)

        if self._settings.audit_enabled:
            self._notifier.spawn(self._audit_forward(event), label=f"audit forward of msg {event.message_id}")

        hosting_hint = False
        if event.media is not None:
            media = event.media
            url = self.file_url(event.message_id, media)
        elif event.link:
            media = descriptor_from_link(event.link)
            url = event.link
            hosting_hint = looks_like_file_hosting(url)
        else:
            raise UnsupportedMedia(f"message {event.message_id} carries no media")

        logger.info("[bridge] generated URL for msg %s in chat %s: %s", event.message_id, profile.chat_id, url)

        # Loopback links are useless as buttons on the user's device
        button = None if is_loopback_url(url) else url
        await self._reply(profile.chat_id, url, button_url=button)
        if hosting_hint:
            await self._reply(profile.chat_id, FILE_HOSTING_MSG)

        payload = PushPayload.from_descriptor(self.wrap_if_needed(url), media)
        await self._registry.publish(profile.chat_id, payload.model_dump())

    async def _audit_forward(self, event: MediaEvent) -> None:
        channel = _channel_target(self._settings.log_channel_id)
        new_id = await self._notifier.forward(event.profile.chat_id, channel, event.message_id)
        if new_id is None:
            return
        p = event.profile
        info = "\n".join(
            [
                "Media from user:",
                f"ID: {p.user_id}",
                f"Name: {p.first_name} {p.last_name}".rstrip(),
                f"Username: {_username(p)}",
            ]
        )
        await self._notifier.send(channel, info, reply_to=new_id)

    # -------- admin commands --------
    @staticmethod
    def _target_id(event: CommandEvent) -> Optional[int]:
        try:
            return int(event.args[0])
        except (IndexError, ValueError):
            return None

    async def _cmd_authorize(self, event: CommandEvent) -> None:
        chat_id = event.profile.chat_id
        await self._authz.require_admin(event.profile.user_id)
        if not event.args:
            await self._reply(chat_id, "Usage: /authorize <user_id> [admin]")
            return
        target = self._target_id(event)
        if target is None:
            await self._reply(chat_id, "Invalid user ID.")
            return
        grant_admin = len(event.args) > 1 and event.args[1].lower() == "admin"
        await self._authz.authorize(event.profile.user_id, target, grant_admin=grant_admin)
        suffix = " as an admin" if grant_admin else ""
        await self._reply(chat_id, f"User {target} has been authorized{suffix}.")

    async def _cmd_deauthorize(self, event: CommandEvent) -> None:
        chat_id = event.profile.chat_id
        await self._authz.require_admin(event.profile.user_id)
        if not event.args:
            await self._reply(chat_id, "Usage: /deauthorize <user_id>")
            return
        target = self._target_id(event)
        if target is None:
            await self._reply(chat_id, "Invalid user ID.")
            return
        await self._authz.deauthorize(event.profile.user_id, target)
        await self._reply(chat_id, f"User {target} has been deauthorized.")

    async def _cmd_list_users(self, event: CommandEvent) -> None:
        await self._authz.require_admin(event.profile.user_id)
        page_size = self._settings.list_page_size
        page = 1
        if event.args and event.args[0].isdigit() and int(event.args[0]) > 0:
            page = int(event.args[0])

        total = await self._store.count_users()
        offset = (page - 1) * page_size
        users = await self._store.list_users(offset, page_size)
        if not users:
            await self._reply(event.profile.chat_id, "No users found or page is empty.")
            return

        lines = ["User List", ""]
        for i, u in enumerate(users, start=offset + 1):
            status = "Authorized" if u.is_authorized else "Not Authorized"
            admin = "Admin" if u.is_admin else "-"
            lines.append(
                f"{i}. ID:{u.user_id} {u.first_name} {u.last_name} ({_username(u)}) - Auth: {status} Admin: {admin}"
            )
        pages = math.ceil(total / page_size)
        lines.append("")
        lines.append(f"Page {page} of {pages} ({total} total users)")
        await self._reply(event.profile.chat_id, "\n".join(lines))

    async def _cmd_user_info(self, event: CommandEvent) -> None:
        chat_id = event.profile.chat_id
        await self._authz.require_admin(event.profile.user_id)
        if not event.args:
            await self._reply(chat_id, "Usage: /userinfo <user_id>")
            return
        target = self._target_id(event)
        if target is None:
            await self._reply(chat_id, "Invalid user ID.")
            return
        user = await self._store.get_user(target)
        if user is None:
            raise NotFound(f"User with ID {target} not found.")
        await self._reply(chat_id, format_user_details(user))


def format_user_details(user: User) -> str:
    joined = user.created_at.isoformat(sep=" ", timespec="seconds") if user.created_at else "unknown"
    return (
        "User Details:\n"
        f"ID: {user.user_id}\n"
        f"Chat ID: {user.chat_id}\n"
        f"First Name: {user.first_name} Last Name: {user.last_name}\n"
        f"Username: {_username(user)}\n"
        f"Status: {'Authorized' if user.is_authorized else 'Not Authorized'}\n"
        f"Admin: {'Yes' if user.is_admin else 'No'}\n"
        f"Joined: {joined}"
    )


def build_orchestrator(
    settings: Settings,
    client: ChatClient,
    registry: FanoutRegistry,
    store: Optional[UserStore] = None,
) -> BridgeOrchestrator:
    """Wire the core components around one chat client."""
    store = store or UserStore()
    notifier = Notifier(client, timeout=settings.notify_timeout)
    authz = AuthorizationService(store, notifier)
    return BridgeOrchestrator(settings, authz, store, registry, notifier)
