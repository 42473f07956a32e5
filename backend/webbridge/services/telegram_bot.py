# Telegram adapter via python-telegram-bot (v20+).
# Uses long-polling to receive updates and the bot API to send.
#
# Config keys (environment, see webbridge.config):
#   BOT_TOKEN      – Telegram bot token from @BotFather (required)
#   LOG_CHANNEL_ID – Audit channel receiving a copy of every media message
#   DEBUG_MODE     – Log every inbound update at DEBUG level

import logging
from typing import Optional

from telegram import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    ReplyParameters,
    Update,
)
from telegram.constants import ChatType
from telegram.ext import (
    Application,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    TypeHandler,
    filters,
)

from webbridge.config import Settings
from webbridge.core.chat_client import ChatClient, ChatTarget
from webbridge.core.pubsub import FanoutRegistry
from webbridge.schemas.events import CommandEvent, MediaEvent, Profile, StartEvent
from webbridge.services.bridge import BridgeOrchestrator, build_orchestrator
from webbridge.services.media import descriptor_from_message, extract_link

logger = logging.getLogger("uvicorn.error")

ADMIN_COMMANDS = ["authorize", "deauthorize", "listusers", "userinfo"]

# Anything that may carry playable media, or a link standing in for it
MEDIA_FILTER = (
    filters.ATTACHMENT
    | filters.Entity("url")
    | filters.Entity("text_link")
    | filters.CaptionEntity("url")
    | filters.CaptionEntity("text_link")
) & ~filters.COMMAND

STREAM_BUTTON_TEXT = "STREAMING"


class TelegramChatClient(ChatClient):
    """ChatClient backed by a python-telegram-bot Bot."""

    def __init__(self, bot):
        self._bot = bot

    async def send_message(
        self,
        chat_id: ChatTarget,
        text: str,
        button_url: Optional[str] = None,
        reply_to: Optional[int] = None,
    ) -> Optional[int]:
        markup = None
        if button_url:
            markup = InlineKeyboardMarkup([[InlineKeyboardButton(STREAM_BUTTON_TEXT, url=button_url)]])
        reply = ReplyParameters(message_id=reply_to) if reply_to else None
        msg = await self._bot.send_message(
            chat_id=chat_id,
            text=text,
            reply_markup=markup,
            reply_parameters=reply,
        )
        return msg.message_id

    async def forward_to_channel(self, from_chat_id: int, channel_id: ChatTarget, message_id: int) -> int:
        msg = await self._bot.forward_message(
            chat_id=channel_id,
            from_chat_id=from_chat_id,
            message_id=message_id,
        )
        return msg.message_id


def profile_from_update(update: Update) -> Profile:
    user = update.effective_user
    chat = update.effective_chat
    return Profile(
        user_id=user.id,
        chat_id=chat.id,
        first_name=user.first_name or "",
        last_name=user.last_name or "",
        username=user.username,
    )


def media_event_from_update(update: Update) -> MediaEvent:
    """Resolve the media descriptor (or fallback link) carried by an update."""
    msg = update.effective_message
    media = descriptor_from_message(msg)
    link = extract_link(msg) if media is None else None
    return MediaEvent(
        profile=profile_from_update(update),
        message_id=msg.message_id,
        media=media,
        link=link,
        is_forwarded=getattr(msg, "forward_origin", None) is not None,
        is_private=update.effective_chat.type == ChatType.PRIVATE,
    )


class TelegramBridgeBot:
    """
    Owns the python-telegram-bot Application and feeds its updates into the
    bridge orchestrator.
    """

    def __init__(self, settings: Settings, registry: FanoutRegistry):
        self.settings = settings
        self._app: Application = Application.builder().token(settings.bot_token).build()
        self.client = TelegramChatClient(self._app.bot)
        self.orchestrator: BridgeOrchestrator = build_orchestrator(settings, self.client, registry)
        self._register_handlers()

    def _register_handlers(self) -> None:
        app = self._app
        if self.settings.debug_mode:
            app.add_handler(TypeHandler(Update, self._log_update), group=-1)
        app.add_handler(CommandHandler("start", self._on_start))
        app.add_handler(CommandHandler(ADMIN_COMMANDS, self._on_command))
        app.add_handler(MessageHandler(MEDIA_FILTER, self._on_media))
        app.add_error_handler(self._on_error)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        await self._app.initialize()
        await self._app.start()
        await self._app.updater.start_polling(allowed_updates=Update.ALL_TYPES)
        logger.info("[telegram] polling started as @%s", self._app.bot.username)

    async def stop(self) -> None:
        if self._app.updater and self._app.updater.running:
            await self._app.updater.stop()
        if self._app.running:
            await self._app.stop()
        await self._app.shutdown()
        await self.orchestrator.drain()
        logger.info("[telegram] stopped")

    # ------------------------------------------------------------------
    # Receive
    # ------------------------------------------------------------------

    async def _on_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if not user or user.is_bot:
            return
        logger.info("[telegram] /start from %s (ID: %s) in chat %s",
                    user.first_name, user.id, update.effective_chat.id)
        await self.orchestrator.handle_start(StartEvent(profile=profile_from_update(update)))

    async def _on_command(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        msg = update.effective_message
        if not msg or not msg.text or not update.effective_user:
            return
        # "/authorize@MyBot 42" -> "authorize"
        command = msg.text.split()[0][1:].split("@")[0].lower()
        event = CommandEvent(
            profile=profile_from_update(update),
            command=command,
            args=list(context.args or []),
        )
        await self.orchestrator.handle_command(event)

    async def _on_media(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if not update.effective_message or not update.effective_user:
            return
        await self.orchestrator.handle_media(media_event_from_update(update))

    async def _log_update(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        msg = update.effective_message
        user = update.effective_user
        if msg is None or user is None:
            logger.debug("[telegram] update %s without message", update.update_id)
            return
        logger.debug("[telegram] message %s from %s %s (ID: %s, @%s) in chat %s",
                     msg.message_id, user.first_name, user.last_name or "", user.id,
                     user.username or "N/A", update.effective_chat.id)
        if getattr(msg, "forward_origin", None) is not None:
            logger.debug("[telegram] forwarded message, origin date %s", msg.forward_origin.date)
        if msg.text:
            preview = msg.text if len(msg.text) <= 100 else msg.text[:100] + "..."
            logger.debug("[telegram] text: %r", preview)
        if msg.effective_attachment:
            logger.debug("[telegram] attachment: %s", type(msg.effective_attachment).__name__)

    async def _on_error(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        logger.error("[telegram] error while handling update %r", update, exc_info=context.error)
