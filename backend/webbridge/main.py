# webbridge/main.py
import logging
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from webbridge.config import settings
from webbridge.core.db import init_db, close_db
from webbridge.core.pubsub import registry

from webbridge.api.v1.routers.ws_media import router as ws_media_router
from webbridge.api.v1.routers.player import router as player_router

from webbridge.services.telegram_bot import TelegramBridgeBot

logger = logging.getLogger("uvicorn.error")

app = FastAPI(title=settings.APP_NAME)

# CORS for web players served from other origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_bot: Optional[TelegramBridgeBot] = None

@app.on_event("startup")
async def on_startup():
    global _bot
    # Create tables on a fresh SQLite file; Aerich handles later migrations
    await init_db(generate_schemas=True)
    if not settings.bot_token:
        logger.warning("[startup] BOT_TOKEN not set -> Telegram bot disabled, web side only.")
        return
    _bot = TelegramBridgeBot(settings, registry)
    await _bot.start()
    logger.info("[startup] entry pages served at %s/<chat_id>", settings.base_url)

@app.on_event("shutdown")
async def on_shutdown():
    global _bot
    if _bot is not None:
        await _bot.stop()
        _bot = None
    await close_db()

@app.get("/healthz")
def healthz():
    return {"ok": True, "sessions": registry.session_count()}

# WebSocket
app.include_router(ws_media_router)

# Catch-all /{chat_id} entry page goes last so it never shadows other routes
app.include_router(player_router)
