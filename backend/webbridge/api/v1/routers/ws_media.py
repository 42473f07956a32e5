import logging

from fastapi import APIRouter, Depends, WebSocket, status
from starlette.websockets import WebSocketDisconnect

from webbridge.api.v1.deps import ChatAccessChecker, get_chat_access_checker, get_registry
from webbridge.core.errors import StorageError
from webbridge.core.pubsub import FanoutRegistry

logger = logging.getLogger("uvicorn.error")

router = APIRouter()

@router.websocket("/ws/{chat_id}")
async def ws_media(
    ws: WebSocket,
    chat_id: int,
    registry: FanoutRegistry = Depends(get_registry),
    chat_allowed: ChatAccessChecker = Depends(get_chat_access_checker),
):
    """
    WebSocket endpoint through which a web player receives media pushes.

    Message flow:
    1. Client connects to /ws/{chat_id}
    2. Server checks that the chat belongs to an authorized user
       (otherwise closes with 1008 policy violation)
    3. Server registers the socket with the fan-out registry
    4. Server sends: {"type": "ready", "chatId": ...}
    5. Server pushes one JSON PushPayload per media message sent to the bot
    6. Client may send "ping"; server answers {"type": "pong"}

    Note:
        Only payloads published after registration are delivered; the socket
        is deregistered when the connection closes.
    """
    await ws.accept()
    try:
        allowed = await chat_allowed(chat_id)
    except StorageError:
        logger.exception("[ws_media] access check failed for chat %s", chat_id)
        await ws.close(code=status.WS_1011_INTERNAL_ERROR)
        return
    if not allowed:
        logger.info("[ws_media] chat %s is not authorized, closing", chat_id)
        await ws.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    registry.register(chat_id, ws)
    try:
        await ws.send_json({"type": "ready", "chatId": str(chat_id)})
        while True:
            raw = await ws.receive_text()
            if raw.strip().lower() == "ping":
                await ws.send_json({"type": "pong"})
    except WebSocketDisconnect:
        logger.info("[ws_media] chat %s disconnected", chat_id)
    finally:
        registry.deregister(chat_id, ws)
