"""
Pawmatch — Match Chat API

REST endpoints for history and sending, plus a WebSocket that streams the
conversation live.

WebSocket protocol (JSON frames):

  server → client  {"type": "history", "messages": [...]}   once, on connect
  server → client  {"type": "message", "message": {...}}    each live insert
  client → server  {"content": "..."}                       send a message
  server → client  {"type": "error", "detail": "..."}       rejected send

Sent messages are not echoed directly; they arrive as ``message`` frames
through the change feed like everyone else's.
"""

from __future__ import annotations

import asyncio
import uuid

import structlog
from fastapi import (
    APIRouter,
    Depends,
    Query,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user_id, unwrap_or_raise
from app.database import get_db, get_session_factory
from app.schemas.message import MessageCreate, MessageRead
from app.services.chat_service import ChatService, ChatSession
from app.services.match_service import MatchService

logger = structlog.get_logger("pawmatch.api.chat")

router = APIRouter()

_chat_service: ChatService | None = None
_match_service = MatchService()


def _get_chat_service() -> ChatService:
    global _chat_service
    if _chat_service is None:
        _chat_service = ChatService()
    return _chat_service


# ──────────────────────────────────────────────────────────────────────────────
# GET /{match_id}/messages — Full history
# ──────────────────────────────────────────────────────────────────────────────

@router.get(
    "/{match_id}/messages",
    response_model=list[MessageRead],
    summary="Message history for a match",
)
async def get_messages(
    match_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> list[MessageRead]:
    unwrap_or_raise(await _match_service.get_match(user_id, match_id, db))
    return unwrap_or_raise(await _get_chat_service().get_history(match_id, db))


# ──────────────────────────────────────────────────────────────────────────────
# POST /{match_id}/messages — Send
# ──────────────────────────────────────────────────────────────────────────────

@router.post(
    "/{match_id}/messages",
    response_model=MessageRead,
    status_code=status.HTTP_201_CREATED,
    summary="Send a message",
)
async def send_message(
    match_id: uuid.UUID,
    payload: MessageCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
) -> MessageRead:
    unwrap_or_raise(await _match_service.get_match(user_id, match_id, db))
    return unwrap_or_raise(
        await _get_chat_service().send(match_id, user_id, payload.content, db)
    )


# ──────────────────────────────────────────────────────────────────────────────
# WS /{match_id}/ws — Live chat
# ──────────────────────────────────────────────────────────────────────────────

async def _pump(websocket: WebSocket, session: ChatSession) -> None:
    async for message in session.updates():
        await websocket.send_json(
            {"type": "message", "message": message.model_dump(mode="json")}
        )


@router.websocket("/{match_id}/ws")
async def chat_socket(
    websocket: WebSocket,
    match_id: uuid.UUID,
    user_id: uuid.UUID = Query(...),
) -> None:
    """Open a chat session for the lifetime of the socket.

    Database sessions are short-lived: one for the participation check, one
    per history fetch and one per send.  An open socket holds no connection
    while it waits for traffic.
    """
    log = logger.bind(match_id=str(match_id), user_id=str(user_id))
    chat_service = _get_chat_service()
    factory = get_session_factory()

    async with factory() as db:
        found = await _match_service.get_match(user_id, match_id, db)
    if not found.ok:
        log.info("chat_socket_rejected", reason=found.error.detail)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    opened = await chat_service.open(match_id, session_factory=factory)
    if not opened.ok:
        await websocket.send_json({"type": "error", "detail": opened.error.detail})
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return
    session = opened.value
    log.info("chat_socket_open", history=len(session.history))

    pump: asyncio.Task | None = None
    try:
        # History goes out before any live frame.
        await websocket.send_json(
            {
                "type": "history",
                "messages": [m.model_dump(mode="json") for m in session.history],
            }
        )
        pump = asyncio.create_task(_pump(websocket, session))
        while True:
            try:
                data = await websocket.receive_json()
            except ValueError:
                await websocket.send_json(
                    {"type": "error", "detail": "Frames must be JSON objects."}
                )
                continue
            content = data.get("content", "") if isinstance(data, dict) else ""
            async with factory() as send_db:
                sent = await chat_service.send(match_id, user_id, content, send_db)
            if not sent.ok:
                await websocket.send_json(
                    {"type": "error", "detail": sent.error.detail}
                )
    except WebSocketDisconnect:
        log.info("chat_socket_disconnected")
    finally:
        await session.close()
        if pump is not None:
            pump.cancel()
            try:
                await pump
            except (asyncio.CancelledError, WebSocketDisconnect):
                pass
