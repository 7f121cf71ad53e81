"""WebSocket endpoint — real-time board events for frontend clients.

Learn: Each client connects to /ws/boards/{board_id}?token=JWT. The handler:
1. Authenticates via the ACCESS token in the query param
2. Checks the caller may read the board (same rule as GET /boards/{id})
3. Registers the socket in the ConnectionRegistry and sends a
   {"type": "hello"} frame listing who else is watching the board
4. Forwards every message on the board's Redis channel to the client
5. Answers {"type": "ping"} with {"type": "pong"}

Close codes: 4001 = bad or missing token, or a missing or banned user;
4004 = board not found.
Without Redis the socket still connects; it just never receives events.
"""

import asyncio
import json

import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.websockets import WebSocketState

from trellone.auth.dependencies import load_user
from trellone.auth.jwt import InvalidTokenError, TokenKind, verify_token
from trellone.auth.permissions import can_read
from trellone.constants import UserVerifyStatus
from trellone.db.engine import get_db
from trellone.realtime.pubsub import board_channel, get_redis, redis_available
from trellone.realtime.registry import ConnectionRegistry, registry
from trellone.services.board_service import BoardService

logger = structlog.get_logger()
router = APIRouter()


def presence_message(reg: ConnectionRegistry, board_id: str) -> dict:
    return {"type": "hello", "online_user_ids": sorted(reg.online_users(board_id))}


async def first_completed(*coros) -> list[BaseException]:
    """Run coroutines until one finishes, then cancel and reap the rest.

    Returns the exceptions raised by the ones that finished.
    """
    tasks = [asyncio.create_task(c) for c in coros]
    try:
        done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
        pending = [t for t in tasks if not t.done()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
    return [
        t.exception() for t in done if not t.cancelled() and t.exception() is not None
    ]


@router.websocket("/ws/boards/{board_id}")
async def board_websocket(
    websocket: WebSocket,
    board_id: str,
    db: AsyncSession = Depends(get_db),
):
    """WebSocket endpoint for real-time board events.

    Learn: Two concurrent tasks run:
    1. Redis listener — reads from pub/sub, sends to WebSocket
    2. Client listener — reads from WebSocket (ping/pong keepalive)

    When either side disconnects, both tasks are cancelled cleanly.
    """
    # ── Authentication ──────────────────────────────────────
    token = websocket.query_params.get("token")
    if not token:
        await websocket.close(code=4001, reason="Access token is required")
        return
    try:
        payload = verify_token(token, TokenKind.ACCESS)
    except InvalidTokenError as e:
        await websocket.close(code=4001, reason=e.reason)
        return

    user = await load_user(db, payload.user_id)
    if user is None or user.verify_status == UserVerifyStatus.BANNED:
        await websocket.close(code=4001, reason="User not found or banned")
        return

    board = await BoardService(db).get_board(board_id)
    if board is None or not can_read(board, payload.user_id):
        await websocket.close(code=4004, reason="Board not found")
        return
    # Nothing below needs the session; don't pin a connection for hours
    await db.close()

    # ── Connection accepted ─────────────────────────────────
    await websocket.accept()
    conn = await registry.add(payload.user_id, str(board.id), websocket)
    logger.info("realtime.connected", user_id=payload.user_id, board_id=str(board.id))

    pubsub = None
    channel = board_channel(str(board.id))
    if redis_available():
        pubsub = get_redis().pubsub()
        await pubsub.subscribe(channel)

    async def redis_listener():
        """Forward Redis messages to the WebSocket client."""
        if pubsub is None:
            await asyncio.Event().wait()  # idle until cancelled
        async for message in pubsub.listen():
            if message["type"] == "message":
                await websocket.send_text(message["data"])

    async def client_listener():
        """Keepalive: reply to pings, ignore anything else."""
        try:
            while True:
                data = await websocket.receive_text()
                try:
                    msg = json.loads(data)
                except json.JSONDecodeError:
                    continue
                if isinstance(msg, dict) and msg.get("type") == "ping":
                    await websocket.send_text(json.dumps({"type": "pong"}))
        except WebSocketDisconnect:
            pass

    try:
        await websocket.send_text(json.dumps(presence_message(registry, str(board.id))))
        # Usually ends with the client disconnecting
        for error in await first_completed(redis_listener(), client_listener()):
            logger.warning(
                "realtime.listener_failed", board_id=str(board.id), error=str(error)
            )
    finally:
        await registry.remove(conn)
        if pubsub is not None:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
        logger.info("realtime.disconnected", user_id=payload.user_id, board_id=str(board.id))
