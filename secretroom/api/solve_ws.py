# secretroom/api/solve_ws.py
"""
Solve portal API (session-per-connection + WebSockets).

This module hosts one `SolveSession` per connected room view:
- WS `/api/ws/solve/{room_id}`: live SOLVE_STATE stream + SUBMIT/RELOAD/DISMISS_NOTICE commands
- GET `/api/solve/{room_id}/state`: one-shot snapshot for headless clients

Key design points:
- The session lives exactly as long as the socket; disconnect closes it (timer cancelled)
- Browser cookies are forwarded to the remote service so it sees the same user
- Commands run as tasks so the receive loop keeps reading; a second SUBMIT while one is
  pending hits the submitter's in-flight guard instead of queueing
- State pushes go through a per-connection queue drained by one sender task
"""

# -------------------- Standard library imports --------------------
import asyncio
import json
import logging
from typing import Callable

# -------------------- Third-party imports --------------------
from fastapi import APIRouter, HTTPException
from starlette.websockets import WebSocket

# -------------------- Local application imports --------------------
from secretroom.client.api import SecretRoomClient
from secretroom.config import settings
from secretroom.solve.session import SolveSession
from secretroom.solve.view import build_view

logger = logging.getLogger(__name__)

router = APIRouter(tags=["solve"])

# Live sessions (one per connected room view).
live_sessions: set[SolveSession] = set()
live_sessions_lock = asyncio.Lock()
# Client shutdowns waiting on in-flight requests of closed sessions.
_cleanup_tasks: set[asyncio.Task] = set()


def build_client(cookies: dict[str, str] | None = None) -> SecretRoomClient:
    return SecretRoomClient(cookies=cookies)


# Swappable so tests can point sessions at an `httpx.MockTransport`.
client_factory: Callable[[dict[str, str] | None], SecretRoomClient] = build_client


def parse_room_id(raw: str) -> int | None:
    try:
        room_id = int(raw)
    except (TypeError, ValueError):
        return None
    return room_id if room_id > 0 else None


async def close_all_sessions() -> int:
    """Close every live session (used on shutdown)."""
    async with live_sessions_lock:
        sessions = list(live_sessions)
        live_sessions.clear()
    for session in sessions:
        session.close()
    return len(sessions)


async def _heartbeat(
    ws: WebSocket, room_id: str, outbox: asyncio.Queue, last_pong: dict[str, float]
) -> None:
    """Queue a PING every interval; close the socket once PONGs stop arriving."""
    loop = asyncio.get_running_loop()
    while True:
        await asyncio.sleep(settings.heartbeat_interval_sec)
        now = loop.time()

        if now - last_pong["ts"] > settings.heartbeat_timeout_sec:
            logger.warning(f"Heartbeat timeout for room {room_id}, closing")
            try:
                await ws.close(code=1000)
            except RuntimeError as e:
                logger.debug(f"Socket for room {room_id} already closed: {e}")
            return

        # Through the sender task so a PING never interleaves with a state push.
        outbox.put_nowait({"type": "PING", "timestamp": now})


async def _pump(ws: WebSocket, outbox: asyncio.Queue) -> None:
    """Drain queued payloads to the socket in order."""
    while True:
        payload = await outbox.get()
        try:
            await ws.send_text(json.dumps(payload, ensure_ascii=False))
        except Exception as e:
            logger.debug(f"Failed to push solve state: {e}")
            break


async def _close_client_when_idle(pending: set[asyncio.Task], client: SecretRoomClient) -> None:
    # In-flight requests are not cancelled; the closed session ignores their results.
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)
    await client.aclose()


@router.websocket("/ws/solve/{room_id}")
async def solve_websocket(ws: WebSocket, room_id: str):
    """
    Per-room solve WebSocket.

    Flow:
    - Accept, create the session (cookies forwarded), start the initial meta load
    - Push SOLVE_STATE on every session change (loading, ticks, outcomes, notices)
    - Handle SUBMIT / RELOAD / DISMISS_NOTICE / REQUEST_STATE / PING / PONG
    - On disconnect: stop heartbeat + sender, close the session, close the client when idle
    """
    peer = ws.client.host if ws.client else None
    await ws.accept()

    outbox: asyncio.Queue = asyncio.Queue()
    client = client_factory(dict(ws.cookies))
    session = SolveSession(
        parse_room_id(room_id),
        client,
        listener=lambda s: outbox.put_nowait(build_view(s)),
    )

    async with live_sessions_lock:
        live_sessions.add(session)
        total = len(live_sessions)
    logger.info(f"Solve view opened for room {room_id} ip={peer}, live sessions: {total}")

    sender_task = asyncio.create_task(_pump(ws, outbox))
    last_pong = {"ts": asyncio.get_event_loop().time()}
    heartbeat_task = asyncio.create_task(_heartbeat(ws, room_id, outbox, last_pong))

    pending: set[asyncio.Task] = set()

    def _spawn(coro) -> None:
        task = asyncio.create_task(coro)
        pending.add(task)
        task.add_done_callback(pending.discard)

    _spawn(session.start())

    try:
        while True:
            try:
                data = await asyncio.wait_for(
                    ws.receive_text(), timeout=settings.ws_receive_timeout_sec
                )
            except asyncio.TimeoutError:
                logger.warning(f"WebSocket receive timeout for room {room_id}")
                break
            except Exception as e:
                logger.info(f"WebSocket closed for room {room_id}: {e}")
                break

            try:
                msg = json.loads(data) if isinstance(data, str) else data
            except json.JSONDecodeError:
                logger.debug(f"Invalid JSON from solve WS room {room_id}")
                continue
            if not isinstance(msg, dict):
                continue

            msg_type = msg.get("type")
            if msg_type == "PONG":
                last_pong["ts"] = asyncio.get_event_loop().time()
            elif msg_type == "PING":
                outbox.put_nowait({"type": "PONG", "timestamp": msg.get("timestamp")})
            elif msg_type == "SUBMIT":
                answer = msg.get("answer")
                _spawn(session.submit(answer if isinstance(answer, str) else ""))
            elif msg_type == "RELOAD":
                _spawn(session.reload())
            elif msg_type == "DISMISS_NOTICE":
                session.dismiss_notice()
            elif msg_type == "REQUEST_STATE":
                outbox.put_nowait(build_view(session))
            else:
                logger.debug(f"Unknown solve WS message type {msg_type!r} for room {room_id}")

    except Exception as e:
        logger.error(f"Solve WebSocket error for room {room_id}: {e}", exc_info=True)
    finally:
        heartbeat_task.cancel()
        sender_task.cancel()
        for task in (heartbeat_task, sender_task):
            try:
                await task
            except asyncio.CancelledError:
                pass

        session.close()
        async with live_sessions_lock:
            live_sessions.discard(session)
            remaining = len(live_sessions)
        logger.info(f"Solve view closed for room {room_id}, live sessions: {remaining}")

        cleanup = asyncio.create_task(_close_client_when_idle(set(pending), client))
        _cleanup_tasks.add(cleanup)
        cleanup.add_done_callback(_cleanup_tasks.discard)

        try:
            await ws.close()
        except Exception:
            pass


@router.get("/solve/{room_id}/state")
async def get_solve_state(room_id: str):
    """Load the room once and return its SOLVE_STATE snapshot (no live countdown)."""
    parsed = parse_room_id(room_id)
    if parsed is None:
        raise HTTPException(status_code=400, detail="invalid_room_id")

    client = client_factory(None)
    session = SolveSession(parsed, client)
    try:
        await session.start()
        return build_view(session)
    finally:
        session.close()
        await client.aclose()
