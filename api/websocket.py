"""
WebSocket：房間事件訂閱

URL: /ws/rooms/{code}

連線流程：
1. 驗證房間存在（不存在 -> close 4404）
2. 訂閱 topic rooms/{code}，送出 "connected"（附房間狀態快照）
3. sender task 把 hub 放進 queue 的事件依序送出
4. 接收迴圈只處理 ping -> pong，其他訊息忽略（所有動作都走 HTTP）
5. 斷線時取消 sender、取消訂閱
"""
import asyncio
import contextlib
import json
import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from database import get_db
from core.broadcaster import WebSocketHub, get_broadcaster, room_topic
from core.exceptions import RoomNotFound
from core.room_manager import RoomManager

router = APIRouter(tags=["websocket"])
logger = logging.getLogger(__name__)


async def _pump(ws: WebSocket, queue: asyncio.Queue) -> None:
    while True:
        event = await queue.get()
        await ws.send_json(event)


@router.websocket("/ws/rooms/{code}")
async def room_events(ws: WebSocket, code: str, db: Session = Depends(get_db)):
    try:
        state = await run_in_threadpool(RoomManager.get_room_state, db, code)
    except RoomNotFound:
        await ws.close(code=4404, reason="Room not found")
        return
    finally:
        # 連線期間不佔用 DB connection
        db.close()

    hub = get_broadcaster()
    if not isinstance(hub, WebSocketHub):
        # 測試用的 broadcaster 無法訂閱
        await ws.close(code=1011, reason="Subscriptions unavailable")
        return

    await ws.accept()
    topic = room_topic(state["code"])
    subscription = hub.subscribe(topic)
    _, queue = subscription
    queue.put_nowait({"type": "connected", "room": state})
    sender = asyncio.create_task(_pump(ws, queue))

    try:
        while True:
            raw = await ws.receive_text()
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if isinstance(data, dict) and data.get("type") == "ping":
                queue.put_nowait({"type": "pong"})

    except WebSocketDisconnect:
        pass
    finally:
        sender.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            try:
                await sender
            except Exception:
                logger.warning(f"Sender for {topic} failed", exc_info=True)
        hub.unsubscribe(topic, subscription)
        logger.info(f"WebSocket closed for {topic}")
