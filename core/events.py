"""
房間事件

所有廣播事件都是 dict，至少包含 type 與 roomCode，送到 rooms/{code} topic。

寫入操作用 queue_event() 把事件掛在 session 上，
@transactional 在 commit 成功後才呼叫 publish_pending_events() 送出；
rollback 時 discard_pending_events() 直接丟掉。
不牽涉狀態變更的事件（例如 REACTION）用 publish_event() 直接送。
"""
import enum
import time
import logging
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from core.broadcaster import get_broadcaster, room_topic

logger = logging.getLogger(__name__)

_PENDING_KEY = "pending_events"


class EventType(str, enum.Enum):
    PLAYER_JOINED = "PLAYER_JOINED"
    PLAYER_LEFT = "PLAYER_LEFT"
    AVATAR_UPDATED = "AVATAR_UPDATED"
    SETTINGS_UPDATED = "SETTINGS_UPDATED"
    ROOM_RESET = "ROOM_RESET"
    GAME_COUNTDOWN = "GAME_COUNTDOWN"
    GAME_STARTED = "GAME_STARTED"
    DRAWING_UPLOADED = "DRAWING_UPLOADED"
    DISCUSS_STARTED = "DISCUSS_STARTED"
    VOTE_UPDATE = "VOTE_UPDATE"
    SHOW_RESULTS = "SHOW_RESULTS"
    GAME_ENDED = "GAME_ENDED"
    PLAYER_LEFT_GAME = "PLAYER_LEFT_GAME"
    REACTION = "REACTION"


def now_ms() -> int:
    """Server 時間（epoch 毫秒），客戶端用來同步倒數"""
    return int(time.time() * 1000)


def build_event(room_code: str, event_type: EventType, **fields: Any) -> Dict[str, Any]:
    event = {"type": event_type.value, "roomCode": room_code}
    event.update(fields)
    return event


def queue_event(db: Session, room_code: str, event_type: EventType, **fields: Any) -> Dict[str, Any]:
    """排隊一個事件，等 transaction commit 之後才送出"""
    event = build_event(room_code, event_type, **fields)
    db.info.setdefault(_PENDING_KEY, []).append(event)
    return event


def publish_event(room_code: str, event_type: EventType, **fields: Any) -> Dict[str, Any]:
    """立即送出一個事件（不經過 transaction）"""
    event = build_event(room_code, event_type, **fields)
    get_broadcaster().publish(room_topic(room_code), event)
    return event


def publish_pending_events(db: Session) -> None:
    events: List[Dict[str, Any]] = db.info.pop(_PENDING_KEY, [])
    broadcaster = get_broadcaster()
    for event in events:
        try:
            broadcaster.publish(room_topic(event["roomCode"]), event)
        except Exception:
            # 已經 commit，不能讓廣播失敗變成請求失敗
            logger.exception(f"Failed to publish {event['type']} to room {event['roomCode']}")


def discard_pending_events(db: Session) -> None:
    events = db.info.pop(_PENDING_KEY, [])
    if events:
        logger.debug(f"Discarded {len(events)} events after rollback")
