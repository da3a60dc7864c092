"""
並發控制工具

每個房間的所有寫入操作（加入、開始、提交、投票、離開、踢人、設定、sweep）
都必須在同一個房間上序列化，避免：
- 兩個 start 同時建立 Game
- 兩個最後提交同時看到「還沒完成」而沒人觸發轉換
- 兩個最後提交同時看到「完成」而重複廣播

兩層鎖：
1. Process 內的 mutex（以房間代碼為 key）：SQLite 不支援 FOR UPDATE，靠這層序列化
2. Database-level 的 SELECT ... FOR UPDATE（PostgreSQL 的行級悲觀鎖，多 process 部署時生效）

mutex 登記在 session.info 上，由 @transactional 在 commit / rollback
以及廣播之後釋放，所以同一房間的事件會按照 commit 順序送出。
"""
import threading
import logging
import weakref

from sqlalchemy.orm import Session, Query

from models import Room
from core.exceptions import RoomNotFound

logger = logging.getLogger(__name__)

_HELD_LOCKS_KEY = "held_room_locks"

_registry_lock = threading.Lock()
# 持有者（session.info 或等待中的 thread）都放掉之後，entry 自動消失
_room_mutexes: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()


def normalize_code(code: str) -> str:
    return (code or "").strip().upper()


def _mutex_for(code: str) -> threading.Lock:
    with _registry_lock:
        mutex = _room_mutexes.get(code)
        if mutex is None:
            mutex = threading.Lock()
            _room_mutexes[code] = mutex
        return mutex


def with_room_lock(code: str, db: Session) -> Query:
    """
    鎖定一個 Room（行級鎖）

    參數：
        code: 房間代碼（已正規化）
        db: SQLAlchemy Session

    返回：
        Query object（需要呼叫 .first() 來取得結果）

    注意：
        - nowait=False 表示如果鎖被佔用，會等待
        - 必須在 transaction 內使用（確保有 commit 或 rollback）
    """
    return db.query(Room).filter(
        Room.code == code
    ).populate_existing().with_for_update(nowait=False)


def lock_room(db: Session, code: str) -> Room:
    """
    取得房間的獨佔存取權，並回傳鎖定中的 Room

    必須是 transaction 內的第一個查詢，之後的讀取都能看到最新的狀態。
    同一個 session 內重複呼叫同一個房間不會 deadlock。

    異常：
        RoomNotFound: Room 不存在（mutex 會立即釋放）
    """
    code = normalize_code(code)
    held = db.info.setdefault(_HELD_LOCKS_KEY, {})
    if code not in held:
        mutex = _mutex_for(code)
        mutex.acquire()
        held[code] = mutex

    room = with_room_lock(code, db).first()
    if not room:
        _release(db, code)
        raise RoomNotFound(code)
    return room


def _release(db: Session, code: str) -> None:
    held = db.info.get(_HELD_LOCKS_KEY, {})
    mutex = held.pop(code, None)
    if mutex is not None:
        mutex.release()


def release_room_locks(db: Session) -> None:
    """釋放這個 session 持有的所有房間鎖（由 @transactional 呼叫）"""
    held = db.info.get(_HELD_LOCKS_KEY)
    if not held:
        return
    for code in list(held):
        _release(db, code)
