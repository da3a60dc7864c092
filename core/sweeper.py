"""
Expiry Sweeper：定期強制結束跑太久的回合

每 30 秒掃一次，找出：
- 建立時間超過 10 分鐘
- 狀態不是 COMPLETED
- 所屬房間仍在 DRAWING / VOTING / RESULTS
的回合，把房間帶回 LOBBY 並廣播 GAME_ENDED（"Game timer expired"）。

sweeper 跟一般請求一樣，每個房間都在自己的 transaction 內、持有房間鎖執行；
鎖定後會重新檢查條件（掃描到執行之間房間可能已經被重置或開新回合）。
一個房間失敗不會影響同一輪的其他房間。
"""
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from models import Game, Room, GameStatus, utcnow
from core.locks import lock_room
from core.round_progress import ACTIVE_PHASES, REASON_EXPIRED, get_current_game, is_live, end_round
from database import transactional, get_settings

logger = logging.getLogger(__name__)


def find_expired_games(db: Session, cutoff: datetime) -> List[Tuple[str, UUID]]:
    """
    找出已逾時的回合

    返回：
        [(room_code, game_id), ...]
    """
    rows = (
        db.query(Room.code, Game.id)
        .join(Room, Room.id == Game.room_id)
        .filter(
            Game.created_at < cutoff,
            Game.status != GameStatus.COMPLETED,
            Room.status.in_(ACTIVE_PHASES),
        )
        .order_by(Game.created_at)
        .all()
    )
    return [(code, game_id) for code, game_id in rows]


@transactional
def expire_game(db: Session, code: str, game_id: UUID, cutoff: datetime) -> bool:
    """
    強制結束單一房間的逾時回合

    返回：
        True 如果這次真的結束了回合
    """
    room = lock_room(db, code)
    game = get_current_game(db, room)

    if game is None or game.id != game_id or not is_live(room, game):
        return False
    if game.created_at >= cutoff:
        return False

    logger.info(f"Auto-ending expired game {game.id} in room {room.code}")
    end_round(db, room, game, REASON_EXPIRED)
    return True


def sweep_expired_games(
    session_factory: Callable[[], Session],
    now: datetime = None,
    max_age_seconds: int = None,
) -> int:
    """
    執行一輪 sweep

    參數：
        session_factory: 產生新 Session 的 callable（例如 SessionLocal）
        now: 目前時間（naive UTC，測試用）
        max_age_seconds: 回合最長存活秒數，預設讀取 settings.game_expiry_seconds

    返回：
        這一輪結束的回合數量
    """
    if max_age_seconds is None:
        max_age_seconds = get_settings().game_expiry_seconds
    cutoff = (now or utcnow()) - timedelta(seconds=max_age_seconds)

    db = session_factory()
    try:
        candidates = find_expired_games(db, cutoff)
    finally:
        db.close()

    ended = 0
    for code, game_id in candidates:
        db = session_factory()
        try:
            if expire_game(db, code, game_id, cutoff):
                ended += 1
        except Exception:
            logger.exception(f"Failed to sweep room {code}")
        finally:
            db.close()

    if ended:
        logger.info(f"Sweeper ended {ended} expired game(s)")
    return ended


async def run_sweeper(session_factory: Callable[[], Session], interval_seconds: float) -> None:
    """背景任務：固定週期執行 sweep，直到被 cancel"""
    logger.info(f"Expiry sweeper started (every {interval_seconds}s)")
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await asyncio.to_thread(sweep_expired_games, session_factory)
        except Exception:
            logger.exception("Sweeper pass failed")
