"""
Room Manager：管理 Room 的完整生命週期

職責：
1. 建立 Room（代碼唯一性、碰撞重試）
2. 查詢 Room 資訊與房間狀態快照
3. 房主修改設定（繪圖 / 投票秒數）
4. 房主重置房間（放棄卡住的回合）

單一職責：只管 Room，玩家進出交給 PlayerManager，回合交給 RoundManager
"""
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Any, Dict, Optional
import logging

from models import Room, RoomStatus
from core.state_machine import RoomStateMachine
from core.locks import lock_room, normalize_code
from core.events import EventType, queue_event
from core.exceptions import RoomNotFound, DuplicateRoomCode, AdminRequired
from core.player_manager import PlayerManager, player_projection
from core.round_progress import get_current_game, active_participant_ids, ACTIVE_PHASES
from services.naming_service import generate_room_code
from database import transactional

logger = logging.getLogger(__name__)

MAX_PLAYERS = 8
DRAW_SECONDS_RANGE = (15, 300)
VOTE_SECONDS_RANGE = (15, 180)
MAX_CODE_ATTEMPTS = 20


def clamp(value: int, bounds) -> int:
    low, high = bounds
    return max(low, min(high, int(value)))


class RoomManager:
    """Room 生命週期管理器"""

    @staticmethod
    def create_room(db: Session, rng=None) -> Room:
        """
        建立新房間

        流程：
        1. 生成房間代碼，先查詢是否已存在
        2. 建立 Room（狀態 LOBBY）
        3. 如果 insert 時撞到 unique constraint（兩個請求同時拿到同一個代碼），
           換一個代碼重試

        異常：
            DuplicateRoomCode: 連續碰撞次數超過上限（實務上不會發生）
        """
        for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
            code = generate_room_code(rng)
            if db.query(Room.id).filter(Room.code == code).first():
                logger.warning(f"Room code collision detected, regenerating (attempt {attempt})")
                continue
            try:
                room = RoomManager._insert_room(db, code)
            except IntegrityError:
                logger.warning(f"Room code {code} taken concurrently, regenerating")
                continue
            logger.info(f"Created room {room.id} with code {code}")
            return room

        raise DuplicateRoomCode(f"Could not allocate a unique room code after {MAX_CODE_ATTEMPTS} attempts")

    @staticmethod
    @transactional
    def _insert_room(db: Session, code: str) -> Room:
        room = Room(code=code, status=RoomStatus.LOBBY, max_players=MAX_PLAYERS)
        db.add(room)
        db.flush()
        return room

    @staticmethod
    def get_room_by_code(db: Session, code: str) -> Room:
        """
        透過房間代碼取得 Room（不分大小寫）

        異常：
            RoomNotFound: Room 不存在
        """
        code = normalize_code(code)
        room = db.query(Room).filter(Room.code == code).first()
        if not room:
            raise RoomNotFound(code)
        return room

    @staticmethod
    def get_room_state(db: Session, code: str) -> Dict[str, Any]:
        """
        房間狀態快照

        返回：
            room 設定 + active 玩家（不含 token）+ 進行中回合的 active 參與者
        """
        room = RoomManager.get_room_by_code(db, code)
        players = PlayerManager.list_active_players(db, room.id)

        participants = []
        current_game_id: Optional[str] = None
        game = get_current_game(db, room)
        if game is not None:
            current_game_id = str(game.id)
            if room.status in ACTIVE_PHASES:
                participants = [str(pid) for pid in active_participant_ids(db, game.id)]

        return {
            "id": str(room.id),
            "code": room.code,
            "status": room.status.value,
            "players": [player_projection(p) for p in players],
            "drawSeconds": room.draw_seconds,
            "voteSeconds": room.vote_seconds,
            "maxPlayers": room.max_players,
            "currentGameId": current_game_id,
            "activeGameParticipants": participants,
        }

    @staticmethod
    @transactional
    def update_settings(
        db: Session,
        code: str,
        token: str,
        draw_seconds: Optional[int] = None,
        vote_seconds: Optional[int] = None,
    ) -> Room:
        """
        房主修改回合秒數

        規則：
        - draw 夾在 [15, 300] 秒
        - vote 夾在 [15, 180] 秒
        - maxPlayers 固定 8
        - 沒有提供的欄位保持原值

        異常：
            InvalidSessionToken / NotRoomMember / AdminRequired
        """
        room = lock_room(db, code)
        admin = PlayerManager.authorize(db, room, token)
        if not admin.is_admin:
            raise AdminRequired("Only host can edit")

        if draw_seconds is not None:
            room.draw_seconds = clamp(draw_seconds, DRAW_SECONDS_RANGE)
        if vote_seconds is not None:
            room.vote_seconds = clamp(vote_seconds, VOTE_SECONDS_RANGE)
        room.max_players = MAX_PLAYERS
        db.flush()

        queue_event(
            db, room.code, EventType.SETTINGS_UPDATED,
            drawSeconds=room.draw_seconds,
            voteSeconds=room.vote_seconds,
            maxPlayers=room.max_players,
        )
        logger.info(
            f"Room {room.code} settings updated: draw={room.draw_seconds}s vote={room.vote_seconds}s"
        )
        return room

    @staticmethod
    @transactional
    def reset_room(db: Session, code: str, token: str) -> Room:
        """
        房主強制把房間帶回 LOBBY

        用途：
        - 看完結果後開始下一輪
        - 放棄卡住的回合，不必等 sweeper

        目前回合（若有）會被標記為 COMPLETED
        """
        room = lock_room(db, code)
        admin = PlayerManager.authorize(db, room, token)
        if not admin.is_admin:
            raise AdminRequired("Only host can reset room")

        game = get_current_game(db, room)
        RoomStateMachine.transition(room, RoomStatus.LOBBY, game)
        db.flush()

        queue_event(db, room.code, EventType.ROOM_RESET)
        logger.info(f"Room reset to lobby: {room.code}")
        return room

