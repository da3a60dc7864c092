"""
Player Manager：玩家名冊

職責：
1. 加入房間（人數上限、第一位玩家成為房主、發 session token）
2. 離開房間 / 房主踢人（soft delete + 房主交接）
3. 更新頭像
4. 身分驗證：token -> Player，並檢查是否屬於這個房間

授權規則：
- token 不存在（或玩家已離開）-> InvalidSessionToken（401）
- token 有效但不屬於這個房間 -> NotRoomMember（403）
"""
from sqlalchemy.orm import Session
from typing import Any, Dict, List
from uuid import UUID
import logging

from models import Room, Player
from core.locks import lock_room
from core.events import EventType, queue_event
from core.exceptions import (
    InvalidSessionToken,
    NotRoomMember,
    AdminRequired,
    PlayerNotFound,
    CapacityExceeded,
)
from core.round_progress import get_current_game, is_live, deactivate_participant, evaluate_progress
from services.naming_service import generate_session_token, normalize_player_name
from database import transactional

logger = logging.getLogger(__name__)


def player_projection(player: Player) -> Dict[str, Any]:
    """對外公開的玩家資訊（永遠不含 session token）"""
    return {
        "id": str(player.id),
        "name": player.name,
        "isAdmin": player.is_admin,
        "avatar": player.avatar,
    }


class PlayerManager:
    """玩家進出與身分驗證"""

    @staticmethod
    def authenticate(db: Session, token: str) -> Player:
        """
        token -> Player

        異常：
            InvalidSessionToken: token 不存在，或玩家已離開 / 被踢
        """
        if not token:
            raise InvalidSessionToken()
        player = db.query(Player).filter(Player.session_token == token).first()
        if not player or not player.active:
            raise InvalidSessionToken()
        return player

    @staticmethod
    def authorize(db: Session, room: Room, token: str) -> Player:
        """驗證 token，並確認玩家屬於這個房間"""
        player = PlayerManager.authenticate(db, token)
        if player.room_id != room.id:
            raise NotRoomMember()
        return player

    @staticmethod
    def list_active_players(db: Session, room_id: UUID) -> List[Player]:
        return db.query(Player).filter(
            Player.room_id == room_id,
            Player.active == True
        ).order_by(Player.created_at, Player.id).all()

    @staticmethod
    @transactional
    def join(db: Session, code: str, name: str = None, rng=None) -> Player:
        """
        加入房間

        前置條件：
        - 房間存在
        - active 玩家數量 < maxPlayers（8）

        流程：
        1. 鎖定房間，計算 active 玩家數量
        2. 沒有 active 房主時（例如第一位玩家），新玩家成為房主
        3. 發一個新的 session token（之後所有動作的唯一憑證）
        4. 廣播 PLAYER_JOINED（不含 token）

        異常：
            RoomNotFound: 房間不存在
            CapacityExceeded: 房間已滿
        """
        room = lock_room(db, code)
        active_players = PlayerManager.list_active_players(db, room.id)

        if len(active_players) >= room.max_players:
            raise CapacityExceeded(room.max_players)

        has_admin = any(p.is_admin for p in active_players)
        player = Player(
            room_id=room.id,
            name=normalize_player_name(name, rng),
            is_admin=not has_admin,
            session_token=generate_session_token(),
            active=True,
        )
        db.add(player)
        db.flush()

        queue_event(db, room.code, EventType.PLAYER_JOINED, player=player_projection(player))
        logger.info(
            f"Player {player.id} ({player.name}) joined room {room.code}"
            f"{' as admin' if player.is_admin else ''}"
        )
        return player

    @staticmethod
    @transactional
    def leave(db: Session, code: str, token: str) -> Player:
        """玩家自己離開房間"""
        room = lock_room(db, code)
        player = PlayerManager.authorize(db, room, token)
        PlayerManager._remove_player(db, room, player, kicked=False)
        return player

    @staticmethod
    @transactional
    def kick(db: Session, code: str, token: str, target_id: UUID) -> Player:
        """
        房主踢人

        異常：
            AdminRequired: 執行者不是房主
            PlayerNotFound: 目標不存在、不在這個房間、或已經離開
        """
        room = lock_room(db, code)
        admin = PlayerManager.authorize(db, room, token)
        if not admin.is_admin:
            raise AdminRequired("Only host can kick")

        target = db.get(Player, target_id)
        if not target or target.room_id != room.id or not target.active:
            raise PlayerNotFound(target_id)

        PlayerManager._remove_player(db, room, target, kicked=True)
        return target

    @staticmethod
    def _remove_player(db: Session, room: Room, player: Player, kicked: bool) -> None:
        """
        soft delete 一位玩家

        1. Player.active = False（歷史回合的 Drawing / Vote 仍引用這筆資料）
        2. 如果是房主，交給剩下的第一位 active 玩家
        3. 廣播 PLAYER_LEFT
        4. 如果正在進行回合，同時退出本回合並重新檢查回合進度
        """
        was_admin = player.is_admin
        player.active = False
        player.is_admin = False
        db.flush()

        new_admin = None
        if was_admin:
            remaining = PlayerManager.list_active_players(db, room.id)
            if remaining:
                new_admin = remaining[0]
                new_admin.is_admin = True
                db.flush()
                logger.info(f"Admin of room {room.code} handed to {new_admin.id}")

        queue_event(
            db, room.code, EventType.PLAYER_LEFT,
            playerId=str(player.id),
            kicked=kicked,
            newAdminId=str(new_admin.id) if new_admin else None,
        )
        logger.info(f"Player {player.id} ({player.name}) {'kicked from' if kicked else 'left'} room {room.code}")

        game = get_current_game(db, room)
        if is_live(room, game) and deactivate_participant(db, game, player.id):
            evaluate_progress(db, room, game)

    @staticmethod
    @transactional
    def update_avatar(db: Session, token: str, avatar: str) -> Player:
        """更新頭像（不透明字串），廣播 AVATAR_UPDATED"""
        player = PlayerManager.authenticate(db, token)
        room = lock_room(db, player.room.code)

        # 取得鎖之前玩家可能剛好離開
        db.refresh(player)
        if not player.active:
            raise InvalidSessionToken()

        player.avatar = avatar or ""
        db.flush()

        queue_event(db, room.code, EventType.AVATAR_UPDATED, player=player_projection(player))
        return player
