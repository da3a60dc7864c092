"""
狀態機：集中管理 Room 的狀態轉換

合法轉換：
    LOBBY   -> DRAWING   開始回合
    DRAWING -> VOTING    所有 active 參與者都已提交
    VOTING  -> RESULTS   所有 active 參與者都已投票（或房主強制結束）
    RESULTS -> LOBBY     房主重置
    任何狀態 -> LOBBY    強制結束（全員離開、逾時、重置）

Game.status 跟著 Room.status 一起更新，確保兩者不會分歧。
"""
import logging

from models import Room, Game, RoomStatus, GameStatus, utcnow
from core.exceptions import InvalidStateTransition

logger = logging.getLogger(__name__)


class RoomStateMachine:
    """Room 狀態轉換規則"""

    TRANSITIONS = {
        RoomStatus.LOBBY: {RoomStatus.DRAWING},
        RoomStatus.DRAWING: {RoomStatus.VOTING},
        RoomStatus.VOTING: {RoomStatus.RESULTS},
        RoomStatus.RESULTS: set(),
    }

    GAME_STATUS_FOR = {
        RoomStatus.DRAWING: GameStatus.DRAWING,
        RoomStatus.VOTING: GameStatus.VOTING,
        RoomStatus.RESULTS: GameStatus.RESULTS,
        RoomStatus.LOBBY: GameStatus.COMPLETED,
    }

    @classmethod
    def can_transition(cls, current: RoomStatus, target: RoomStatus) -> bool:
        if target == RoomStatus.LOBBY:
            return True
        return target in cls.TRANSITIONS.get(current, set())

    @classmethod
    def transition(cls, room: Room, target: RoomStatus, game: Game = None) -> Room:
        """
        轉換房間狀態（呼叫者必須已經持有房間鎖）

        參數：
            room: 鎖定中的 Room
            target: 目標狀態
            game: 目前回合（若有），會同步更新 Game.status

        異常：
            InvalidStateTransition: 不在合法轉換表內
        """
        current = room.status
        if not cls.can_transition(current, target):
            raise InvalidStateTransition(
                f"Room {room.code} cannot transition from {current.value} to {target.value}"
            )

        room.status = target

        if game is not None and game.status != GameStatus.COMPLETED:
            game.status = cls.GAME_STATUS_FOR[target]
            if target == RoomStatus.RESULTS:
                game.results_at = utcnow()
            elif target == RoomStatus.LOBBY:
                game.ended_at = utcnow()

        logger.info(f"Room {room.code}: {current.value} -> {target.value}")
        return room
