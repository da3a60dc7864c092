"""
Round Manager：回合的生命週期

職責：
1. 開始回合（抽題目、抽臥底、建立參與者快照）
2. 每位玩家自己的題目（臥底拿到不同的題目）
3. 玩家退出本回合（仍留在房間）
4. 房主強制公布結果（自動轉換沒有發生時的備援）

提交畫作與投票分別在 DrawingManager / VoteManager，
自動轉換的判斷集中在 core.round_progress。
"""
import secrets
import logging
from typing import Any, Dict

from sqlalchemy.orm import Session

from models import Game, GameParticipant, Player, RoomStatus, GameStatus
from core.state_machine import RoomStateMachine
from core.locks import lock_room
from core.events import EventType, queue_event, now_ms
from core.exceptions import (
    InsufficientPlayers,
    NoPromptsAvailable,
    InvalidStateTransition,
    WrongPhase,
)
from core.player_manager import PlayerManager
from core.room_manager import RoomManager
from core.round_progress import (
    get_current_game,
    require_current_game,
    is_live,
    active_participant_ids,
    deactivate_participant,
    evaluate_progress,
    show_results,
)
from services.prompt_catalog import list_prompt_pairs
from database import transactional, get_settings

logger = logging.getLogger(__name__)

MIN_PLAYERS_TO_START = 3

# 臥底與題目的抽選必須用密碼學等級的亂數，玩家無法預測
_system_random = secrets.SystemRandom()


class RoundManager:
    """回合管理器"""

    @staticmethod
    @transactional
    def start_round(db: Session, code: str, rng=None) -> Dict[str, Any]:
        """
        開始回合（LOBBY -> DRAWING）

        前置條件：
        1. Room 狀態必須是 LOBBY（同時兩個 start 只有一個會成功）
        2. active 玩家 >= 3
        3. 題庫不是空的

        流程：
        1. 鎖定房間並驗證前置條件
        2. 隨機抽一組題目、隨機抽一位臥底（rng 預設為 SystemRandom）
        3. 建立 Game，並把每位 active 玩家寫入 GameParticipant
        4. Room.current_game_id 指向新的 Game，狀態轉換為 DRAWING
        5. 廣播 GAME_COUNTDOWN（同步倒數）與 GAME_STARTED（不含臥底身分與臥底題目）

        參數：
            rng: 任何有 choice() 的亂數來源；測試時傳 seeded random.Random

        返回：
            {"gameId", "roomId", "promptCommon"}

        異常：
            InvalidStateTransition: 房間不在 LOBBY
            InsufficientPlayers: 人數不足
            NoPromptsAvailable: 題庫是空的
        """
        rng = rng or _system_random
        settings = get_settings()

        room = lock_room(db, code)
        if room.status != RoomStatus.LOBBY:
            raise InvalidStateTransition(
                f"Room {room.code} cannot start a round while in {room.status.value}"
            )

        players = PlayerManager.list_active_players(db, room.id)
        if len(players) < MIN_PLAYERS_TO_START:
            raise InsufficientPlayers(MIN_PLAYERS_TO_START, len(players))

        pairs = list_prompt_pairs(db)
        if not pairs:
            raise NoPromptsAvailable()

        pair = rng.choice(pairs)
        imposter = rng.choice(players)
        round_number = db.query(Game).filter(Game.room_id == room.id).count() + 1

        game = Game(
            room_id=room.id,
            status=GameStatus.DRAWING,
            round_number=round_number,
            prompt_common=pair.common_prompt,
            prompt_imposter=pair.imposter_prompt,
            imposter_id=imposter.id,
        )
        db.add(game)
        db.flush()

        for player in players:
            db.add(GameParticipant(game_id=game.id, player_id=player.id, active=True))

        room.current_game_id = game.id
        RoomStateMachine.transition(room, RoomStatus.DRAWING, game)
        db.flush()

        # 倒數開始前留一點緩衝，讓每個人都看得到第一個數字
        start_at = now_ms() + settings.countdown_buffer_ms
        countdown = settings.countdown_seconds
        queue_event(
            db, room.code, EventType.GAME_COUNTDOWN,
            startAt=start_at,
            seconds=countdown,
        )

        server_time = start_at + countdown * 1000
        draw_end = server_time + room.draw_seconds * 1000
        queue_event(
            db, room.code, EventType.GAME_STARTED,
            gameId=str(game.id),
            roundNumber=game.round_number,
            promptCommon=game.prompt_common,
            serverTime=server_time,
            drawSeconds=room.draw_seconds,
            voteSeconds=room.vote_seconds,
            drawEndTime=draw_end,
            voteStartTime=draw_end,
            activeGameParticipants=[str(p.id) for p in players],
        )

        logger.info(
            f"Round {game.round_number} started in room {room.code} "
            f"with {len(players)} players (game={game.id})"
        )
        return {
            "gameId": str(game.id),
            "roomId": str(room.id),
            "promptCommon": game.prompt_common,
        }

    @staticmethod
    def get_prompt(db: Session, code: str, token: str) -> Dict[str, Any]:
        """
        取得「自己的」題目

        臥底拿到 prompt_imposter，其他人拿到 prompt_common。
        這是針對單一玩家的投影，不會廣播給其他人。
        """
        room = RoomManager.get_room_by_code(db, code)
        player = PlayerManager.authorize(db, room, token)
        game = require_current_game(db, room)

        is_imposter = player.id == game.imposter_id
        return {
            "gameId": str(game.id),
            "prompt": game.prompt_imposter if is_imposter else game.prompt_common,
        }

    @staticmethod
    @transactional
    def leave_game(db: Session, code: str, token: str) -> Player:
        """
        玩家退出本回合，但仍留在房間

        流程：
        1. 把玩家的 GameParticipant 標記為 inactive（left_at = now）
        2. 重新檢查回合進度：
           - active 參與者歸零 -> 強制結束（GAME_ENDED, "All players left"）
           - 剩下的人都已完成 -> 自動轉換
        3. 無論回合是否結束，都廣播 PLAYER_LEFT_GAME
        """
        room = lock_room(db, code)
        player = PlayerManager.authorize(db, room, token)

        game = get_current_game(db, room)
        left = is_live(room, game) and deactivate_participant(db, game, player.id)

        queue_event(
            db, room.code, EventType.PLAYER_LEFT_GAME,
            playerId=str(player.id),
            playerName=player.name,
        )
        if left:
            logger.info(f"Player {player.id} left the active round in room {room.code}")
            evaluate_progress(db, room, game)

        return player

    @staticmethod
    @transactional
    def finish(db: Session, code: str) -> bool:
        """
        強制公布結果（VOTING -> RESULTS）

        用途：自動轉換的條件一直沒有達成時的備援

        返回：
            True 如果這次觸發了轉換；房間已經在 RESULTS 時返回 False（不重複廣播）

        異常：
            RoundNotStarted: 房間沒有回合
            WrongPhase: 房間不在 VOTING / RESULTS
        """
        room = lock_room(db, code)
        game = require_current_game(db, room)

        if room.status == RoomStatus.RESULTS:
            return False
        if room.status != RoomStatus.VOTING:
            raise WrongPhase("finish voting", room.status.value)

        show_results(db, room, game)
        logger.info(
            f"Round force-finished in room {room.code} "
            f"({len(active_participant_ids(db, game.id))} active participants)"
        )
        return True
