"""
Vote Manager：投票、計票、結果

投票一旦送出就不能修改：
- 先查詢是否已投票
- votes 表上的 (game_id, voter_id) unique constraint 擋下漏網的競態
"""
import logging
from typing import Any, Dict
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import Player, Vote, RoomStatus
from core.locks import lock_room
from core.events import EventType, queue_event, publish_event
from core.exceptions import (
    AlreadyVoted,
    InvalidVoteTarget,
    PlayerNotFound,
    ResultsNotAvailable,
    WrongPhase,
)
from core.player_manager import PlayerManager
from core.room_manager import RoomManager
from core.round_progress import require_current_game, require_active_participant, evaluate_progress
from services.tally_service import count_votes, compute_result
from database import transactional

logger = logging.getLogger(__name__)


class VoteManager:
    """投票管理器"""

    @staticmethod
    @transactional
    def cast_vote(db: Session, code: str, token: str, target_id: UUID) -> Dict[str, int]:
        """
        投票指控某位玩家

        前置條件：
        - 房間在 VOTING
        - 投票者是本回合的 active 參與者
        - 目標是同一個房間的玩家
        - 本回合尚未投過票

        流程：
        1. 寫入 Vote
        2. 重新計票並廣播 VOTE_UPDATE（完整 tally）
        3. 如果所有 active 參與者都已投票 -> RESULTS + SHOW_RESULTS

        返回：
            最新的 tally
        """
        room = lock_room(db, code)
        voter = PlayerManager.authorize(db, room, token)
        game = require_current_game(db, room)

        if room.status != RoomStatus.VOTING:
            raise WrongPhase("vote", room.status.value)
        require_active_participant(db, game, voter.id)

        target = db.get(Player, target_id)
        if target is None:
            raise PlayerNotFound(target_id)
        if target.room_id != room.id:
            raise InvalidVoteTarget()

        existing = db.query(Vote.id).filter(
            Vote.game_id == game.id,
            Vote.voter_id == voter.id
        ).first()
        if existing:
            raise AlreadyVoted()

        db.add(Vote(game_id=game.id, voter_id=voter.id, target_id=target.id))
        try:
            db.flush()
        except IntegrityError:
            raise AlreadyVoted()

        tally = count_votes(game.id, db)
        queue_event(
            db, room.code, EventType.VOTE_UPDATE,
            gameId=str(game.id),
            tally=tally,
        )
        logger.info(f"Vote cast in room {room.code}: {voter.id} -> {target.id}")

        evaluate_progress(db, room, game)
        return tally

    @staticmethod
    def get_tally(db: Session, code: str) -> Dict[str, int]:
        room = RoomManager.get_room_by_code(db, code)
        game = require_current_game(db, room)
        return count_votes(game.id, db)

    @staticmethod
    def get_result(db: Session, code: str) -> Dict[str, Any]:
        """
        回合結果（可重複呼叫，沒有新票時輸出相同）

        只有結果已公布（Game.results_at 有值）才能查詢，
        避免在 DRAWING / VOTING 階段洩漏臥底身分。

        返回：
            imposterId, votedOutId, winner, tally
        """
        room = RoomManager.get_room_by_code(db, code)
        game = require_current_game(db, room)
        if game.results_at is None:
            raise ResultsNotAvailable()

        tally, voted_out, winner = compute_result(game.id, game.imposter_id, db)
        return {
            "gameId": str(game.id),
            "imposterId": str(game.imposter_id),
            "votedOutId": voted_out,
            "winner": winner.value,
            "tally": tally,
        }

    @staticmethod
    def react(db: Session, code: str, token: str, target_id: UUID, emoji: str) -> Dict[str, Any]:
        """
        對某位玩家的畫作送出表情反應

        不寫入資料庫，直接廣播 REACTION（fire-and-forget）
        """
        room = RoomManager.get_room_by_code(db, code)
        reactor = PlayerManager.authorize(db, room, token)
        game = require_current_game(db, room)

        target = db.get(Player, target_id)
        if target is None or target.room_id != room.id:
            raise InvalidVoteTarget()

        return publish_event(
            room.code, EventType.REACTION,
            gameId=str(game.id),
            fromPlayerId=str(reactor.id),
            targetId=str(target.id),
            emoji=emoji,
        )
