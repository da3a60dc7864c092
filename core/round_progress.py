"""
回合進度：自動轉換與強制結束

這裡的函式都不是 @transactional，必須在呼叫者已經持有房間鎖的
transaction 內使用。「計數 -> 比較 -> 轉換」整段在同一把鎖下，
所以不會有兩個請求都看到「未完成」或都觸發轉換。

自動轉換規則（分母一律是 active 參與者數量）：
- DRAWING：active 參與者中已提交畫作的人數 >= active 參與者數量 -> VOTING
- VOTING：active 參與者中已投票的人數 >= active 參與者數量 -> RESULTS
- active 參與者數量 == 0 -> 強制結束回到 LOBBY
"""
import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from models import (
    Room,
    Game,
    GameParticipant,
    Drawing,
    Vote,
    RoomStatus,
    GameStatus,
    utcnow,
)
from core.state_machine import RoomStateMachine
from core.events import EventType, queue_event, now_ms
from core.exceptions import RoundNotStarted, NotRoundParticipant

logger = logging.getLogger(__name__)

REASON_ALL_LEFT = "All players left"
REASON_EXPIRED = "Game timer expired"

ACTIVE_PHASES = (RoomStatus.DRAWING, RoomStatus.VOTING, RoomStatus.RESULTS)


def get_current_game(db: Session, room: Room) -> Optional[Game]:
    if room.current_game_id is None:
        return None
    return db.get(Game, room.current_game_id)


def require_current_game(db: Session, room: Room) -> Game:
    game = get_current_game(db, room)
    if game is None:
        raise RoundNotStarted(room.code)
    return game


def is_live(room: Room, game: Optional[Game]) -> bool:
    """回合是否仍在進行（房間在遊戲階段且 Game 尚未終止）"""
    return (
        game is not None
        and room.status in ACTIVE_PHASES
        and game.status != GameStatus.COMPLETED
    )


def active_participant_ids(db: Session, game_id: UUID) -> List[UUID]:
    rows = (
        db.query(GameParticipant.player_id)
        .filter(GameParticipant.game_id == game_id, GameParticipant.active == True)
        .order_by(GameParticipant.joined_at, GameParticipant.player_id)
        .all()
    )
    return [player_id for (player_id,) in rows]


def get_participant(db: Session, game_id: UUID, player_id: UUID) -> Optional[GameParticipant]:
    return db.query(GameParticipant).filter(
        GameParticipant.game_id == game_id,
        GameParticipant.player_id == player_id
    ).first()


def require_active_participant(db: Session, game: Game, player_id: UUID) -> GameParticipant:
    participant = get_participant(db, game.id, player_id)
    if participant is None or not participant.active:
        raise NotRoundParticipant()
    return participant


def deactivate_participant(db: Session, game: Game, player_id: UUID) -> bool:
    """
    把玩家標記為離開本回合（不影響 Player.active）

    返回：
        True 如果這次真的從 active 變成 inactive
    """
    participant = get_participant(db, game.id, player_id)
    if participant is None or not participant.active:
        return False
    participant.active = False
    participant.left_at = utcnow()
    db.flush()
    return True


def count_submitted_participants(db: Session, game_id: UUID) -> int:
    return (
        db.query(Drawing.player_id)
        .join(
            GameParticipant,
            (GameParticipant.game_id == Drawing.game_id)
            & (GameParticipant.player_id == Drawing.player_id),
        )
        .filter(Drawing.game_id == game_id, GameParticipant.active == True)
        .distinct()
        .count()
    )


def count_voted_participants(db: Session, game_id: UUID) -> int:
    return (
        db.query(Vote.voter_id)
        .join(
            GameParticipant,
            (GameParticipant.game_id == Vote.game_id)
            & (GameParticipant.player_id == Vote.voter_id),
        )
        .filter(Vote.game_id == game_id, GameParticipant.active == True)
        .distinct()
        .count()
    )


def end_round(db: Session, room: Room, game: Optional[Game], reason: str) -> None:
    """強制結束回合：房間回到 LOBBY、Game 標記為 COMPLETED、廣播 GAME_ENDED"""
    RoomStateMachine.transition(room, RoomStatus.LOBBY, game)
    db.flush()
    queue_event(
        db, room.code, EventType.GAME_ENDED,
        gameId=str(game.id) if game else None,
        reason=reason,
    )
    logger.info(f"Round ended in room {room.code}: {reason}")


def start_discussion(db: Session, room: Room, game: Game) -> None:
    """DRAWING -> VOTING，廣播 DISCUSS_STARTED（附 server 計算的投票倒數）"""
    RoomStateMachine.transition(room, RoomStatus.VOTING, game)
    db.flush()
    server_time = now_ms()
    queue_event(
        db, room.code, EventType.DISCUSS_STARTED,
        gameId=str(game.id),
        serverTime=server_time,
        voteSeconds=room.vote_seconds,
        voteEndTime=server_time + room.vote_seconds * 1000,
    )


def show_results(db: Session, room: Room, game: Game) -> None:
    """VOTING -> RESULTS，廣播 SHOW_RESULTS"""
    RoomStateMachine.transition(room, RoomStatus.RESULTS, game)
    db.flush()
    queue_event(db, room.code, EventType.SHOW_RESULTS, gameId=str(game.id))


def evaluate_progress(db: Session, room: Room, game: Optional[Game]) -> Optional[RoomStatus]:
    """
    檢查回合是否該自動轉換

    任何會影響完成條件的寫入（提交、投票、離開回合、離開房間、踢人）
    之後都呼叫這裡，沒有「最後一個人」的特殊情況。

    返回：
        轉換後的新狀態；沒有轉換時返回 None
    """
    if not is_live(room, game):
        return None

    active_count = len(active_participant_ids(db, game.id))
    if active_count == 0:
        end_round(db, room, game, REASON_ALL_LEFT)
        return RoomStatus.LOBBY

    if room.status == RoomStatus.DRAWING:
        submitted = count_submitted_participants(db, game.id)
        if submitted >= active_count:
            logger.info(f"All {active_count} participants submitted in room {room.code}")
            start_discussion(db, room, game)
            return RoomStatus.VOTING

    elif room.status == RoomStatus.VOTING:
        voted = count_voted_participants(db, game.id)
        if voted >= active_count:
            logger.info(f"All {active_count} participants voted in room {room.code}")
            show_results(db, room, game)
            return RoomStatus.RESULTS

    return None
