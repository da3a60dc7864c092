"""
Drawing Manager：畫作的提交、撤回與查詢

提交是「最多一次」：
- 先查詢是否已提交（大部分情況在這裡擋下）
- drawings 表上的 (game_id, player_id) unique constraint 擋下漏網的競態，
  IntegrityError 一樣轉成 AlreadySubmitted
"""
import logging
from typing import Any, Dict, List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from models import Drawing, RoomStatus
from core.locks import lock_room
from core.events import EventType, queue_event
from core.exceptions import AlreadySubmitted, EmptyDrawing, WrongPhase
from core.player_manager import PlayerManager
from core.room_manager import RoomManager
from core.round_progress import require_current_game, require_active_participant, evaluate_progress
from services.blob_store import LocalBlobStore
from database import transactional

logger = logging.getLogger(__name__)


def _find_drawing(db: Session, game_id, player_id):
    return db.query(Drawing).filter(
        Drawing.game_id == game_id,
        Drawing.player_id == player_id
    ).first()


class DrawingManager:
    """畫作管理器"""

    @staticmethod
    @transactional
    def submit_drawing(
        db: Session,
        code: str,
        token: str,
        data: bytes,
        blob_store: LocalBlobStore,
        filename: str = None,
    ) -> Drawing:
        """
        提交畫作

        前置條件：
        - 房間在 DRAWING
        - 玩家是本回合的 active 參與者
        - 本回合尚未提交過（重複提交直接拒絕，不覆蓋）

        流程：
        1. 驗證前置條件
        2. 寫入 blob store（暫存檔 + 原子 rename）
        3. 寫入 Drawing row，廣播 DRAWING_UPLOADED
        4. 檢查是否所有 active 參與者都已提交 -> VOTING + DISCUSS_STARTED

        注意：
            檔案先寫、row 後寫。如果 row commit 失敗，留下的孤兒檔案由外部清理，
            讀者不會看到寫到一半的檔案。

        異常：
            WrongPhase / NotRoundParticipant / AlreadySubmitted / EmptyDrawing
        """
        room = lock_room(db, code)
        player = PlayerManager.authorize(db, room, token)
        game = require_current_game(db, room)

        if room.status != RoomStatus.DRAWING:
            raise WrongPhase("submit a drawing", room.status.value)
        require_active_participant(db, game, player.id)

        if _find_drawing(db, game.id, player.id) is not None:
            logger.warning(f"Player {player.id} attempted duplicate submission in room {room.code} - blocked")
            raise AlreadySubmitted()
        if not data:
            raise EmptyDrawing()

        path = blob_store.put(room.code, game.id, player.id, data, filename)

        drawing = Drawing(game_id=game.id, player_id=player.id, file_path=path)
        db.add(drawing)
        try:
            db.flush()
        except IntegrityError:
            raise AlreadySubmitted()

        queue_event(
            db, room.code, EventType.DRAWING_UPLOADED,
            gameId=str(game.id),
            playerId=str(player.id),
        )
        logger.info(f"Drawing uploaded room={room.code} player={player.id}")

        evaluate_progress(db, room, game)
        return drawing

    @staticmethod
    @transactional
    def unsubmit_drawing(db: Session, code: str, token: str) -> bool:
        """
        撤回畫作（沒有提交過也不會報錯）

        重用 DRAWING_UPLOADED 事件，讓客戶端重新整理畫廊

        返回：
            True 如果真的刪除了一筆 Drawing
        """
        room = lock_room(db, code)
        player = PlayerManager.authorize(db, room, token)
        game = require_current_game(db, room)

        if room.status != RoomStatus.DRAWING:
            raise WrongPhase("withdraw a drawing", room.status.value)

        deleted = db.query(Drawing).filter(
            Drawing.game_id == game.id,
            Drawing.player_id == player.id
        ).delete(synchronize_session=False)

        queue_event(
            db, room.code, EventType.DRAWING_UPLOADED,
            gameId=str(game.id),
            playerId=str(player.id),
        )
        if deleted:
            logger.info(f"Drawing withdrawn room={room.code} player={player.id}")
        return bool(deleted)

    @staticmethod
    def list_drawings(db: Session, code: str, blob_store: LocalBlobStore) -> List[Dict[str, Any]]:
        """目前回合的所有畫作（URL 由 blob store 轉換）"""
        room = RoomManager.get_room_by_code(db, code)
        game = require_current_game(db, room)

        drawings = db.query(Drawing).filter(
            Drawing.game_id == game.id
        ).order_by(Drawing.submitted_at, Drawing.player_id).all()

        return [
            {"playerId": str(d.player_id), "filePath": blob_store.resolve(d.file_path)}
            for d in drawings
        ]

    @staticmethod
    def get_submission_status(db: Session, code: str, token: str) -> Dict[str, Any]:
        """玩家自己在目前回合是否已提交"""
        room = RoomManager.get_room_by_code(db, code)
        player = PlayerManager.authorize(db, room, token)
        game = require_current_game(db, room)

        drawing = _find_drawing(db, game.id, player.id)
        return {
            "hasSubmitted": drawing is not None,
            "gameId": str(game.id),
            "submittedAt": drawing.submitted_at.isoformat() if drawing else None,
        }
