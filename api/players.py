"""
Player API Endpoints

職責：
1. 玩家加入房間
2. 離開房間、房主踢人
3. 更新頭像
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from uuid import UUID
import logging

from database import get_db
from schemas import PlayerJoin, JoinResponse, AvatarUpdate, OkResponse
from core.player_manager import PlayerManager
from core.exceptions import GameException
from api.errors import to_http_exception

router = APIRouter(prefix="/api/rooms", tags=["players"])
avatar_router = APIRouter(prefix="/api/player", tags=["players"])
logger = logging.getLogger(__name__)


@router.post("/{code}/join", response_model=JoinResponse)
def join_room(code: str, player_data: PlayerJoin, db: Session = Depends(get_db)):
    """
    加入房間（玩家 endpoint）

    前置條件：
    - 房間必須存在
    - 房間未滿（最多 8 位 active 玩家）

    返回：
        - playerId
        - isAdmin: 第一位加入的玩家是房主
        - sessionToken: 之後所有動作的憑證
    """
    try:
        player = PlayerManager.join(db, code, player_data.name)
        return JoinResponse(
            player_id=str(player.id),
            is_admin=player.is_admin,
            session_token=player.session_token
        )

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to join room: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{code}/leave", response_model=OkResponse)
def leave_room(code: str, token: str = Query(...), db: Session = Depends(get_db)):
    """離開房間（房主離開時自動交接）"""
    try:
        PlayerManager.leave(db, code, token)
        return OkResponse()

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to leave room: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{code}/players/{player_id}", response_model=OkResponse)
def kick_player(
    code: str,
    player_id: UUID,
    token: str = Query(...),
    db: Session = Depends(get_db)
):
    """房主踢人"""
    try:
        PlayerManager.kick(db, code, token, player_id)
        return OkResponse()

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to kick player: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@avatar_router.post("/avatar", response_model=OkResponse)
def update_avatar(body: AvatarUpdate, token: str = Query(...), db: Session = Depends(get_db)):
    """更新頭像"""
    try:
        PlayerManager.update_avatar(db, token, body.avatar)
        return OkResponse()

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to update avatar: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
