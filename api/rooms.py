"""
Room API Endpoints

職責：
1. 建立房間、查詢房間狀態
2. 開始回合、取得自己的題目、退出回合
3. 房主修改設定、重置房間
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import (
    RoomCreateResponse,
    RoomStateResponse,
    SettingsUpdate,
    StartResponse,
    PromptResponse,
    OkResponse,
)
from core.room_manager import RoomManager
from core.round_manager import RoundManager
from core.exceptions import GameException
from api.errors import to_http_exception
from api.dependencies import get_rng

router = APIRouter(prefix="/api/rooms", tags=["rooms"])
logger = logging.getLogger(__name__)


@router.post("", response_model=RoomCreateResponse)
def create_room(db: Session = Depends(get_db)):
    """建立房間（狀態 LOBBY）"""
    try:
        room = RoomManager.create_room(db)
        return RoomCreateResponse(id=str(room.id), code=room.code, status=room.status.value)

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to create room: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{code}", response_model=RoomStateResponse)
def get_room_state(code: str, db: Session = Depends(get_db)):
    """
    房間狀態

    返回：
        - 房間設定與狀態
        - active 玩家（不含 token）
        - 進行中回合的 active 參與者
    """
    try:
        return RoomManager.get_room_state(db, code)

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to get room state: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{code}/start", response_model=StartResponse)
def start_round(code: str, db: Session = Depends(get_db), rng=Depends(get_rng)):
    """
    開始回合

    回應不包含臥底身分與臥底題目
    """
    try:
        return RoundManager.start_round(db, code, rng=rng)

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to start round: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{code}/settings", response_model=OkResponse)
def update_settings(
    code: str,
    body: SettingsUpdate,
    token: str = Query(...),
    db: Session = Depends(get_db)
):
    """房主修改繪圖 / 投票秒數（超出範圍的值會被夾住）"""
    try:
        RoomManager.update_settings(
            db, code, token,
            draw_seconds=body.draw_seconds,
            vote_seconds=body.vote_seconds,
        )
        return OkResponse()

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to update settings: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{code}/prompt", response_model=PromptResponse)
def get_my_prompt(code: str, token: str = Query(...), db: Session = Depends(get_db)):
    """取得自己的題目（臥底拿到不同的題目）"""
    try:
        return RoundManager.get_prompt(db, code, token)

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to get prompt: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{code}/reset", response_model=OkResponse)
def reset_room(code: str, token: str = Query(...), db: Session = Depends(get_db)):
    """房主把房間帶回 LOBBY"""
    try:
        RoomManager.reset_room(db, code, token)
        return OkResponse()

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to reset room: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{code}/leave-game", response_model=OkResponse)
def leave_game(code: str, token: str = Query(...), db: Session = Depends(get_db)):
    """退出目前回合，但留在房間"""
    try:
        RoundManager.leave_game(db, code, token)
        return OkResponse()

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to leave game: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
