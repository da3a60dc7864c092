"""
Vote API Endpoints

職責：
1. 投票、查詢計票
2. 回合結果
3. 強制公布結果
4. 表情反應（不寫入 DB）
"""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
from typing import Dict
from uuid import UUID
import logging

from database import get_db
from schemas import OkResponse, ResultResponse
from core.vote_manager import VoteManager
from core.round_manager import RoundManager
from core.exceptions import GameException
from api.errors import to_http_exception

router = APIRouter(prefix="/api/rooms", tags=["votes"])
logger = logging.getLogger(__name__)


@router.post("/{code}/votes", response_model=Dict[str, int])
def cast_vote(
    code: str,
    token: str = Query(...),
    target_id: UUID = Query(..., alias="targetId"),
    db: Session = Depends(get_db)
):
    """
    投票（每回合一票，不能修改）

    返回：
        最新的 tally {playerId: count}
    """
    try:
        return VoteManager.cast_vote(db, code, token, target_id)

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to cast vote: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{code}/votes/tally", response_model=Dict[str, int])
def get_tally(code: str, db: Session = Depends(get_db)):
    try:
        return VoteManager.get_tally(db, code)

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to get tally: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{code}/votes/result", response_model=ResultResponse)
def get_result(code: str, db: Session = Depends(get_db)):
    """結果公布後才能查詢（之前回 400）"""
    try:
        return VoteManager.get_result(db, code)

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to get result: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{code}/votes/finish", response_model=OkResponse)
def finish_voting(code: str, db: Session = Depends(get_db)):
    """強制 VOTING -> RESULTS（已在 RESULTS 時不重複廣播）"""
    try:
        RoundManager.finish(db, code)
        return OkResponse()

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to finish voting: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("/{code}/reactions", response_model=OkResponse)
def react(
    code: str,
    token: str = Query(...),
    target_id: UUID = Query(..., alias="targetId"),
    emoji: str = Query(..., min_length=1, max_length=16),
    db: Session = Depends(get_db)
):
    try:
        VoteManager.react(db, code, token, target_id, emoji)
        return OkResponse()

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to send reaction: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
