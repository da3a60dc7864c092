"""
Drawing API Endpoints

職責：
1. 上傳 / 撤回畫作（multipart file）
2. 畫廊列表
3. 自己的提交狀態
"""
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from sqlalchemy.orm import Session
from typing import List
import logging

from database import get_db
from schemas import DrawingItem, OkResponse, SubmissionStatusResponse
from core.drawing_manager import DrawingManager
from core.exceptions import GameException
from api.errors import to_http_exception
from api.dependencies import get_blob_store
from services.blob_store import LocalBlobStore

router = APIRouter(prefix="/api/rooms", tags=["drawings"])
logger = logging.getLogger(__name__)


@router.post("/{code}/drawings", response_model=OkResponse)
def submit_drawing(
    code: str,
    token: str = Query(...),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    blob_store: LocalBlobStore = Depends(get_blob_store)
):
    """
    提交畫作（每回合最多一次）

    所有 active 參與者都提交後，房間自動進入 VOTING
    """
    try:
        data = file.file.read()
        DrawingManager.submit_drawing(db, code, token, data, blob_store, filename=file.filename)
        return OkResponse()

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to submit drawing: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.delete("/{code}/drawings", response_model=OkResponse)
def withdraw_drawing(code: str, token: str = Query(...), db: Session = Depends(get_db)):
    """撤回畫作（只在 DRAWING 階段）"""
    try:
        DrawingManager.unsubmit_drawing(db, code, token)
        return OkResponse()

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to withdraw drawing: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{code}/drawings", response_model=List[DrawingItem])
def list_drawings(
    code: str,
    db: Session = Depends(get_db),
    blob_store: LocalBlobStore = Depends(get_blob_store)
):
    try:
        return DrawingManager.list_drawings(db, code, blob_store)

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to list drawings: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{code}/drawings/status", response_model=SubmissionStatusResponse)
def get_submission_status(code: str, token: str = Query(...), db: Session = Depends(get_db)):
    try:
        return DrawingManager.get_submission_status(db, code, token)

    except GameException as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.error(f"Failed to get submission status: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
