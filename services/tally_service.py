"""
計票服務：投票統計與勝負判定

純計算邏輯，不改變任何狀態
"""
from typing import Dict, Optional, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.orm import Session

from models import Vote, Winner


def count_votes(game_id: UUID, db: Session) -> Dict[str, int]:
    """
    計算一個回合內每位被指控者的得票數

    返回：
        {target_id(str): 票數}
    """
    rows = (
        db.query(Vote.target_id, func.count(Vote.id))
        .filter(Vote.game_id == game_id)
        .group_by(Vote.target_id)
        .all()
    )
    return {str(target_id): count for target_id, count in rows}


def pick_voted_out(tally: Dict[str, int]) -> Optional[str]:
    """
    找出被投出的人

    規則：
    - 得票數最高者出局
    - 平手時取 player id 字串最小者（固定規則，不依賴 dict 的迭代順序）
    - 沒有任何票時返回 None

    範例：
        {"b": 2, "a": 2, "c": 1} -> "a"
    """
    if not tally:
        return None
    return min(tally.items(), key=lambda item: (-item[1], item[0]))[0]


def decide_winner(imposter_id: str, voted_out_id: Optional[str]) -> Winner:
    """
    判定勝方

    ┌──────────────────────┬──────────┐
    │ 被投出的人是臥底      │ ARTISTS  │
    │ 投錯人 / 沒人被投出   │ IMPOSTER │
    └──────────────────────┴──────────┘
    """
    if voted_out_id is not None and voted_out_id == imposter_id:
        return Winner.ARTISTS
    return Winner.IMPOSTER


def compute_result(game_id: UUID, imposter_id: UUID, db: Session) -> Tuple[Dict[str, int], Optional[str], Winner]:
    """tally + 出局者 + 勝方，重複呼叫結果相同（沒有新票時）"""
    tally = count_votes(game_id, db)
    voted_out = pick_voted_out(tally)
    return tally, voted_out, decide_winner(str(imposter_id), voted_out)
