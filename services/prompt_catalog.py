"""
題庫服務

PromptPair 是靜態資料（一般題目 / 臥底題目），執行期間只讀。
啟動時如果資料表是空的，寫入內建題庫。
"""
import logging
from typing import List, Tuple

from sqlalchemy.orm import Session

from models import PromptPair

logger = logging.getLogger(__name__)

DEFAULT_PROMPT_PAIRS: List[Tuple[str, str]] = [
    ("Cat", "Tiger"),
    ("Pizza", "Pie"),
    ("Beach", "Desert"),
    ("Guitar", "Violin"),
    ("Rocket", "Airplane"),
    ("Snowman", "Scarecrow"),
    ("Castle", "Tent"),
    ("Apple", "Tomato"),
    ("Dragon", "Dinosaur"),
    ("Bicycle", "Motorcycle"),
    ("Lighthouse", "Windmill"),
    ("Octopus", "Jellyfish"),
    ("Umbrella", "Parachute"),
    ("Volcano", "Mountain"),
    ("Robot", "Astronaut"),
    ("Cupcake", "Ice cream"),
]


def list_prompt_pairs(db: Session) -> List[PromptPair]:
    return db.query(PromptPair).order_by(PromptPair.common_prompt, PromptPair.id).all()


def seed_prompt_pairs(db: Session, pairs: List[Tuple[str, str]] = None) -> int:
    """
    題庫為空時寫入預設題目

    返回：
        新增的題目數量（題庫已有資料時為 0）
    """
    if db.query(PromptPair).first() is not None:
        return 0

    pairs = pairs if pairs is not None else DEFAULT_PROMPT_PAIRS
    for common, imposter in pairs:
        db.add(PromptPair(common_prompt=common, imposter_prompt=imposter))
    db.commit()

    logger.info(f"Seeded {len(pairs)} prompt pairs")
    return len(pairs)
