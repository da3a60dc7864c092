from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache, wraps
from typing import List
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    database_url: str = "sqlite:///./imposter_game.db"

    # Blob store：上傳的畫作存放位置與對外 URL 前綴
    upload_dir: str = "uploads"
    static_url_prefix: str = "/static"

    # Expiry Sweeper
    sweep_interval_seconds: int = 30
    game_expiry_seconds: int = 600

    # 開始前倒數（讓所有客戶端同步動畫）
    countdown_seconds: int = 3
    countdown_buffer_ms: int = 800

    allowed_origins: List[str] = ["*"]
    log_level: str = "INFO"
    seed_prompts: bool = True

    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True)


@lru_cache()
def get_settings():
    return Settings()


settings = get_settings()

# SQLite 需要特殊設定：connect_args={"check_same_thread": False}
# 這允許多執行緒存取同一個 SQLite 連線（FastAPI 的多執行緒環境需要）
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    pool_pre_ping=True
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency：提供 Database Session

    使用 yield 確保 session 在請求結束後會被關閉
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def transactional(func):
    """
    Transaction decorator：確保資料庫操作的原子性

    使用方式：
        @transactional
        def some_business_logic(db: Session, ...):
            room = lock_room(db, code)
            room.status = RoomStatus.DRAWING
            queue_event(db, room.code, EventType.GAME_STARTED, ...)
            # 不需要手動 commit，decorator 會處理

    成功時：
        1. commit
        2. 發送交易期間排隊的廣播事件（commit 之後才發送，客戶端不會看到被 rollback 的狀態）
        3. 釋放交易期間取得的房間鎖

    如果函式內發生異常：
        - 自動 rollback，並丟棄排隊中的事件
        - 釋放房間鎖
        - 異常會被重新拋出（讓上層處理）

    注意：
        - 第一個參數必須是 db: Session
        - 不要在函式內手動 commit（decorator 會處理）
        - 不要巢狀呼叫另一個 @transactional 函式
    """
    # 避免 circular import（core.events / core.locks 依賴 models -> database）
    from core.events import publish_pending_events, discard_pending_events
    from core.locks import release_room_locks
    from core.exceptions import GameException

    @wraps(func)
    def wrapper(*args, **kwargs):
        # 找出 db session（可能在 args 或 kwargs）
        db = None
        if args and isinstance(args[0], Session):
            db = args[0]
        elif 'db' in kwargs:
            db = kwargs['db']

        if db is None:
            raise ValueError(
                f"@transactional requires 'db: Session' as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
        except Exception as e:
            if isinstance(e, GameException):
                # 業務規則拒絕（例如重複投票），不需要 stack trace
                logger.info(f"Transaction rejected in {func.__name__}: {e}")
            else:
                logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            discard_pending_events(db)
            release_room_locks(db)
            raise

        try:
            publish_pending_events(db)
        finally:
            release_room_locks(db)
        return result

    return wrapper
