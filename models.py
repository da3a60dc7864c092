"""
資料模型

Room / Player / Game / GameParticipant / Drawing / Vote / PromptPair

唯一性約束全部在資料表層級宣告（不只靠「先查再寫」），
關閉 check 與 insert 之間的競態窗口。
"""
import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import relationship

from database import Base


def utcnow() -> datetime:
    """Naive UTC timestamp（SQLite 不保存時區，統一存 naive UTC）"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RoomStatus(str, enum.Enum):
    LOBBY = "LOBBY"
    DRAWING = "DRAWING"
    VOTING = "VOTING"
    RESULTS = "RESULTS"


class GameStatus(str, enum.Enum):
    DRAWING = "DRAWING"
    VOTING = "VOTING"
    RESULTS = "RESULTS"
    COMPLETED = "COMPLETED"  # 終止狀態


class Winner(str, enum.Enum):
    ARTISTS = "ARTISTS"
    IMPOSTER = "IMPOSTER"


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String(12), nullable=False, unique=True, index=True)
    status = Column(Enum(RoomStatus), nullable=False, default=RoomStatus.LOBBY)
    draw_seconds = Column(Integer, nullable=False, default=120)
    vote_seconds = Column(Integer, nullable=False, default=60)
    max_players = Column(Integer, nullable=False, default=8)
    # 明確的「目前回合」指標，與 status 在同一個 transaction 內更新
    # 不加 FK：rooms <-> games 會形成循環外鍵
    current_game_id = Column(Uuid, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    players = relationship(
        "Player",
        back_populates="room",
        order_by="Player.created_at",
    )


class Player(Base):
    __tablename__ = "players"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    room_id = Column(Uuid, ForeignKey("rooms.id"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    avatar = Column(Text, nullable=True)
    session_token = Column(String(128), nullable=False, unique=True, index=True)
    # soft delete：離開 / 被踢只把 active 設成 False，歷史回合仍引用這筆資料
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    room = relationship("Room", back_populates="players")


class PromptPair(Base):
    __tablename__ = "prompt_pairs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    common_prompt = Column(String(200), nullable=False)
    imposter_prompt = Column(String(200), nullable=False)


class Game(Base):
    __tablename__ = "games"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    room_id = Column(Uuid, ForeignKey("rooms.id"), nullable=False, index=True)
    status = Column(Enum(GameStatus), nullable=False, default=GameStatus.DRAWING)
    round_number = Column(Integer, nullable=False, default=1)
    prompt_common = Column(String(200), nullable=False)
    prompt_imposter = Column(String(200), nullable=False)
    imposter_id = Column(Uuid, ForeignKey("players.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    results_at = Column(DateTime, nullable=True)
    ended_at = Column(DateTime, nullable=True)

    room = relationship("Room", foreign_keys=[room_id])
    imposter = relationship("Player", foreign_keys=[imposter_id])


class GameParticipant(Base):
    __tablename__ = "game_participants"
    __table_args__ = (
        UniqueConstraint("game_id", "player_id", name="uq_participant_game_player"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    game_id = Column(Uuid, ForeignKey("games.id"), nullable=False, index=True)
    player_id = Column(Uuid, ForeignKey("players.id"), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    joined_at = Column(DateTime, nullable=False, default=utcnow)
    left_at = Column(DateTime, nullable=True)

    player = relationship("Player")


class Drawing(Base):
    __tablename__ = "drawings"
    __table_args__ = (
        UniqueConstraint("game_id", "player_id", name="uq_drawing_game_player"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    game_id = Column(Uuid, ForeignKey("games.id"), nullable=False, index=True)
    player_id = Column(Uuid, ForeignKey("players.id"), nullable=False)
    file_path = Column(String(500), nullable=False)
    submitted_at = Column(DateTime, nullable=False, default=utcnow)


class Vote(Base):
    __tablename__ = "votes"
    __table_args__ = (
        UniqueConstraint("game_id", "voter_id", name="uq_vote_game_voter"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    game_id = Column(Uuid, ForeignKey("games.id"), nullable=False, index=True)
    voter_id = Column(Uuid, ForeignKey("players.id"), nullable=False)
    target_id = Column(Uuid, ForeignKey("players.id"), nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)
