"""
API 的 request / response 結構

對外欄位使用 camelCase（playerId, isAdmin, sessionToken...），
Python 端用 snake_case，由 alias_generator 轉換。
"""
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============ Room ============

class RoomCreateResponse(CamelModel):
    id: str
    code: str
    status: str


class PlayerPublic(CamelModel):
    id: str
    name: str
    is_admin: bool
    avatar: Optional[str] = None


class RoomStateResponse(CamelModel):
    id: str
    code: str
    status: str
    players: List[PlayerPublic]
    draw_seconds: int
    vote_seconds: int
    max_players: int
    current_game_id: Optional[str] = None
    active_game_participants: List[str]


class SettingsUpdate(CamelModel):
    draw_seconds: Optional[int] = None
    vote_seconds: Optional[int] = None


class OkResponse(CamelModel):
    ok: bool = True


# ============ Player ============

class PlayerJoin(CamelModel):
    name: Optional[str] = Field(default=None, max_length=200)


class JoinResponse(CamelModel):
    player_id: str
    is_admin: bool
    session_token: str


class AvatarUpdate(CamelModel):
    avatar: str = ""


# ============ Round ============

class StartResponse(CamelModel):
    game_id: str
    room_id: str
    prompt_common: str


class PromptResponse(CamelModel):
    game_id: str
    prompt: str


# ============ Drawing ============

class DrawingItem(CamelModel):
    player_id: str
    file_path: str


class SubmissionStatusResponse(CamelModel):
    has_submitted: bool
    game_id: str
    submitted_at: Optional[str] = None


# ============ Vote ============

class ResultResponse(CamelModel):
    game_id: str
    imposter_id: str
    voted_out_id: Optional[str] = None
    winner: str
    tally: Dict[str, int]
