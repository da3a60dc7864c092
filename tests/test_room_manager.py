import random

import pytest

from models import Room, RoomStatus
from core.exceptions import RoomNotFound, AdminRequired, InvalidSessionToken, NotRoomMember
from core.room_manager import RoomManager, MAX_PLAYERS
from core.round_manager import RoundManager


def test_create_room_starts_in_lobby(db, rng):
    room = RoomManager.create_room(db, rng)

    assert room.status == RoomStatus.LOBBY
    assert room.max_players == MAX_PLAYERS
    assert room.current_game_id is None
    assert len(room.code) == 6


def test_code_collision_is_retried(db):
    first = RoomManager.create_room(db, random.Random(5))
    second = RoomManager.create_room(db, random.Random(5))

    assert first.code != second.code
    assert db.query(Room).count() == 2


def test_lookup_is_case_insensitive(db, rng):
    room = RoomManager.create_room(db, rng)
    assert RoomManager.get_room_by_code(db, room.code.lower()).id == room.id


def test_unknown_room(db):
    with pytest.raises(RoomNotFound):
        RoomManager.get_room_by_code(db, "ZZZZZZ")


def test_room_state_hides_tokens(db, make_room):
    code, players = make_room(3)

    state = RoomManager.get_room_state(db, code)

    assert state["status"] == "LOBBY"
    assert [p["name"] for p in state["players"]] == ["P1", "P2", "P3"]
    assert [p["isAdmin"] for p in state["players"]] == [True, False, False]
    assert all("sessionToken" not in p for p in state["players"])
    assert state["activeGameParticipants"] == []


def test_settings_are_clamped(db, make_room, hub):
    code, players = make_room(3)
    admin = players[0]

    room = RoomManager.update_settings(db, code, admin.session_token, draw_seconds=5, vote_seconds=999)
    assert room.draw_seconds == 15
    assert room.vote_seconds == 180

    room = RoomManager.update_settings(db, code, admin.session_token, draw_seconds=90)
    assert room.draw_seconds == 90
    assert room.vote_seconds == 180

    updates = hub.of_type("SETTINGS_UPDATED")
    assert len(updates) == 2
    assert updates[-1]["drawSeconds"] == 90
    assert updates[-1]["maxPlayers"] == MAX_PLAYERS


def test_settings_require_admin(db, make_room, hub):
    code, players = make_room(3)

    with pytest.raises(AdminRequired):
        RoomManager.update_settings(db, code, players[1].session_token, draw_seconds=60)
    assert hub.of_type("SETTINGS_UPDATED") == []


def test_settings_reject_unknown_and_foreign_tokens(db, make_room):
    code, _ = make_room(3)
    _, others = make_room(1)

    with pytest.raises(InvalidSessionToken):
        RoomManager.update_settings(db, code, "not-a-token", draw_seconds=60)
    with pytest.raises(NotRoomMember):
        RoomManager.update_settings(db, code, others[0].session_token, draw_seconds=60)


def test_reset_ends_live_round(db, make_room, rng, hub):
    code, players = make_room(3)
    RoundManager.start_round(db, code, rng=rng)

    room = RoomManager.reset_room(db, code, players[0].session_token)

    assert room.status == RoomStatus.LOBBY
    state = RoomManager.get_room_state(db, code)
    assert state["activeGameParticipants"] == []
    assert hub.types()[-1] == "ROOM_RESET"

    # 房間可以開下一輪
    RoundManager.start_round(db, code, rng=rng)
    assert RoomManager.get_room_by_code(db, code).status == RoomStatus.DRAWING


def test_reset_requires_admin(db, make_room):
    code, players = make_room(3)
    with pytest.raises(AdminRequired):
        RoomManager.reset_room(db, code, players[2].session_token)
