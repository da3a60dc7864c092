import pytest

from models import Drawing, RoomStatus
from core.exceptions import AlreadySubmitted, EmptyDrawing, WrongPhase, NotRoundParticipant, RoundNotStarted
from core.drawing_manager import DrawingManager
from core.player_manager import PlayerManager
from core.room_manager import RoomManager
from core.round_manager import RoundManager


@pytest.fixture
def started(db, make_room, rng):
    code, players = make_room(3)
    RoundManager.start_round(db, code, rng=rng)
    return code, players


def _status(db, code):
    return RoomManager.get_room_by_code(db, code).status


def test_submit_stores_file_and_broadcasts(db, started, blob_store, hub):
    code, players = started

    drawing = DrawingManager.submit_drawing(db, code, players[0].session_token, b"img", blob_store, "a.png")

    assert blob_store.absolute_path(drawing.file_path).read_bytes() == b"img"
    uploaded = hub.of_type("DRAWING_UPLOADED")
    assert [e["playerId"] for e in uploaded] == [str(players[0].id)]
    assert _status(db, code) == RoomStatus.DRAWING


def test_last_submission_advances_to_voting_once(db, started, blob_store, hub):
    code, players = started

    for player in players:
        DrawingManager.submit_drawing(db, code, player.session_token, b"img", blob_store)

    assert _status(db, code) == RoomStatus.VOTING
    discuss = hub.of_type("DISCUSS_STARTED")
    assert len(discuss) == 1
    assert discuss[0]["voteEndTime"] == discuss[0]["serverTime"] + discuss[0]["voteSeconds"] * 1000


def test_resubmission_is_rejected(db, started, blob_store):
    code, players = started
    token = players[0].session_token
    DrawingManager.submit_drawing(db, code, token, b"first", blob_store)

    with pytest.raises(AlreadySubmitted):
        DrawingManager.submit_drawing(db, code, token, b"second", blob_store)

    assert db.query(Drawing).count() == 1


def test_empty_upload_is_rejected(db, started, blob_store):
    code, players = started
    with pytest.raises(EmptyDrawing):
        DrawingManager.submit_drawing(db, code, players[0].session_token, b"", blob_store)


def test_submit_outside_drawing_phase(db, make_room, blob_store):
    code, players = make_room(3)
    with pytest.raises(RoundNotStarted):
        DrawingManager.submit_drawing(db, code, players[0].session_token, b"img", blob_store)


def test_late_joiner_cannot_submit(db, started, blob_store):
    code, _ = started
    late = PlayerManager.join(db, code, "Late")

    with pytest.raises(NotRoundParticipant):
        DrawingManager.submit_drawing(db, code, late.session_token, b"img", blob_store)


def test_withdraw_allows_new_submission(db, started, blob_store):
    code, players = started
    token = players[1].session_token
    DrawingManager.submit_drawing(db, code, token, b"one", blob_store)

    assert DrawingManager.unsubmit_drawing(db, code, token) is True
    assert DrawingManager.get_submission_status(db, code, token)["hasSubmitted"] is False
    assert DrawingManager.unsubmit_drawing(db, code, token) is False

    DrawingManager.submit_drawing(db, code, token, b"two", blob_store)
    assert DrawingManager.get_submission_status(db, code, token)["hasSubmitted"] is True


def test_withdraw_only_while_drawing(db, started, blob_store):
    code, players = started
    for player in players:
        DrawingManager.submit_drawing(db, code, player.session_token, b"img", blob_store)

    with pytest.raises(WrongPhase):
        DrawingManager.unsubmit_drawing(db, code, players[0].session_token)


def test_leaver_no_longer_blocks_voting(db, started, blob_store, hub):
    code, players = started
    DrawingManager.submit_drawing(db, code, players[0].session_token, b"img", blob_store)
    DrawingManager.submit_drawing(db, code, players[1].session_token, b"img", blob_store)
    assert _status(db, code) == RoomStatus.DRAWING

    RoundManager.leave_game(db, code, players[2].session_token)

    assert _status(db, code) == RoomStatus.VOTING
    assert len(hub.of_type("DISCUSS_STARTED")) == 1


def test_leaver_drawing_does_not_count(db, started, blob_store):
    code, players = started
    DrawingManager.submit_drawing(db, code, players[0].session_token, b"img", blob_store)
    RoundManager.leave_game(db, code, players[0].session_token)

    DrawingManager.submit_drawing(db, code, players[1].session_token, b"img", blob_store)
    assert _status(db, code) == RoomStatus.DRAWING

    DrawingManager.submit_drawing(db, code, players[2].session_token, b"img", blob_store)
    assert _status(db, code) == RoomStatus.VOTING


def test_list_drawings_resolves_urls(db, started, blob_store):
    code, players = started
    DrawingManager.submit_drawing(db, code, players[0].session_token, b"img", blob_store)

    items = DrawingManager.list_drawings(db, code, blob_store)

    assert len(items) == 1
    assert items[0]["playerId"] == str(players[0].id)
    assert items[0]["filePath"].startswith(f"/static/{code}/")
