import uuid

import pytest

from models import RoomStatus
from core.exceptions import AlreadyVoted, WrongPhase, ResultsNotAvailable, PlayerNotFound, InvalidVoteTarget
from core.drawing_manager import DrawingManager
from core.room_manager import RoomManager
from core.round_manager import RoundManager
from core.vote_manager import VoteManager


@pytest.fixture
def voting(db, make_room, rng, blob_store):
    code, players = make_room(3)
    RoundManager.start_round(db, code, rng=rng)
    for player in players:
        DrawingManager.submit_drawing(db, code, player.session_token, b"img", blob_store)
    return code, players


def test_vote_is_reflected_in_tally(db, voting, hub):
    code, (p1, p2, p3) = voting

    tally = VoteManager.cast_vote(db, code, p1.session_token, p2.id)

    assert tally == {str(p2.id): 1}
    assert VoteManager.get_tally(db, code) == tally
    assert hub.of_type("VOTE_UPDATE")[-1]["tally"] == tally


def test_second_vote_is_rejected_and_tally_unchanged(db, voting):
    code, (p1, p2, p3) = voting
    VoteManager.cast_vote(db, code, p1.session_token, p2.id)

    with pytest.raises(AlreadyVoted):
        VoteManager.cast_vote(db, code, p1.session_token, p3.id)

    assert VoteManager.get_tally(db, code) == {str(p2.id): 1}


def test_vote_only_during_voting(db, make_room, rng):
    code, players = make_room(3)
    RoundManager.start_round(db, code, rng=rng)

    with pytest.raises(WrongPhase):
        VoteManager.cast_vote(db, code, players[0].session_token, players[1].id)


def test_vote_target_must_be_in_room(db, voting, make_room):
    code, players = voting
    _, outsiders = make_room(1)

    with pytest.raises(PlayerNotFound):
        VoteManager.cast_vote(db, code, players[0].session_token, uuid.uuid4())
    with pytest.raises(InvalidVoteTarget):
        VoteManager.cast_vote(db, code, players[0].session_token, outsiders[0].id)


def test_results_hidden_until_revealed(db, voting):
    code, (p1, p2, _) = voting
    VoteManager.cast_vote(db, code, p1.session_token, p2.id)

    with pytest.raises(ResultsNotAvailable):
        VoteManager.get_result(db, code)


def test_all_votes_reveal_results_once(db, voting, hub):
    code, (p1, p2, p3) = voting

    VoteManager.cast_vote(db, code, p1.session_token, p2.id)
    VoteManager.cast_vote(db, code, p2.session_token, p3.id)
    VoteManager.cast_vote(db, code, p3.session_token, p2.id)

    assert RoomManager.get_room_by_code(db, code).status == RoomStatus.RESULTS
    assert len(hub.of_type("SHOW_RESULTS")) == 1

    result = VoteManager.get_result(db, code)
    assert result["votedOutId"] == str(p2.id)
    assert result["tally"] == {str(p2.id): 2, str(p3.id): 1}
    expected = "ARTISTS" if result["imposterId"] == str(p2.id) else "IMPOSTER"
    assert result["winner"] == expected
    assert VoteManager.get_result(db, code) == result


def test_tie_is_broken_by_lowest_id(db, make_room, rng, blob_store):
    code, players = make_room(4)
    RoundManager.start_round(db, code, rng=rng)
    for player in players:
        DrawingManager.submit_drawing(db, code, player.session_token, b"img", blob_store)

    a, b, c, d = players
    VoteManager.cast_vote(db, code, a.session_token, b.id)
    VoteManager.cast_vote(db, code, b.session_token, c.id)
    VoteManager.cast_vote(db, code, c.session_token, b.id)
    VoteManager.cast_vote(db, code, d.session_token, c.id)

    result = VoteManager.get_result(db, code)
    assert result["votedOutId"] == min(str(b.id), str(c.id))


def test_force_finish_with_no_votes(db, voting, hub):
    code, _ = voting

    assert RoundManager.finish(db, code) is True
    assert RoundManager.finish(db, code) is False
    assert len(hub.of_type("SHOW_RESULTS")) == 1

    result = VoteManager.get_result(db, code)
    assert result["votedOutId"] is None
    assert result["winner"] == "IMPOSTER"


def test_reaction_is_broadcast_immediately(db, voting, hub):
    code, (p1, p2, _) = voting

    VoteManager.react(db, code, p1.session_token, p2.id, "🔥")

    event = hub.of_type("REACTION")[0]
    assert event["fromPlayerId"] == str(p1.id)
    assert event["targetId"] == str(p2.id)
    assert event["emoji"] == "🔥"
