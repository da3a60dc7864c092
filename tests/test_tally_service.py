from models import Winner
from services.tally_service import pick_voted_out, decide_winner


def test_highest_count_is_voted_out():
    assert pick_voted_out({"a": 1, "b": 3, "c": 2}) == "b"


def test_tie_goes_to_lowest_player_id():
    assert pick_voted_out({"b": 2, "a": 2, "c": 1}) == "a"
    assert pick_voted_out({"c": 1, "b": 1}) == "b"


def test_no_votes_means_nobody_voted_out():
    assert pick_voted_out({}) is None


def test_artists_win_when_imposter_voted_out():
    assert decide_winner("imp", "imp") == Winner.ARTISTS


def test_imposter_wins_on_wrong_or_missing_vote():
    assert decide_winner("imp", "other") == Winner.IMPOSTER
    assert decide_winner("imp", None) == Winner.IMPOSTER
