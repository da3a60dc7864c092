import random
import threading

from models import Game, Drawing, RoomStatus
from core.exceptions import InvalidStateTransition
from core.drawing_manager import DrawingManager
from core.room_manager import RoomManager
from core.round_manager import RoundManager
from core.vote_manager import VoteManager


def _run_concurrently(session_factory, actions):
    """每個 action 在自己的 thread 與 session 內執行，同時起跑"""
    barrier = threading.Barrier(len(actions))
    outcomes = [None] * len(actions)

    def runner(index, action):
        session = session_factory()
        try:
            barrier.wait()
            outcomes[index] = ("ok", action(session))
        except Exception as e:
            outcomes[index] = ("error", e)
        finally:
            session.close()

    threads = [threading.Thread(target=runner, args=(i, a)) for i, a in enumerate(actions)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)
    return outcomes


def test_concurrent_starts_create_one_game(db, session_factory, make_room):
    code, _ = make_room(4)

    outcomes = _run_concurrently(session_factory, [
        (lambda s, seed=seed: RoundManager.start_round(s, code, rng=random.Random(seed)))
        for seed in range(6)
    ])

    successes = [o for o in outcomes if o[0] == "ok"]
    failures = [o for o in outcomes if o[0] == "error"]
    assert len(successes) == 1
    assert all(isinstance(e, InvalidStateTransition) for _, e in failures)
    assert db.query(Game).count() == 1


def test_concurrent_final_submissions_advance_once(db, session_factory, make_room, rng, blob_store, hub):
    code, players = make_room(6)
    RoundManager.start_round(db, code, rng=rng)
    tokens = [p.session_token for p in players]

    outcomes = _run_concurrently(session_factory, [
        (lambda s, token=token: DrawingManager.submit_drawing(s, code, token, b"img", blob_store))
        for token in tokens
    ])

    assert all(o[0] == "ok" for o in outcomes)
    db.expire_all()
    assert RoomManager.get_room_by_code(db, code).status == RoomStatus.VOTING
    assert db.query(Drawing).count() == 6
    assert len(hub.of_type("DISCUSS_STARTED")) == 1
    # DISCUSS_STARTED 永遠在所有 DRAWING_UPLOADED 之後
    assert hub.types()[-1] == "DISCUSS_STARTED"


def test_duplicate_concurrent_submissions_store_one_row(db, session_factory, make_room, rng, blob_store):
    code, players = make_room(3)
    RoundManager.start_round(db, code, rng=rng)
    token = players[0].session_token

    outcomes = _run_concurrently(session_factory, [
        (lambda s: DrawingManager.submit_drawing(s, code, token, b"img", blob_store))
        for _ in range(5)
    ])

    assert sum(1 for o in outcomes if o[0] == "ok") == 1
    assert db.query(Drawing).count() == 1


def test_concurrent_votes_reveal_results_once(db, session_factory, make_room, rng, blob_store, hub):
    code, players = make_room(5)
    RoundManager.start_round(db, code, rng=rng)
    for player in players:
        DrawingManager.submit_drawing(db, code, player.session_token, b"img", blob_store)
    target = players[0].id

    outcomes = _run_concurrently(session_factory, [
        (lambda s, token=p.session_token: VoteManager.cast_vote(s, code, token, target))
        for p in players
    ])

    assert all(o[0] == "ok" for o in outcomes)
    db.expire_all()
    assert RoomManager.get_room_by_code(db, code).status == RoomStatus.RESULTS
    assert len(hub.of_type("SHOW_RESULTS")) == 1
    assert VoteManager.get_tally(db, code) == {str(target): 5}
