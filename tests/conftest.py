import os
import random
import tempfile
import threading

# database.py 在 import 時讀取 settings，必須先把路徑指到暫存目錄
_scratch = tempfile.mkdtemp(prefix="imposter-test-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_scratch}/app.db")
os.environ.setdefault("UPLOAD_DIR", os.path.join(_scratch, "uploads"))
os.environ.setdefault("SEED_PROMPTS", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database import Base, get_db
from core.broadcaster import WebSocketHub, set_broadcaster
from core.player_manager import PlayerManager
from core.room_manager import RoomManager
from services.blob_store import LocalBlobStore
from services.prompt_catalog import seed_prompt_pairs
from api.dependencies import get_rng, get_blob_store


class RecordingHub(WebSocketHub):
    """記錄所有送出的事件，同時照常 fan-out 給 WebSocket 訂閱者"""

    def __init__(self):
        super().__init__()
        self.events = []
        self._record_lock = threading.Lock()

    def publish(self, topic, event):
        with self._record_lock:
            self.events.append((topic, event))
        super().publish(topic, event)

    def of_type(self, event_type):
        with self._record_lock:
            return [e for _, e in self.events if e["type"] == event_type]

    def types(self):
        with self._record_lock:
            return [e["type"] for _, e in self.events]

    def clear(self):
        with self._record_lock:
            self.events.clear()


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    seed_prompt_pairs(session)
    yield session
    session.close()


@pytest.fixture(autouse=True)
def hub():
    recorder = RecordingHub()
    set_broadcaster(recorder)
    yield recorder
    set_broadcaster(None)


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(tmp_path / "uploads")


@pytest.fixture
def make_room(db, rng):
    """建立房間並加入 n 位玩家，返回 (code, players)；第一位是房主"""
    def _make(n=3):
        room = RoomManager.create_room(db, rng)
        code = room.code
        players = [PlayerManager.join(db, code, f"P{i + 1}") for i in range(n)]
        return code, players
    return _make


@pytest.fixture
def client(db, session_factory, rng, blob_store):
    from main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_rng] = lambda: rng
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    yield TestClient(app)
    app.dependency_overrides.clear()
