import os
import uuid
from unittest import mock

import pytest

from services.blob_store import LocalBlobStore


def _ids():
    return uuid.uuid4(), uuid.uuid4()


def test_put_publishes_file_under_room_and_game(tmp_path):
    store = LocalBlobStore(tmp_path, url_prefix="/static/")
    game_id, player_id = _ids()

    path = store.put("ABCDEF", game_id, player_id, b"png-bytes", filename="me.PNG")

    assert path.startswith(f"ABCDEF/{game_id}/{player_id}_")
    assert path.endswith(".png")
    assert store.absolute_path(path).read_bytes() == b"png-bytes"
    assert store.resolve(path) == f"/static/{path}"


def test_unknown_suffix_defaults_to_png(tmp_path):
    store = LocalBlobStore(tmp_path)
    game_id, player_id = _ids()
    assert store.put("ROOM22", game_id, player_id, b"x", filename="evil.exe").endswith(".png")


def test_resubmission_never_overwrites_previous_file(tmp_path):
    store = LocalBlobStore(tmp_path)
    game_id, player_id = _ids()

    first = store.put("ROOM22", game_id, player_id, b"one")
    second = store.put("ROOM22", game_id, player_id, b"two")

    assert first != second
    assert store.absolute_path(first).read_bytes() == b"one"


def test_failed_write_leaves_no_partial_files(tmp_path):
    store = LocalBlobStore(tmp_path)
    game_id, player_id = _ids()

    with mock.patch("services.blob_store.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(OSError):
            store.put("ROOM22", game_id, player_id, b"data")

    leftovers = [f for _, _, files in os.walk(tmp_path) for f in files]
    assert leftovers == []


def test_absolute_path_rejects_escape(tmp_path):
    store = LocalBlobStore(tmp_path / "blobs")
    with pytest.raises(ValueError):
        store.absolute_path("../outside.png")
