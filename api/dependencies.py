"""
FastAPI dependencies：亂數來源與 blob store

測試時用 app.dependency_overrides 換成 seeded random.Random / 暫存目錄
"""
import secrets
from functools import lru_cache

from database import get_settings
from services.blob_store import LocalBlobStore


def get_rng():
    return secrets.SystemRandom()


@lru_cache()
def get_blob_store() -> LocalBlobStore:
    settings = get_settings()
    return LocalBlobStore(settings.upload_dir, settings.static_url_prefix)
