"""
Blob store：畫作檔案的本地儲存

寫入流程（讀者永遠看不到寫到一半的檔案）：
1. 在目標目錄寫入暫存檔（.tmp）
2. fsync
3. os.replace 原子地搬到最終路徑
4. 任何失敗都盡量刪掉暫存檔

檔名包含隨機後綴，同一個玩家撤回後重新提交不會覆蓋舊檔。
舊檔（撤回、或 row commit 失敗留下的孤兒檔）由外部清理。
"""
import os
import uuid
import logging
import tempfile
from pathlib import Path, PurePosixPath
from uuid import UUID

logger = logging.getLogger(__name__)

ALLOWED_SUFFIXES = {".png", ".jpg", ".jpeg", ".webp", ".gif"}
DEFAULT_SUFFIX = ".png"


class LocalBlobStore:
    def __init__(self, root, url_prefix: str = "/static"):
        self.root = Path(root)
        self.url_prefix = url_prefix.rstrip("/")

    def put(self, room_code: str, game_id: UUID, player_id: UUID, data: bytes, filename: str = None) -> str:
        """
        寫入畫作並原子發布

        返回：
            相對於 root 的路徑（posix 格式），例如 ABCDEF/<game_id>/<player_id>_<hex>.png

        異常：
            FileExistsError: 目標路徑已存在（不覆蓋已發布的檔案）
            OSError: 寫入失敗
        """
        suffix = Path(filename or "").suffix.lower()
        if suffix not in ALLOWED_SUFFIXES:
            suffix = DEFAULT_SUFFIX

        relative = PurePosixPath(room_code, str(game_id), f"{player_id}_{uuid.uuid4().hex}{suffix}")
        dest = self.root.joinpath(*relative.parts)
        dest.parent.mkdir(parents=True, exist_ok=True)

        if dest.exists():
            raise FileExistsError(f"Blob already exists: {relative}")

        fd, tmp_name = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as tmp:
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, dest)
        finally:
            if os.path.exists(tmp_name):
                try:
                    os.remove(tmp_name)
                except OSError:
                    logger.warning(f"Could not remove temp file {tmp_name}")

        logger.info(f"Stored drawing {relative} ({len(data)} bytes)")
        return str(relative)

    def resolve(self, path: str) -> str:
        """相對路徑 -> 對外可讀取的 URL"""
        return f"{self.url_prefix}/{path}"

    def absolute_path(self, path: str) -> Path:
        """相對路徑 -> 本地檔案路徑（拒絕跳出 root 的路徑）"""
        root = self.root.resolve()
        target = (root / path).resolve()
        if root != target and root not in target.parents:
            raise ValueError(f"Path escapes blob root: {path}")
        return target
