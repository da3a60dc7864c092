"""
命名服務：生成 Room Code、Session Token 和預設玩家名稱

純計算邏輯，不涉及狀態轉換
"""
import secrets
import uuid

# 排除容易混淆的字元（I / O / 0 / 1）
CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LENGTH = 6

MAX_NAME_LENGTH = 50

_system_random = secrets.SystemRandom()


def generate_room_code(rng=None, length: int = CODE_LENGTH) -> str:
    """
    生成隨機的 6 位房間代碼

    範例：K7QXNP, 2MZC9A

    注意：
    - 不檢查唯一性（由呼叫者負責）
    - 32^6 ≈ 10 億種可能，碰撞機率極低
    - rng 可傳入 seeded random.Random 方便測試，預設用 secrets.SystemRandom
    """
    rng = rng or _system_random
    return ''.join(rng.choice(CODE_ALPHABET) for _ in range(length))


def generate_session_token() -> str:
    """
    生成玩家的 session token

    uuid4 提供 122 bits 的隨機性（來源是 os.urandom），
    token 是唯一的身分憑證，不可被猜測
    """
    return str(uuid.uuid4())


def normalize_player_name(name, rng=None) -> str:
    """
    整理玩家名稱

    - 去除前後空白並截斷到 50 字
    - 沒有提供名稱時使用「Player<n>」
    """
    rng = rng or _system_random
    cleaned = (name or "").strip()[:MAX_NAME_LENGTH]
    if not cleaned:
        cleaned = f"Player{rng.randrange(1000)}"
    return cleaned
