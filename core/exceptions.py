"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理

分類（每個分類帶有對應的 HTTP status）：
- NotFoundError        404  房間 / 玩家 / 回合不存在
- UnauthenticatedError 401  session token 無效
- ForbiddenError       403  token 有效但不屬於此房間，或權限不足
- ConflictError        409  重複提交、重複投票、房間已滿、非法狀態轉換
- PreconditionError    400  人數不足、沒有題目、階段不對
"""


class GameException(Exception):
    """所有遊戲異常的基類"""
    status_code = 500


class NotFoundError(GameException):
    status_code = 404


class UnauthenticatedError(GameException):
    status_code = 401


class ForbiddenError(GameException):
    status_code = 403


class ConflictError(GameException):
    status_code = 409


class PreconditionError(GameException):
    status_code = 400


# ============ Room 相關異常 ============

class RoomNotFound(NotFoundError):
    """房間不存在"""
    def __init__(self, code):
        self.code = code
        super().__init__(f"Room {code} not found")


class DuplicateRoomCode(ConflictError):
    """房間代碼碰撞（由 RoomManager 內部重試吸收，不會傳到 API 層）"""
    pass


class CapacityExceeded(ConflictError):
    """房間已滿"""
    def __init__(self, max_players):
        self.max_players = max_players
        super().__init__(f"Room is full (max {max_players} players)")


# ============ Player / 授權相關異常 ============

class PlayerNotFound(NotFoundError):
    """玩家不存在"""
    def __init__(self, player_id):
        self.player_id = player_id
        super().__init__(f"Player {player_id} not found")


class InvalidSessionToken(UnauthenticatedError):
    """session token 不存在（或玩家已離開）"""
    def __init__(self):
        super().__init__("Invalid token")


class NotRoomMember(ForbiddenError):
    """token 有效，但玩家不屬於此房間"""
    def __init__(self):
        super().__init__("Token not for this room")


class AdminRequired(ForbiddenError):
    """只有房主可以執行"""
    pass


class NotRoundParticipant(ForbiddenError):
    """玩家不是本回合的（active）參與者"""
    def __init__(self):
        super().__init__("Player is not an active participant of this round")


# ============ Round 相關異常 ============

class RoundNotStarted(NotFoundError):
    """房間還沒有任何回合"""
    def __init__(self, code):
        self.code = code
        super().__init__(f"Game not started in room {code}")


class InsufficientPlayers(PreconditionError):
    """開始遊戲的人數不足"""
    def __init__(self, required, actual):
        self.required = required
        self.actual = actual
        super().__init__(f"Need at least {required} players, got {actual}")


class NoPromptsAvailable(PreconditionError):
    """題庫是空的"""
    def __init__(self):
        super().__init__("No prompts available")


class WrongPhase(PreconditionError):
    """目前階段不允許這個動作"""
    def __init__(self, action, status):
        self.action = action
        self.status = status
        super().__init__(f"Cannot {action} while room is in {status}")


class AlreadySubmitted(ConflictError):
    """玩家已經提交過畫作了"""
    def __init__(self):
        super().__init__("Drawing already submitted for this game")


class EmptyDrawing(PreconditionError):
    """上傳的檔案是空的"""
    def __init__(self):
        super().__init__("Uploaded drawing is empty")


class AlreadyVoted(ConflictError):
    """玩家已經投過票了"""
    def __init__(self):
        super().__init__("Already voted")


class InvalidVoteTarget(PreconditionError):
    """投票 / 反應的對象不屬於此房間"""
    def __init__(self):
        super().__init__("Invalid target")


class ResultsNotAvailable(PreconditionError):
    """結果尚未公布（避免提前洩漏臥底身分）"""
    def __init__(self):
        super().__init__("Results are not available yet")


# ============ 狀態轉換異常 ============

class InvalidStateTransition(ConflictError):
    """非法的狀態轉換"""
    pass
