"""
業務異常 -> HTTPException

每個異常分類帶有自己的 status_code（見 core.exceptions），
回應 body：{"detail": {"error": <訊息>, "code": <異常名稱>}}
"""
from fastapi import HTTPException

from core.exceptions import GameException


def to_http_exception(exc: GameException) -> HTTPException:
    return HTTPException(
        status_code=exc.status_code,
        detail={"error": str(exc), "code": type(exc).__name__},
    )
