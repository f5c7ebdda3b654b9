from typing import Any, Dict

from fastapi import HTTPException

from core.errors import FeedbackServiceError


def success_response(data: Any = None, message: str = "success", code: int = 0) -> Dict[str, Any]:
    return {
        "code": code,
        "message": message,
        "data": data,
    }


def raise_http_error(exc: FeedbackServiceError) -> None:
    """把服务层异常转换成对应状态码的 HTTPException。"""
    raise HTTPException(
        status_code=exc.status_code,
        detail=exc.message,
        headers={"X-Error-Code": exc.code},
    ) from exc
