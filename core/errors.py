"""
反馈服务的异常体系。

服务层只抛出 FeedbackServiceError 子类，路由层统一转换为 HTTPException；
status_code 即对外的 HTTP 状态码。
"""

from typing import Optional


class FeedbackServiceError(Exception):
    status_code = 400
    code = "FEEDBACK_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(FeedbackServiceError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, entity: str, message: Optional[str] = None):
        self.entity = entity
        super().__init__(message or f"{entity} 不存在")


class AccessDeniedError(FeedbackServiceError):
    status_code = 403
    code = "ACCESS_DENIED"

    def __init__(self, action: str):
        self.action = action
        super().__init__(f"无权限{action}")


class DuplicateFeedbackError(FeedbackServiceError):
    status_code = 409
    code = "DUPLICATE_FEEDBACK"

    def __init__(self, diary_id: str = ""):
        self.diary_id = diary_id
        super().__init__("该日记已存在反馈")


class QuotaExceededError(FeedbackServiceError):
    status_code = 429
    code = "QUOTA_EXCEEDED"

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"今日反馈次数已用完（每日最多 {limit} 次）")


class DataValidationError(FeedbackServiceError):
    status_code = 400
    code = "VALIDATION_ERROR"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class AnalysisFailedError(FeedbackServiceError):
    status_code = 502
    code = "ANALYSIS_FAILED"

    def __init__(self, cause: str, user_id: str = "", feedback_count: int = 0):
        self.cause = cause
        self.user_id = user_id
        self.feedback_count = feedback_count
        super().__init__(f"AI 分析失败: {cause}")


class AIServiceError(Exception):
    """AI 服务调用失败（网络、超时、模型返回异常）。"""
    pass
