"""
core/events.py: 结构化事件日志

提供统一的事件类型常量（E 类）和 log_event() 格式化方法。
反馈生命周期、配额变动和区间分析均通过此模块记录，确保日志可 grep / 统计。

格式：event=xxx | key=val | key=val

用法：
    from core.log import get_logger
    from core.events import log_event, E

    logger = get_logger(__name__)
    log_event(logger, E.FEEDBACK_CREATE_COMPLETE, user_id="u1", diary_id="d1")
    # 输出：event=feedback.create.complete | user_id=u1 | diary_id=d1
"""

import logging
from typing import Any


class E:
    """结构化事件类型常量，按功能模块分组。"""

    # ── 认证 Auth ──────────────────────────────────────────────────────────────
    AUTH_DEV_TOKEN_ISSUE = "auth.dev_token.issue"
    AUTH_TOKEN_VERIFY_FAIL = "auth.token.verify_fail"

    # ── 反馈 Feedback ──────────────────────────────────────────────────────────
    FEEDBACK_CREATE_START = "feedback.create.start"
    FEEDBACK_CREATE_COMPLETE = "feedback.create.complete"
    FEEDBACK_CREATE_FAIL = "feedback.create.fail"
    FEEDBACK_CREATE_DUPLICATE = "feedback.create.duplicate"
    FEEDBACK_DELETE = "feedback.delete"
    FEEDBACK_ACCESS_DENIED = "feedback.access.denied"

    # ── 每日配额 Quota ─────────────────────────────────────────────────────────
    QUOTA_CREATE = "quota.create"
    QUOTA_CONSUME = "quota.consume"
    QUOTA_EXCEED = "quota.exceed"
    QUOTA_RELEASE = "quota.release"
    QUOTA_RELEASE_SKIP = "quota.release.skip"

    # ── 区间分析 Period ────────────────────────────────────────────────────────
    PERIOD_ANALYSIS_START = "period.analysis.start"
    PERIOD_ANALYSIS_COMPLETE = "period.analysis.complete"
    PERIOD_ANALYSIS_FAIL = "period.analysis.fail"

    # ── 日记 Diary ─────────────────────────────────────────────────────────────
    DIARY_DELETE = "diary.delete"

    # ── 系统 System ────────────────────────────────────────────────────────────
    SYSTEM_STARTUP = "system.startup"
    SYSTEM_DB_INIT = "system.db_init"


def log_event(
    logger: logging.Logger,
    event: str,
    level: str = "info",
    **fields: Any,
) -> None:
    """
    记录结构化事件日志，格式：event=xxx | key=val | key=val

    示例：
        log_event(logger, E.QUOTA_EXCEED, level="warning", user_id="u1", used=2)
        # → event=quota.exceed | user_id=u1 | used=2
    """
    parts = [f"event={event}"]
    for k, v in fields.items():
        sv = str(v) if not isinstance(v, str) else v
        # 截断超长字段，避免单行日志过大
        if len(sv) > 300:
            sv = sv[:297] + "..."
        parts.append(f"{k}={sv}")
    msg = " | ".join(parts)
    getattr(logger, level)(msg, stacklevel=2)
