import uuid
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import IntegrityError

from core import ai_service
from core.access_guard import check_ownership
from core.config import cfg
from core.diary_service import get_diary
from core.errors import (
    AIServiceError,
    AnalysisFailedError,
    DataValidationError,
    DuplicateFeedbackError,
    NotFoundError,
)
from core.events import E, log_event
from core.log import get_logger
from core.models.ai_feedback import AIFeedback
from core.prompt_templates import FEEDBACK_STYLES, normalize_feedback_style
from core.quota_service import daily_limit, daily_usage_snapshot, release, try_consume
from core.user_service import get_user

logger = get_logger(__name__)


def _preview_chars() -> int:
    try:
        value = int(cfg.get("feedback.history_preview_chars", 120) or 120)
    except Exception:
        value = 120
    return max(10, value)


def _excerpt(text: str, limit: int) -> str:
    value = str(text or "").strip()
    if len(value) <= limit:
        return value
    return value[:limit].rstrip() + "..."


def get_feedback_by_diary(session, diary_id: str) -> Optional[AIFeedback]:
    return session.query(AIFeedback).filter(AIFeedback.diary_id == diary_id).first()


def list_feedbacks_in_range(session, owner_id: str, start_date: date, end_date: date) -> List[AIFeedback]:
    """按创建时间升序返回 [start_date, end_date] 内的反馈（两端都含当天）。"""
    start_at = datetime.combine(start_date, time.min)
    end_before = datetime.combine(end_date + timedelta(days=1), time.min)
    return session.query(AIFeedback).filter(
        AIFeedback.owner_id == owner_id,
        AIFeedback.created_at >= start_at,
        AIFeedback.created_at < end_before,
    ).order_by(AIFeedback.created_at.asc(), AIFeedback.id.asc()).all()


def serialize_feedback(feedback: AIFeedback) -> Dict[str, Any]:
    return {
        "id": feedback.id,
        "diary_id": feedback.diary_id,
        "summary": feedback.summary,
        "response": feedback.response,
        "feedback_style": feedback.feedback_style,
        "created_at": feedback.created_at.isoformat() if feedback.created_at else None,
    }


def _load_owned_diary(session, user_id: str, diary_id: str, action: str):
    diary = get_diary(session, diary_id)
    if not diary:
        raise NotFoundError("diary", "日记不存在")
    check_ownership(diary.owner_id, user_id, action)
    return diary


def create_feedback(
    session,
    user_id: str,
    diary_id: str,
    style: str,
    now: Optional[datetime] = None,
) -> AIFeedback:
    """
    为日记生成 AI 反馈。

    顺序固定为：用户 → 日记 → 归属校验 → 重复校验 → 占用配额 → 调用 AI → 保存。
    配额在 AI 调用之前占用，AI 失败或保存时撞上唯一约束都不会归还。
    """
    target = now or datetime.now()
    if not get_user(session, user_id):
        raise NotFoundError("user", "用户不存在")
    diary = _load_owned_diary(session, user_id, diary_id, "访问该日记")

    if get_feedback_by_diary(session, diary.id):
        log_event(logger, E.FEEDBACK_CREATE_DUPLICATE, level="warning", user_id=user_id, diary_id=diary.id)
        raise DuplicateFeedbackError(diary.id)

    feedback_style = normalize_feedback_style(style)
    if not feedback_style:
        raise DataValidationError(f"不支持的反馈风格: {style}，可选值: {', '.join(FEEDBACK_STYLES)}")

    used = try_consume(session, user_id, target.date(), daily_limit())
    log_event(logger, E.FEEDBACK_CREATE_START, user_id=user_id, diary_id=diary.id, style=feedback_style, used=used)

    try:
        summary = ai_service.generate_summary(diary.content)
        response = ai_service.generate_feedback(diary.content, feedback_style)
    except AIServiceError as e:
        log_event(logger, E.FEEDBACK_CREATE_FAIL, level="error", user_id=user_id, diary_id=diary.id, error=e)
        raise AnalysisFailedError(str(e), user_id=user_id, feedback_count=1) from e

    feedback = AIFeedback(
        id=str(uuid.uuid4()),
        owner_id=user_id,
        diary_id=diary.id,
        summary=summary,
        response=response,
        feedback_style=feedback_style,
        created_at=target,
        updated_at=target,
    )
    session.add(feedback)
    try:
        session.commit()
    except IntegrityError as e:
        # 并发请求已为同一日记写入反馈
        session.rollback()
        log_event(logger, E.FEEDBACK_CREATE_DUPLICATE, level="warning", user_id=user_id, diary_id=diary.id, stage="commit")
        raise DuplicateFeedbackError(diary.id) from e
    session.refresh(feedback)
    log_event(logger, E.FEEDBACK_CREATE_COMPLETE, user_id=user_id, diary_id=diary.id, feedback_id=feedback.id)
    return feedback


def get_feedback(session, user_id: str, diary_id: str) -> AIFeedback:
    diary = _load_owned_diary(session, user_id, diary_id, "访问该日记")
    feedback = get_feedback_by_diary(session, diary.id)
    if not feedback:
        raise NotFoundError("feedback", "该日记还没有反馈")
    return feedback


def delete_feedback(session, user_id: str, diary_id: str, now: Optional[datetime] = None) -> None:
    """
    删除反馈，并在反馈创建于当天时归还一次当日配额。

    创建日期早于今天的反馈删除后不修正历史计数。归还是删除提交之后的
    补偿动作，失败只记日志。
    """
    diary = _load_owned_diary(session, user_id, diary_id, "访问该日记")
    feedback = get_feedback_by_diary(session, diary.id)
    if not feedback:
        raise NotFoundError("feedback", "该日记还没有反馈")
    check_ownership(feedback.owner_id, user_id, "删除该反馈")

    created_date = feedback.created_at.date()
    feedback_id = feedback.id
    session.delete(feedback)
    session.commit()
    log_event(logger, E.FEEDBACK_DELETE, user_id=user_id, diary_id=diary.id, feedback_id=feedback_id)

    today = (now or datetime.now()).date()
    if created_date != today:
        log_event(logger, E.QUOTA_RELEASE_SKIP, level="debug", user_id=user_id, created=created_date, today=today)
        return
    try:
        release(session, user_id, created_date)
    except Exception:
        session.rollback()
        logger.exception("归还每日配额失败: user_id=%s date=%s", user_id, created_date)


def validate_date_range(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date is None or end_date is None:
        raise DataValidationError("开始日期和结束日期不能为空")
    if start_date > end_date:
        raise DataValidationError("开始日期不能晚于结束日期")


def get_feedback_history(session, user_id: str, start_date: date, end_date: date) -> Dict[str, Any]:
    validate_date_range(start_date, end_date)
    limit = _preview_chars()
    items = []
    for row in list_feedbacks_in_range(session, user_id, start_date, end_date):
        items.append({
            "feedback_id": row.id,
            "diary_id": row.diary_id,
            "date": row.created_at.date().isoformat(),
            "feedback_style": row.feedback_style,
            "summary": row.summary,
            "response_preview": _excerpt(row.response, limit),
        })
    return {
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
        "items": items,
    }


def get_daily_usage(session, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    return daily_usage_snapshot(session, user_id, now=now)
