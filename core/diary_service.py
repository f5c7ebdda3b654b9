import uuid
from datetime import date, datetime
from typing import Optional

from core.access_guard import check_ownership
from core.errors import DataValidationError, NotFoundError
from core.events import E, log_event
from core.log import get_logger
from core.models.ai_feedback import AIFeedback
from core.models.diary import Diary

logger = get_logger(__name__)


def get_diary(session, diary_id: str) -> Optional[Diary]:
    key = str(diary_id or "").strip()
    if not key:
        return None
    return session.query(Diary).filter(Diary.id == key).first()


def create_diary(session, owner_id: str, content: str, diary_date: date) -> Diary:
    owner = str(owner_id or "").strip()
    if not owner:
        raise DataValidationError("owner_id 不能为空")
    if diary_date is None:
        raise DataValidationError("日记日期不能为空")
    now = datetime.now()
    diary = Diary(
        id=str(uuid.uuid4()),
        owner_id=owner,
        content=str(content or ""),
        diary_date=diary_date,
        created_at=now,
        updated_at=now,
    )
    session.add(diary)
    session.commit()
    session.refresh(diary)
    return diary


def delete_diary(session, owner_id: str, diary_id: str) -> None:
    """删除日记及其反馈；不改动任何每日配额记录。"""
    diary = get_diary(session, diary_id)
    if not diary:
        raise NotFoundError("diary", "日记不存在")
    check_ownership(diary.owner_id, owner_id, "删除该日记")
    removed = session.query(AIFeedback).filter(AIFeedback.diary_id == diary.id).delete(synchronize_session=False)
    session.delete(diary)
    session.commit()
    log_event(logger, E.DIARY_DELETE, user_id=owner_id, diary_id=diary.id, feedbacks=removed)
