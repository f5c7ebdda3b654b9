import threading
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, Iterator, Optional, Tuple, Union

from sqlalchemy.exc import IntegrityError

from core.config import cfg
from core.errors import QuotaExceededError
from core.events import E, log_event
from core.log import get_logger
from core.models.daily_feedback_usage import DailyFeedbackUsage

logger = get_logger(__name__)

DEFAULT_DAILY_LIMIT = 2

# (owner_id, date) -> [锁, 当前持有或等待的线程数]
_KEY_LOCKS: Dict[Tuple[str, str], list] = {}
_KEY_LOCKS_GUARD = threading.Lock()


def daily_limit() -> int:
    try:
        value = int(cfg.get("feedback.daily_limit", DEFAULT_DAILY_LIMIT) or DEFAULT_DAILY_LIMIT)
    except Exception:
        value = DEFAULT_DAILY_LIMIT
    return max(1, value)


def _date_key(target: Union[date, datetime, str, None] = None) -> str:
    if isinstance(target, str):
        return target[:10]
    if isinstance(target, datetime):
        return target.strftime("%Y-%m-%d")
    if isinstance(target, date):
        return target.isoformat()
    return datetime.now().strftime("%Y-%m-%d")


def _usage_id(owner_id: str, date_key: str) -> str:
    return f"{owner_id}:{date_key}"


@contextmanager
def _key_lock(owner_id: str, date_key: str) -> Iterator[None]:
    """同一 (用户, 日期) 的读-改-写在进程内串行执行。"""
    key = (str(owner_id), date_key)
    with _KEY_LOCKS_GUARD:
        entry = _KEY_LOCKS.get(key)
        if entry is None:
            entry = [threading.Lock(), 0]
            _KEY_LOCKS[key] = entry
        entry[1] += 1
    try:
        with entry[0]:
            yield
    finally:
        # 最后一个使用者离开时移除该键
        with _KEY_LOCKS_GUARD:
            entry[1] -= 1
            if entry[1] <= 0:
                _KEY_LOCKS.pop(key, None)


def _find_usage(session, owner_id: str, date_key: str) -> Optional[DailyFeedbackUsage]:
    # 计数由条件 UPDATE 直接改库，读取时总是以库中值覆盖会话缓存
    return session.query(DailyFeedbackUsage).populate_existing().filter(
        DailyFeedbackUsage.owner_id == owner_id,
        DailyFeedbackUsage.usage_date == date_key,
    ).first()


def get_usage(session, owner_id: str, usage_date: Union[date, datetime, str, None] = None) -> int:
    usage = _find_usage(session, owner_id, _date_key(usage_date))
    if usage is None:
        return 0
    return max(0, int(usage.used_count or 0))


def try_consume(
    session,
    owner_id: str,
    usage_date: Union[date, datetime, str, None] = None,
    limit: Optional[int] = None,
) -> int:
    """
    占用一次当日配额，返回占用后的次数。

    已达上限时抛出 QuotaExceededError，记录保持不变。递增通过带条件的
    UPDATE（used_count < limit）完成；首次插入由 (owner_id, usage_date)
    唯一约束兜底，插入冲突的一方回退到条件递增。
    """
    date_key = _date_key(usage_date)
    limit_value = daily_limit() if limit is None else int(limit)
    if limit_value < 1:
        raise QuotaExceededError(limit_value)

    with _key_lock(owner_id, date_key):
        for _ in range(2):
            now = datetime.now()
            usage = _find_usage(session, owner_id, date_key)
            if usage is None:
                session.add(
                    DailyFeedbackUsage(
                        id=_usage_id(owner_id, date_key),
                        owner_id=owner_id,
                        usage_date=date_key,
                        used_count=1,
                        created_at=now,
                        updated_at=now,
                    )
                )
                try:
                    session.commit()
                except IntegrityError:
                    # 其他进程已创建当日记录，改走条件递增
                    session.rollback()
                    continue
                log_event(logger, E.QUOTA_CREATE, user_id=owner_id, date=date_key, used=1, limit=limit_value)
                return 1

            updated = session.query(DailyFeedbackUsage).filter(
                DailyFeedbackUsage.id == usage.id,
                DailyFeedbackUsage.used_count < limit_value,
            ).update(
                {
                    DailyFeedbackUsage.used_count: DailyFeedbackUsage.used_count + 1,
                    DailyFeedbackUsage.updated_at: now,
                },
                synchronize_session=False,
            )
            if not updated:
                session.rollback()
                log_event(
                    logger,
                    E.QUOTA_EXCEED,
                    level="warning",
                    user_id=owner_id,
                    date=date_key,
                    used=int(usage.used_count or 0),
                    limit=limit_value,
                )
                raise QuotaExceededError(limit_value)
            session.commit()
            session.refresh(usage)
            used = int(usage.used_count or 0)
            log_event(logger, E.QUOTA_CONSUME, user_id=owner_id, date=date_key, used=used, limit=limit_value)
            return used

    # 插入冲突后仍查不到记录，只可能是记录被外部删除
    raise QuotaExceededError(limit_value)


def release(session, owner_id: str, usage_date: Union[date, datetime, str, None] = None) -> None:
    """归还一次配额；无记录或已为 0 时不做任何事。"""
    date_key = _date_key(usage_date)
    with _key_lock(owner_id, date_key):
        updated = session.query(DailyFeedbackUsage).filter(
            DailyFeedbackUsage.owner_id == owner_id,
            DailyFeedbackUsage.usage_date == date_key,
            DailyFeedbackUsage.used_count > 0,
        ).update(
            {
                DailyFeedbackUsage.used_count: DailyFeedbackUsage.used_count - 1,
                DailyFeedbackUsage.updated_at: datetime.now(),
            },
            synchronize_session=False,
        )
        session.commit()
    if updated:
        log_event(logger, E.QUOTA_RELEASE, user_id=owner_id, date=date_key, used=get_usage(session, owner_id, date_key))


def daily_usage_snapshot(session, owner_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    limit = daily_limit()
    target = now or datetime.now()
    used = get_usage(session, owner_id, target)
    return {
        "date": _date_key(target),
        "used": used,
        "limit": limit,
        "remaining": max(0, limit - used),
    }
