from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Tuple

from core import ai_service
from core.config import cfg
from core.errors import AnalysisFailedError, DataValidationError, NotFoundError
from core.events import E, log_event
from core.feedback_service import list_feedbacks_in_range, validate_date_range
from core.log import get_logger, get_trace_id, trace_ctx

logger = get_logger(__name__)

SUMMARY_SEPARATOR = "\n\n"

# 报告字段顺序固定
REPORT_SECTIONS = ("period_summary", "emotional_pattern", "growth_pattern", "recommendations")


def _max_days() -> int:
    try:
        value = int(cfg.get("feedback.period_analysis.max_days", 366) or 366)
    except Exception:
        value = 366
    return max(1, value)


def _overall_timeout() -> float:
    try:
        value = float(cfg.get("feedback.period_analysis.timeout_seconds", 180) or 180)
    except Exception:
        value = 180.0
    return max(1.0, value)


def _parallel_enabled() -> bool:
    return bool(cfg.get("feedback.period_analysis.parallel", True))


def validate_period(start_date: Optional[date], end_date: Optional[date]) -> None:
    validate_date_range(start_date, end_date)
    span = (end_date - start_date).days + 1
    if span > _max_days():
        raise DataValidationError(f"分析区间不能超过 {_max_days()} 天")


def combine_summaries(summaries: List[Optional[str]]) -> str:
    return SUMMARY_SEPARATOR.join([x for x in summaries if x is not None])


def _analysis_calls(combined: str, start_date: date, end_date: date) -> List[Tuple[str, Callable[[], str]]]:
    return [
        ("period_summary", lambda: ai_service.generate_period_summary(combined, start_date, end_date)),
        ("emotional_pattern", lambda: ai_service.analyze_emotional_pattern(combined)),
        ("growth_pattern", lambda: ai_service.analyze_growth_pattern(combined)),
        ("recommendations", lambda: ai_service.generate_recommendations(combined)),
    ]


def _run_sequential(calls: List[Tuple[str, Callable[[], str]]]) -> Dict[str, str]:
    return {name: fn() for name, fn in calls}


def _run_parallel(calls: List[Tuple[str, Callable[[], str]]]) -> Dict[str, str]:
    tid = get_trace_id()

    def _traced(fn: Callable[[], str]) -> str:
        with trace_ctx(tid):
            return fn()

    executor = ThreadPoolExecutor(max_workers=len(calls), thread_name_prefix="period-analysis")
    try:
        futures = {executor.submit(_traced, fn): name for name, fn in calls}
        done, pending = wait(futures, timeout=_overall_timeout(), return_when=FIRST_EXCEPTION)
        for future in done:
            error = future.exception()
            if error is not None:
                raise error
        if pending:
            raise TimeoutError(f"分析调用超时（{_overall_timeout():.0f}s）")
        return {futures[f]: f.result() for f in done}
    finally:
        # 首个失败即放弃其余结果，未开始的调用直接取消
        executor.shutdown(wait=False, cancel_futures=True)


def generate_period_analysis(session, user_id: str, start_date: date, end_date: date) -> Dict[str, Any]:
    validate_period(start_date, end_date)

    feedbacks = list_feedbacks_in_range(session, user_id, start_date, end_date)
    if not feedbacks:
        raise NotFoundError("feedback", "该期间没有可分析的日记数据")

    combined = combine_summaries([row.summary for row in feedbacks])
    if not combined.strip():
        raise DataValidationError("没有可分析的概括数据")

    count = len(feedbacks)
    log_event(logger, E.PERIOD_ANALYSIS_START, user_id=user_id, start=start_date, end=end_date, feedbacks=count)

    calls = _analysis_calls(combined, start_date, end_date)
    try:
        results = _run_parallel(calls) if _parallel_enabled() else _run_sequential(calls)
    except Exception as e:
        log_event(
            logger,
            E.PERIOD_ANALYSIS_FAIL,
            level="error",
            user_id=user_id,
            feedbacks=count,
            error=e,
        )
        raise AnalysisFailedError(str(e) or e.__class__.__name__, user_id=user_id, feedback_count=count) from e

    log_event(logger, E.PERIOD_ANALYSIS_COMPLETE, user_id=user_id, feedbacks=count)
    report: Dict[str, Any] = {
        "start_date": start_date.isoformat(),
        "end_date": end_date.isoformat(),
        "feedback_count": count,
    }
    for name in REPORT_SECTIONS:
        report[name] = results[name]
    return report
