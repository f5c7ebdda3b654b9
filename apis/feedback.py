from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from core.auth import get_current_user
from core.db import DB
from core.errors import AnalysisFailedError, FeedbackServiceError
from core.feedback_service import (
    create_feedback,
    delete_feedback,
    get_daily_usage,
    get_feedback,
    get_feedback_history,
    serialize_feedback,
)
from core.log import get_logger
from core.period_analysis_service import generate_period_analysis
from core.prompt_templates import DEFAULT_FEEDBACK_STYLE, get_style_options
from .base import raise_http_error, success_response

logger = get_logger(__name__)

router = APIRouter(prefix="/feedback", tags=["AI反馈"])


class FeedbackStyleRequest(BaseModel):
    feedback_style: str = Field(default=DEFAULT_FEEDBACK_STYLE, max_length=32)


class PeriodAnalysisRequest(BaseModel):
    start_date: date
    end_date: date


def _user_id(current_user: dict) -> str:
    return str(current_user.get("id") or "")


# 路由使用同步函数：AI 调用会阻塞，交给 FastAPI 线程池执行


@router.get("/styles", summary="获取反馈风格选项")
def feedback_styles(current_user: dict = Depends(get_current_user)):
    return success_response(get_style_options())


@router.post("/diaries/{diary_id}", summary="为日记生成AI反馈")
def create_diary_feedback(
    diary_id: str,
    payload: FeedbackStyleRequest,
    current_user: dict = Depends(get_current_user),
):
    session = DB.get_session()
    try:
        feedback = create_feedback(session, _user_id(current_user), diary_id, payload.feedback_style)
        return success_response(serialize_feedback(feedback), message="反馈生成成功")
    except AnalysisFailedError as e:
        logger.error("反馈生成失败: user_id=%s diary_id=%s cause=%s", e.user_id, diary_id, e.cause)
        raise_http_error(e)
    except FeedbackServiceError as e:
        raise_http_error(e)
    finally:
        session.close()


@router.get("/diaries/{diary_id}", summary="获取日记的AI反馈")
def get_diary_feedback(diary_id: str, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        feedback = get_feedback(session, _user_id(current_user), diary_id)
        return success_response(serialize_feedback(feedback))
    except FeedbackServiceError as e:
        raise_http_error(e)
    finally:
        session.close()


@router.delete("/diaries/{diary_id}", summary="删除日记的AI反馈")
def delete_diary_feedback(diary_id: str, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        delete_feedback(session, _user_id(current_user), diary_id)
        return success_response({"diary_id": diary_id, "deleted": True}, message="反馈已删除")
    except FeedbackServiceError as e:
        raise_http_error(e)
    finally:
        session.close()


@router.get("/history", summary="获取反馈历史")
def feedback_history(
    start_date: date = Query(...),
    end_date: date = Query(...),
    current_user: dict = Depends(get_current_user),
):
    session = DB.get_session()
    try:
        return success_response(get_feedback_history(session, _user_id(current_user), start_date, end_date))
    except FeedbackServiceError as e:
        raise_http_error(e)
    finally:
        session.close()


@router.post("/period-analysis", summary="生成区间综合分析")
def period_analysis(payload: PeriodAnalysisRequest, current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        report = generate_period_analysis(session, _user_id(current_user), payload.start_date, payload.end_date)
        return success_response(report)
    except AnalysisFailedError as e:
        logger.error(
            "区间分析失败: user_id=%s feedbacks=%s cause=%s",
            e.user_id,
            e.feedback_count,
            e.cause,
        )
        raise_http_error(e)
    except FeedbackServiceError as e:
        raise_http_error(e)
    finally:
        session.close()


@router.get("/usage", summary="获取今日反馈配额")
def daily_usage(current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        return success_response(get_daily_usage(session, _user_id(current_user)))
    finally:
        session.close()
