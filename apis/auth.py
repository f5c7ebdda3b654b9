from fastapi import APIRouter, HTTPException, status
from fastapi.responses import PlainTextResponse

from core.auth import create_access_token
from core.config import cfg
from core.db import DB
from core.events import E, log_event
from core.log import get_logger
from core.user_service import get_user_by_login_id

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["认证"])


def _dev_token_enabled() -> bool:
    return bool(cfg.get("auth.dev_token_enabled", False))


@router.get("/dev-token", summary="获取测试用户令牌（仅开发环境）", response_class=PlainTextResponse)
def dev_token():
    if not _dev_token_enabled():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not Found")
    login_id = str(cfg.get("auth.dev_login_id", "moodmate001"))
    session = DB.get_session()
    try:
        user = get_user_by_login_id(session, login_id)
        if not user:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="测试用户不存在")
        token = create_access_token({"sub": user.id, "login_id": user.login_id})
        log_event(logger, E.AUTH_DEV_TOKEN_ISSUE, user_id=user.id, login_id=login_id)
        return token
    finally:
        session.close()
