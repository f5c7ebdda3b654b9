from fastapi import APIRouter, Depends, HTTPException, status

from core.auth import get_current_user
from core.db import DB
from core.user_service import get_user, serialize_profile
from .base import success_response

router = APIRouter(prefix="/users", tags=["用户"])


@router.get("/me", summary="获取当前用户信息")
def get_my_info(current_user: dict = Depends(get_current_user)):
    session = DB.get_session()
    try:
        user = get_user(session, current_user.get("id"))
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="用户不存在")
        return success_response(serialize_profile(user))
    finally:
        session.close()
