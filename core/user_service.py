import uuid
from datetime import datetime
from typing import Dict, Optional

from core.errors import DataValidationError
from core.models.user import User


def get_user(session, user_id: str) -> Optional[User]:
    key = str(user_id or "").strip()
    if not key:
        return None
    return session.query(User).filter(User.id == key).first()


def get_user_by_login_id(session, login_id: str) -> Optional[User]:
    key = str(login_id or "").strip()
    if not key:
        return None
    return session.query(User).filter(User.login_id == key).first()


def create_user(session, login_id: str, username: str = "", email: str = "", picture_url: str = "") -> User:
    key = str(login_id or "").strip()
    if not key:
        raise DataValidationError("login_id 不能为空")
    now = datetime.now()
    user = User(
        id=str(uuid.uuid4()),
        login_id=key[:100],
        username=str(username or key)[:50],
        email=str(email or "")[:100],
        picture_url=str(picture_url or "")[:500],
        created_at=now,
        updated_at=now,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def serialize_profile(user: User) -> Dict:
    return {
        "email": user.email or "",
        "username": user.username or "",
        "picture_url": user.picture_url or "",
    }
