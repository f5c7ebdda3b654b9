from .base import Base, Column, String, DateTime


class User(Base):
    __tablename__ = "users"

    id = Column(String(255), primary_key=True)
    login_id = Column(String(100), unique=True, index=True, nullable=False)
    username = Column(String(50), default="")  # 昵称
    email = Column(String(100), default="")
    picture_url = Column(String(500), default="")
    created_at = Column(DateTime)
    updated_at = Column(DateTime)
