from .base import Base, Column, String, DateTime, Text


class AIFeedback(Base):
    __tablename__ = "ai_feedbacks"

    id = Column(String(255), primary_key=True, index=True)
    owner_id = Column(String(255), index=True, nullable=False)
    # 一篇日记最多一条反馈，并发创建时以该唯一约束为准
    diary_id = Column(String(255), unique=True, index=True, nullable=False)
    summary = Column(Text, nullable=True)
    response = Column(Text, nullable=False, default="")
    feedback_style = Column(String(32), nullable=False)
    created_at = Column(DateTime, index=True, nullable=False)
    updated_at = Column(DateTime)
