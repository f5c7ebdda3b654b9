from .base import Base, Column, String, Integer, DateTime, UniqueConstraint


class DailyFeedbackUsage(Base):
    __tablename__ = "daily_feedback_usages"
    __table_args__ = (
        UniqueConstraint("owner_id", "usage_date", name="uq_daily_feedback_usage_owner_date"),
    )

    id = Column(String(255), primary_key=True, index=True)  # {owner_id}:{YYYY-MM-DD}
    owner_id = Column(String(255), index=True, nullable=False)
    usage_date = Column(String(10), index=True, nullable=False)  # YYYY-MM-DD
    used_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)
