from .base import Base, Column, String, Date, DateTime, Text


class Diary(Base):
    __tablename__ = "diaries"

    id = Column(String(255), primary_key=True, index=True)
    owner_id = Column(String(255), index=True, nullable=False)
    content = Column(Text, nullable=False, default="")
    diary_date = Column(Date, index=True, nullable=False)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)
