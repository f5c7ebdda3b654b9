from sqlalchemy import (
    Column,
    Date,
    DateTime,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

__all__ = [
    "Base",
    "Column",
    "Date",
    "DateTime",
    "Integer",
    "String",
    "Text",
    "UniqueConstraint",
]
