"""
SolBridge - SQLAlchemy Base
Declarative base with common mixins
"""
import re
from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, Integer
from sqlalchemy.orm import declarative_base, declared_attr


def utcnow() -> datetime:
    """Timezone-aware UTC now (used for column defaults and closed_at)"""
    return datetime.now(timezone.utc)


class BaseModelMixin:
    """
    Mixin providing id and audit timestamps.
    Rows are never physically deleted by the application.
    """

    @declared_attr
    def __tablename__(cls) -> str:
        """PositionRecord -> position_record"""
        return re.sub(r'(?<!^)(?=[A-Z])', '_', cls.__name__).lower()

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def to_dict(self) -> dict:
        """Column values keyed by column name"""
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}


Base = declarative_base(cls=BaseModelMixin)
