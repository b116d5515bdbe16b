"""Database models for the signal store."""

from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime, Text
from sqlalchemy.orm import declarative_base


Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PreferenceModel(Base):
    """A single typed key/value entry of the persisted preferences."""

    __tablename__ = "preferences"

    key = Column(String(100), primary_key=True)
    value_type = Column(String(10), nullable=False)  # bool, int, float or str
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    def __repr__(self):
        return f"<PreferenceModel(key='{self.key}', type='{self.value_type}', value='{self.value}')>"
