from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from app.db.base import Base


class SymbioteState(Base):
    """Model for symbiote_states table: evolution state per pet mint."""

    __tablename__ = "symbiote_states"

    mint = Column(String(64), primary_key=True)
    owner = Column(String(64), nullable=True)
    level = Column(Integer, nullable=False, default=1)
    xp = Column(Integer, nullable=False, default=0)
    personality = Column(String(255), nullable=False, default="Neutral")
    uri = Column(Text, nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
