from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.sql import func

from app.db.base import Base


class GameProfile(Base):
    """Model for game_profiles table, one row per wallet.
    Holds the autoplay configuration read by the scheduler.
    Example:
    {
        "wallet_address": "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin",
        "mode": "Agentic",
        "archetype": "Explorer",
        "streak": 4,
        "energy": 91,
        "auto_play": true,
        "tick_interval_sec": 300,
        "updated_at": "2024-01-01T12:00:00"
    }
    """

    __tablename__ = "game_profiles"

    wallet_address = Column(String(64), primary_key=True)
    mode = Column(String(32), nullable=False, default="Agentic")
    archetype = Column(String(64), nullable=False, default="Explorer")
    streak = Column(Integer, nullable=False, default=0)
    energy = Column(Integer, nullable=False, default=100)
    auto_play = Column(Boolean, nullable=False, default=False)
    tick_interval_sec = Column(Integer, nullable=False, default=300)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class GameAction(Base):
    """Model for game_actions table, one row per played turn."""

    __tablename__ = "game_actions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_address = Column(String(64), nullable=False, index=True)
    symbiote_mint = Column(String(64), nullable=True)
    game_name = Column(Text, nullable=False)
    objective = Column(Text, nullable=False)
    move_text = Column(Text, nullable=False)
    outcome_text = Column(Text, nullable=False)
    tx_base64 = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class Memory(Base):
    """Model for memory table: rolling event log fed back into inference."""

    __tablename__ = "memory"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_address = Column(String(64), nullable=False, index=True)
    role = Column(String(32), nullable=False)  # 'system', 'assistant'
    content = Column(Text, nullable=False)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class TradeSuggestion(Base):
    """Model for suggestions table: every /suggest-trade answer handed to a wallet."""

    __tablename__ = "suggestions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_address = Column(String(64), nullable=False, index=True)
    risk_profile = Column(String(32), nullable=False)
    personality = Column(String(255), nullable=False)
    reaction = Column(Text, nullable=False)
    recommendation = Column(Text, nullable=False)
    quote_json = Column(Text, nullable=False)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
