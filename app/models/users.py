from sqlalchemy import Column, DateTime, String
from sqlalchemy.sql import func

from app.db.base import Base


class User(Base):
    """Model for users table
    Example:
    {
        "wallet_address": "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin",
        "symbiote_mint": "7Xy2mT4...mint",
        "created_at": "2024-01-01T12:00:00"
    }
    """

    __tablename__ = "users"

    wallet_address = Column(String(64), primary_key=True)
    symbiote_mint = Column(String(64), nullable=True)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
