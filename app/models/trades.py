from sqlalchemy import BigInteger, Column, Float, Integer, String

from app.db.base import Base


class TradeRecord(Base):
    """Model for trade_records table
    The unique signature is the final idempotency guarantee for settlement.
    Example:
    {
        "id": 1,
        "signature": "5h6xBEauJ3PK6SWCZ1PGjBvj8vDdWG3KpwATGy1ARAXF...",
        "wallet_address": "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin",
        "volume_estimate": 20.0,
        "personality": "Calculated",
        "recorded_at": 1697123456
    }
    """

    __tablename__ = "trade_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    signature = Column(String(128), nullable=False, unique=True)
    wallet_address = Column(String(64), nullable=False, index=True)
    volume_estimate = Column(Float, nullable=False)
    personality = Column(String(255), nullable=False)
    recorded_at = Column(BigInteger, nullable=False)
