from sqlalchemy import BigInteger, Column, Integer, String

from app.db.base import Base


class AuthChallenge(Base):
    """Model for auth_challenges table
    Several rows may exist per wallet; only the newest unexpired one is usable.
    Example:
    {
        "id": 12,
        "wallet_address": "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin",
        "nonce": "p0Vd4m3...Zq",
        "expires_at": 1697123756,
        "created_at": 1697123456
    }
    """

    __tablename__ = "auth_challenges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    wallet_address = Column(String(64), nullable=False, index=True)
    nonce = Column(String(128), nullable=False)
    expires_at = Column(BigInteger, nullable=False, index=True)
    created_at = Column(BigInteger, nullable=False)


class AuthSession(Base):
    """Model for auth_sessions table
    One token maps to exactly one wallet; a wallet may hold many tokens.
    """

    __tablename__ = "auth_sessions"

    token = Column(String(128), primary_key=True)
    wallet_address = Column(String(64), nullable=False, index=True)
    expires_at = Column(BigInteger, nullable=False, index=True)
    created_at = Column(BigInteger, nullable=False)
