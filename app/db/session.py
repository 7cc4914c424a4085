import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from app.core.config import settings
from app.core.errors import SymbioteError
from fastapi import HTTPException

logger = logging.getLogger(__name__)


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {"connect_timeout": 30}


# Create the SQLAlchemy engine
engine = create_engine(settings.DATABASE_URL,
                       connect_args=_connect_args(settings.DATABASE_URL),
                       pool_pre_ping=True,
                       pool_recycle=3600,
)

# Create a configured "Session" class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db() -> None:
    """Create missing tables for every model registered on Base."""
    # models must be imported so they register on Base.metadata
    import app.models  # noqa: F401
    from app.db.base import Base

    Base.metadata.create_all(bind=engine)


# do not change the order of the code below
# Dependency that can be used in routes to get the session
def get_db() -> Session:
    db = SessionLocal()  # generate a new SessionLocal
    try:
        yield db
    except Exception as e:
        if isinstance(e, (HTTPException, SymbioteError)):
            raise e
        else:
            logger.exception("database session error")
            raise HTTPException(status_code=500, detail="Query data error")
    finally:
        db.close()
