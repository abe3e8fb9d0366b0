"""Database engine and per-request session management"""

from typing import Generator
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from invoice_gateway.config import settings

# Connection pool sized for short synchronous requests; recycle hourly to drop stale connections
engine = create_engine(
    settings.database_url,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=10,
    pool_recycle=3600,
)

# Endpoints build responses from ORM rows after commit
SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """One session per request; services flush, endpoints commit or roll back"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
