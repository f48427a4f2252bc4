"""
Database engine, session management, and base model.

The document table inherits from Base. The document store
opens one session per atomic attempt from SessionLocal.
"""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from fincontrol.config import get_settings

settings = get_settings()

# --- Engine ---
# pool_pre_ping=True tests connections before using them.
# SQLite connections are shared across threads by the test
# client, so the same-thread check is disabled for it.
connect_args = (
    {"check_same_thread": False}
    if settings.DATABASE_URL.startswith("sqlite")
    else {}
)

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    connect_args=connect_args,
)

# --- Session Factory ---
# autocommit=False: the document store decides when an
# atomic attempt commits or rolls back.
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    pass


def get_db():
    """Provide a database session for a single request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
