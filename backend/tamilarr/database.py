"""
Database Configuration for Tamilarr

Engine and session factory for the release store. Concurrent resolve
requests each hold their own session; for SQLite the connection is shared
across the server's threads, so the same-thread check is disabled.
"""

import os

from sqlalchemy import create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker

from tamilarr.config import Config

DATABASE_URL = Config.DATABASE_URL
_url = make_url(DATABASE_URL)
_is_sqlite = _url.get_backend_name() == 'sqlite'

# The SQLite file's directory must exist before the first connection
if _is_sqlite and _url.database and _url.database != ':memory:':
    os.makedirs(os.path.dirname(os.path.abspath(_url.database)), exist_ok=True)

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if _is_sqlite else {}
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """
    FastAPI dependency yielding one session per request.

    Yields:
        SQLAlchemy session, closed when the request finishes
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
