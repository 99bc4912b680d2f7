"""
db.py
=====
SQLite engine and sessions for CareBook.

Every connection turns on foreign key enforcement so deleting a doctor
cascades to schedules, leave entries and slots.
"""

import os
import logging
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from . import config

logger = logging.getLogger(__name__)

DB_PATH = config.DB_PATH

if os.path.dirname(DB_PATH):
    os.makedirs(os.path.dirname(DB_PATH), exist_ok=True)

# request handlers and background tasks share the pool across threads
engine = create_engine(f"sqlite:///{DB_PATH}", connect_args={"check_same_thread": False})


@event.listens_for(engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """FastAPI dependency: one session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(Base):
    """Create missing tables. Runs at startup and before maintenance commands."""
    Base.metadata.create_all(bind=engine)
    logger.info("🗄️  Database ready at %s", DB_PATH)
