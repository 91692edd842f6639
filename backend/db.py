from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, declarative_base

from config import settings


def make_engine(url: str, timeout: float = settings.db_timeout_seconds):
    if url.startswith("sqlite"):
        # timeout bounds how long a write waits on a locked database
        eng = create_engine(url, connect_args={"check_same_thread": False, "timeout": timeout})

        # ensure ON DELETE CASCADE is respected at DB level
        @event.listens_for(eng, "connect")
        def _set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return eng
    return create_engine(url, pool_pre_ping=True, pool_timeout=timeout)


engine = make_engine(settings.database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
