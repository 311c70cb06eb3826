"""
Database engine and sessions for the forecast tables.

PostgreSQL in production; any SQLAlchemy URL (e.g. sqlite) can be set
through DATABASE_URL for local runs.
"""

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base

from src.config import Config
from src.utils.json_encoder import json_dumps

Base = declarative_base()

_engine = None
_session_factory = None


def get_engine():
    """Get or create the shared SQLAlchemy engine.

    JSON columns (node attributes, result snapshots) are written with the
    Decimal-aware encoder.
    """
    global _engine
    if _engine is None:
        url = Config.get_database_url()
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        _engine = create_engine(
            url,
            echo=False,  # Set True for SQL debugging
            pool_pre_ping=True,
            connect_args=connect_args,
            json_serializer=json_dumps,
        )
    return _engine


def get_session():
    """Create a new database session."""
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), autocommit=False, autoflush=False)
    return _session_factory()


def get_db():
    """FastAPI dependency yielding a session that is closed afterwards."""
    db = get_session()
    try:
        yield db
    finally:
        db.close()


def check_connection():
    """Run a trivial query. Returns (ok, message)."""
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        return True, f"Connected to {get_engine().dialect.name}"
    except Exception as e:
        return False, str(e)
