"""
Engine, session factory and declarative base.

DATABASE_URL selects the backend: PostgreSQL in production (schema managed
by Alembic), SQLite for local development and tests (schema created from
the models by ``create_tables``).
"""

from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from portal.config import DATABASE_URL


def engine_options(url: str) -> dict:
    """Keyword arguments for create_engine suited to the backend in ``url``."""
    if url.startswith("sqlite"):
        # sync handlers share connections across the threadpool
        return {"connect_args": {"check_same_thread": False}}
    if url.startswith("postgresql"):
        return {"pool_size": 10, "max_overflow": 20, "pool_pre_ping": True}
    return {}


def set_sqlite_pragma(dbapi_connection, connection_record):
    """Turn on foreign keys and WAL for every new SQLite connection."""
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA journal_mode=WAL")
    finally:
        cursor.close()


engine = create_engine(DATABASE_URL, **engine_options(DATABASE_URL))
if engine.dialect.name == "sqlite":
    event.listen(engine, "connect", set_sqlite_pragma)

SessionLocal = sessionmaker(bind=engine, autoflush=False)


class Base(DeclarativeBase):
    pass


def get_db():
    """Request-scoped session; closed once the response has been sent."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def create_tables():
    """Create every mapped table that does not exist yet (SQLite only; PostgreSQL uses Alembic)."""
    Base.metadata.create_all(bind=engine)
