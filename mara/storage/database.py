"""Durable backend bootstrap.

Architectural role:
    Builds the SQLAlchemy engine and session factory for `DATABASE_URL`, verifies
    connectivity and creates the schema. The outcome decides, once per process,
    whether the durable continuity backend is authoritative.

Failure behavior:
    `init_database` never raises. Missing configuration or a failed connection test
    returns `None` and the caller falls back to the cache backend for the rest of
    the process lifetime.
"""

import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mara.storage.models import Base


logger = logging.getLogger(__name__)


class Database:
    """Engine plus session factory for the durable backend."""

    def __init__(self, url: str):
        kwargs = {"pool_pre_ping": True}
        if url.startswith("sqlite"):
            kwargs = {"connect_args": {"check_same_thread": False}}
            if url in ("sqlite://", "sqlite:///:memory:"):
                kwargs["poolclass"] = StaticPool

        self.url = url
        self.engine = create_engine(url, **kwargs)
        self.SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    def ping(self) -> None:
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))

    def create_tables(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session(self):
        """Yield a session that commits on success and rolls back on error."""
        db = self.SessionLocal()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def close(self) -> None:
        self.engine.dispose()


def init_database(url: str | None) -> Database | None:
    """Connect, create tables and return a `Database`, or `None` on any failure."""
    if not url:
        logger.warning("DATABASE_URL not configured - running without persistence")
        return None

    try:
        database = Database(url)
        database.ping()
        database.create_tables()
    except (SQLAlchemyError, ImportError, ValueError) as err:
        logger.error("Database connection failed: %s", err)
        logger.warning("Running without database persistence")
        return None

    logger.info("Database connected and tables initialized")
    return database
