"""SQLAlchemy engine and session factory for alert records and scheduled notifications."""

import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

Base = declarative_base()


def create_db_engine(url: str) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if url.startswith("sqlite") and ":memory:" in url:
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    elif url.startswith("sqlite"):
        engine = create_engine(url, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(url, pool_pre_ping=True, pool_recycle=300)
    logger.info("Database engine created for %s", engine.url.render_as_string(hide_password=True))
    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create tables if needed and return a session factory bound to ``engine``."""
    # Import models so their tables are registered on Base.metadata.
    from detail_scheduler.scheduling import reminders  # noqa: F401
    from detail_scheduler.weather import alert_store  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return sessionmaker(autoflush=False, bind=engine, expire_on_commit=False)
