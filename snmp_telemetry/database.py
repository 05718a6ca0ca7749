"""
Database setup using SQLAlchemy.

We create:
- an Engine bound to the DATABASE_URL from config
- a SessionLocal factory for collector/API sessions
- a Base class to declare ORM models

The collector publishes from a worker thread, so SQLite connections are
opened with check_same_thread disabled.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from snmp_telemetry.config import settings

_IN_MEMORY = ("sqlite://", "sqlite:///:memory:")


def make_engine(url: str) -> Engine:
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in _IN_MEMORY:
            # one shared connection, otherwise every session sees an empty DB
            kwargs["poolclass"] = StaticPool
    return create_engine(url, echo=False, **kwargs)


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


engine = make_engine(settings.database_url)
SessionLocal = make_session_factory(engine)

# Base class for all ORM models
Base = declarative_base()
