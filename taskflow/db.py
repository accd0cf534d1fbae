# PURPOSE: engine + Session factory helpers and the declarative Base.

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

# Base: parent class for all ORM models (tables)
Base = declarative_base()


def make_engine(db_url: str) -> Engine:
    """Create an engine; SQLite-specific connect_args only when needed."""
    connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}
    return create_engine(db_url, connect_args=connect_args, pool_pre_ping=True)


def make_session_factory(engine: Engine) -> sessionmaker:
    # One short-lived session per store operation; the engine pool is shared
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
