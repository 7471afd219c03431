"""
Attestation Engine 1.0 - Database Configuration
SQLAlchemy engine and session factory built from injected Settings.
"""
from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from .config import Settings

# Base class for ORM models
Base = declarative_base()


def build_engine(settings: Settings) -> Engine:
    """Create the engine for the configured store."""
    url = settings.database_url

    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every session sees the same in-memory DB
            kwargs["poolclass"] = StaticPool
        return create_engine(url, echo=False, **kwargs)

    connect_args = {}
    if settings.db_statement_timeout_ms and url.startswith("postgresql"):
        connect_args["options"] = f"-c statement_timeout={settings.db_statement_timeout_ms}"
    return create_engine(url, echo=False, pool_pre_ping=True, connect_args=connect_args)


def build_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to the given engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Initialize database - create all tables."""
    from .models import db_models  # noqa: F401  (registers tables on Base)
    Base.metadata.create_all(bind=engine)


def get_db(request: Request):
    """Dependency for FastAPI - yields a request-scoped database session."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
