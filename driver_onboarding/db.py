# driver_onboarding/db.py
from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .config import settings
from .models.base import Base
from .store import DocumentStore

# ---------- Engine / Session ----------

def build_engine(url: str) -> Engine:
    # SQLite and PostgreSQL (or anything SQLAlchemy supports)
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # one shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(url, future=True, **kwargs)
    return create_engine(url, pool_pre_ping=True, future=True)


def build_sessionmaker(bind: Engine) -> sessionmaker:
    return sessionmaker(
        bind=bind,
        autoflush=False,
        autocommit=False,
        expire_on_commit=False,
        future=True,
    )


DATABASE_URL = settings.DATABASE_URL

engine = build_engine(DATABASE_URL)
SessionLocal = build_sessionmaker(engine)

# register tables on Base.metadata
from .models import record  # noqa: E402,F401


def init_db(bind: Engine | None = None) -> None:
    Base.metadata.create_all(bind=bind or engine)


# ---------- Dependencies ----------

_store: DocumentStore | None = None


def get_store() -> DocumentStore:
    global _store
    if _store is None:
        _store = DocumentStore(
            SessionLocal,
            max_attempts=settings.PLATE_CLAIM_MAX_ATTEMPTS,
            backoff_sec=settings.PLATE_CLAIM_BACKOFF_SEC,
        )
    return _store
