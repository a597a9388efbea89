"""
Document store for trips - SQLAlchemy, one row per trip document.

Days and blocks live inline in the ``data`` JSON column, so a trip and
everything it owns are written and deleted as a single row.
"""
from datetime import datetime, timezone
import uuid

from sqlalchemy import create_engine, Column, String, DateTime, JSON
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from config import database_url

Base = declarative_base()


def generate_id():
    return str(uuid.uuid4())[:8]


def utcnow():
    return datetime.now(timezone.utc)


class TripDocument(Base):
    __tablename__ = "trip_documents"

    id = Column(String, primary_key=True, default=generate_id)
    user_id = Column(String, index=True)
    public_slug = Column(String, index=True)
    data = Column(JSON, default=dict)  # full camelCase trip document
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


def make_engine(url=None):
    url = url or database_url()
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url == "sqlite://":
            # Keep one connection so every session sees the same in-memory db
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True)


def init_db(url=None):
    """Create the schema and return the engine."""
    engine = make_engine(url)
    Base.metadata.create_all(bind=engine)
    return engine


def make_session_factory(engine):
    return sessionmaker(bind=engine, expire_on_commit=False)
