"""Relational storage for petitions, recent signatures and activities."""

import logging
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    Time,
    create_engine,
    insert,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

DEFAULT_PETITION_ID = "stoppa-marknadshyror-2026"
DEFAULT_PETITION_NAME = "Stoppa Marknadshyror 2026"
DEFAULT_PETITION_GOAL = 100
DEFAULT_PETITION_LIST_ID = 3

metadata = MetaData()

petitions = Table(
    "petitions",
    metadata,
    Column("id", Text, primary_key=True),
    Column("name", Text, nullable=False),
    Column("goal", Integer, nullable=False, server_default="10000"),
    Column("brevo_list_id", Integer, nullable=False),
    Column("count", Integer, nullable=False, server_default="0"),
    Column("last_synced_at", DateTime(timezone=True)),
)

signatures = Table(
    "signatures",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("petition_id", Text, ForeignKey("petitions.id"), nullable=False),
    Column("first_name", Text, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Index("idx_signatures_petition_created", "petition_id", "created_at"),
)

activities = Table(
    "activities",
    metadata,
    Column("id", Text, primary_key=True),
    Column("title", Text, nullable=False),
    Column("description", Text),
    Column("date", Date, nullable=False),
    Column("time", Time, nullable=False),
    Column("location", Text),
    Column("postnummer", String(5)),
    Column("kommun", Text),
    Column("kommun_kod", String(4)),
    Column("lan", Text),
    Column("is_online", Boolean, server_default="false"),
    Column("brevo_list_id", Integer, nullable=False),
    Column("brevo_folder_id", Integer),
    Column("created_at", DateTime(timezone=True)),
    Index("idx_activities_date", "date"),
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive timestamps (SQLite drops the offset)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def create_db_engine(url: str) -> Engine:
    """
    Create an engine for the given database URL.

    Plain postgres URLs are routed to the psycopg (v3) driver; in-memory
    SQLite shares a single connection so every session sees the same data.
    """
    if url.startswith("postgres://"):
        url = "postgresql+psycopg://" + url[len("postgres://"):]
    elif url.startswith("postgresql://"):
        url = "postgresql+psycopg://" + url[len("postgresql://"):]

    if url.startswith("sqlite"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            future=True,
        )

    return create_engine(url, pool_pre_ping=True, future=True)


class Database:
    """Lazily connected database handle."""

    def __init__(self, url: Optional[str]):
        """
        Initialize the database handle.

        Args:
            url: SQLAlchemy URL; the engine is only created on first use
        """
        self.url = url
        self._engine: Optional[Engine] = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            if not self.url:
                raise RuntimeError("DATABASE_URL environment variable is not set")
            self._engine = create_db_engine(self.url)
        return self._engine

    def initialize(self) -> None:
        """Create all tables and indexes if they do not exist."""
        metadata.create_all(self.engine)
        logger.info("Database initialized successfully")

    def seed_default_petition(self) -> bool:
        """
        Insert the default petition unless it already exists.

        Returns:
            True if the petition was created
        """
        with self.engine.begin() as conn:
            existing = conn.execute(
                select(petitions.c.id).where(petitions.c.id == DEFAULT_PETITION_ID)
            ).first()
            if existing:
                return False

            conn.execute(
                insert(petitions).values(
                    id=DEFAULT_PETITION_ID,
                    name=DEFAULT_PETITION_NAME,
                    goal=DEFAULT_PETITION_GOAL,
                    brevo_list_id=DEFAULT_PETITION_LIST_ID,
                    count=0,
                )
            )

        logger.info("Default petition created")
        return True

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
