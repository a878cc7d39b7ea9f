# artisan/db.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Relational schema shared by telemetry and the task lifecycle."""

import logging
from pathlib import Path

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.pool import StaticPool


logger = logging.getLogger(__name__)

metadata = MetaData()

action_logs = Table(
    "action_logs",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("character", String(64), nullable=False, index=True),
    Column("action_type", String(64), nullable=False),
    Column("coord_x", Integer, nullable=True),
    Column("coord_y", Integer, nullable=True),
    Column("result", JSON, nullable=True),
    Column("error", Text, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False, index=True),
)

inventory_snapshots = Table(
    "inventory_snapshots",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("character", String(64), nullable=False, index=True),
    Column("items", JSON, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False, index=True),
)

pruning_counters = Table(
    "pruning_counters",
    metadata,
    Column("table_name", String(64), primary_key=True),
    Column("counter", Integer, nullable=False, default=0),
    Column("threshold", Integer, nullable=False),
)

character_tasks = Table(
    "character_tasks",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("character", String(64), nullable=False, index=True),
    Column("task_type", String(32), nullable=False),
    Column("script_name", String(255), nullable=False),
    Column("script_args", JSON, nullable=True),
    Column("task_data", JSON, nullable=True),
    Column("state", String(16), nullable=False, index=True),
    Column("process_id", Integer, nullable=True),
    Column("error_message", Text, nullable=True),
    Column("start_time", DateTime(timezone=True), nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

# At most one live task per character.
_live_states = ("idle", "pending", "running", "paused")
Index(
    "uq_character_tasks_live",
    character_tasks.c.character,
    unique=True,
    sqlite_where=character_tasks.c.state.in_(_live_states),
    postgresql_where=character_tasks.c.state.in_(_live_states),
)


def create_engine_from_url(database_url: str) -> Engine:
    """Create an engine, preparing SQLite files and in-memory databases.

    Args:
        database_url: SQLAlchemy URL.

    Returns:
        The engine.
    """
    url = make_url(database_url)
    if url.get_backend_name() != "sqlite":
        return create_engine(url, pool_pre_ping=True)

    if url.database in (None, "", ":memory:"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, connect_args={"check_same_thread": False})


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    metadata.create_all(engine)
    logger.debug(f"Schema ready on {engine.url}")
