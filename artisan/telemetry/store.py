# artisan/telemetry/store.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Relational sink for buffered telemetry."""

import logging
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.sql.schema import Table

from ..db import action_logs, inventory_snapshots, pruning_counters


logger = logging.getLogger(__name__)

KEEP_ROWS = 10_000
PRUNE_THRESHOLDS = {
    "action_logs": 1000,
    "inventory_snapshots": 500,
}

_TABLES: dict[str, Table] = {
    "action_logs": action_logs,
    "inventory_snapshots": inventory_snapshots,
}


def _timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return datetime.now(timezone.utc)


def _action_log_row(record: dict[str, Any]) -> dict[str, Any]:
    return {
        "character": record["character"],
        "action_type": record["action_type"],
        "coord_x": record.get("coord_x"),
        "coord_y": record.get("coord_y"),
        "result": record.get("result"),
        "error": record.get("error"),
        "created_at": _timestamp(record.get("created_at")),
    }


def _snapshot_row(record: dict[str, Any]) -> dict[str, Any]:
    return {
        "character": record["character"],
        "items": record.get("items") or [],
        "created_at": _timestamp(record.get("created_at")),
    }


class TelemetryStore:
    """Writes telemetry batches and keeps the log tables bounded.

    Each batch insert bumps a per-table counter in ``pruning_counters``.
    When a counter reaches its threshold the table is pruned to its
    ``keep_rows`` newest rows and the counter resets.

    Args:
        engine: SQLAlchemy engine with the schema created.
        keep_rows: Rows kept per table when pruning.
        thresholds: Inserts between prunes, per table.
    """

    def __init__(
        self,
        engine: Engine,
        keep_rows: int = KEEP_ROWS,
        thresholds: Optional[dict[str, int]] = None,
    ):
        self.engine = engine
        self.keep_rows = keep_rows
        self.thresholds = dict(PRUNE_THRESHOLDS)
        if thresholds:
            self.thresholds.update(thresholds)

    def write_batch(
        self,
        logs: Iterable[dict[str, Any]],
        snapshots: Iterable[dict[str, Any]],
    ) -> int:
        """Insert a batch of records in a single transaction.

        Returns:
            Number of rows inserted.

        Raises:
            SQLAlchemyError: If the transaction fails. Nothing is committed.
        """
        log_rows = [_action_log_row(r) for r in logs]
        snapshot_rows = [_snapshot_row(r) for r in snapshots]

        with self.engine.begin() as conn:
            if log_rows:
                conn.execute(insert(action_logs), log_rows)
                self._count_inserts(conn, "action_logs", len(log_rows))
            if snapshot_rows:
                conn.execute(insert(inventory_snapshots), snapshot_rows)
                self._count_inserts(conn, "inventory_snapshots", len(snapshot_rows))

        return len(log_rows) + len(snapshot_rows)

    def _count_inserts(self, conn: Connection, table_name: str, count: int) -> None:
        threshold = self.thresholds[table_name]
        current = conn.execute(
            select(pruning_counters.c.counter).where(pruning_counters.c.table_name == table_name)
        ).scalar()

        if current is None:
            conn.execute(insert(pruning_counters).values(
                table_name=table_name, counter=0, threshold=threshold,
            ))
            current = 0

        current += count
        if current >= threshold:
            self._prune(conn, table_name)
            current = 0

        conn.execute(
            update(pruning_counters)
            .where(pruning_counters.c.table_name == table_name)
            .values(counter=current, threshold=threshold)
        )

    def _prune(self, conn: Connection, table_name: str) -> int:
        table = _TABLES[table_name]
        cutoff = conn.execute(
            select(table.c.id).order_by(table.c.id.desc()).offset(self.keep_rows).limit(1)
        ).scalar()
        if cutoff is None:
            return 0
        removed = conn.execute(delete(table).where(table.c.id <= cutoff)).rowcount
        logger.info(f"Pruned {removed} rows from {table_name}")
        return removed

    def prune_old_logs(self) -> dict[str, int]:
        """Prune both log tables now, regardless of counters."""
        with self.engine.begin() as conn:
            return {name: self._prune(conn, name) for name in _TABLES}

    def count(self, table_name: str, character: Optional[str] = None) -> int:
        table = _TABLES[table_name]
        query = select(func.count()).select_from(table)
        if character is not None:
            query = query.where(table.c.character == character)
        with self.engine.connect() as conn:
            return conn.execute(query).scalar() or 0

    def recent_action_logs(self, character: Optional[str] = None, limit: int = 20) -> list[dict[str, Any]]:
        """Newest action logs first."""
        query = select(action_logs).order_by(action_logs.c.id.desc()).limit(limit)
        if character is not None:
            query = query.where(action_logs.c.character == character)
        with self.engine.connect() as conn:
            return [dict(row) for row in conn.execute(query).mappings()]
