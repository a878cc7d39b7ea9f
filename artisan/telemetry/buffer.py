# artisan/telemetry/buffer.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""In-memory telemetry queues with batched flush and file backup.

Records are appended to two queues, one per kind. A flush first backs the
queued records up to JSON files, then writes them to the store in one
transaction. Backups are deleted after the commit; if the commit fails the
records stay queued and the newest backup stays on disk. On start, backups
left by earlier processes are re-queued. Delivery is at-least-once.
"""

import asyncio
import itertools
import json
import logging
import os
import time
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from .store import TelemetryStore


logger = logging.getLogger(__name__)

ACTION_LOGS = "action_logs"
INVENTORY_SNAPSHOTS = "inventory_snapshots"
KINDS = (ACTION_LOGS, INVENTORY_SNAPSHOTS)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _plain(value: Any) -> Any:
    """Convert pydantic models into JSON-ready data."""
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value


class TelemetryBuffer:
    """Process-wide buffer for action logs and inventory snapshots.

    Args:
        store: Destination store.
        data_dir: Directory for backup files.
        flush_interval: Seconds between scheduled flushes.
        flush_threshold: Queue length above which a flush is started early.
        prefix: Backup file prefix. Defaults to one unique to this process.
    """

    def __init__(
        self,
        store: TelemetryStore,
        data_dir: str,
        flush_interval: float = 600.0,
        flush_threshold: int = 100,
        prefix: Optional[str] = None,
    ):
        self.store = store
        self.data_dir = Path(data_dir)
        self.flush_interval = flush_interval
        self.flush_threshold = flush_threshold
        self.prefix = prefix or f"{os.getpid()}-{int(time.time())}"

        self.queues: dict[str, deque[dict[str, Any]]] = {kind: deque() for kind in KINDS}
        self._counter = itertools.count(1)
        self._backups: list[Path] = []
        self._flush_lock: Optional[asyncio.Lock] = None
        self._wakeup: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self.running = False

    @property
    def action_logs(self) -> deque[dict[str, Any]]:
        return self.queues[ACTION_LOGS]

    @property
    def inventory_snapshots(self) -> deque[dict[str, Any]]:
        return self.queues[INVENTORY_SNAPSHOTS]

    def pending(self) -> int:
        return sum(len(q) for q in self.queues.values())

    def enqueue_action_log(
        self,
        character: str,
        action_type: str,
        coordinates: Optional[tuple[int, int]] = None,
        result: Any = None,
        error: Optional[str] = None,
    ) -> None:
        x, y = coordinates if coordinates is not None else (None, None)
        self._append(ACTION_LOGS, {
            "character": character,
            "action_type": action_type,
            "coord_x": x,
            "coord_y": y,
            "result": _plain(result),
            "error": error,
            "created_at": _now(),
        })

    def enqueue_inventory_snapshot(self, character: str, items: Iterable[Any]) -> None:
        self._append(INVENTORY_SNAPSHOTS, {
            "character": character,
            "items": _plain(list(items)),
            "created_at": _now(),
        })

    def _append(self, kind: str, record: dict[str, Any]) -> None:
        queue = self.queues[kind]
        queue.append(record)
        if len(queue) > self.flush_threshold and self._wakeup is not None:
            self._wakeup.set()

    # Backup files

    def _backup_path(self, kind: str) -> Path:
        return self.data_dir / f"{kind}-{self.prefix}-{next(self._counter)}.json"

    def write_backups(self, batches: dict[str, list[dict[str, Any]]]) -> list[Path]:
        """Write one JSON array file per non-empty batch.

        Returns:
            Paths of the files written.
        """
        self.data_dir.mkdir(parents=True, exist_ok=True)
        paths = []
        for kind, records in batches.items():
            if not records:
                continue
            path = self._backup_path(kind)
            tmp = path.with_suffix(".tmp")
            tmp.write_text(json.dumps(records), encoding="utf-8")
            tmp.replace(path)
            paths.append(path)
        return paths

    def recover_backups(self) -> int:
        """Re-queue records from backup files found in the data directory.

        The files are deleted by the next successful flush. A file that
        disappears while being read (another process recovered it) is
        skipped; an unreadable file is logged and left in place.

        Returns:
            Number of records re-queued.
        """
        if not self.data_dir.exists():
            return 0

        recovered = 0
        for kind in KINDS:
            for path in sorted(self.data_dir.glob(f"{kind}-*.json")):
                if path in self._backups:
                    continue
                try:
                    records = json.loads(path.read_text(encoding="utf-8"))
                except FileNotFoundError:
                    continue
                except (OSError, json.JSONDecodeError) as e:
                    logger.error(f"Cannot read telemetry backup {path}: {e}")
                    continue
                self.queues[kind].extend(records)
                self._backups.append(path)
                recovered += len(records)
                logger.info(f"Recovered {len(records)} {kind} records from {path.name}")
        return recovered

    def _discard(self, paths: Iterable[Path]) -> None:
        for path in paths:
            path.unlink(missing_ok=True)

    # Flushing

    async def flush(self) -> int:
        """Back up and write everything queued.

        Returns:
            Number of records committed, 0 if the commit failed.
        """
        if self._flush_lock is None:
            self._flush_lock = asyncio.Lock()

        async with self._flush_lock:
            batches = {kind: list(queue) for kind, queue in self.queues.items()}
            total = sum(len(b) for b in batches.values())
            if total == 0:
                return 0

            previous = list(self._backups)
            try:
                written = await asyncio.to_thread(self.write_backups, batches)
            except OSError as e:
                logger.error(f"Telemetry backup failed: {e}")
            else:
                # The new files hold every queued record, older ones are redundant.
                self._discard(previous)
                self._backups = written

            try:
                await asyncio.to_thread(
                    self.store.write_batch, batches[ACTION_LOGS], batches[INVENTORY_SNAPSHOTS],
                )
            except SQLAlchemyError as e:
                logger.error(f"Telemetry flush of {total} records failed, keeping backup: {e}")
                return 0

            for kind, records in batches.items():
                queue = self.queues[kind]
                for _ in range(len(records)):
                    queue.popleft()

            self._discard(self._backups)
            self._backups = []
            logger.debug(f"Flushed {total} telemetry records")
            return total

    async def start(self) -> None:
        """Recover old backups and start the periodic flush."""
        recovered = self.recover_backups()
        if recovered:
            logger.info(f"Re-queued {recovered} telemetry records from backups")
        self._flush_lock = asyncio.Lock()
        self._wakeup = asyncio.Event()
        self.running = True
        self._task = asyncio.create_task(self._run())

    async def _run(self) -> None:
        while self.running:
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.flush_interval)
            except asyncio.TimeoutError:
                pass
            self._wakeup.clear()
            if not self.running:
                break
            await self.flush()

    async def stop(self) -> int:
        """Stop the periodic flush and flush what is left.

        Returns:
            Number of records committed by the final flush.
        """
        self.running = False
        if self._task is not None:
            self._wakeup.set()
            await self._task
            self._task = None
        return await self.flush()
