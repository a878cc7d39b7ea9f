# tests/unit/telemetry/test_buffer.py
"""Unit tests for artisan/telemetry/buffer.py"""

import asyncio
import json
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from artisan.models.character import InventorySlot
from artisan.telemetry.buffer import TelemetryBuffer


def backups(buffer):
    return sorted(p.name for p in buffer.data_dir.glob("*.json"))


class TestEnqueue:
    def test_action_log_fields(self, telemetry):
        telemetry.enqueue_action_log("Alice", "move", (2, 6), {"ok": True})

        record = telemetry.action_logs[0]
        assert record["character"] == "Alice"
        assert (record["coord_x"], record["coord_y"]) == (2, 6)
        assert record["result"] == {"ok": True}
        assert record["created_at"]

    def test_snapshot_dumps_models(self, telemetry):
        telemetry.enqueue_inventory_snapshot("Alice", [InventorySlot(slot=1, code="egg", quantity=2)])

        assert telemetry.inventory_snapshots[0]["items"] == [{"slot": 1, "code": "egg", "quantity": 2}]
        assert telemetry.pending() == 1


class TestFlush:
    """Tests for TelemetryBuffer.flush."""

    @pytest.mark.asyncio
    async def test_flush_commits_and_removes_backups(self, telemetry, telemetry_store):
        for i in range(3):
            telemetry.enqueue_action_log("Alice", "gathering", (2, 6), {"i": i})
        telemetry.enqueue_inventory_snapshot("Alice", [])

        assert await telemetry.flush() == 4

        assert telemetry.pending() == 0
        assert telemetry_store.count("action_logs") == 3
        assert telemetry_store.count("inventory_snapshots") == 1
        assert backups(telemetry) == []

    @pytest.mark.asyncio
    async def test_empty_flush(self, telemetry):
        assert await telemetry.flush() == 0
        assert not telemetry.data_dir.exists()

    @pytest.mark.asyncio
    async def test_failed_commit_keeps_records_and_backup(self, telemetry):
        """A store failure leaves the records queued and on disk."""
        telemetry.store = MagicMock()
        telemetry.store.write_batch.side_effect = OperationalError("INSERT", {}, Exception("db down"))
        telemetry.enqueue_action_log("Alice", "move", (1, 1))
        telemetry.enqueue_action_log("Alice", "move", (2, 2))

        assert await telemetry.flush() == 0

        assert len(telemetry.action_logs) == 2
        files = list(telemetry.data_dir.glob("action_logs-*.json"))
        assert len(files) == 1
        assert len(json.loads(files[0].read_text())) == 2

    @pytest.mark.asyncio
    async def test_retry_replaces_old_backup(self, telemetry, telemetry_store):
        """After a failed flush the next one writes a fresh backup and cleans up."""
        real_store = telemetry.store
        telemetry.store = MagicMock()
        telemetry.store.write_batch.side_effect = OperationalError("INSERT", {}, Exception("db down"))
        telemetry.enqueue_action_log("Alice", "move", (1, 1))
        await telemetry.flush()

        telemetry.store = real_store
        telemetry.enqueue_action_log("Alice", "move", (2, 2))

        assert await telemetry.flush() == 2
        assert backups(telemetry) == []
        assert telemetry_store.count("action_logs") == 2

    @pytest.mark.asyncio
    async def test_records_added_during_flush_stay_queued(self, telemetry):
        """Only the records snapshotted by a flush are removed from the queue."""
        telemetry.enqueue_action_log("Alice", "move", (1, 1))
        original = telemetry.store.write_batch

        def write_and_enqueue(logs, snapshots):
            telemetry.action_logs.append({"character": "Alice", "action_type": "late"})
            return original(logs, snapshots)

        telemetry.store = MagicMock()
        telemetry.store.write_batch.side_effect = write_and_enqueue

        assert await telemetry.flush() == 1
        assert [r["action_type"] for r in telemetry.action_logs] == ["late"]


class TestRecovery:
    """Tests for re-queuing backups left by an earlier process."""

    @pytest.mark.asyncio
    async def test_backups_are_requeued_and_written(self, telemetry_store, tmp_path):
        data_dir = tmp_path / "data"
        data_dir.mkdir()
        records = [
            {"character": "Alice", "action_type": "move", "coord_x": 1, "coord_y": 1,
             "result": None, "error": None, "created_at": "2026-01-01T00:00:00+00:00"},
        ]
        (data_dir / "action_logs-999-1-1.json").write_text(json.dumps(records))
        (data_dir / "inventory_snapshots-999-1-2.json").write_text("not json")

        buffer = TelemetryBuffer(telemetry_store, str(data_dir), flush_interval=3600)
        assert buffer.recover_backups() == 1
        assert await buffer.flush() == 1

        assert telemetry_store.count("action_logs") == 1
        # Unreadable files are left for an operator.
        assert backups(buffer) == ["inventory_snapshots-999-1-2.json"]

    def test_missing_directory(self, telemetry_store, tmp_path):
        buffer = TelemetryBuffer(telemetry_store, str(tmp_path / "nowhere"))
        assert buffer.recover_backups() == 0


class TestLifecycle:
    """Tests for start/stop and the periodic flush."""

    @pytest.mark.asyncio
    async def test_graceful_shutdown_flushes_everything(self, telemetry_store, tmp_path):
        """17 queued rows are committed by stop and no backups remain."""
        data_dir = str(tmp_path / "data")
        buffer = TelemetryBuffer(telemetry_store, data_dir, flush_interval=3600)
        await buffer.start()
        for i in range(17):
            buffer.enqueue_action_log("Alice", "gathering", (2, 6), {"i": i})

        assert await buffer.stop() == 17

        assert telemetry_store.count("action_logs") == 17
        assert backups(buffer) == []

        restarted = TelemetryBuffer(telemetry_store, data_dir, flush_interval=3600)
        assert restarted.recover_backups() == 0

    @pytest.mark.asyncio
    async def test_threshold_triggers_early_flush(self, telemetry_store, tmp_path):
        buffer = TelemetryBuffer(telemetry_store, str(tmp_path / "data"), flush_interval=3600, flush_threshold=3)
        await buffer.start()
        for i in range(4):
            buffer.enqueue_action_log("Alice", "gathering", (2, 6), {"i": i})

        for _ in range(100):
            if buffer.pending() == 0:
                break
            await asyncio.sleep(0.01)

        assert telemetry_store.count("action_logs") == 4
        await buffer.stop()

    @pytest.mark.asyncio
    async def test_periodic_flush(self, telemetry_store, tmp_path):
        buffer = TelemetryBuffer(telemetry_store, str(tmp_path / "data"), flush_interval=0.01)
        await buffer.start()
        buffer.enqueue_action_log("Alice", "rest")

        for _ in range(100):
            if buffer.pending() == 0:
                break
            await asyncio.sleep(0.01)

        await buffer.stop()
        assert telemetry_store.count("action_logs") == 1
