# artisan/telemetry/__init__.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Telemetry: buffered action logs and inventory snapshots."""

from .buffer import TelemetryBuffer
from .store import KEEP_ROWS, TelemetryStore

__all__ = ["KEEP_ROWS", "TelemetryBuffer", "TelemetryStore"]
