# artisan/__init__.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Per-character task runners for the ArtifactsMMO action API.

A runner drives one character through repeated gather, craft, or fight
cycles, waiting out the server's action cooldowns. Runner state is kept in
a relational store so a supervisor can recover in-flight tasks after a
restart, and every action is recorded as telemetry.

Package structure:
- client/: transport, cooldown clock, action verbs, executor
- telemetry/: buffered action logs and inventory snapshots
- loop/: cycle framework, concrete cycles, presets
- tasks/: task lifecycle and recovery
- app/: runner and supervisor entry points
"""

__version__ = "0.1.0"
