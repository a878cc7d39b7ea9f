# artisan/app/runner/__init__.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Runner process for one character and one cycle.

Module structure:
- runner.py: CycleRunner, task binding and signal handling
- utils.py: argument parsing and CLI entry points
"""

from .runner import RUNNER_MODULE, CycleRunner, RunnerOptions
from .utils import build_options, main, parse_args, run_runner, runner_args

__all__ = [
    "RUNNER_MODULE",
    "CycleRunner",
    "RunnerOptions",
    "build_options",
    "main",
    "parse_args",
    "run_runner",
    "runner_args",
]
