# artisan/app/runner/runner.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""A runner process: one cycle for one character, bound to a task record."""

import asyncio
import logging
import os
import signal
from dataclasses import dataclass, field
from typing import Optional, Union

import httpx
from sqlalchemy.engine import Engine

from ...client import cooldown
from ...client.actions import ActionClient
from ...client.transport import Transport
from ...config import ArtisanConfig
from ...db import create_engine_from_url, init_db
from ...exceptions import ConfigurationError, StateMachineError
from ...loop.base import BaseLoop
from ...loop.cycles import CycleSpec, build_cycle, describe
from ...models.cycle import CycleShape
from ...models.task import TaskState
from ...tasks.lifecycle import TaskManager
from ...tasks.recovery import process_alive
from ...telemetry.buffer import TelemetryBuffer
from ...telemetry.store import TelemetryStore


logger = logging.getLogger(__name__)

RUNNER_MODULE = "artisan.app.runner"


@dataclass
class RunnerOptions:
    """What a runner should do.

    Attributes:
        character: Character to drive.
        shape: Cycle shape.
        spec: Cycle description after overrides.
        script_args: Arguments that reproduce this run, stored on the task.
        task_id: Existing task to attach to. A new task is created if None.
        recovering: Set when respawned by task recovery.
    """
    character: str
    shape: CycleShape
    spec: CycleSpec
    script_args: list[str] = field(default_factory=list)
    task_id: Optional[int] = None
    recovering: bool = False


class CycleRunner:
    """Runs a cycle and keeps its task record in step.

    SIGINT is an operator stop: the task is canceled. SIGTERM is a host
    shutdown: the task stays running so recovery respawns it. Both flush
    telemetry before exiting. While the task is paused no action is taken.

    Args:
        config: Loaded configuration.
        options: Runner options.
        engine: Store engine. Created from ``config.database_url`` if None.
        http_transport: Optional httpx transport for the game API.
    """

    def __init__(
        self,
        config: ArtisanConfig,
        options: RunnerOptions,
        engine: Optional[Engine] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
        pause_poll_seconds: float = 5.0,
    ):
        self.config = config
        self.options = options
        self.engine = engine
        self.http_transport = http_transport
        self.pause_poll_seconds = pause_poll_seconds

        self.task_id: Optional[int] = options.task_id
        self.tasks: Optional[TaskManager] = None
        self.buffer: Optional[TelemetryBuffer] = None
        self.transport: Optional[Transport] = None
        self.cycle: Optional[BaseLoop] = None
        self.stop_signal: Optional[signal.Signals] = None
        self.finished_elsewhere = False
        self._cycle_task: Optional[asyncio.Task] = None

    async def start(self) -> int:
        """Run until the cycle ends, a signal arrives, or an error is fatal.

        Returns:
            Process exit code.
        """
        if self.engine is None:
            self.engine = create_engine_from_url(self.config.database_url)
        init_db(self.engine)

        store = TelemetryStore(self.engine)
        self.tasks = TaskManager(self.engine)
        self.buffer = TelemetryBuffer(
            store,
            self.config.data_dir,
            flush_interval=self.config.telemetry_flush_interval,
            flush_threshold=self.config.telemetry_flush_threshold,
        )
        await self.buffer.start()

        try:
            self.transport = Transport(
                self.config.require_token(),
                self.config.server_url,
                telemetry=self.buffer,
                timeout=self.config.request_timeout,
                transport=self.http_transport,
            )
            await self.transport.connect()
            actions = ActionClient(self.transport)
            self.cycle = build_cycle(
                self.options.shape,
                self.options.spec,
                self.options.character,
                actions,
                telemetry=self.buffer,
                store=store,
                pacing_seconds=self.config.action_pacing_seconds,
                gate=self.gate,
                hold=self.hold,
            )

            await asyncio.to_thread(self.claim_task)
            logger.info(f"Task {self.task_id}: {self.options.character} will {describe(self.cycle)}")

            self.setup_signal_handlers()
            self._cycle_task = asyncio.create_task(self.cycle.run())
            try:
                completed = await self._cycle_task
            except asyncio.CancelledError:
                if self.stop_signal is None:
                    raise
                await asyncio.to_thread(self.on_signal_stop)
                return 0

            await asyncio.to_thread(self.on_cycle_end, completed)
            return 0

        except Exception as e:
            logger.exception(f"Runner for {self.options.character} failed: {e}")
            await asyncio.to_thread(self.record_failure, e)
            return 1

        finally:
            self.remove_signal_handlers()
            await self.buffer.stop()
            if self.transport is not None:
                await self.transport.close()

    def claim_task(self) -> None:
        """Create or attach to the task record and mark it running."""
        pid = os.getpid()
        if self.task_id is None:
            self.task_id = self.tasks.create_task(
                self.options.character,
                self.options.spec.task_type,
                RUNNER_MODULE,
                self.options.script_args,
            )
            self.tasks.start_task(self.task_id, pid)
            return

        task = self.tasks.get_task(self.task_id)
        if task is None:
            raise ConfigurationError(f"Task {self.task_id} does not exist")
        if task.character != self.options.character:
            raise ConfigurationError(
                f"Task {self.task_id} belongs to {task.character}, not {self.options.character}"
            )
        if task.state.is_terminal:
            raise StateMachineError(f"Task {self.task_id} is already {task.state.value}")
        if task.state in (TaskState.PENDING, TaskState.IDLE):
            self.tasks.start_task(self.task_id, pid)
        elif task.state is TaskState.RUNNING and task.process_id != pid:
            self.tasks.resume_task(self.task_id, pid)

    async def hold(self) -> bool:
        """Wait while the task is paused. Consulted before every action.

        Returns:
            False once the task is terminal or another runner owns it.
        """
        pid = os.getpid()
        announced = False
        while True:
            task = await asyncio.to_thread(self.tasks.get_task, self.task_id)
            if task is None or task.state.is_terminal:
                logger.info(f"Task {self.task_id} was finished elsewhere")
                self.finished_elsewhere = True
                return False
            if task.process_id not in (None, pid) and process_alive(task.process_id):
                logger.warning(f"Task {self.task_id} now belongs to pid {task.process_id}, stopping")
                self.finished_elsewhere = True
                return False
            if task.state is TaskState.PAUSED:
                if not announced:
                    logger.info(f"Task {self.task_id} is paused, waiting")
                    announced = True
                await cooldown.sleep(self.pause_poll_seconds * 1000)
                continue
            if announced:
                logger.info(f"Task {self.task_id} resumed")
            return True

    async def gate(self) -> bool:
        """Hold before a cycle, then record the cycle's progress."""
        if not await self.hold():
            return False
        try:
            await asyncio.to_thread(self.tasks.update_task_data, self.task_id, self.cycle.progress())
        except StateMachineError:
            self.finished_elsewhere = True
            return False
        return True

    def on_cycle_end(self, completed: int) -> None:
        if self.finished_elsewhere:
            return
        logger.info(f"Task {self.task_id} completed after {completed} cycles")
        self.tasks.complete_task(self.task_id, self.cycle.progress())

    def on_signal_stop(self) -> None:
        if self.stop_signal is signal.SIGTERM:
            logger.info(f"Task {self.task_id} left running for recovery")
            return
        task = self.tasks.get_task(self.task_id)
        if task is not None and not task.state.is_terminal:
            self.tasks.cancel_task(self.task_id)
            logger.info(f"Task {self.task_id} canceled by operator")

    def record_failure(self, error: BaseException) -> None:
        if self.task_id is None:
            return
        task = self.tasks.get_task(self.task_id)
        if task is None or task.state.is_terminal:
            return
        self.tasks.fail_task(self.task_id, f"{type(error).__name__}: {error}")

    def setup_signal_handlers(self) -> None:
        """Register SIGINT and SIGTERM handlers on the running loop."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.handle_signal, sig)

    def remove_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)

    def handle_signal(self, sig: Union[signal.Signals, int]) -> None:
        """Stop the cycle at once. The first signal decides the outcome."""
        if self.stop_signal is not None:
            return
        self.stop_signal = signal.Signals(sig)
        logger.info(f"Received {self.stop_signal.name}, shutting down gracefully...")
        if self.cycle is not None:
            self.cycle.stop()
        if self._cycle_task is not None:
            self._cycle_task.cancel()
