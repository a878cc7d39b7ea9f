# artisan/app/cli/__main__.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0

# Supervisor CLI: starts runners, inspects and controls their task records,
# and recovers live tasks after a restart.

import asyncio
import logging
import sys
from typing import Optional

import click
from sqlalchemy.engine import Engine

from ...client.actions import ActionClient
from ...client.transport import Transport
from ...config import ArtisanConfig
from ...db import create_engine_from_url, init_db
from ...exceptions import ArtisanError, ConfigurationError
from ...models.task import CharacterTask
from ...tasks.lifecycle import TaskManager
from ...tasks.recovery import TaskRecovery, spawn_runner
from ..runner.runner import RUNNER_MODULE
from ..runner.utils import build_options, parse_args, setup_logging

logger = logging.getLogger(__name__)


class ContextObject:
    config: ArtisanConfig
    engine: Optional[Engine]
    tasks: Optional[TaskManager]

    def __init__(self):
        self.config = None
        self.engine = None
        self.tasks = None

    def init_tasks(self) -> TaskManager:
        if self.tasks is None:
            self.engine = create_engine_from_url(self.config.database_url)
            init_db(self.engine)
            self.tasks = TaskManager(self.engine)
        return self.tasks

    def build_transport(self) -> Transport:
        return Transport(
            self.config.require_token(),
            self.config.server_url,
            timeout=self.config.request_timeout,
        )

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "ContextObject":
        co = ContextObject()
        co.config = ArtisanConfig.from_env(env_file)
        return co


def format_task(task: CharacterTask) -> str:
    flags = " (canceled)" if task.canceled else ""
    pid = f" pid={task.process_id}" if task.process_id else ""
    line = f"{task.id:>5}  {task.character:<16} {task.task_type:<12} {task.state.value:<10}{pid}{flags}"
    if task.error_message:
        line += f"\n       error: {task.error_message}"
    return line


@click.group()
@click.option("--env-file", default=None, help="Path to environment file")
@click.option("--log-level", default="INFO", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]))
@click.pass_context
def cli(ctx, env_file, log_level):
    setup_logging(log_level)
    ctx.obj = ContextObject.from_env(env_file=env_file)


@cli.command("init-db")
@click.pass_obj
def init_database(co: ContextObject):
    """Create the store tables"""
    co.init_tasks()
    click.echo(f"Schema ready on {co.engine.url}")


@cli.command(context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False})
@click.argument("character")
@click.argument("runner_args", nargs=-1, type=click.UNPROCESSED)
@click.pass_obj
def start(co: ContextObject, character: str, runner_args: tuple[str, ...]):
    """Create a task and spawn its runner.

    Everything after the character is passed to the runner, e.g.
    `start Alice --cycle gather --preset copper_ore --store`.
    """
    tasks = co.init_tasks()
    try:
        args = parse_args([character, *runner_args])
        options = build_options(args, co.config)
        task_id = tasks.create_task(
            options.character, options.spec.task_type, RUNNER_MODULE, options.script_args,
        )
    except ArtisanError as e:
        click.echo(f"Cannot start: {e}")
        sys.exit(1)

    task = tasks.get_task(task_id)
    try:
        pid = spawn_runner(task)
    except OSError as e:
        tasks.fail_task(task_id, f"Failed to spawn runner: {e}")
        click.echo(f"Task {task_id} failed to spawn: {e}")
        sys.exit(1)
    click.echo(f"Task {task_id} started for {options.character} (pid {pid})")


@cli.command("list")
@click.option("--character", default=None, help="Only this character's tasks")
@click.option("--limit", default=10, show_default=True)
@click.pass_obj
def list_tasks(co: ContextObject, character: Optional[str], limit: int):
    """List recent tasks"""
    for task in co.init_tasks().get_character_tasks(character, limit=limit):
        click.echo(format_task(task))


@cli.command()
@click.argument("character")
@click.pass_obj
def status(co: ContextObject, character: str):
    """Show a character's live and latest task"""
    report = co.init_tasks().check_character_status(character)
    running = report["running_task"]
    latest = report["latest_task"]
    click.echo(f"{character}: {'busy' if running else 'idle'}")
    if latest is not None:
        click.echo(format_task(latest))


def _transition(co: ContextObject, verb: str, task_id: int) -> None:
    tasks = co.init_tasks()
    try:
        task = getattr(tasks, f"{verb}_task")(task_id)
    except ArtisanError as e:
        click.echo(f"Cannot {verb} task {task_id}: {e}")
        sys.exit(1)
    click.echo(format_task(task))


@cli.command()
@click.argument("task_id", type=int)
@click.pass_obj
def pause(co: ContextObject, task_id: int):
    """Pause a task; its runner idles until resumed"""
    _transition(co, "pause", task_id)


@cli.command()
@click.argument("task_id", type=int)
@click.pass_obj
def resume(co: ContextObject, task_id: int):
    """Resume a paused task"""
    _transition(co, "resume", task_id)


@cli.command()
@click.argument("task_id", type=int)
@click.pass_obj
def cancel(co: ContextObject, task_id: int):
    """Cancel a task; its runner stops before the next cycle"""
    _transition(co, "cancel", task_id)


@cli.command()
@click.option("--delay", default=1.0, show_default=True, help="Seconds between tasks")
@click.pass_obj
def recover(co: ContextObject, delay: float):
    """Respawn runners for pending, running, and paused tasks"""
    tasks = co.init_tasks()

    async def run() -> dict[str, int]:
        async with co.build_transport() as transport:
            recovery = TaskRecovery(
                tasks, ActionClient(transport), spawner=spawn_runner, delay_seconds=delay,
            )
            return await recovery.recover_all()

    try:
        summary = asyncio.run(run())
    except ConfigurationError as e:
        click.echo(f"Configuration error: {e}")
        sys.exit(1)
    click.echo(
        f"Recovered {summary['recovered']} of {summary['total']} tasks "
        f"({summary['failed']} failed, {summary['skipped']} still running)"
    )


@cli.command()
@click.option("--days", default=None, type=int, help="Keep terminal tasks this many days")
@click.pass_obj
def cleanup(co: ContextObject, days: Optional[int]):
    """Delete old finished tasks"""
    days = days if days is not None else co.config.task_cleanup_days
    removed = co.init_tasks().cleanup_old_tasks(days)
    click.echo(f"Removed {removed} tasks older than {days} days")


if __name__ == "__main__":
    cli()
