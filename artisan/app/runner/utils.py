# artisan/app/runner/utils.py
# AI-Mind © 2025 by Martin Bukowski is licensed under CC BY-NC-SA 4.0
"""Command line for the runner process."""

import argparse
import asyncio
import logging
import sys
from typing import Any, Optional

from ...config import ArtisanConfig
from ...exceptions import ConfigurationError
from ...loop.presets import get_preset, load_presets
from ...models.cycle import Coords, CycleShape
from .runner import CycleRunner, RunnerOptions


logger = logging.getLogger(__name__)


def coords_arg(text: str) -> Coords:
    try:
        return Coords.parse(text)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m artisan.app.runner",
        description="Run a gather, craft, or fight cycle for one character",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Arguments:
  The only positional argument is the character. The goal is named by
  --cycle and --preset, and any field of the preset can be replaced with
  the goal override flags (--item, --target, --source, ...). The
  supervisor stores these arguments on the task so a recovered runner
  repeats the same run.

Examples:
  # Mine copper, smelt it, bank the bars
  python -m artisan.app.runner Alice --cycle gather --preset copper_ore

  # Mine copper but bank the ore unprocessed
  python -m artisan.app.runner Alice --cycle gather --preset copper_ore --store

  # Strange ore at a custom tile, 25 at a time
  python -m artisan.app.runner Alice --cycle gather --preset strange_ore --source "(3,-2)"

  # Smelt steel without recycling, character from control_character
  python -m artisan.app.runner --cycle craft --preset steel --no-recycle
        """,
    )
    parser.add_argument(
        "character",
        nargs="?",
        help="Character to control (default: control_character from the environment)",
    )
    parser.add_argument(
        "--cycle",
        required=True,
        choices=[shape.value for shape in CycleShape],
        help="Cycle shape",
    )
    parser.add_argument("--preset", required=True, help="Preset name within the cycle shape")

    goal = parser.add_argument_group("goal overrides")
    goal.add_argument("--item", help="Item to gather")
    goal.add_argument("--target", type=int, help="Quantity to gather per cycle")
    goal.add_argument("--quantity", type=int, help="Quantity to craft per cycle")
    goal.add_argument("--source", type=coords_arg, help='Gathering tile, "(x,y)"')
    goal.add_argument("--bank", type=coords_arg, help='Bank tile, "(x,y)"')
    goal.add_argument("--workshop", type=coords_arg, help='Workshop tile, "(x,y)"')
    goal.add_argument("--monster", type=coords_arg, help='Monster tile, "(x,y)"')
    goal.add_argument("--max-cycles", type=int, help="Stop after this many cycles (0 = forever)")
    processing = goal.add_mutually_exclusive_group()
    processing.add_argument(
        "--process", dest="processing", action="store_const", const=True,
        help="Process gathered material at the workshop",
    )
    processing.add_argument(
        "--store", dest="processing", action="store_const", const=False,
        help="Bank gathered material unprocessed",
    )
    recycle = goal.add_mutually_exclusive_group()
    recycle.add_argument(
        "--recycle", dest="recycle", action="store_const", const=True,
        help="Recycle crafted items before banking",
    )
    recycle.add_argument(
        "--no-recycle", dest="recycle", action="store_const", const=False,
        help="Bank crafted items as they are",
    )

    parser.add_argument("--task-id", type=int, help="Attach to an existing task record")
    parser.add_argument(
        "--recovering",
        action="store_true",
        help="Set when respawned by task recovery",
    )
    parser.add_argument("--env-file", help="Path to .env file for loading environment variables")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose debug logging (overrides --log-level)",
    )
    return parser


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Returns:
        argparse.Namespace: Parsed command-line arguments.
    """
    return build_parser().parse_args(argv)


def setup_logging(level: str) -> None:
    """Configure logging with the specified level.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR).
    """
    logging.basicConfig(
        level=getattr(logging, level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def runner_args(args: argparse.Namespace) -> list[str]:
    """Arguments that reproduce this run, without the character or task id."""
    out = ["--cycle", args.cycle, "--preset", args.preset]
    for flag, value in (
        ("--item", args.item),
        ("--target", args.target),
        ("--quantity", args.quantity),
        ("--source", args.source),
        ("--bank", args.bank),
        ("--workshop", args.workshop),
        ("--monster", args.monster),
        ("--max-cycles", args.max_cycles),
    ):
        if value is not None:
            out += [flag, str(value)]
    if args.processing is not None:
        out.append("--process" if args.processing else "--store")
    if args.recycle is not None:
        out.append("--recycle" if args.recycle else "--no-recycle")
    if args.env_file:
        out += ["--env-file", args.env_file]
    return out


def goal_overrides(args: argparse.Namespace, spec: Any) -> dict[str, Any]:
    """Preset fields replaced by command-line flags."""
    shape = CycleShape(args.cycle)
    if shape is CycleShape.GATHER:
        overrides: dict[str, Any] = {
            "target_item": args.item,
            "target_quantity": args.target,
            "source": args.source,
            "bank": args.bank,
            "max_cycles": args.max_cycles,
        }
        if args.processing is not None:
            overrides["skip_processing"] = not args.processing
        if args.workshop is not None:
            if spec.processing is None:
                raise ConfigurationError(f"Preset {args.preset} has no processing step")
            overrides["processing"] = spec.processing.model_copy(update={"workshop": args.workshop})
        return overrides

    if shape is CycleShape.CRAFT:
        return {
            "product_quantity": args.quantity,
            "workshop": args.workshop,
            "bank": args.bank,
            "recycle_after": args.recycle,
            "max_crafts": args.max_cycles,
        }

    return {
        "monster": args.monster or args.source,
        "bank": args.bank,
        "max_fights": args.max_cycles,
    }


def build_options(args: argparse.Namespace, config: ArtisanConfig) -> RunnerOptions:
    """Resolve the character and the cycle description.

    Raises:
        ConfigurationError: If the character or preset is invalid.
    """
    character = config.resolve_character(args.character)
    table = load_presets()
    base = get_preset(args.cycle, args.preset, table=table)
    spec = get_preset(args.cycle, args.preset, goal_overrides(args, base), table=table)
    return RunnerOptions(
        character=character,
        shape=CycleShape(args.cycle),
        spec=spec,
        script_args=runner_args(args),
        task_id=args.task_id,
        recovering=args.recovering,
    )


async def run_runner(config: ArtisanConfig, options: RunnerOptions) -> int:
    """Entry point for running a cycle runner.

    Args:
        config: Loaded configuration.
        options: Runner options.

    Returns:
        Process exit code.
    """
    runner = CycleRunner(config, options)
    return await runner.start()


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the runner CLI.

    Parses arguments, loads configuration, and runs the cycle until it ends
    or a signal stops it.
    """
    args = parse_args(argv)
    log_level = "DEBUG" if args.verbose else args.log_level
    setup_logging(log_level)

    try:
        config = ArtisanConfig.from_env(args.env_file)
        config.require_token()
        options = build_options(args, config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    if options.recovering:
        logger.info(f"Recovering task {options.task_id} for {options.character}")
    else:
        logger.info(f"Starting {options.shape.value}/{args.preset} for {options.character}")

    sys.exit(asyncio.run(run_runner(config, options)))
