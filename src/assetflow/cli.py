# cli.py
from __future__ import annotations

import logging
import os
import signal
import sys
import threading

import click

from assetflow.config import BuildConfig
from assetflow.errors import CyclicDependencyError, TaskExecutionError, UnknownDependencyError
from assetflow.model import TaskName
from assetflow.notify import Notifier
from assetflow.tasks import build_runner
from assetflow.ui.console import Console, set_console


def setup_logging(debug: bool) -> None:
    """
    Configure logging to stderr.

    Args:
        debug: Force DEBUG level; otherwise ASSETFLOW_LOG_LEVEL decides
            (default WARNING)
    """
    level = "DEBUG" if debug else os.environ.get("ASSETFLOW_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _stop_on_sigterm(runner, console: Console) -> None:
    """
    Make SIGTERM end watch/serve the way Ctrl-C does, without a traceback.

    Args:
        runner: Runner whose stop signal the handler sets
        console: Console used to report the signal

    Only installed from the main thread; elsewhere this is a no-op.
    """
    if threading.current_thread() is not threading.main_thread():
        return

    def _handler(signum, frame):
        console.print_info(f"Received signal {signum}, shutting down...")
        runner.stop()

    signal.signal(signal.SIGTERM, _handler)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("task", required=False, default=TaskName.DEFAULT.value)
@click.option("--tasks", "list_tasks", is_flag=True, default=False, help="List registered tasks and exit")
@click.option(
    "--cwd",
    default=".",
    type=click.Path(file_okay=False),
    help="Project root containing src/ (defaults to the current directory)",
)
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
def cli(task, list_tasks, cwd, debug):
    """assetflow: front-end asset build runner.

    Runs TASK (default: "default"). Set NODE_ENV to anything but "dev" for
    a production build.
    """
    console = Console(debug=debug)
    set_console(console)
    setup_logging(debug)

    try:
        config = BuildConfig.from_env(root=cwd)
    except ValueError as e:
        console.print_error("Invalid configuration", str(e))
        sys.exit(1)

    console.print_debug(f"config: {config}")
    runner = build_runner(config, console=console, notifier=Notifier(console))

    if list_tasks:
        console.print_task_list(runner.registry)
        return

    if task not in runner.registry:
        console.print_error(
            "Unknown task",
            f"Task '{task}' is not registered.",
            details=[f"Known tasks: {', '.join(runner.registry.names())}"],
            suggestion="List tasks with:\n  assetflow --tasks",
        )
        sys.exit(1)

    console.print_build_started(task, config.mode.value, str(config.root))
    _stop_on_sigterm(runner, console)

    try:
        results = runner.run(task)
    except KeyboardInterrupt:
        runner.stop()
        console.print_info("Interrupted by user")
        sys.exit(130)
    except TaskExecutionError as e:
        console.print_error("Build failed", str(e))
        if debug:
            console.print_exception(e.cause)
        sys.exit(1)
    except (UnknownDependencyError, CyclicDependencyError) as e:
        console.print_error("Invalid task graph", str(e))
        sys.exit(1)

    if debug:
        console.print_results(results)


if __name__ == "__main__":
    cli()
