"""Terminal output for assetflow runs, in the `[HH:MM:SS] ...` style of task runners."""

from __future__ import annotations

import sys
import time
import traceback
from typing import Iterable, Mapping, Optional

from ..model import Task, TaskState


def _format_duration(seconds: float) -> str:
    if seconds < 1:
        return f"{seconds * 1000:.0f} ms"
    return f"{seconds:.2f} s"


class Console:
    """
    Everything a run prints to the terminal goes through here.

    Progress lines go to stdout, errors to stderr. With `debug` on, error
    output keeps full messages and tracebacks.
    """

    def __init__(self, debug: bool = False):
        """
        Args:
            debug: If True, show full error messages and stack traces
        """
        self.debug = debug

    def _stamp(self) -> str:
        return time.strftime("[%H:%M:%S]")

    def _out(self, text: str) -> None:
        print(f"{self._stamp()} {text}")

    def _err(self, text: str) -> None:
        print(f"{self._stamp()} {text}", file=sys.stderr)

    # ------------------------------------------------------------------
    # run progress
    # ------------------------------------------------------------------

    def print_build_started(self, task: str, mode: str, root: str) -> None:
        """
        Print the run header.

        Args:
            task: Task requested on the command line
            mode: Build mode value ("dev" or "production")
            root: Project root the globs are relative to
        """
        self._out(f"Working directory: {root}")
        self._out(f"Mode: {mode}")
        self._out(f"Task: {task}")

    def print_task_start(self, name: str) -> None:
        self._out(f"Starting '{name}'...")

    def print_task_finished(self, name: str, duration: float) -> None:
        self._out(f"Finished '{name}' after {_format_duration(duration)}")

    def print_task_failed(self, name: str, reason: str, duration: Optional[float] = None) -> None:
        """
        Print a task failure to stderr.

        Args:
            name: Task that failed
            reason: Error message; only its first line is shown unless debug is on
            duration: Seconds the task ran before failing, if known
        """
        after = f" after {_format_duration(duration)}" if duration is not None else ""
        self._err(f"'{name}' errored{after}")
        lines = reason.splitlines() or ["Unknown error"]
        if not self.debug:
            lines = lines[:1]
        for line in lines:
            self._err(f"  {line}")

    def print_task_list(self, tasks: Iterable[Task]) -> None:
        """
        Print one line per task: name, composition and description.

        Args:
            tasks: Registered tasks, in registration order
        """
        print("Tasks")
        for t in tasks:
            line = f"  {t.name}"
            if t.needs is not None:
                line += f"  <- {t.needs.describe()}"
            if t.description:
                line += f"  # {t.description}"
            print(line)

    def print_results(self, results: Mapping[str, TaskState]) -> None:
        """
        Print the final state of every task in the last run.

        Args:
            results: Task name to state, as returned by TaskRunner.run
        """
        width = max((len(n) for n in results), default=0)
        self._out("Task states:")
        for name, state in results.items():
            print(f"  {name.ljust(width)}  {state.value}")

    # ------------------------------------------------------------------
    # errors and messages
    # ------------------------------------------------------------------

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print a titled error block on stderr.

        Args:
            title: Short error title
            message: Main error message
            details: Optional lines indented under the message
            suggestion: Optional hint printed after a blank line
        """
        self._err(f"ERROR: {title}")
        for line in message.splitlines() or [""]:
            print(f"  {line}", file=sys.stderr)
        for detail in details or []:
            print(f"    {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: BaseException) -> None:
        """Print an exception; the full traceback only in debug mode."""
        if not self.debug:
            self._err(f"{type(exc).__name__}: {exc}")
            return
        traceback.print_exception(type(exc), exc, exc.__traceback__)

    def print_info(self, message: str) -> None:
        """Print a timestamped informational line."""
        self._out(message)

    def print_debug(self, message: str) -> None:
        """Print a debug line to stderr (only if debug mode enabled)."""
        if self.debug:
            print(f"[debug] {message}", file=sys.stderr)


# Process-wide console, replaced by the CLI at startup
_console: Optional[Console] = None


def get_console() -> Console:
    """
    Get the process-wide console, creating a default one on first use.

    Returns:
        The console set by the CLI, or a non-debug Console
    """
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Install `console` as the process-wide console."""
    global _console
    _console = console
