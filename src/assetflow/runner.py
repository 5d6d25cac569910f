# runner.py
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait
from typing import Dict, Optional

from .dag import closure
from .dsl import TaskRegistry
from .errors import TaskExecutionError
from .model import Group, Mode, TaskRecord, TaskState, member_name
from .notify import Notifier
from .ui.console import Console, get_console

logger = logging.getLogger(__name__)


class TaskRunner:
    """
    Runs registered tasks depth-first.

    A task's `needs` group runs before its action. Series members run
    strictly in order; parallel members are started together on a thread
    pool and every one of them is waited for before the group completes.
    When one fails, the others are asked to stop through `stop_event`.
    """

    def __init__(
        self,
        registry: TaskRegistry,
        *,
        console: Optional[Console] = None,
        notifier: Optional[Notifier] = None,
        max_workers: Optional[int] = None,
    ):
        self.registry = registry
        self._console = console
        self.notifier = notifier
        self.max_workers = max_workers

        self._lock = threading.Lock()
        self._records: Dict[str, TaskRecord] = {}
        self._last_run: Dict[str, float] = {}
        self.stop_event = threading.Event()
        self._active_runs = 0

    @property
    def console(self) -> Console:
        return self._console or get_console()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self, name: str) -> Dict[str, TaskState]:
        """
        Run `name` and everything it needs.

        The closure is validated first, so unknown references and cycles
        are reported before any action runs. Raises TaskExecutionError for
        the innermost failing task.

        An outermost run starts with a cleared stop signal; runs started
        while another is in progress (watch re-runs) leave it alone.
        """
        name = member_name(name)
        order = closure(self.registry, name)
        with self._lock:
            if self._active_runs == 0:
                self.stop_event.clear()
            self._active_runs += 1
            for n in order:
                self._records[n] = TaskRecord(name=n)

        try:
            self._run_task(name)
        finally:
            with self._lock:
                self._active_runs -= 1
        return self.results()

    def state(self, name: str) -> TaskState:
        rec = self._records.get(member_name(name))
        return rec.state if rec is not None else TaskState.PENDING

    def results(self) -> Dict[str, TaskState]:
        with self._lock:
            return {n: r.state for n, r in self._records.items()}

    def last_run(self, name: str) -> Optional[float]:
        """Start time (epoch seconds) of the last successful run of `name`."""
        return self._last_run.get(member_name(name))

    def stop(self) -> None:
        """Ask long-running tasks (watch, serve) to return."""
        self.stop_event.set()

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _set(self, name: str, **changes) -> TaskRecord:
        with self._lock:
            rec = self._records.setdefault(name, TaskRecord(name=name))
            for k, v in changes.items():
                setattr(rec, k, v)
            return rec

    def _run_task(self, name: str) -> None:
        task = self.registry.get(name)
        started_wall = time.time()
        started = time.perf_counter()
        self._set(name, state=TaskState.RUNNING, started_at=started_wall, error=None)
        self.console.print_task_start(name)
        logger.debug("task %s running", name)

        try:
            if task.needs is not None:
                self._run_group(task.needs)
            if task.action is not None:
                task.action()
        except TaskExecutionError as e:
            # a dependency failed; report it as is
            duration = time.perf_counter() - started
            self._set(name, state=TaskState.FAILED, duration=duration, error=e)
            self.console.print_task_failed(name, str(e), duration)
            raise
        except Exception as e:
            duration = time.perf_counter() - started
            self._set(name, state=TaskState.FAILED, duration=duration, error=e)
            self.console.print_task_failed(name, str(e), duration)
            logger.debug("task %s failed", name, exc_info=True)
            if task.notify_title and self.notifier is not None:
                self.notifier.notify(task.notify_title, str(e))
            raise TaskExecutionError(name, e) from e

        duration = time.perf_counter() - started
        self._set(name, state=TaskState.SUCCEEDED, duration=duration)
        self._last_run[name] = started_wall
        self.console.print_task_finished(name, duration)

    def _run_member(self, member) -> None:
        if isinstance(member, Group):
            self._run_group(member)
        else:
            self._run_task(member_name(member))

    def _run_group(self, group: Group) -> None:
        if group.mode is Mode.SERIES:
            for m in group.members:
                self._run_member(m)
            return

        workers = self.max_workers or len(group.members)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = [pool.submit(self._run_member, m) for m in group.members]
            try:
                _, not_done = wait(futures, return_when=FIRST_EXCEPTION)
                if not_done:
                    # a member failed: ask watch/serve siblings to return
                    self.stop()
                    wait(not_done)
            except BaseException:
                # e.g. Ctrl-C: unblock watch/serve so the pool can shut down
                self.stop()
                raise

        # first failure in declaration order
        for fut in futures:
            exc = fut.exception()
            if exc is not None:
                raise exc
