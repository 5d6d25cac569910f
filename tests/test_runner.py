from __future__ import annotations

import threading
import time

import pytest

from assetflow.dsl import TaskRegistry, parallel, series
from assetflow.errors import TaskExecutionError, UnknownDependencyError
from assetflow.model import TaskState
from assetflow.notify import Notifier
from assetflow.runner import TaskRunner
from assetflow.ui.console import Console


def _runner(registry: TaskRegistry, **kwargs) -> TaskRunner:
    console = Console()
    return TaskRunner(registry, console=console, notifier=Notifier(console), **kwargs)


def _recorder(log: list[str], name: str):
    def action() -> None:
        log.append(name)
    return action


def _boom(message: str = "boom"):
    def action() -> None:
        raise RuntimeError(message)
    return action


def test_series_runs_in_declared_order() -> None:
    log: list[str] = []
    r = TaskRegistry()
    for name in ("one", "two", "three"):
        r.register(name, _recorder(log, name))
    r.register("all", _recorder(log, "all"), needs=series("three", "one", "two"))

    results = _runner(r).run("all")

    assert log == ["three", "one", "two", "all"]
    assert set(results.values()) == {TaskState.SUCCEEDED}


def test_parallel_members_run_concurrently() -> None:
    barrier = threading.Barrier(2, timeout=5)
    r = TaskRegistry()
    # each member blocks until the other has started too
    r.register("left", barrier.wait)
    r.register("right", barrier.wait)
    r.register("both", needs=parallel("left", "right"))

    results = _runner(r).run("both")

    assert results == {
        "left": TaskState.SUCCEEDED,
        "right": TaskState.SUCCEEDED,
        "both": TaskState.SUCCEEDED,
    }


def test_parallel_group_waits_for_every_member_before_failing() -> None:
    finished = threading.Event()

    def slow() -> None:
        time.sleep(0.2)
        finished.set()

    r = TaskRegistry()
    r.register("bad", _boom("broken"))
    r.register("slow", slow)
    r.register("group", needs=parallel("bad", "slow"))
    runner = _runner(r)

    with pytest.raises(TaskExecutionError) as exc:
        runner.run("group")

    assert finished.is_set()
    assert exc.value.task_name == "bad"
    assert isinstance(exc.value.cause, RuntimeError)
    assert runner.state("slow") is TaskState.SUCCEEDED
    assert runner.state("bad") is TaskState.FAILED
    assert runner.state("group") is TaskState.FAILED


def test_series_stops_at_first_failure() -> None:
    log: list[str] = []
    r = TaskRegistry()
    r.register("first", _boom())
    r.register("second", _recorder(log, "second"))
    r.register("pipeline", needs=series("first", "second"))
    runner = _runner(r)

    with pytest.raises(TaskExecutionError) as exc:
        runner.run("pipeline")

    assert exc.value.task_name == "first"
    assert log == []
    assert runner.state("second") is TaskState.PENDING


def test_sequential_step_completes_with_descendants_before_next() -> None:
    log: list[str] = []
    r = TaskRegistry()
    r.register("a1", _recorder(log, "a1"))
    r.register("a2", _recorder(log, "a2"))
    r.register("a", _recorder(log, "a"), needs=parallel("a1", "a2"))
    r.register("b", _recorder(log, "b"))
    r.register("top", needs=series("a", "b"))

    _runner(r).run("top")

    assert sorted(log[:2]) == ["a1", "a2"]
    assert log[2:] == ["a", "b"]


def test_unknown_dependency_is_reported_before_anything_runs() -> None:
    log: list[str] = []
    r = TaskRegistry()
    r.register("clean", _recorder(log, "clean"))
    r.register("build", needs=series("clean", "missing"))

    with pytest.raises(UnknownDependencyError):
        _runner(r).run("build")
    assert log == []


def test_failure_is_sent_to_notifier_with_task_title() -> None:
    r = TaskRegistry()
    r.register("styles", _boom("bad sass"), notify_title="Styles")
    runner = _runner(r)

    with pytest.raises(TaskExecutionError):
        runner.run("styles")

    assert [(n.title, n.message) for n in runner.notifier.sent] == [("Styles", "bad sass")]


def test_failure_without_title_is_not_notified() -> None:
    r = TaskRegistry()
    r.register("img", _boom())
    runner = _runner(r)

    with pytest.raises(TaskExecutionError):
        runner.run("img")
    assert runner.notifier.sent == []


def test_last_run_is_recorded_only_on_success() -> None:
    r = TaskRegistry()
    r.register("ok", lambda: None)
    r.register("bad", _boom())
    runner = _runner(r)

    assert runner.last_run("ok") is None
    before = time.time()
    runner.run("ok")
    assert runner.last_run("ok") is not None
    assert runner.last_run("ok") >= before - 1

    with pytest.raises(TaskExecutionError):
        runner.run("bad")
    assert runner.last_run("bad") is None


def test_tasks_can_be_run_again() -> None:
    calls: list[str] = []
    r = TaskRegistry()
    r.register("styles", _recorder(calls, "styles"))
    runner = _runner(r)

    runner.run("styles")
    runner.run("styles")

    assert calls == ["styles", "styles"]
    assert runner.state("styles") is TaskState.SUCCEEDED


def test_stop_sets_the_stop_event() -> None:
    runner = _runner(TaskRegistry())
    assert not runner.stopped
    runner.stop()
    assert runner.stopped
    assert runner.stop_event.is_set()


def test_long_running_members_return_when_stopped() -> None:
    r = TaskRegistry()
    runner = _runner(r)
    r.register("watch", lambda: runner.stop_event.wait(5))
    r.register("serve", lambda: runner.stop_event.wait(5))
    r.register("default", needs=parallel("watch", "serve"))

    threading.Timer(0.1, runner.stop).start()
    started = time.perf_counter()
    runner.run("default")

    assert time.perf_counter() - started < 4


def test_failed_member_stops_long_running_siblings() -> None:
    r = TaskRegistry()
    runner = _runner(r)
    r.register("serve", _boom("port in use"))
    r.register("watch", lambda: runner.stop_event.wait(5))
    r.register("default", needs=parallel("watch", "serve"))

    started = time.perf_counter()
    with pytest.raises(TaskExecutionError) as exc:
        runner.run("default")

    assert time.perf_counter() - started < 4
    assert exc.value.task_name == "serve"
    assert runner.state("watch") is TaskState.SUCCEEDED


def test_a_new_run_starts_with_a_cleared_stop_signal() -> None:
    r = TaskRegistry()
    runner = _runner(r)
    r.register("serve", _boom("port in use"))
    r.register("watch", lambda: runner.stop_event.wait(5))
    r.register("default", needs=parallel("watch", "serve"))

    with pytest.raises(TaskExecutionError):
        runner.run("default")
    assert runner.stopped

    threading.Timer(0.5, runner.stop).start()
    started = time.perf_counter()
    runner.run("watch")

    assert time.perf_counter() - started >= 0.4


def test_nested_run_keeps_a_pending_stop() -> None:
    r = TaskRegistry()
    runner = _runner(r)
    seen: list[bool] = []

    def rerun_after_stop() -> None:
        runner.stop()
        runner.run("leaf")
        seen.append(runner.stopped)

    r.register("leaf", lambda: None)
    r.register("watch", rerun_after_stop)

    runner.run("watch")

    assert seen == [True]
