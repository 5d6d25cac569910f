# errors.py
from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class DuplicateTaskError(Exception):
    name: str

    def __str__(self) -> str:
        return f"Task '{self.name}' is already registered"


@dataclass
class UnknownDependencyError(Exception):
    """
    A task (or a `run` request) refers to a name nobody registered.

    `task` is the referring task, or None when the name came straight
    from the caller (e.g. the CLI).
    """
    task: str | None
    dependency: str
    known: list[str] = field(default_factory=list)

    def __str__(self) -> str:
        if self.task is None:
            head = f"Task '{self.dependency}' is not registered"
        else:
            head = f"Task '{self.task}' depends on missing task '{self.dependency}'"
        if self.known:
            return f"{head}. Known tasks: {', '.join(sorted(self.known))}"
        return head


@dataclass
class CyclicDependencyError(Exception):
    tasks: list[str]

    def __str__(self) -> str:
        return f"Task graph has a cycle. Stuck tasks: {self.tasks}"


@dataclass
class StepFailure(Exception):
    """A single pipeline step raised; the original exception is chained."""
    task: str | None
    step: str
    message: str

    def __str__(self) -> str:
        where = f"[{self.task}] " if self.task else ""
        return f"{where}step '{self.step}' failed: {self.message}"


@dataclass
class TaskExecutionError(Exception):
    task_name: str
    cause: BaseException

    def __str__(self) -> str:
        return f"Task '{self.task_name}' failed: {self.cause}"
