# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Union


class Mode(str, Enum):
    SERIES = "series"
    PARALLEL = "parallel"


class TaskState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class TaskName(str, Enum):
    """Identifiers of the built-in build tasks."""
    CLEAN = "clean"
    ASSETS = "assets"
    IMG = "img"
    STYLES = "styles"
    SCRIPTS = "scripts"
    BUILD = "build"
    WATCH = "watch"
    SERVE = "serve"
    DEFAULT = "default"

    def __str__(self) -> str:
        return self.value


Member = Union[str, "Group"]


def member_name(member: str | Enum) -> str:
    # TaskName members are str subclasses; normalise to the plain value
    return member.value if isinstance(member, Enum) else str(member)


@dataclass(frozen=True)
class Group:
    """An ordered set of task references run either in series or in parallel."""
    mode: Mode
    members: tuple[Member, ...]

    def names(self) -> list[str]:
        """Flattened task names, in declaration order."""
        out: list[str] = []
        for m in self.members:
            if isinstance(m, Group):
                out.extend(m.names())
            else:
                out.append(member_name(m))
        return out

    def describe(self) -> str:
        parts = [m.describe() if isinstance(m, Group) else member_name(m) for m in self.members]
        return f"{self.mode.value}({', '.join(parts)})"


@dataclass
class Task:
    """
    A named unit of build work.

    Running a task runs its `needs` group first (if any), then its action
    (if any). An action is a zero-argument callable; its return value is
    ignored, an exception marks the task failed.
    """
    name: str
    action: Optional[Callable[[], object]] = None
    needs: Optional[Group] = None
    description: str = ""

    # Title used when a failure of this task is reported to the notifier
    notify_title: Optional[str] = None

    def dependencies(self) -> list[str]:
        return self.needs.names() if self.needs is not None else []


@dataclass
class TaskRecord:
    """Runtime state of one task in the latest run."""
    name: str
    state: TaskState = TaskState.PENDING
    started_at: Optional[float] = None
    duration: Optional[float] = None
    error: Optional[BaseException] = field(default=None, repr=False)
