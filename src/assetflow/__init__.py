from .config import BuildConfig, BuildMode
from .dsl import TaskRegistry, parallel, series
from .errors import (
    CyclicDependencyError,
    DuplicateTaskError,
    StepFailure,
    TaskExecutionError,
    UnknownDependencyError,
)
from .model import Group, Mode, Task, TaskName, TaskState
from .runner import TaskRunner
from .tasks import build_runner, register_tasks

__all__ = [
    "BuildConfig",
    "BuildMode",
    "TaskRegistry",
    "series",
    "parallel",
    "TaskRunner",
    "build_runner",
    "register_tasks",
    "Group",
    "Mode",
    "Task",
    "TaskName",
    "TaskState",
    "CyclicDependencyError",
    "DuplicateTaskError",
    "StepFailure",
    "TaskExecutionError",
    "UnknownDependencyError",
]
