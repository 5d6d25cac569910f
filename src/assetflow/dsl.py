# src/assetflow/dsl.py
from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional

from .errors import DuplicateTaskError, UnknownDependencyError
from .model import Group, Mode, Task, member_name

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Group helpers
# ---------------------------------------------------------------------

def _members(members) -> tuple:
    out = []
    for m in members:
        if isinstance(m, Group):
            out.append(m)
        elif isinstance(m, (str, Enum)):
            out.append(member_name(m))
        else:
            raise TypeError(f"Group members must be task names or groups, got {type(m).__name__}")
    return tuple(out)


def series(*members) -> Group:
    """Run members one after another: series("clean", parallel(...))."""
    if not members:
        raise ValueError("series() needs at least one member")
    return Group(Mode.SERIES, _members(members))


def parallel(*members) -> Group:
    """Start all members together and wait for every one of them."""
    if not members:
        raise ValueError("parallel() needs at least one member")
    return Group(Mode.PARALLEL, _members(members))


# ---------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------

class TaskRegistry:
    """
    Name -> Task table.

    Registration order is kept; dependency references are only checked
    when the graph is validated (see dag.validate), so tasks may refer to
    tasks registered later.
    """

    def __init__(self):
        self._tasks: Dict[str, Task] = {}

    def register(
        self,
        name: str,
        action: Optional[Callable[[], object]] = None,
        *,
        needs: Optional[Group] = None,
        description: str = "",
        notify_title: Optional[str] = None,
    ) -> Task:
        name = member_name(name)
        if not name:
            raise ValueError("Task name must be a non-empty string")
        if name in self._tasks:
            raise DuplicateTaskError(name)
        if action is None and needs is None:
            raise ValueError(f"Task '{name}' needs an action, a dependency group, or both")
        if action is not None and not callable(action):
            raise TypeError(f"Task '{name}' action must be callable")

        t = Task(
            name=name,
            action=action,
            needs=needs,
            description=description,
            notify_title=notify_title,
        )
        self._tasks[name] = t
        logger.debug("registered task %s (needs=%s)", name, needs.describe() if needs else None)
        return t

    def task(
        self,
        name: str,
        *,
        needs: Optional[Group] = None,
        description: str = "",
        notify_title: Optional[str] = None,
    ):
        """Decorator form: @registry.task("clean")."""
        def deco(fn: Callable[[], object]):
            self.register(
                name,
                fn,
                needs=needs,
                description=description or (fn.__doc__ or "").strip().split("\n")[0],
                notify_title=notify_title,
            )
            return fn
        return deco

    def get(self, name: str) -> Task:
        name = member_name(name)
        try:
            return self._tasks[name]
        except KeyError:
            raise UnknownDependencyError(task=None, dependency=name, known=list(self._tasks)) from None

    def names(self) -> List[str]:
        return list(self._tasks)

    def __contains__(self, name: object) -> bool:
        if isinstance(name, (str, Enum)):
            return member_name(name) in self._tasks
        return False

    def __iter__(self) -> Iterator[Task]:
        return iter(list(self._tasks.values()))

    def __len__(self) -> int:
        return len(self._tasks)
