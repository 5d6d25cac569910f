# dag.py
from __future__ import annotations

from collections import deque
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .dsl import TaskRegistry
from .errors import CyclicDependencyError, UnknownDependencyError
from .model import Task


def dependencies_of(task: Task) -> List[str]:
    """Names referenced by task.needs, flattened, in declaration order."""
    return task.dependencies()


def build_dag(
    registry: TaskRegistry,
    names: Optional[Iterable[str]] = None,
) -> Tuple[Dict[str, Set[str]], Dict[str, int]]:
    """
    Build the dependency graph of `names` (default: every registered task).

    Edges run dependency -> dependent (the dependency must finish first).
    Every referenced name must be registered.
    """
    known = registry.names()
    name_set = set(known if names is None else names)

    adj: Dict[str, Set[str]] = {n: set() for n in name_set}
    indeg: Dict[str, int] = {n: 0 for n in name_set}

    for name in sorted(name_set):
        task = registry.get(name)
        for dep in dependencies_of(task):
            if dep not in registry:
                raise UnknownDependencyError(task=name, dependency=dep, known=known)
            if dep not in adj:
                # dependency outside the requested subset; closure() never does this
                adj[dep] = set()
                indeg[dep] = 0
            if name not in adj[dep]:
                adj[dep].add(name)
                indeg[name] += 1

    return adj, indeg


def topo_order(adj: Dict[str, Set[str]], indeg: Dict[str, int]) -> List[str]:
    """
    Kahn's algorithm. Returns task names with every dependency before its
    dependents; ties are broken alphabetically so the order is stable.
    """
    indeg = dict(indeg)  # copy (we mutate it)
    q = deque(sorted(n for n, d in indeg.items() if d == 0))
    order: List[str] = []

    while q:
        node = q.popleft()
        order.append(node)
        for child in sorted(adj.get(node, set())):
            indeg[child] -= 1
            if indeg[child] == 0:
                q.append(child)

    if len(order) != len(indeg):
        remaining = sorted(n for n, d in indeg.items() if d > 0)
        raise CyclicDependencyError(remaining)

    return order


def closure(registry: TaskRegistry, root: str) -> List[str]:
    """
    Depth-first dependency closure of `root`, dependencies first, `root`
    last. Raises UnknownDependencyError / CyclicDependencyError.
    """
    root_task = registry.get(root)
    order: List[str] = []
    done: Set[str] = set()
    on_path: List[str] = []

    def visit(name: str, parent: Optional[str]) -> None:
        if name in done:
            return
        if name in on_path:
            cycle = on_path[on_path.index(name):]
            raise CyclicDependencyError(sorted(set(cycle)))
        if name not in registry:
            raise UnknownDependencyError(task=parent, dependency=name, known=registry.names())

        on_path.append(name)
        for dep in dependencies_of(registry.get(name)):
            visit(dep, name)
        on_path.pop()

        done.add(name)
        order.append(name)

    visit(root_task.name, None)
    return order


def validate(registry: TaskRegistry, root: Optional[str] = None) -> List[str]:
    """
    Check that references resolve and the graph is acyclic.

    With `root`, only the closure of that task is checked; otherwise the
    whole registry. Returns a valid execution order.
    """
    if root is not None:
        return closure(registry, root)
    adj, indeg = build_dag(registry)
    return topo_order(adj, indeg)
