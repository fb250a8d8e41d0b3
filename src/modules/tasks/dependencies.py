"""Dependency resolution and the acyclic-graph invariant.

An edge ``task -> depends_on`` means the task waits for ``depends_on`` to be
completed. Reads answer "are all prerequisites done?"; writes guarantee the
edge set stays a DAG by checking reachability before every insert, under one
graph lock and one store transaction.
"""

import logging
from collections import defaultdict, deque
from collections.abc import Iterable

from src.core import db_client
from src.core.admin_notifier import notify_operator
from src.core.errors import CycleError, DataIntegrityError, ErrorCategory, ValidationError
from src.core.locks import GRAPH_LOCK_KEY, graph_locks
from src.core.logging import span
from src.domain.dependency import TaskDependency
from src.domain.task import Task, TaskStatus
from src.domain.types import id_sort_key
from src.modules.tasks import repository
from src.modules.tasks.snapshot import EngineSnapshot


logger = logging.getLogger(__name__)


def _adjacency(edges: Iterable[TaskDependency]) -> dict[str, list[str]]:
    graph: dict[str, list[str]] = defaultdict(list)
    for edge in edges:
        graph[edge.task_id].append(edge.depends_on_task_id)
    for targets in graph.values():
        targets.sort(key=id_sort_key)
    return graph


def reaches(graph: dict[str, list[str]], start: str, target: str) -> bool:
    """Breadth-first search: can ``target`` be reached from ``start`` by following edges?"""
    if start == target:
        return True
    seen = {start}
    queue = deque([start])
    while queue:
        node = queue.popleft()
        for neighbor in graph.get(node, ()):
            if neighbor == target:
                return True
            if neighbor not in seen:
                seen.add(neighbor)
                queue.append(neighbor)
    return False


def find_cycle(edges: Iterable[TaskDependency]) -> list[str] | None:
    """Return one cycle as a list of task ids (first id repeated at the end), or None."""
    graph = _adjacency(edges)
    visiting, done = 1, 2
    state: dict[str, int] = {}

    for root in sorted(graph, key=id_sort_key):
        if root in state:
            continue
        path = [root]
        state[root] = visiting
        stack = [iter(graph.get(root, ()))]
        while stack:
            neighbor = next(stack[-1], None)
            if neighbor is None:
                state[path.pop()] = done
                stack.pop()
                continue
            if state.get(neighbor) == visiting:
                return [*path[path.index(neighbor) :], neighbor]
            if neighbor not in state:
                state[neighbor] = visiting
                path.append(neighbor)
                stack.append(iter(graph.get(neighbor, ())))
    return None


async def ensure_acyclic(edges: Iterable[TaskDependency], *, operation: str) -> None:
    """Verify stored edges form a DAG.

    A cycle can only exist if storage was corrupted behind the engine's back.
    It is never repaired here: the operator is alerted and DataIntegrityError raised.
    """
    cycle = find_cycle(edges)
    if cycle is None:
        return

    path = " -> ".join(cycle)
    logger.critical("Dependency cycle found in stored edges", extra={"cycle": path, "operation": operation})
    await notify_operator(
        f"Dependency cycle found in stored task edges: {path}",
        category=ErrorCategory.DATA_INTEGRITY,
        entity_id=cycle[0],
    )
    msg = f"Stored dependency graph contains a cycle: {path}"
    raise DataIntegrityError(msg, entity_id=cycle[0], operation=operation)


def prerequisites_satisfied(task_id: str, snapshot: EngineSnapshot) -> bool:
    """Every prerequisite of the task is completed in the snapshot."""
    return all(snapshot.is_completed(prereq) for prereq in snapshot.prerequisites_of(task_id))


async def is_satisfied(task_id: str) -> bool:
    """True iff every dependency edge from ``task_id`` points to a completed task."""
    with span("dependencies.is_satisfied"):
        await repository.get_task(task_id, operation="is_satisfied")
        for edge in await repository.list_edges_from(task_id):
            prerequisite = await repository.get_task(edge.depends_on_task_id, operation="is_satisfied")
            if prerequisite.status != TaskStatus.COMPLETED:
                return False
        return True


async def insert_edge_checked(task_id: str, depends_on_task_id: str, *, operation: str) -> TaskDependency:
    """Validate, cycle-check and insert one edge.

    The caller must hold the graph lock and an open transaction, so the check
    and the insert cannot interleave with another edge insertion.
    """
    if task_id == depends_on_task_id:
        raise ValidationError("A task cannot depend on itself", entity_id=task_id, operation=operation)

    await repository.get_task(task_id, operation=operation)
    await repository.get_task(depends_on_task_id, operation=operation)

    existing = await repository.find_edge(task_id, depends_on_task_id)
    if existing is not None:
        return existing

    graph = _adjacency(await repository.list_edges())
    if reaches(graph, depends_on_task_id, task_id):
        msg = f"Task {task_id} cannot depend on {depends_on_task_id}: it would close a cycle"
        raise CycleError(msg, entity_id=task_id, operation=operation)

    edge = await repository.create_edge(task_id, depends_on_task_id)
    logger.info(
        "Added dependency",
        extra={"task_id": task_id, "depends_on_task_id": depends_on_task_id, "edge_id": edge.id},
    )
    return edge


async def add_dependency(task_id: str, depends_on_task_id: str) -> TaskDependency:
    """Add ``task_id -> depends_on_task_id``, rejecting edges that would close a cycle.

    Adding an edge that already exists returns the existing edge.

    Raises:
        ValidationError: If the edge is a self edge
        NotFoundError: If either task is missing
        CycleError: If ``depends_on_task_id`` already depends on ``task_id``; nothing is written
    """
    with span("dependencies.add_dependency"):
        async with graph_locks.hold(GRAPH_LOCK_KEY), db_client.transaction():
            return await insert_edge_checked(task_id, depends_on_task_id, operation="add_dependency")


async def remove_dependency(task_id: str, depends_on_task_id: str) -> bool:
    """Remove the edge if present. Removal can never create a cycle, so it is unconditional.

    Returns:
        True if an edge was removed
    """
    with span("dependencies.remove_dependency"):
        async with graph_locks.hold(GRAPH_LOCK_KEY), db_client.transaction():
            edge = await repository.find_edge(task_id, depends_on_task_id)
            if edge is None:
                return False
            await repository.delete_edge(edge.id)
        logger.info("Removed dependency", extra={"task_id": task_id, "depends_on_task_id": depends_on_task_id})
        return True


async def list_prerequisites(task_id: str) -> list[Task]:
    """Tasks ``task_id`` directly depends on."""
    await repository.get_task(task_id, operation="list_prerequisites")
    edges = await repository.list_edges_from(task_id)
    return [await repository.get_task(edge.depends_on_task_id, operation="list_prerequisites") for edge in edges]


async def list_dependents(task_id: str) -> list[Task]:
    """Tasks that directly depend on ``task_id``."""
    await repository.get_task(task_id, operation="list_dependents")
    edges = await repository.list_edges_to(task_id)
    return [await repository.get_task(edge.task_id, operation="list_dependents") for edge in edges]
