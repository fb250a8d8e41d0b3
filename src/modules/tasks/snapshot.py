"""Point-in-time read view used by eligibility and selection."""

import asyncio
from dataclasses import dataclass, field

from src.core import db_client
from src.core.logging import span
from src.domain.blocker import Blocker
from src.domain.conditions import TimeWindow, WeatherCondition
from src.domain.dependency import TaskDependency
from src.domain.location import Location
from src.domain.task import Task, TaskStatus
from src.modules.tasks import repository


@dataclass(frozen=True)
class EngineSnapshot:
    """Everything eligibility needs, loaded once per decision.

    Eligibility is a pure function of (task, context, snapshot).
    """

    tasks: dict[str, Task] = field(default_factory=dict)
    edges: list[TaskDependency] = field(default_factory=list)
    locations: dict[str, Location] = field(default_factory=dict)
    time_windows: dict[str, TimeWindow] = field(default_factory=dict)
    weather_conditions: dict[str, WeatherCondition] = field(default_factory=dict)
    blockers: dict[str, Blocker] = field(default_factory=dict)

    def prerequisites_of(self, task_id: str) -> list[str]:
        return [edge.depends_on_task_id for edge in self.edges if edge.task_id == task_id]

    def is_completed(self, task_id: str) -> bool:
        task = self.tasks.get(task_id)
        return task is not None and task.status == TaskStatus.COMPLETED

    def pending_tasks(self) -> list[Task]:
        return [task for task in self.tasks.values() if task.status == TaskStatus.PENDING]


async def load_snapshot() -> EngineSnapshot:
    """Read every collection eligibility depends on from one consistent state."""
    with span("snapshot.load"):
        async with db_client.read_view():
            tasks, edges, locations, windows, conditions, blockers = await asyncio.gather(
                repository.list_tasks(),
                repository.list_edges(),
                repository.list_locations(),
                repository.list_time_windows(),
                repository.list_weather_conditions(),
                repository.list_blockers(),
            )
        return EngineSnapshot(
            tasks={task.id: task for task in tasks},
            edges=edges,
            locations={location.id: location for location in locations},
            time_windows={window.id: window for window in windows},
            weather_conditions={condition.id: condition for condition in conditions},
            blockers={blocker.id: blocker for blocker in blockers},
        )
