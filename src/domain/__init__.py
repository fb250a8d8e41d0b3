"""Domain models and DTOs."""

from src.domain.assignment import TaskAssignment
from src.domain.blocker import Blocker
from src.domain.category import TaskCategory, TaskCategoryAssignment
from src.domain.conditions import TimeWindow, WeatherCondition, WeatherConditionType, WeatherReading
from src.domain.context import GeoPoint, SelectionContext
from src.domain.create_models import (
    LocationCreate,
    RecurringScheduleCreate,
    TaskCreate,
    TimeWindowCreate,
    WeatherConditionCreate,
)
from src.domain.dependency import TaskDependency
from src.domain.history import HistoryEventType, TaskHistory
from src.domain.location import Location, LocationType
from src.domain.schedule import RecurrenceType, RecurringSchedule
from src.domain.task import Task, TaskStatus, TimeConstraintType, TimeOfDay


__all__ = [
    "Blocker",
    "GeoPoint",
    "HistoryEventType",
    "Location",
    "LocationCreate",
    "LocationType",
    "RecurrenceType",
    "RecurringSchedule",
    "RecurringScheduleCreate",
    "SelectionContext",
    "Task",
    "TaskAssignment",
    "TaskCategory",
    "TaskCategoryAssignment",
    "TaskCreate",
    "TaskDependency",
    "TaskHistory",
    "TaskStatus",
    "TimeConstraintType",
    "TimeOfDay",
    "TimeWindow",
    "TimeWindowCreate",
    "WeatherCondition",
    "WeatherConditionCreate",
    "WeatherConditionType",
    "WeatherReading",
]
