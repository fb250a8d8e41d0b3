"""Pydantic models for creating records in the database.

Each model enforces its entity's construction invariants; invalid input never
reaches a write.
"""

from typing import Self

from pydantic import BaseModel, Field, field_validator, model_validator

from src.domain.conditions import WeatherConditionType
from src.domain.location import LocationType
from src.domain.schedule import RecurrenceType
from src.domain.task import TimeConstraintType, TimeOfDay
from src.domain.types import UtcDatetime


_CONSTRAINT_FIELDS: dict[str, TimeConstraintType] = {
    "absolute_start_time": TimeConstraintType.ABSOLUTE,
    "absolute_end_time": TimeConstraintType.ABSOLUTE,
    "relative_time_of_day": TimeConstraintType.RELATIVE_TIME_OF_DAY,
    "after_task_id": TimeConstraintType.AFTER_EVENT,
    "after_blocker_id": TimeConstraintType.AFTER_EVENT,
}


class TaskCreate(BaseModel):
    """Pydantic model for creating a task record."""

    title: str = Field(..., min_length=1, description="Task title")
    description: str = Field(default="", description="Detailed task description")
    location_id: str | None = Field(default=None, description="Location reference")

    time_constraint_type: TimeConstraintType | None = Field(default=None, description="Active time rule")
    absolute_start_time: UtcDatetime | None = Field(default=None, description="Earliest start")
    absolute_end_time: UtcDatetime | None = Field(default=None, description="Latest end")
    relative_time_of_day: TimeOfDay | None = Field(default=None, description="Required band")
    after_task_id: str | None = Field(default=None, description="Task that must complete first")
    after_blocker_id: str | None = Field(default=None, description="Blocker that must be resolved first")

    time_window_id: str | None = Field(default=None, description="Seasonal window reference")
    weather_condition_id: str | None = Field(default=None, description="Weather condition reference")
    requires_weather_condition: bool = Field(default=False, description="Whether weather gates work")

    base_priority: int = Field(default=50, ge=0, le=100, description="User-set priority 0-100")
    deadline: UtcDatetime | None = Field(default=None, description="Due timestamp")
    deadline_urgency_multiplier: float = Field(default=1.0, ge=0, description="Deadline boost strength")

    estimated_duration_minutes: int | None = Field(default=None, gt=0, description="Expected effort")
    category: str | None = Field(default=None, description="Category label")
    parent_task_id: str | None = Field(default=None, description="Task this one was decomposed from")
    created_by_id: str | None = Field(default=None, description="Creator user ID")

    @field_validator("title")
    @classmethod
    def strip_title(cls, v: str) -> str:
        """Reject blank titles."""
        stripped = v.strip()
        if not stripped:
            msg = "Title must not be blank"
            raise ValueError(msg)
        return stripped

    @model_validator(mode="after")
    def validate_time_constraint(self) -> Self:
        """Check the constraint variant has its fields and no other variant's fields."""
        for field_name, owner in _CONSTRAINT_FIELDS.items():
            if getattr(self, field_name) is not None and self.time_constraint_type != owner:
                msg = f"{field_name} is only valid for {owner.value} constraints"
                raise ValueError(msg)

        match self.time_constraint_type:
            case TimeConstraintType.ABSOLUTE:
                if self.absolute_start_time is None and self.absolute_end_time is None:
                    msg = "Absolute constraints need a start or an end time"
                    raise ValueError(msg)
                if (
                    self.absolute_start_time is not None
                    and self.absolute_end_time is not None
                    and self.absolute_start_time > self.absolute_end_time
                ):
                    msg = "absolute_start_time must not be after absolute_end_time"
                    raise ValueError(msg)
            case TimeConstraintType.RELATIVE_TIME_OF_DAY:
                if self.relative_time_of_day is None:
                    msg = "relative_time_of_day constraints need a time-of-day band"
                    raise ValueError(msg)
            case TimeConstraintType.AFTER_EVENT:
                if self.after_task_id is None and self.after_blocker_id is None:
                    msg = "after_event constraints need after_task_id or after_blocker_id"
                    raise ValueError(msg)
            case _:
                pass
        return self

    @model_validator(mode="after")
    def validate_weather(self) -> Self:
        """A required weather condition needs a condition reference."""
        if self.requires_weather_condition and self.weather_condition_id is None:
            msg = "requires_weather_condition needs weather_condition_id"
            raise ValueError(msg)
        return self


class LocationCreate(BaseModel):
    """Pydantic model for creating a location record."""

    name: str = Field(..., min_length=1, description="Display name")
    location_type: LocationType = Field(..., description="Location variant")
    latitude: float | None = Field(default=None, ge=-90, le=90, description="WGS84 latitude")
    longitude: float | None = Field(default=None, ge=-180, le=180, description="WGS84 longitude")
    address: str | None = Field(default=None, description="Street address")
    category: str | None = Field(default=None, description="Place category")
    search_radius_km: float | None = Field(default=None, description="Search radius")
    description: str | None = Field(default=None, description="Free-form notes")

    @model_validator(mode="after")
    def validate_variant(self) -> Self:
        """Exactly the fields of the chosen variant may be populated."""
        geo_fields = {"latitude": self.latitude, "longitude": self.longitude, "address": self.address}
        fuzzy_fields = {"category": self.category, "search_radius_km": self.search_radius_km}

        if self.location_type == LocationType.PHYSICAL:
            if self.latitude is None or self.longitude is None:
                msg = "Physical locations need latitude and longitude"
                raise ValueError(msg)
            foreign = fuzzy_fields
        elif self.location_type == LocationType.FUZZY:
            if not self.category:
                msg = "Fuzzy locations need a category"
                raise ValueError(msg)
            if self.search_radius_km is None or self.search_radius_km <= 0:
                msg = "Fuzzy locations need a positive search_radius_km"
                raise ValueError(msg)
            foreign = geo_fields
        else:
            foreign = {**geo_fields, **fuzzy_fields}

        populated = sorted(name for name, value in foreign.items() if value is not None)
        if populated:
            msg = f"{self.location_type.value} locations must not set: {', '.join(populated)}"
            raise ValueError(msg)
        return self


class TimeWindowCreate(BaseModel):
    """Pydantic model for creating a time window record."""

    name: str = Field(..., min_length=1, description="Window name")
    description: str | None = Field(default=None, description="Free-form notes")
    is_active: bool = Field(default=False, description="Initial active flag")


class WeatherConditionCreate(BaseModel):
    """Pydantic model for creating a weather condition record."""

    name: str = Field(..., min_length=1, description="Condition name")
    condition_type: WeatherConditionType = Field(..., description="Condition kind")
    threshold_value: float | None = Field(default=None, description="Threshold for the kind")
    description: str | None = Field(default=None, description="Free-form notes")

    @model_validator(mode="after")
    def validate_threshold(self) -> Self:
        """Temperature kinds compare against a threshold, so one is required."""
        temperature_kinds = {WeatherConditionType.TEMPERATURE_ABOVE, WeatherConditionType.TEMPERATURE_BELOW}
        if self.condition_type in temperature_kinds and self.threshold_value is None:
            msg = f"{self.condition_type.value} conditions need a threshold_value"
            raise ValueError(msg)
        if self.condition_type in {WeatherConditionType.SNOW, WeatherConditionType.RAIN} and (
            self.threshold_value is not None and self.threshold_value < 0
        ):
            msg = "Precipitation thresholds must not be negative"
            raise ValueError(msg)
        return self


class RecurringScheduleCreate(BaseModel):
    """Pydantic model for creating a recurring schedule record."""

    task_id: str = Field(..., description="Template task")
    recurrence_type: RecurrenceType = Field(..., description="Recurrence kind")
    time_of_day: TimeOfDay | None = Field(default=None, description="Band for generated instances")
    day_of_week: int | None = Field(default=None, ge=0, le=6, description="0=Sunday .. 6=Saturday")
    day_of_month: int | None = Field(default=None, ge=1, le=31, description="1..31")
    cron_expression: str | None = Field(default=None, description="CRON or 'every N days' (custom)")
    time_window_id: str | None = Field(default=None, description="Only generate while this window is active")

    @model_validator(mode="after")
    def validate_kind_fields(self) -> Self:
        """Each kind needs its own field."""
        if self.recurrence_type == RecurrenceType.WEEKLY and self.day_of_week is None:
            msg = "Weekly schedules need day_of_week"
            raise ValueError(msg)
        if self.recurrence_type == RecurrenceType.MONTHLY and self.day_of_month is None:
            msg = "Monthly schedules need day_of_month"
            raise ValueError(msg)
        if self.recurrence_type == RecurrenceType.CUSTOM and not self.cron_expression:
            msg = "Custom schedules need cron_expression"
            raise ValueError(msg)
        return self
