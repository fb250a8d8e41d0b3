"""Time window and weather condition domain models."""

from enum import StrEnum

from pydantic import BaseModel, Field

from src.domain.types import UtcDatetime


class TimeWindow(BaseModel):
    """User-declared named interval such as a season. Active only by explicit toggle."""

    id: str = Field(..., description="Unique time window ID from database")
    created: UtcDatetime = Field(..., description="Creation timestamp")
    updated: UtcDatetime = Field(..., description="Last update timestamp")
    name: str = Field(..., description="Window name, e.g. snowmobile_season")
    description: str | None = Field(default=None, description="Free-form notes")
    is_active: bool = Field(default=False, description="Whether bound tasks may be selected")
    started_at: UtcDatetime | None = Field(default=None, description="When the user declared it started")
    ended_at: UtcDatetime | None = Field(default=None, description="When the user declared it ended")


class WeatherConditionType(StrEnum):
    """Kind of weather a task depends on."""

    SNOW = "snow"
    RAIN = "rain"
    TEMPERATURE_ABOVE = "temperature_above"
    TEMPERATURE_BELOW = "temperature_below"
    ANY = "any"


class WeatherCondition(BaseModel):
    """Weather condition data transfer object."""

    id: str = Field(..., description="Unique weather condition ID from database")
    created: UtcDatetime = Field(..., description="Creation timestamp")
    updated: UtcDatetime = Field(..., description="Last update timestamp")
    name: str = Field(..., description="Condition name")
    condition_type: WeatherConditionType = Field(..., description="Condition kind")
    threshold_value: float | None = Field(
        default=None, description="Degrees Celsius for temperature kinds, millimetres for precipitation"
    )
    description: str | None = Field(default=None, description="Free-form notes")


class WeatherReading(BaseModel):
    """Current weather supplied by the caller. Not stored."""

    temperature_c: float | None = Field(default=None, description="Air temperature in degrees Celsius")
    snow_mm: float = Field(default=0.0, ge=0, description="Recent snowfall in millimetres")
    rain_mm: float = Field(default=0.0, ge=0, description="Recent rainfall in millimetres")
