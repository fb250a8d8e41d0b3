"""Selection context supplied by the caller for eligibility decisions."""

from datetime import UTC, datetime

from pydantic import BaseModel, Field

from src.domain.conditions import WeatherReading
from src.domain.types import UtcDatetime


class GeoPoint(BaseModel):
    """WGS84 coordinate pair."""

    latitude: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in degrees")


class SelectionContext(BaseModel):
    """Point-in-time facts about the user's situation."""

    now: UtcDatetime = Field(default_factory=lambda: datetime.now(UTC), description="Evaluation time")
    user_location: GeoPoint | None = Field(default=None, description="Where the user currently is")
    weather: WeatherReading | None = Field(default=None, description="Current weather reading")
