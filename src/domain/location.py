"""Location domain models."""

from enum import StrEnum

from pydantic import BaseModel, Field

from src.domain.types import UtcDatetime


class LocationType(StrEnum):
    """Location variant."""

    PHYSICAL = "physical"  # Fixed coordinates
    ONLINE = "online"  # Anywhere with a connection
    FUZZY = "fuzzy"  # Any place of a category, e.g. "any hardware store"


class Location(BaseModel):
    """Location data transfer object."""

    id: str = Field(..., description="Unique location ID from database")
    created: UtcDatetime = Field(..., description="Creation timestamp")
    updated: UtcDatetime = Field(..., description="Last update timestamp")
    name: str = Field(..., description="Display name")
    location_type: LocationType = Field(..., description="Location variant")
    latitude: float | None = Field(default=None, description="WGS84 latitude (physical)")
    longitude: float | None = Field(default=None, description="WGS84 longitude (physical)")
    address: str | None = Field(default=None, description="Street address (physical)")
    category: str | None = Field(default=None, description="Place category, e.g. hardware_store (fuzzy)")
    search_radius_km: float | None = Field(default=None, description="Search radius (fuzzy)")
    description: str | None = Field(default=None, description="Free-form notes")
