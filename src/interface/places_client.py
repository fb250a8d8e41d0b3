"""Geolocation search collaborator for fuzzy-location eligibility.

Uses the Places API (New) Nearby Search endpoint to answer one question:
is there a place of a given category within a radius of the user?
"""

import logging
from typing import Protocol

import httpx

from src.core.config import constants, settings
from src.core.errors import CollaboratorFailure, CollaboratorTimeoutError
from src.domain.context import GeoPoint


logger = logging.getLogger(__name__)

_MAX_RADIUS_METERS = 50_000.0  # Places API upper bound for a circle restriction


class PlaceFinder(Protocol):
    """Existence check for places of a category near a point."""

    async def find_nearby(self, category: str, center: GeoPoint, radius_km: float) -> bool: ...


class GooglePlacesFinder:
    """PlaceFinder backed by Google Places Nearby Search."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self._api_key = api_key if api_key is not None else settings.google_maps_api_key
        self._base_url = (base_url or settings.places_base_url).rstrip("/")
        self._timeout = timeout_seconds or settings.collaborator_timeout_seconds

    async def find_nearby(self, category: str, center: GeoPoint, radius_km: float) -> bool:
        """Return True if at least one place of ``category`` lies within ``radius_km``.

        Raises:
            CollaboratorTimeoutError: If the API does not answer in time
            CollaboratorFailure: If the API is unconfigured, rejects the request, or errors
        """
        if not self._api_key:
            raise CollaboratorFailure("Google Maps API key is not configured", operation="find_nearby")

        payload = {
            "includedTypes": [category],
            "maxResultCount": 1,
            "locationRestriction": {
                "circle": {
                    "center": {"latitude": center.latitude, "longitude": center.longitude},
                    "radius": min(radius_km * 1000.0, _MAX_RADIUS_METERS),
                }
            },
        }
        headers = {"X-Goog-Api-Key": self._api_key, "X-Goog-FieldMask": "places.id"}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(f"{self._base_url}/places:searchNearby", json=payload, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("Places search timed out", extra={"category": category})
            raise CollaboratorTimeoutError(
                f"Places search for {category} timed out", operation="find_nearby"
            ) from e
        except httpx.HTTPError as e:
            logger.warning("Places search failed", extra={"category": category, "error": str(e)})
            raise CollaboratorFailure(f"Places search for {category} failed: {e}", operation="find_nearby") from e

        if constants.HTTP_CLIENT_ERROR_START <= response.status_code < constants.HTTP_CLIENT_ERROR_END:
            raise CollaboratorFailure(
                f"Places search rejected ({response.status_code}): {response.text[:200]}", operation="find_nearby"
            )
        if not response.is_success:
            raise CollaboratorFailure(f"Places search server error: {response.status_code}", operation="find_nearby")

        try:
            body = response.json()
        except ValueError as e:
            raise CollaboratorFailure(
                f"Places search returned a malformed body: {response.text[:200]}", operation="find_nearby"
            ) from e
        if not isinstance(body, dict):
            raise CollaboratorFailure("Places search returned an unexpected body", operation="find_nearby")

        places = body.get("places", [])
        logger.debug("Places search finished", extra={"category": category, "found": bool(places)})
        return bool(places)
