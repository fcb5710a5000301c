"""UTC offset lookup through the Google geocoding and timezone APIs."""

import logging
import time
from typing import Optional

import httpx

from app.config import config
from app.models import FetchResult, round_half_up

logger = logging.getLogger(__name__)

SECONDS_PER_HOUR = 3600


class GeoTimeError(Exception):
    """Raised when a geocoding or timezone response cannot be used."""


def format_utc_offset(offset: float) -> str:
    """Format an offset in hours with an explicit sign ("+2.5", "-5", "+0")."""
    sign = "+" if offset >= 0 else ""
    return f"{sign}{offset:g}"


def offset_label(offset: Optional[float]) -> str:
    """Label appended to the city name, empty when the offset is unknown."""
    if offset is None:
        return ""
    return f" (UTC{format_utc_offset(offset)})"


class GeoTimeClient:
    """Resolves the current UTC offset of a free-text location."""

    def __init__(
        self,
        api_key: str | None,
        geocode_url: str | None = None,
        timezone_url: str | None = None,
        timeout: int | None = None,
    ):
        """
        Initialize the client.

        Args:
            api_key: Google Maps API key. Without one every lookup fails.
            geocode_url: Geocoding endpoint. Defaults to config value.
            timezone_url: Timezone endpoint. Defaults to config value.
            timeout: Request timeout in seconds. Defaults to config value.
        """
        self.api_key = api_key
        self.geocode_url = geocode_url or config.GEOCODE_API_URL
        self.timezone_url = timezone_url or config.TIMEZONE_API_URL
        self.timeout = timeout or config.REQUEST_TIMEOUT

    async def resolve_utc_offset(
        self, location: str, timestamp: int | None = None
    ) -> FetchResult[float]:
        """
        Geocode a location and look up its UTC offset.

        Args:
            location: Free-text location, e.g. "Lisbon, Portugal"
            timestamp: Unix time the offset applies to. Defaults to now.

        Returns:
            Result with the standard plus daylight offset in hours, rounded to
            two decimals, or a failure describing the first step that failed
        """
        if not self.api_key:
            logger.warning("GOOGLE_MAPS_API_KEY is not set, skipping UTC offset lookup")
            return FetchResult.failure("API key not configured")

        if timestamp is None:
            timestamp = int(time.time())

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                lat, lng = await self._geocode(client, location)
                offset = await self._utc_offset(client, lat, lng, timestamp)
                return FetchResult.success(offset)

        except httpx.HTTPError as e:
            logger.warning(f"HTTP error resolving UTC offset for {location!r}: {str(e)}")
            return FetchResult.failure(f"HTTP error: {str(e)}")
        except (GeoTimeError, AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning(f"Could not resolve UTC offset for {location!r}: {e!r}")
            return FetchResult.failure(f"Unusable response: {e!r}")

    async def _geocode(self, client: httpx.AsyncClient, location: str) -> tuple[float, float]:
        """Return latitude and longitude of the first geocoding result."""
        response = await client.get(
            self.geocode_url, params={"address": location, "key": self.api_key}
        )
        response.raise_for_status()
        data = response.json()

        results = data.get("results") or []
        if not results:
            raise GeoTimeError(f"no geocoding results (status {data.get('status')})")

        point = results[0]["geometry"]["location"]
        return float(point["lat"]), float(point["lng"])

    async def _utc_offset(
        self, client: httpx.AsyncClient, lat: float, lng: float, timestamp: int
    ) -> float:
        """Return the raw plus DST offset in hours at ``timestamp``."""
        response = await client.get(
            self.timezone_url,
            params={"location": f"{lat},{lng}", "timestamp": timestamp, "key": self.api_key},
        )
        response.raise_for_status()
        data = response.json()

        status = data.get("status", "OK")
        if status != "OK":
            raise GeoTimeError(f"timezone lookup failed (status {status})")

        seconds = data["rawOffset"] + data["dstOffset"]
        return round_half_up(seconds / SECONDS_PER_HOUR, 2)
