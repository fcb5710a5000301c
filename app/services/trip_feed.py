"""Client for the site metadata feed that lists trips."""

import logging

import httpx
from pydantic import ValidationError

from app.config import config
from app.models import FetchResult, Trip, TripFeed

logger = logging.getLogger(__name__)


class TripFeedClient:
    """Fetches the trip list from the site metadata feed."""

    def __init__(self, feed_url: str | None = None, timeout: int | None = None):
        """
        Initialize the feed client.

        Args:
            feed_url: Metadata feed URL. Defaults to config value.
            timeout: Request timeout in seconds. Defaults to config value.
        """
        self.feed_url = feed_url or config.TRIP_FEED_URL
        self.timeout = timeout or config.REQUEST_TIMEOUT

    async def get_trips(self) -> FetchResult[list[Trip]]:
        """
        Fetch and validate the trip list.

        Returns:
            Successful result with trips in feed order, or a failure result
            describing why the feed could not be used
        """
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                logger.info(f"Fetching trips from {self.feed_url}")
                response = await client.get(self.feed_url)
                response.raise_for_status()

                feed = TripFeed.model_validate(response.json())
                return FetchResult.success(feed.trips)

        except httpx.HTTPError as e:
            logger.warning(f"HTTP error fetching trip feed: {str(e)}")
            return FetchResult.failure(f"HTTP error: {str(e)}")
        except ValidationError as e:
            logger.warning(f"Malformed trip feed: {e.error_count()} validation error(s)")
            return FetchResult.failure(f"Malformed feed: {str(e)}")
        except ValueError as e:
            logger.warning(f"Trip feed is not valid JSON: {str(e)}")
            return FetchResult.failure(f"Invalid JSON: {str(e)}")
