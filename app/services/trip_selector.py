"""Selection of the trip shown on the signature."""

import logging
from datetime import datetime
from typing import Sequence

import pytz

from app.models import DEFAULT_TRIP, Trip

logger = logging.getLogger(__name__)


def is_after(trip: Trip, now: datetime) -> bool:
    """
    Check whether a trip starts strictly after ``now``.

    Start instants are aware datetimes; a trip starting exactly at ``now``
    has started. Naive ``now`` is taken as UTC.
    """
    if now.tzinfo is None:
        now = pytz.UTC.localize(now)
    return trip.start_date > now


def select_most_recent_past_trip(
    trips: Sequence[Trip],
    now: datetime,
    fallback: Trip = DEFAULT_TRIP,
) -> Trip:
    """
    Pick the last trip in list order that has already started.

    The feed is expected to be chronological. This is not a max-by-date: an
    unordered feed yields the last non-future entry, which may not be the
    latest one.

    Args:
        trips: Trips in feed order
        now: Current instant
        fallback: Trip returned when no trip has started yet

    Returns:
        The selected trip
    """
    past_trips = [trip for trip in trips if not is_after(trip, now)]
    if not past_trips:
        logger.debug("No started trips among %d, using fallback", len(trips))
        return fallback
    return past_trips[-1]
