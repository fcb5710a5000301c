"""Pytest configuration and fixtures for tests."""

import os
from datetime import date

import pytest

# Set up test environment variables BEFORE any app imports
# This must run at module import time, not in a fixture
os.environ.pop("GOOGLE_MAPS_API_KEY", None)
os.environ.setdefault("FONT_REGULAR_PATH", "tests/missing/font-normal.json")
os.environ.setdefault("FONT_BOLD_PATH", "tests/missing/font-bold.json")

from app.models import Trip  # noqa: E402


@pytest.fixture
def trips():
    """Chronological trips, the last one still in the future in late 2023."""
    return [
        Trip(start_date=date(2023, 1, 1), city="Tokyo, Japan"),
        Trip(start_date=date(2023, 6, 18), city="Lisbon, Portugal"),
        Trip(start_date=date(2024, 1, 1), city="Mexico City, Mexico"),
    ]
