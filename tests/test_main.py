"""Test main FastAPI application endpoints."""

from datetime import date, datetime
from io import BytesIO

import pytest
import pytz
from fastapi.testclient import TestClient
from PIL import Image

from app.main import (
    app,
    get_geo_time_client,
    get_now,
    get_renderer,
    get_trip_feed_client,
    parse_height,
)
from app.models import FetchResult, Trip
from app.services.renderer import SignatureRenderer

client = TestClient(app)

NOW = datetime(2023, 12, 1, 20, 0, tzinfo=pytz.UTC)


class FakeTripFeed:
    """Trip feed returning a canned result."""

    def __init__(self, result):
        self.result = result
        self.calls = 0

    async def get_trips(self):
        self.calls += 1
        return self.result


class FakeGeoTime:
    """Geo/time client returning a canned result and recording lookups."""

    def __init__(self, result):
        self.result = result
        self.locations = []

    async def resolve_utc_offset(self, location, timestamp=None):
        self.locations.append(location)
        return self.result


class RecordingRenderer(SignatureRenderer):
    """Renderer that keeps the last scene it rendered."""

    def __init__(self):
        super().__init__(fonts=[], fit_to="original")
        self.scene = None

    def render(self, scene, width, height):
        self.scene = scene
        return super().render(scene, width, height)


@pytest.fixture
def fakes(trips):
    """Install fake collaborators and a fixed clock for one test."""
    feed = FakeTripFeed(FetchResult.success(trips))
    geo = FakeGeoTime(FetchResult.success(1.0))
    renderer = RecordingRenderer()

    app.dependency_overrides[get_trip_feed_client] = lambda: feed
    app.dependency_overrides[get_geo_time_client] = lambda: geo
    app.dependency_overrides[get_renderer] = lambda: renderer
    app.dependency_overrides[get_now] = lambda: NOW
    yield feed, geo, renderer
    app.dependency_overrides.clear()


def _city_text(renderer):
    return renderer.scene.children[1].children[0].text


def test_health_endpoint():
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_api_endpoint():
    """Test /api endpoint returns API information."""
    response = client.get("/api")
    assert response.status_code == 200
    data = response.json()
    assert data["service"] == "Signature Image API"
    assert "/api/signature" in data["endpoints"]
    assert set(data["endpoints"]["/api/signature"]["parameters"]) == {
        "height",
        "background",
        "timezone",
    }


def test_signature_returns_png_with_cache_headers(fakes):
    """Default request returns a 550x80 PNG cached for a day."""
    response = client.get("/api/signature")

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert response.headers["cache-control"] == "public, no-transform, max-age=86400"

    img = Image.open(BytesIO(response.content))
    assert img.format == "PNG"
    assert img.size == (550, 80)


def test_signature_shows_most_recent_past_trip(fakes):
    """The last started trip is shown, not the future one."""
    _, _, renderer = fakes
    client.get("/api/signature")
    assert _city_text(renderer) == "Lisbon, Portugal ·"


def test_signature_height_parameter(fakes):
    """Height scales the image and the width follows."""
    response = client.get("/api/signature?height=160")
    img = Image.open(BytesIO(response.content))
    assert img.size == (1100, 160)


def test_signature_large_height_is_not_capped(fakes):
    """Tall requests render at the requested size."""
    response = client.get("/api/signature?height=1000")
    assert response.status_code == 200
    assert Image.open(BytesIO(response.content)).size == (6875, 1000)


def test_signature_trip_starting_later_today_is_not_shown(fakes):
    """A trip whose start time is still ahead of the clock is skipped."""
    feed, _, renderer = fakes
    feed.result = FetchResult.success(
        [
            Trip(start_date=date(2023, 6, 18), city="Lisbon, Portugal"),
            Trip(start_date=datetime(2023, 12, 1, 22, 0, tzinfo=pytz.UTC), city="Oslo, Norway"),
        ]
    )

    client.get("/api/signature")
    assert _city_text(renderer) == "Lisbon, Portugal ·"


def test_signature_invalid_height_uses_default(fakes):
    """Non-numeric heights fall back to 80."""
    response = client.get("/api/signature?height=tall")
    assert response.status_code == 200
    assert Image.open(BytesIO(response.content)).size == (550, 80)


@pytest.mark.parametrize("query", ["", "?timezone=false", "?timezone=1", "?timezone=TRUE"])
def test_timezone_lookup_requires_literal_true(fakes, query):
    """Only timezone=true triggers the offset lookup."""
    _, geo, renderer = fakes
    response = client.get(f"/api/signature{query}")

    assert response.status_code == 200
    assert geo.locations == []
    assert "(UTC" not in _city_text(renderer)


def test_timezone_lookup_adds_offset_label(fakes):
    """The resolved offset is appended to the selected city."""
    _, geo, renderer = fakes
    response = client.get("/api/signature?timezone=true")

    assert response.status_code == 200
    assert geo.locations == ["Lisbon, Portugal"]
    assert _city_text(renderer) == "Lisbon, Portugal (UTC+1) ·"


def test_timezone_lookup_failure_omits_label(fakes):
    """A failed lookup still renders, without a label."""
    _, geo, renderer = fakes
    geo.result = FetchResult.failure("HTTP error: boom")

    response = client.get("/api/signature?timezone=true")

    assert response.status_code == 200
    assert response.headers["content-type"] == "image/png"
    assert _city_text(renderer) == "Lisbon, Portugal ·"


def test_feed_failure_uses_fallback_trip(fakes):
    """A failed feed shows the built-in trip."""
    feed, _, renderer = fakes
    feed.result = FetchResult.failure("HTTP error: unreachable")

    response = client.get("/api/signature")

    assert response.status_code == 200
    assert feed.calls == 1
    assert _city_text(renderer) == "Los Angeles, CA ·"


def test_feed_with_only_future_trips_uses_fallback(fakes):
    """No started trips means the fallback trip."""
    feed, _, renderer = fakes
    feed.result = FetchResult.success([Trip(start_date=date(2030, 1, 1), city="Mars")])

    client.get("/api/signature")
    assert _city_text(renderer) == "Los Angeles, CA ·"


def test_background_passthrough(fakes):
    """An encoded color reaches the scene unchanged."""
    _, _, renderer = fakes
    client.get("/api/signature?background=%23ff0000")
    assert renderer.scene.style.background == "#ff0000"


def test_background_default_white(fakes):
    """Without a background parameter the scene is white."""
    _, _, renderer = fakes
    client.get("/api/signature")
    assert renderer.scene.style.background == "white"


def test_missing_api_key_degrades_gracefully(trips):
    """With the real geo client and no key, the image renders without a label."""
    renderer = RecordingRenderer()
    app.dependency_overrides[get_trip_feed_client] = lambda: FakeTripFeed(
        FetchResult.success(trips)
    )
    app.dependency_overrides[get_renderer] = lambda: renderer
    app.dependency_overrides[get_now] = lambda: NOW
    try:
        response = client.get("/api/signature?timezone=true")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 200
    assert _city_text(renderer) == "Lisbon, Portugal ·"


@pytest.mark.parametrize(
    "raw,expected",
    [
        (None, 80),
        ("", 80),
        ("abc", 80),
        ("160", 160),
        ("80.5", 81),
        ("79.4", 79),
        ("-10", 80),
        ("0", 80),
        ("inf", 80),
        ("nan", 80),
        ("5000", 5000),
    ],
)
def test_parse_height(raw, expected):
    """Heights are rounded half up and not capped; invalid ones use the default."""
    assert parse_height(raw) == expected
