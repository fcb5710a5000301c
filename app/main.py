"""Signature image service main application."""

import logging
import math
from datetime import datetime, timezone
from typing import Optional

import sentry_sdk
from fastapi import Depends, FastAPI, Query
from fastapi.responses import Response

from app.config import Config, config, get_config
from app.models import BASE_HEIGHT, DEFAULT_TRIP, LayoutParams, round_half_up
from app.services.geo_time import GeoTimeClient, offset_label
from app.services.renderer import SignatureRenderer
from app.services.scene import Branding, compose_scene
from app.services.trip_feed import TripFeedClient
from app.services.trip_selector import select_most_recent_past_trip

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if config.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Initialize Sentry/GlitchTip
if config.SENTRY_DSN:
    sentry_sdk.init(
        dsn=config.SENTRY_DSN,
        environment=config.SENTRY_ENVIRONMENT,
        traces_sample_rate=config.SENTRY_TRACES_SAMPLE_RATE,
        profiles_sample_rate=config.SENTRY_TRACES_SAMPLE_RATE,
    )
    logger.info("Sentry/GlitchTip initialized")


# Initialize FastAPI app
app = FastAPI(
    title="Signature Image",
    description="Renders an email signature PNG showing the most recent trip",
    version="0.1.0",
)


def parse_height(raw: Optional[str]) -> int:
    """
    Parse the ``height`` query parameter.

    Missing, non-numeric, non-finite and non-positive values give the 80px
    default. Other values are rounded half up.
    """
    if raw is None:
        return BASE_HEIGHT
    try:
        value = float(raw)
    except ValueError:
        return BASE_HEIGHT
    if not math.isfinite(value):
        return BASE_HEIGHT
    height = int(round_half_up(value))
    if height <= 0:
        return BASE_HEIGHT
    return height


# Dependency injection for upstream clients and the renderer
def get_trip_feed_client(settings: Config = Depends(get_config)) -> TripFeedClient:
    """Provide TripFeedClient instance for dependency injection."""
    return TripFeedClient(feed_url=settings.TRIP_FEED_URL, timeout=settings.REQUEST_TIMEOUT)


def get_geo_time_client(settings: Config = Depends(get_config)) -> GeoTimeClient:
    """Provide GeoTimeClient instance with the configured API key."""
    return GeoTimeClient(
        api_key=settings.GOOGLE_MAPS_API_KEY,
        geocode_url=settings.GEOCODE_API_URL,
        timezone_url=settings.TIMEZONE_API_URL,
        timeout=settings.REQUEST_TIMEOUT,
    )


def get_renderer(settings: Config = Depends(get_config)) -> SignatureRenderer:
    """Provide SignatureRenderer instance for dependency injection."""
    return SignatureRenderer(fit_to=settings.RASTER_FIT_TO)


def get_now() -> datetime:
    """Current instant; overridden in tests."""
    return datetime.now(timezone.utc)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/api")
async def api_info():
    """API documentation endpoint."""
    return {
        "service": "Signature Image API",
        "version": "0.1.0",
        "endpoints": {
            "/api/signature": {
                "method": "GET",
                "description": "Render the email signature as PNG",
                "parameters": {
                    "height": {
                        "type": "number",
                        "description": "Image height in pixels; width follows at 550:80",
                        "default": BASE_HEIGHT,
                        "optional": True,
                    },
                    "background": {
                        "type": "string",
                        "description": "CSS background color",
                        "default": "white",
                        "example": "?background=%23ff0000",
                        "optional": True,
                    },
                    "timezone": {
                        "type": "string",
                        "description": "Set to 'true' to show the city's UTC offset",
                        "optional": True,
                    },
                },
                "response": {"content_type": "image/png"},
            },
            "/health": {"method": "GET", "description": "Health check endpoint"},
        },
    }


@app.get("/api/signature")
async def get_signature(
    height: Optional[str] = Query(default=None, description="Image height in pixels"),
    background: Optional[str] = Query(default=None, description="CSS background color"),
    tz_flag: Optional[str] = Query(
        default=None, alias="timezone", description="'true' to add the UTC offset"
    ),
    settings: Config = Depends(get_config),
    trip_feed: TripFeedClient = Depends(get_trip_feed_client),
    geo_time: GeoTimeClient = Depends(get_geo_time_client),
    renderer: SignatureRenderer = Depends(get_renderer),
    now: datetime = Depends(get_now),
):
    """
    Render the signature PNG.

    Upstream failures never change the status code: a failed feed shows the
    fallback trip and a failed offset lookup omits the offset label.

    Args:
        height: Image height; invalid values use 80
        background: Background color passed through to the scene
        tz_flag: ``timezone`` query value; exactly "true" enables the UTC offset lookup
        settings: Application configuration (injected)
        trip_feed: Trip feed client (injected)
        geo_time: Geocoding/timezone client (injected)
        renderer: Scene renderer (injected)
        now: Current instant (injected)

    Returns:
        PNG image with a one-day public cache lifetime
    """
    trips = [DEFAULT_TRIP]
    feed_result = await trip_feed.get_trips()
    if feed_result.ok and feed_result.value is not None:
        trips = feed_result.value
    else:
        logger.info(f"Using fallback trip list: {feed_result.error}")

    trip = select_most_recent_past_trip(trips, now, fallback=DEFAULT_TRIP)
    logger.debug(f"Selected trip: {trip.city} ({trip.start_date})")

    utc_offset: Optional[float] = None
    if tz_flag == "true":
        offset_result = await geo_time.resolve_utc_offset(
            trip.city, timestamp=int(now.timestamp())
        )
        if offset_result.ok:
            utc_offset = offset_result.value
        else:
            logger.info(f"UTC offset unavailable for {trip.city!r}: {offset_result.error}")

    params = LayoutParams(
        height=parse_height(height),
        background=background or "white",
    )
    branding = Branding(name=settings.SIGNATURE_NAME, site=settings.SITE_NAME)
    scene = compose_scene(trip, offset_label(utc_offset), params, branding)
    png_data = renderer.render(scene, params.width, params.height)

    return Response(
        content=png_data,
        media_type="image/png",
        headers={"Cache-Control": f"public, no-transform, max-age={settings.CACHE_MAX_AGE}"},
    )


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=config.APP_HOST,
        port=config.APP_PORT,
        reload=config.DEBUG,
    )
