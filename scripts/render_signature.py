#!/usr/bin/env python3
"""
Render the signature PNG to a file without running the web server.

Usage:
    python scripts/render_signature.py [--height 160] [--background "#ff0000"] [--timezone]
"""

import argparse
import asyncio
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.config import config  # noqa: E402
from app.main import parse_height  # noqa: E402
from app.models import DEFAULT_TRIP, LayoutParams  # noqa: E402
from app.services.geo_time import GeoTimeClient, offset_label  # noqa: E402
from app.services.renderer import SignatureRenderer  # noqa: E402
from app.services.scene import compose_scene  # noqa: E402
from app.services.trip_feed import TripFeedClient  # noqa: E402
from app.services.trip_selector import select_most_recent_past_trip  # noqa: E402


async def main(height: int, background: str, with_timezone: bool, output: Path, svg: bool) -> int:
    now = datetime.now(timezone.utc)

    feed_result = await TripFeedClient().get_trips()
    if not feed_result.ok:
        print(f"Warning: trip feed unavailable ({feed_result.error}), using fallback trip")
    trips = feed_result.value if feed_result.ok and feed_result.value is not None else [DEFAULT_TRIP]

    trip = select_most_recent_past_trip(trips, now)
    print(f"Trip: {trip.city} (started {trip.start_date})")

    utc_offset = None
    if with_timezone:
        offset_result = await GeoTimeClient(config.GOOGLE_MAPS_API_KEY).resolve_utc_offset(
            trip.city
        )
        if offset_result.ok:
            utc_offset = offset_result.value
        else:
            print(f"Warning: UTC offset unavailable ({offset_result.error})")

    params = LayoutParams(height=height, background=background)
    scene = compose_scene(trip, offset_label(utc_offset), params)
    renderer = SignatureRenderer()

    if svg:
        vector = renderer.layout(scene, params.width, params.height)
        output.write_text(vector.to_svg(), encoding="utf-8")
    else:
        output.write_bytes(renderer.render(scene, params.width, params.height))

    print(f"Saved {params.width}x{params.height} signature to {output}")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Render the signature image")
    parser.add_argument("--height", type=str, default=None, help="Image height (default: 80)")
    parser.add_argument("--background", type=str, default="white", help="CSS background color")
    parser.add_argument("--timezone", action="store_true", help="Append the city's UTC offset")
    parser.add_argument("--svg", action="store_true", help="Write the vector image instead")
    parser.add_argument(
        "--output", type=Path, default=Path("signature.png"), help="Output file path"
    )

    args = parser.parse_args()
    sys.exit(
        asyncio.run(
            main(
                parse_height(args.height),
                args.background,
                args.timezone,
                args.output,
                args.svg,
            )
        )
    )
