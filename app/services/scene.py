"""Composition of the signature scene from trip and layout parameters."""

import re
from dataclasses import dataclass

from app.config import config
from app.models import Box, LayoutParams, SceneNode, StyleOptions, Text, Trip

# Characters allowed in the displayed city name
CITY_DISALLOWED = re.compile(r"[^A-Za-z'_\-, ]")

# Pixel values at the 80px reference height
BASE_FONT_SIZE = 24
BASE_MARGIN_TOP = 4
BASE_MARGIN_LEFT = 6
BASE_BORDER_WIDTH = 5
BASE_LINE_HEIGHT = 28

FONT_FAMILY = "Default"
MIDDLE_DOT = "·"


@dataclass(frozen=True)
class Branding:
    """Fixed text and colors of the signature."""

    name: str
    site: str
    accent_color: str = "rgb(32, 150, 255)"
    underline_color: str = "#2096ff33"  # accent at 20% alpha


def default_branding() -> Branding:
    return Branding(name=config.SIGNATURE_NAME, site=config.SITE_NAME)


def sanitize_city(city: str) -> str:
    """Drop every character outside letters, apostrophe, underscore, dash, comma and space."""
    return CITY_DISALLOWED.sub("", city)


def compose_scene(
    trip: Trip,
    offset_label: str,
    params: LayoutParams,
    branding: Branding | None = None,
) -> SceneNode:
    """
    Build the signature scene.

    Layout is a bold title line above a row with the city, the offset label
    and an underlined site name. All sizes scale linearly with the height.

    Args:
        trip: Selected trip
        offset_label: Text appended to the city, e.g. " (UTC+2)", or ""
        params: Height and background derived from the request
        branding: Name, site and colors. Defaults to config values.

    Returns:
        Root node of the scene
    """
    branding = branding or default_branding()

    return Box(
        Text(branding.name, style=StyleOptions(font_weight=700)),
        Box(
            Text(f"{sanitize_city(trip.city)}{offset_label} {MIDDLE_DOT}"),
            Text(
                branding.site,
                style=StyleOptions(
                    margin_top=params.scaled(BASE_MARGIN_TOP),
                    margin_left=params.scaled(BASE_MARGIN_LEFT),
                    color=branding.accent_color,
                    border_bottom_color=branding.underline_color,
                    border_bottom_width=params.scaled(BASE_BORDER_WIDTH),
                    border_bottom_style="solid",
                    line_height=params.scaled(BASE_LINE_HEIGHT),
                ),
            ),
            style=StyleOptions(align_items="center"),
        ),
        style=StyleOptions(
            width="100%",
            height="100%",
            align_items="flex-start",
            justify_content="center",
            flex_direction="column",
            font_family=FONT_FAMILY,
            font_size=params.scaled(BASE_FONT_SIZE),
            background=params.background,
        ),
    )
