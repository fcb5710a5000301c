"""Test scene composition."""

from datetime import date

import pytest

from app.models import DEFAULT_TRIP, LayoutParams, StyleOptions, Text, Trip
from app.services.scene import Branding, compose_scene, sanitize_city

BRANDING = Branding(name="Nathan H. Leung", site="natecation.com")


def _row(scene):
    return scene.children[1]


def test_sanitize_city_strips_disallowed_characters():
    """Only letters, apostrophes, underscores, dashes, commas and spaces remain."""
    assert sanitize_city("Los Angeles, CA!!") == "Los Angeles, CA"
    assert sanitize_city("São Paulo") == "So Paulo"
    assert sanitize_city("Côte-d'Ivoire_2024") == "Cte-d'Ivoire_"
    assert sanitize_city("<script>alert(1)</script>") == "scriptalertscript"


@pytest.mark.parametrize(
    "city", ["Los Angeles, CA!!", "Zürich", "New York (JFK) #1", "", "O'Hare - Chicago"]
)
def test_sanitize_city_is_idempotent(city):
    """Sanitizing twice equals sanitizing once."""
    once = sanitize_city(city)
    assert sanitize_city(once) == once


def test_default_layout_dimensions():
    """The reference layout is 550x80 with 24px text."""
    params = LayoutParams()
    scene = compose_scene(DEFAULT_TRIP, "", params, BRANDING)

    assert params.width == 550
    assert params.height == 80
    assert scene.style.font_size == 24
    assert scene.style.background == "white"


def test_layout_scales_linearly():
    """Height 160 doubles every size."""
    params = LayoutParams(height=160)
    scene = compose_scene(DEFAULT_TRIP, "", params, BRANDING)
    site = _row(scene).children[1]

    assert params.width == 1100
    assert scene.style.font_size == 48
    assert site.style.margin_top == 8
    assert site.style.margin_left == 12
    assert site.style.border_bottom_width == 10
    assert site.style.line_height == 56


def test_layout_scaling_rounds_half_up():
    """Odd heights round scaled values like the browser does."""
    params = LayoutParams(height=100)
    scene = compose_scene(DEFAULT_TRIP, "", params, BRANDING)

    assert params.width == 688  # 687.5
    assert scene.style.font_size == 30
    assert _row(scene).children[1].style.margin_left == 8  # 7.5


def test_scene_structure_and_text():
    """Title line above the city row with the underlined site label."""
    trip = Trip(start_date=date(2023, 6, 18), city="Lisbon, Portugal!")
    scene = compose_scene(trip, " (UTC+1)", LayoutParams(), BRANDING)

    assert scene.kind == "box"
    assert scene.style.flex_direction == "column"
    assert scene.style.justify_content == "center"
    assert scene.style.align_items == "flex-start"

    title, row = scene.children
    assert title.text == "Nathan H. Leung"
    assert title.style.font_weight == 700

    city, site = row.children
    assert row.style.align_items == "center"
    assert city.text == "Lisbon, Portugal (UTC+1) ·"
    assert site.text == "natecation.com"
    assert site.style.color == "rgb(32, 150, 255)"
    assert site.style.border_bottom_style == "solid"


def test_offset_label_is_not_sanitized():
    """The label is appended after the city filter runs."""
    scene = compose_scene(DEFAULT_TRIP, " (UTC-7)", LayoutParams(), BRANDING)
    assert _row(scene).children[0].text == "Los Angeles, CA (UTC-7) ·"


def test_background_passthrough():
    """Background strings are passed to the scene unchanged."""
    scene = compose_scene(DEFAULT_TRIP, "", LayoutParams(background="#ff0000"), BRANDING)
    assert scene.style.background == "#ff0000"


def test_text_style_overrides_defaults_field_by_field():
    """Caller-supplied fields win; untouched defaults survive."""
    node = Text("x", style=StyleOptions(margin_top=3, color="red"))

    assert node.style.margin_top == 3
    assert node.style.margin_left == 0
    assert node.style.margin_bottom == 0
    assert node.style.color == "red"


def test_style_merge_ignores_unset_fields():
    """Fields the override never set do not clear the base."""
    base = StyleOptions(font_size=24, color="black")
    merged = base.merged(StyleOptions(color="white"))

    assert merged.font_size == 24
    assert merged.color == "white"
    assert base.color == "black"
