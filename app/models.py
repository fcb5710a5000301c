"""Data models for the signature image service."""

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Generic, Literal, Optional, TypeVar

import pytz
from pydantic import BaseModel, ConfigDict, Field, field_validator

T = TypeVar("T")

# Reference height the signature layout is designed at
BASE_HEIGHT = 80
BASE_WIDTH = 550


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round with halves going up (2.5 -> 3, -2.5 -> -2), unlike ``round``."""
    factor = 10**ndigits
    return math.floor(value * factor + 0.5) / factor


# ============================================================================
# Trip feed
# ============================================================================


# Month-name formats seen in hand-written feeds, e.g. "June 18, 2023"
LONG_DATE_FORMATS = ("%B %d, %Y", "%b %d, %Y", "%B %d %Y", "%b %d %Y")


def _utc_midnight(day: date) -> datetime:
    return pytz.UTC.localize(datetime(day.year, day.month, day.day))


def parse_start(value: object) -> object:
    """
    Turn a feed start value into an aware datetime.

    Dates without a time start at UTC midnight. Datetimes keep their instant;
    naive ones are taken as UTC. Accepted strings are ISO dates and datetimes,
    M/D/YYYY and long month names ("June 18, 2023", "Jun 18 2023").
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else pytz.UTC.localize(value)
    if isinstance(value, date):
        return _utc_midnight(value)
    if not isinstance(value, str):
        return value

    text = value.strip()
    if "/" in text:
        return _utc_midnight(datetime.strptime(text, "%m/%d/%Y").date())
    if text[:1].isalpha():
        for fmt in LONG_DATE_FORMATS:
            try:
                return _utc_midnight(datetime.strptime(text, fmt).date())
            except ValueError:
                continue
        raise ValueError(f"unrecognized date {text!r}")
    return parse_start(datetime.fromisoformat(text.replace("Z", "+00:00")))


class Trip(BaseModel):
    """A trip from the site metadata feed."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    start_date: datetime = Field(..., alias="startDate")
    city: str

    @field_validator("start_date", mode="before")
    @classmethod
    def parse_start_date(cls, value: object) -> object:
        return parse_start(value)


class TripFeed(BaseModel):
    """Site metadata document; only the trip list is used."""

    trips: list[Trip]


DEFAULT_TRIP = Trip(start_date=date(2023, 6, 18), city="Los Angeles, CA")


@dataclass(frozen=True)
class FetchResult(Generic[T]):
    """Outcome of a single upstream call: a value or an error message."""

    value: Optional[T]
    error: Optional[str]

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "FetchResult[T]":
        return cls(value=value, error=None)

    @classmethod
    def failure(cls, error: str) -> "FetchResult[T]":
        return cls(value=None, error=error)


# ============================================================================
# Layout
# ============================================================================


class LayoutParams(BaseModel):
    """Request-derived layout parameters."""

    height: int = Field(BASE_HEIGHT, gt=0)
    background: str = "white"

    @property
    def scale(self) -> float:
        return self.height / BASE_HEIGHT

    @property
    def width(self) -> int:
        return int(round_half_up(self.scale * BASE_WIDTH))

    def scaled(self, base: float) -> int:
        """Scale a pixel value designed for the 80px layout."""
        return int(round_half_up(self.scale * base))


class StyleOptions(BaseModel):
    """Style of a scene node.

    Every field is optional. ``merged`` lays the explicitly-set fields of an
    override on top of this instance, field by field, so caller-supplied
    values win over component defaults.
    """

    display: Optional[Literal["flex"]] = None
    flex_direction: Optional[Literal["row", "column"]] = None
    align_items: Optional[Literal["flex-start", "center", "flex-end"]] = None
    justify_content: Optional[Literal["flex-start", "center", "flex-end"]] = None
    width: Optional[str] = None  # "100%" or None for content size
    height: Optional[str] = None
    font_family: Optional[str] = None
    font_size: Optional[int] = None
    font_weight: Optional[int] = None
    color: Optional[str] = None
    background: Optional[str] = None
    margin_top: Optional[int] = None
    margin_right: Optional[int] = None
    margin_bottom: Optional[int] = None
    margin_left: Optional[int] = None
    border_bottom_width: Optional[int] = None
    border_bottom_color: Optional[str] = None
    border_bottom_style: Optional[Literal["solid"]] = None
    line_height: Optional[int] = None

    def merged(self, override: Optional["StyleOptions"]) -> "StyleOptions":
        if override is None:
            return self.model_copy()
        return self.model_copy(update=override.model_dump(exclude_unset=True))


class SceneNode(BaseModel):
    """A box or text node of the signature scene."""

    kind: Literal["box", "text"]
    style: StyleOptions = StyleOptions()
    text: str = ""
    children: list["SceneNode"] = []


BOX_DEFAULTS = StyleOptions(display="flex")
TEXT_DEFAULTS = StyleOptions(margin_top=0, margin_right=0, margin_bottom=0, margin_left=0)


def Box(*children: SceneNode, style: Optional[StyleOptions] = None) -> SceneNode:
    """Flex container; ``style`` overrides ``display: flex`` field by field."""
    return SceneNode(kind="box", style=BOX_DEFAULTS.merged(style), children=list(children))


def Text(text: str, style: Optional[StyleOptions] = None) -> SceneNode:
    """Text run with zero margins unless ``style`` sets them."""
    return SceneNode(kind="text", style=TEXT_DEFAULTS.merged(style), text=text)
