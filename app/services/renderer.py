"""Scene layout and PNG rasterization using Pillow."""

import io
import json
import logging
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional, Sequence, Union
from xml.sax.saxutils import escape, quoteattr

from PIL import Image, ImageColor, ImageDraw, ImageFont
from PIL.ImageFont import FreeTypeFont

from app.config import config
from app.models import SceneNode, StyleOptions, round_half_up

logger = logging.getLogger(__name__)

AnyFont = Union[FreeTypeFont, ImageFont.ImageFont]

# Reference text for consistent vertical placement of text runs
# Contains characters with maximum ascent (diacritics) and descent (g, y)
TEXT_BASELINE_REF = "ÁŽÝgy"

# CSS initial values for inherited properties
DEFAULT_FONT_SIZE = 16
DEFAULT_FONT_WEIGHT = 400
DEFAULT_COLOR = "black"
NORMAL_LINE_HEIGHT = 1.2

INHERITED_FIELDS = ("font_family", "font_size", "font_weight", "color")


# ============================================================================
# Fonts
# ============================================================================


@dataclass(frozen=True)
class FontSpec:
    """A named font face. ``data`` is the raw TrueType/OpenType buffer."""

    name: str
    data: Optional[bytes]
    weight: int = DEFAULT_FONT_WEIGHT


def decode_font_json(values: Sequence[int]) -> bytes:
    """Decode an array-encoded font where each byte ``b`` is stored as ``2b + 1``."""
    return bytes(int(round_half_up((value - 1) / 2)) for value in values)


def load_font_data(path: Union[str, Path]) -> Optional[bytes]:
    """
    Read a font buffer from a font file or a JSON array-encoded font.

    Returns:
        Font bytes, or None when the file does not exist
    """
    font_path = Path(path)
    if not font_path.exists():
        logger.debug(f"Font file not found: {font_path}")
        return None

    if font_path.suffix == ".json":
        with open(font_path, "r", encoding="utf-8") as f:
            return decode_font_json(json.load(f))
    return font_path.read_bytes()


@lru_cache()
def default_fonts() -> tuple[FontSpec, ...]:
    """Regular and bold faces from the configured font paths."""
    return (
        FontSpec("Default", load_font_data(config.FONT_REGULAR_PATH), 400),
        FontSpec("Default", load_font_data(config.FONT_BOLD_PATH), 700),
    )


class FontBook:
    """Picks and instantiates fonts by family, weight and size."""

    def __init__(self, fonts: Sequence[FontSpec]):
        self.fonts = list(fonts)
        self._cache: dict[tuple[str, int, int], AnyFont] = {}

    def get(self, family: Optional[str], weight: int, size: int) -> AnyFont:
        key = (family or "", weight, size)
        if key not in self._cache:
            self._cache[key] = self._load(family, weight, size)
        return self._cache[key]

    def _load(self, family: Optional[str], weight: int, size: int) -> AnyFont:
        candidates = [f for f in self.fonts if f.name == family] or self.fonts
        candidates = [f for f in candidates if f.data]
        if candidates:
            spec = min(candidates, key=lambda f: abs(f.weight - weight))
            try:
                return ImageFont.truetype(io.BytesIO(spec.data), size)  # type: ignore[arg-type]
            except OSError as e:
                logger.warning("Failed to load font %s/%d: %s", spec.name, spec.weight, e)

        # Fallback
        fallback_name = "DejaVuSans-Bold.ttf" if weight >= 600 else "DejaVuSans.ttf"
        try:
            return ImageFont.truetype(fallback_name, size)
        except OSError:
            return ImageFont.load_default(size=size)


# ============================================================================
# Vector image
# ============================================================================


@dataclass(frozen=True)
class RectPrimitive:
    """Filled rectangle (backgrounds and underlines)."""

    x: float
    y: float
    width: float
    height: float
    fill: str


@dataclass(frozen=True)
class TextPrimitive:
    """Single-line text run. ``y`` is the top of the font's ascender box."""

    x: float
    y: float
    baseline: float
    text: str
    family: Optional[str]
    weight: int
    size: int
    color: str


Primitive = Union[RectPrimitive, TextPrimitive]


@dataclass
class VectorImage:
    """Positioned drawing primitives plus the fonts they reference."""

    width: int
    height: int
    items: list[Primitive]
    fonts: FontBook

    def to_svg(self) -> str:
        """Serialize to an SVG document (text is not converted to paths)."""
        parts = [
            f'<svg xmlns="http://www.w3.org/2000/svg" width="{self.width}" '
            f'height="{self.height}" viewBox="0 0 {self.width} {self.height}">'
        ]
        for item in self.items:
            if isinstance(item, RectPrimitive):
                parts.append(
                    f'<rect x="{item.x:g}" y="{item.y:g}" width="{item.width:g}" '
                    f'height="{item.height:g}" fill={quoteattr(item.fill)}/>'
                )
            else:
                parts.append(
                    f'<text x="{item.x:g}" y="{item.baseline:g}" '
                    f"font-family={quoteattr(item.family or 'sans-serif')} "
                    f'font-size="{item.size}" font-weight="{item.weight}" '
                    f"fill={quoteattr(item.color)}>{escape(item.text)}</text>"
                )
        parts.append("</svg>")
        return "".join(parts)


# ============================================================================
# Layout
# ============================================================================


@dataclass
class _Frame:
    """A measured node. ``width``/``height`` exclude margins."""

    node: SceneNode
    style: StyleOptions
    width: float
    height: float
    font: Optional[AnyFont] = None
    line_height: float = 0
    children: list["_Frame"] = field(default_factory=list)

    @property
    def outer_width(self) -> float:
        return self.width + (self.style.margin_left or 0) + (self.style.margin_right or 0)

    @property
    def outer_height(self) -> float:
        return self.height + (self.style.margin_top or 0) + (self.style.margin_bottom or 0)


def _inherit(parent: StyleOptions, own: StyleOptions) -> StyleOptions:
    """Resolve inherited text properties from the parent."""
    inherited = {
        name: getattr(parent, name)
        for name in INHERITED_FIELDS
        if getattr(own, name) is None and getattr(parent, name) is not None
    }
    return own.model_copy(update=inherited)


def _offset(align: Optional[str], free: float) -> float:
    if align == "center":
        return free / 2
    if align == "flex-end":
        return free
    return 0


class SignatureRenderer:
    """Lays out a scene and rasterizes it to PNG."""

    def __init__(self, fonts: Optional[Sequence[FontSpec]] = None, fit_to: Optional[str] = None):
        """
        Initialize renderer.

        Args:
            fonts: Font faces available to the scene. Defaults to configured fonts.
            fit_to: Raster size policy, "original" or "zoom:<factor>"
        """
        self.fonts = FontBook(fonts if fonts is not None else default_fonts())
        self.fit_to = fit_to or config.RASTER_FIT_TO

    def render(self, scene: SceneNode, width: int, height: int) -> bytes:
        """Render a scene to PNG bytes."""
        return self.rasterize(self.layout(scene, width, height))

    def layout(self, scene: SceneNode, width: int, height: int) -> VectorImage:
        """
        Lay the scene out on a canvas of the given size.

        Supports flex rows and columns with ``align_items``/``justify_content``,
        margins, line height and solid bottom borders.
        """
        root_style = StyleOptions(
            font_size=DEFAULT_FONT_SIZE, font_weight=DEFAULT_FONT_WEIGHT, color=DEFAULT_COLOR
        )
        frame = self._measure(scene, root_style, width, height)
        items: list[Primitive] = []
        self._place(frame, scene.style.margin_left or 0, scene.style.margin_top or 0, items)
        return VectorImage(width=width, height=height, items=items, fonts=self.fonts)

    def rasterize(self, vector: VectorImage) -> bytes:
        """Rasterize a vector image to PNG according to the fit policy."""
        zoom = self._zoom()
        size = (
            max(1, int(round_half_up(vector.width * zoom))),
            max(1, int(round_half_up(vector.height * zoom))),
        )
        image = Image.new("RGBA", size, (0, 0, 0, 0))
        draw = ImageDraw.Draw(image, "RGBA")

        for item in vector.items:
            if isinstance(item, RectPrimitive):
                fill = self._parse_color(item.fill, None)
                if fill is None or item.width * zoom < 1 or item.height * zoom < 1:
                    continue
                draw.rectangle(
                    [
                        item.x * zoom,
                        item.y * zoom,
                        (item.x + item.width) * zoom - 1,
                        (item.y + item.height) * zoom - 1,
                    ],
                    fill=fill,
                )
            else:
                font = vector.fonts.get(
                    item.family, item.weight, max(1, int(round_half_up(item.size * zoom)))
                )
                draw.text(
                    (item.x * zoom, item.y * zoom),
                    item.text,
                    fill=self._parse_color(item.color, DEFAULT_COLOR),
                    font=font,
                )

        return self._to_png(image)

    def _zoom(self) -> float:
        if self.fit_to == "original":
            return 1.0
        if self.fit_to.startswith("zoom:"):
            return float(self.fit_to[len("zoom:") :])
        raise ValueError(f"Unknown fit policy: {self.fit_to}")

    def _measure(
        self, node: SceneNode, parent: StyleOptions, avail_width: float, avail_height: float
    ) -> _Frame:
        style = _inherit(parent, node.style)

        if node.kind == "text":
            size = style.font_size or DEFAULT_FONT_SIZE
            font = self.fonts.get(style.font_family, style.font_weight or DEFAULT_FONT_WEIGHT, size)
            line_height = style.line_height or round_half_up(size * NORMAL_LINE_HEIGHT)
            return _Frame(
                node=node,
                style=style,
                width=font.getlength(node.text),
                height=line_height + self._border_width(style),
                font=font,
                line_height=line_height,
            )

        children = [
            self._measure(child, style, avail_width, avail_height) for child in node.children
        ]
        if style.flex_direction == "column":
            width = max((c.outer_width for c in children), default=0)
            height = sum(c.outer_height for c in children)
        else:
            width = sum(c.outer_width for c in children)
            height = max((c.outer_height for c in children), default=0)

        if style.width == "100%":
            width = avail_width
        if style.height == "100%":
            height = avail_height
        return _Frame(node=node, style=style, width=width, height=height, children=children)

    def _place(self, frame: _Frame, x: float, y: float, items: list[Primitive]) -> None:
        style = frame.style

        if frame.node.kind == "text":
            self._place_text(frame, x, y, items)
            return

        if style.background:
            items.append(RectPrimitive(x, y, frame.width, frame.height, style.background))

        column = style.flex_direction == "column"
        if column:
            used = sum(c.outer_height for c in frame.children)
            cursor = y + _offset(style.justify_content, frame.height - used)
        else:
            used = sum(c.outer_width for c in frame.children)
            cursor = x + _offset(style.justify_content, frame.width - used)

        for child in frame.children:
            margin_left = child.style.margin_left or 0
            margin_top = child.style.margin_top or 0
            if column:
                cross = x + _offset(style.align_items, frame.width - child.outer_width)
                self._place(child, cross + margin_left, cursor + margin_top, items)
                cursor += child.outer_height
            else:
                cross = y + _offset(style.align_items, frame.height - child.outer_height)
                self._place(child, cursor + margin_left, cross + margin_top, items)
                cursor += child.outer_width

    def _place_text(self, frame: _Frame, x: float, y: float, items: list[Primitive]) -> None:
        style = frame.style
        font = frame.font
        assert font is not None

        # Center the reference glyph box inside the line box
        if isinstance(font, FreeTypeFont):
            _, ref_top, _, ref_bottom = font.getbbox(TEXT_BASELINE_REF)
            ascent = font.getmetrics()[0]
        else:
            _, ref_top, _, ref_bottom = font.getbbox("Agy")
            ascent = ref_bottom
        text_y = y + (frame.line_height - (ref_bottom - ref_top)) / 2 - ref_top
        items.append(
            TextPrimitive(
                x=x,
                y=text_y,
                baseline=text_y + ascent,
                text=frame.node.text,
                family=style.font_family,
                weight=style.font_weight or DEFAULT_FONT_WEIGHT,
                size=style.font_size or DEFAULT_FONT_SIZE,
                color=style.color or DEFAULT_COLOR,
            )
        )

        border = self._border_width(style)
        if border and style.border_bottom_color:
            items.append(
                RectPrimitive(
                    x, y + frame.line_height, frame.width, border, style.border_bottom_color
                )
            )

    @staticmethod
    def _border_width(style: StyleOptions) -> int:
        if style.border_bottom_style != "solid":
            return 0
        return style.border_bottom_width or 0

    @staticmethod
    def _parse_color(value: str, fallback: Optional[str]) -> Optional[tuple[int, ...]]:
        """Parse a CSS color; invalid values fall back like ignored CSS declarations."""
        try:
            return ImageColor.getrgb(value)
        except ValueError:
            logger.warning(f"Ignoring invalid color {value!r}")
            if fallback is None:
                return None
            return ImageColor.getrgb(fallback)

    def _to_png(self, image: Image.Image) -> bytes:
        """Convert PIL Image to PNG bytes."""
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()
