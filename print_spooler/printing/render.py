"""
Page rendering for the print spooler.

- Resolve a monospaced font from config/env/common locations
- Word-wrap text lines to the printable width of a page
- Paginate wrapped lines and rasterize a single page into a Pillow image

Everything here is deterministic for a given (source content, settings, page index)
and knows nothing about jobs or persistence.
"""

from __future__ import annotations

import logging
import math
import os
import weakref
from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, List, Optional

from PIL import Image, ImageDraw, ImageFont

from print_spooler.core.models import PaperSize, PrintSettings
from print_spooler.printing.source import PageSource, TextPageSource, UnsupportedSourceError

logger = logging.getLogger(__name__)

BASE_POINT_SIZE = 12
POINTS_PER_INCH = 72
TAB_SIZE = 4

FontType = ImageFont.FreeTypeFont | ImageFont.ImageFont

MONOSPACE_FONTS: Sequence[str] = (
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationMono-Regular.ttf",
    "/usr/share/fonts/truetype/freefont/FreeMono.ttf",
    "/usr/share/fonts/truetype/noto/NotoSansMono-Regular.ttf",
    "/usr/share/fonts/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/TTF/DejaVuSansMono.ttf",
    "/Library/Fonts/Courier New.ttf",
    "/System/Library/Fonts/Menlo.ttc",
    "C:/Windows/Fonts/consola.ttf",
    "C:/Windows/Fonts/cour.ttf",
)


def _measure_text(font: FontType, text: str) -> int:
    """
    Advance width of text in pixels.
    Tries getlength() first, then falls back to the bounding box.
    """
    try:
        return int(math.ceil(font.getlength(text)))
    except Exception:
        try:
            bbox = font.getbbox(text)
            return int(bbox[2] - bbox[0])
        except Exception:
            return 0


def _font_metrics(font: FontType) -> tuple[int, int]:
    """
    Return (ascent, descent) for a font, falling back to the bounding box of
    a tall glyph pair for bitmap fonts without metrics.
    """
    try:
        ascent, descent = font.getmetrics()  # type: ignore[union-attr]
        return int(ascent), int(descent)
    except Exception:
        bbox = font.getbbox("Ag")
        return int(bbox[3]), 0


@lru_cache(maxsize=32)
def _load_truetype(path: str, size: int) -> ImageFont.FreeTypeFont:
    return ImageFont.truetype(path, size)


def resolve_font(config: Optional[Mapping[str, Any]], font_size: int) -> FontType:
    """
    Resolve a monospaced TTF font for page text, preferring:
    1) config["font_path"] when provided
    2) PRINTSPOOLER_FONT_PATH environment variable
    3) A list of common system monospace fonts (DejaVu, Liberation, FreeMono, Noto, ...)
    Falls back to Pillow's built-in font at the requested size.
    """
    candidates: List[str] = []
    if config:
        val = config.get("font_path")
        if isinstance(val, str) and val.strip():
            candidates.append(val.strip())

    env_path = os.environ.get("PRINTSPOOLER_FONT_PATH")
    if env_path and env_path not in candidates:
        candidates.append(env_path)

    for pth in MONOSPACE_FONTS:
        if pth not in candidates:
            candidates.append(pth)

    for pth in candidates:
        try:
            return _load_truetype(pth, font_size)
        except OSError:
            continue

    logger.warning("No monospace TTF font found; using Pillow's default font (set PRINTSPOOLER_FONT_PATH)")
    try:
        return ImageFont.load_default(size=font_size)
    except TypeError:
        # Pillow < 10.1 has no sized default font
        return ImageFont.load_default()


def wrap_lines(lines: Sequence[str], font: FontType, max_width: int) -> List[str]:
    """
    Greedy word-wrap of logical lines to a pixel width.

    A line that already fits is kept verbatim (so wrapping is idempotent). Longer
    lines are packed word by word and only ever broken at spaces; a single word
    wider than max_width keeps a line of its own.
    """
    wrapped: List[str] = []
    for raw in lines:
        line = raw.expandtabs(TAB_SIZE)
        if _measure_text(font, line) <= max_width:
            wrapped.append(line)
            continue

        words = line.split()
        if not words:
            # whitespace wider than the page still occupies a line
            wrapped.append("")
            continue
        current = ""
        for word in words:
            candidate = current + (" " if current else "") + word
            if current and _measure_text(font, candidate) > max_width:
                wrapped.append(current)
                current = word
            else:
                current = candidate
        wrapped.append(current)
    return wrapped


@dataclass(frozen=True)
class PageLayout:
    page_width: int
    page_height: int
    margin: int
    content_width: int
    content_height: int
    font: Any
    ascent: int
    line_height: int

    @property
    def lines_per_page(self) -> int:
        return max(1, self.content_height // self.line_height)

    def total_pages(self, line_count: int) -> int:
        if line_count <= 0:
            return 0
        return int(math.ceil(line_count / self.lines_per_page))


class PageRenderer(ABC):
    """
    A "print driver": turns a PageSource into page images under given settings.
    """

    @abstractmethod
    def render(self, source: PageSource, page_index: int, settings: PrintSettings) -> Image.Image:
        """Render the 0-based page_index of source."""

    @abstractmethod
    def get_total_pages(self, source: PageSource, settings: PrintSettings) -> int:
        """Number of pages source produces under settings."""


class SimpleTextRenderer(PageRenderer):
    """
    Monospaced plain-text renderer with one-inch margins and a "Page i of n" footer.

    Config keys used (with defaults):
      - base_font_points: int (default 12)
      - font_path: optional, resolved by resolve_font()
    """

    def __init__(self, config: Optional[Mapping[str, Any]] = None):
        self.config: Mapping[str, Any] = dict(config or {})
        try:
            self.base_point_size = int(self.config.get("base_font_points", BASE_POINT_SIZE))
        except Exception:
            self.base_point_size = BASE_POINT_SIZE
        # layouts depend only on (paper, dpi); wrapped lines also on the source
        self._layouts: Dict[tuple[PaperSize, int], PageLayout] = {}
        self._wrapped: weakref.WeakKeyDictionary[PageSource, Dict[tuple[PaperSize, int], List[str]]] = (
            weakref.WeakKeyDictionary()
        )

    @staticmethod
    def _text_source(source: PageSource) -> TextPageSource:
        if not isinstance(source, TextPageSource):
            raise UnsupportedSourceError(
                f"SimpleTextRenderer only supports TextPageSource, got {type(source).__name__}"
            )
        return source

    def layout(self, settings: PrintSettings) -> PageLayout:
        key = (settings.paper, settings.dpi)
        cached = self._layouts.get(key)
        if cached is None:
            cached = self._layouts[key] = self._build_layout(settings)
        return cached

    def _build_layout(self, settings: PrintSettings) -> PageLayout:
        dpi = settings.dpi
        page_width, page_height = settings.page_size_px()
        margin = dpi  # one inch
        font_size = max(1, self.base_point_size * dpi // POINTS_PER_INCH)
        font = resolve_font(self.config, font_size)
        ascent, descent = _font_metrics(font)
        return PageLayout(
            page_width=page_width,
            page_height=page_height,
            margin=margin,
            content_width=max(1, page_width - 2 * margin),
            content_height=max(1, page_height - 2 * margin),
            font=font,
            ascent=ascent,
            line_height=max(1, ascent + descent),
        )

    def wrapped_lines(self, source: PageSource, settings: PrintSettings) -> List[str]:
        """
        Word-wrapped lines of source for the layout of settings, computed once per
        (source, paper, dpi) and shared by get_total_pages() and every render().
        """
        text_source = self._text_source(source)
        per_source = self._wrapped.setdefault(text_source, {})
        key = (settings.paper, settings.dpi)
        lines = per_source.get(key)
        if lines is None:
            layout = self.layout(settings)
            lines = per_source[key] = wrap_lines(text_source.get_lines(), layout.font, layout.content_width)
        return lines

    def get_total_pages(self, source: PageSource, settings: PrintSettings) -> int:
        lines = self.wrapped_lines(source, settings)
        return self.layout(settings).total_pages(len(lines))

    def render(self, source: PageSource, page_index: int, settings: PrintSettings) -> Image.Image:
        """
        Rasterize one page. An index past the end of the content yields a blank page.
        """
        lines = self.wrapped_lines(source, settings)
        layout = self.layout(settings)
        total = layout.total_pages(len(lines))

        mode = "RGB" if settings.is_color else "L"
        img = Image.new(mode, (layout.page_width, layout.page_height), "white")

        start = page_index * layout.lines_per_page
        if page_index < 0 or start >= len(lines):
            logger.debug("Page index %d is past the end of the content (%d pages); blank page", page_index, total)
            return img
        end = min(start + layout.lines_per_page, len(lines))

        draw = ImageDraw.Draw(img)
        y = layout.margin
        for line in lines[start:end]:
            draw.text((layout.margin, y), line, font=layout.font, fill="black")
            y += layout.line_height

        footer = f"Page {page_index + 1} of {total}"
        footer_width = _measure_text(layout.font, footer)
        baseline = layout.page_height - layout.margin // 2
        draw.text(
            ((layout.page_width - footer_width) // 2, baseline - layout.ascent),
            footer,
            font=layout.font,
            fill="black",
        )
        return img


__all__ = [
    "PageLayout",
    "PageRenderer",
    "SimpleTextRenderer",
    "resolve_font",
    "wrap_lines",
]
