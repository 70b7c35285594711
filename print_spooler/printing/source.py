"""
Page sources: the raw content of a submitted document.

A source only supplies content; turning it into pages is the renderer's job.
Sources are chosen by file suffix through SOURCE_TYPES so other formats can be
plugged in with register_source_type().
"""

from __future__ import annotations

import logging
import os
from abc import ABC
from pathlib import Path
from typing import Dict, List, Optional, Type

logger = logging.getLogger(__name__)


class UnsupportedSourceError(TypeError):
    """A source was handed to a renderer (or loader) that does not understand it."""


class PageSource(ABC):
    """Base class for printable document sources."""

    content_type: str = "application/octet-stream"

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({str(self.path)!r})"


class TextPageSource(PageSource):
    """Plain UTF-8 text; lines are read once and cached."""

    content_type = "text/plain"

    def __init__(self, path: str | Path):
        super().__init__(path)
        if not self.path.is_file():
            raise FileNotFoundError(f"Text source not found: {self.path}")
        if not os.access(self.path, os.R_OK):
            raise PermissionError(f"Text source is not readable: {self.path}")
        self._lines: Optional[List[str]] = None

    def get_lines(self) -> List[str]:
        if self._lines is None:
            text = self.path.read_text(encoding="utf-8")
            self._lines = text.splitlines()
            logger.debug("Read %d line(s) from %s", len(self._lines), self.path)
        return self._lines


SOURCE_TYPES: Dict[str, Type[PageSource]] = {
    ".txt": TextPageSource,
    ".text": TextPageSource,
    ".log": TextPageSource,
    ".md": TextPageSource,
    ".csv": TextPageSource,
    "": TextPageSource,
}


def register_source_type(suffix: str, source_cls: Type[PageSource]) -> None:
    """Map a file suffix (e.g. ".pdf") to a PageSource implementation."""
    key = suffix.lower()
    if key and not key.startswith("."):
        key = "." + key
    SOURCE_TYPES[key] = source_cls


def open_source(path: str | Path) -> PageSource:
    """
    Open the PageSource for a spooled file.

    Raises:
        UnsupportedSourceError if no source type is registered for the suffix.
        OSError if the file is missing or unreadable.
    """
    p = Path(path)
    source_cls = SOURCE_TYPES.get(p.suffix.lower())
    if source_cls is None:
        raise UnsupportedSourceError(f"No page source registered for '{p.suffix}' files: {p.name}")
    return source_cls(p)


__all__ = [
    "PageSource",
    "SOURCE_TYPES",
    "TextPageSource",
    "UnsupportedSourceError",
    "open_source",
    "register_source_type",
]
