import math

import pytest
from PIL import Image

from print_spooler.core.models import PaperSize, PrintSettings
from print_spooler.printing.render import SimpleTextRenderer, wrap_lines
from print_spooler.printing.source import (
    SOURCE_TYPES,
    PageSource,
    TextPageSource,
    UnsupportedSourceError,
    open_source,
    register_source_type,
)


class FakeFont:
    """Every character is 10px wide."""

    def getlength(self, text: str) -> float:
        return len(text) * 10.0

    def getbbox(self, text: str):
        return (0, 0, len(text) * 10, 12)


class OtherSource(PageSource):
    content_type = "image/png"


A5_72 = PrintSettings(paper=PaperSize.A5, dpi=72, is_color=False)


def _text_file(tmp_path, text: str, name: str = "doc.txt"):
    p = tmp_path / name
    p.write_text(text, encoding="utf-8")
    return p


def _is_blank(img: Image.Image) -> bool:
    extrema = img.convert("L").getextrema()
    return extrema == (255, 255)


def test_wrap_lines_keeps_fitting_lines_verbatim():
    font = FakeFont()
    lines = ["short", "  indented  ", ""]
    assert wrap_lines(lines, font, 200) == lines


def test_wrap_lines_greedy_word_packing():
    font = FakeFont()
    # 100px fits 10 chars
    out = wrap_lines(["aaa bbb ccc ddd eee"], font, 100)
    assert out == ["aaa bbb", "ccc ddd", "eee"]
    assert all(font.getlength(line) <= 100 for line in out)


def test_wrap_lines_long_word_gets_own_line():
    font = FakeFont()
    out = wrap_lines(["a supercalifragilistic b"], font, 100)
    assert out == ["a", "supercalifragilistic", "b"]


def test_wrap_lines_is_idempotent():
    font = FakeFont()
    once = wrap_lines(["the quick brown fox jumps over the lazy dog", "x\ty"], font, 120)
    assert wrap_lines(once, font, 120) == once


def test_wrap_lines_expands_tabs():
    assert wrap_lines(["\tx"], FakeFont(), 200) == ["    x"]


def test_render_page_dimensions_and_mode(tmp_path):
    renderer = SimpleTextRenderer()
    source = TextPageSource(_text_file(tmp_path, "hello\n"))

    grey = renderer.render(source, 0, A5_72)
    assert grey.size == (420, 595)
    assert grey.mode == "L"

    color = renderer.render(source, 0, PrintSettings(paper=PaperSize.A5, dpi=72, is_color=True))
    assert color.size == (420, 595)
    assert color.mode == "RGB"


def test_short_document_is_one_page(tmp_path):
    renderer = SimpleTextRenderer()
    source = TextPageSource(_text_file(tmp_path, "This is a test document that should print successfully.\n"))

    assert renderer.get_total_pages(source, PrintSettings.a4_default()) == 1
    assert renderer.get_total_pages(source, A5_72) == 1


def test_render_is_deterministic(tmp_path):
    renderer = SimpleTextRenderer()
    source = TextPageSource(_text_file(tmp_path, "alpha\nbeta\ngamma\n"))

    first = renderer.render(source, 0, A5_72)
    second = renderer.render(source, 0, A5_72)
    assert first.tobytes() == second.tobytes()
    assert not _is_blank(first)


def test_page_past_end_is_blank(tmp_path):
    renderer = SimpleTextRenderer()
    source = TextPageSource(_text_file(tmp_path, "only line\n"))
    total = renderer.get_total_pages(source, A5_72)

    assert not _is_blank(renderer.render(source, total - 1, A5_72))
    past = renderer.render(source, total, A5_72)
    assert past.size == (420, 595)
    assert _is_blank(past)


def test_long_document_paginates(tmp_path):
    renderer = SimpleTextRenderer()
    text = "\n".join(f"line {i}" for i in range(200))
    source = TextPageSource(_text_file(tmp_path, text))

    per_page = renderer.layout(A5_72).lines_per_page
    total = renderer.get_total_pages(source, A5_72)

    assert total == math.ceil(200 / per_page)
    assert total > 1
    assert not _is_blank(renderer.render(source, total - 1, A5_72))
    assert _is_blank(renderer.render(source, total, A5_72))


def test_empty_document_has_no_pages(tmp_path):
    renderer = SimpleTextRenderer()
    source = TextPageSource(_text_file(tmp_path, ""))
    assert renderer.get_total_pages(source, A5_72) == 0


def test_renderer_rejects_other_sources(tmp_path):
    renderer = SimpleTextRenderer()
    source = OtherSource(tmp_path / "scan.png")
    with pytest.raises(UnsupportedSourceError):
        renderer.get_total_pages(source, A5_72)
    with pytest.raises(UnsupportedSourceError):
        renderer.render(source, 0, A5_72)


def test_open_source_by_suffix(tmp_path):
    src = open_source(_text_file(tmp_path, "x", name="notes.TXT"))
    assert isinstance(src, TextPageSource)

    with pytest.raises(FileNotFoundError):
        open_source(tmp_path / "missing.txt")

    with pytest.raises(UnsupportedSourceError):
        open_source(_text_file(tmp_path, "x", name="picture.png"))


def test_register_source_type(tmp_path, monkeypatch):
    monkeypatch.setitem(SOURCE_TYPES, ".png", OtherSource)
    image = tmp_path / "scan.png"
    image.write_bytes(b"\x89PNG")
    assert isinstance(open_source(image), OtherSource)

    monkeypatch.delitem(SOURCE_TYPES, ".rst", raising=False)
    register_source_type("RST", TextPageSource)
    try:
        assert isinstance(open_source(_text_file(tmp_path, "Title\n=====\n", name="readme.rst")), TextPageSource)
    finally:
        SOURCE_TYPES.pop(".rst", None)


def test_layout_and_wrapping_computed_once_per_document(tmp_path, monkeypatch):
    import print_spooler.printing.render as render_mod

    calls = {"font": 0, "wrap": 0}
    real_resolve, real_wrap = render_mod.resolve_font, render_mod.wrap_lines

    def _resolve(config, size):
        calls["font"] += 1
        return real_resolve(config, size)

    def _wrap(lines, font, width):
        calls["wrap"] += 1
        return real_wrap(lines, font, width)

    monkeypatch.setattr(render_mod, "resolve_font", _resolve)
    monkeypatch.setattr(render_mod, "wrap_lines", _wrap)

    renderer = SimpleTextRenderer()
    source = TextPageSource(_text_file(tmp_path, "\n".join(f"line {i}" for i in range(200))))
    total = renderer.get_total_pages(source, A5_72)
    pages = [renderer.render(source, i, A5_72) for i in range(total)]

    assert total > 1 and len(pages) == total
    assert calls == {"font": 1, "wrap": 1}

    # a colour job at the same paper and dpi reuses the layout
    renderer.render(source, 0, PrintSettings(paper=PaperSize.A5, dpi=72, is_color=True))
    assert calls == {"font": 1, "wrap": 1}

    other = TextPageSource(_text_file(tmp_path, "other\n", name="other.txt"))
    assert renderer.get_total_pages(other, A5_72) == 1
    assert calls == {"font": 1, "wrap": 2}
