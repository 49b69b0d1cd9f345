"""Tests for DOCX → PDF conversion."""

from __future__ import annotations

import asyncio
import threading
import time

import pytest

from conftest import build_docx
from cv_docgen.config import ConversionConfig
from cv_docgen.export import converter as converter_module
from cv_docgen.export.converter import (
    ConversionFailure,
    ConversionOptions,
    ConversionSuccess,
    Fpdf2Strategy,
    FormatConverter,
    LibreOfficeStrategy,
    StrategyUnavailable,
    WeasyPrintStrategy,
    build_strategies,
    count_pages,
)
from cv_docgen.export.html_renderer import docx_to_html


class FakeStrategy:
    def __init__(self, name, result=b"%PDF-fake", delay=0.0, error=None):
        self.name = name
        self.result = result
        self.delay = delay
        self.error = error
        self.calls = 0

    async def convert(self, buffer, options):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.result


class TestFormatConverter:
    @pytest.mark.asyncio
    async def test_first_strategy_wins(self):
        first, second = FakeStrategy("one"), FakeStrategy("two")
        result = await FormatConverter([first, second]).convert(b"docx")
        assert isinstance(result, ConversionSuccess)
        assert result.success
        assert result.method == "one"
        assert second.calls == 0

    @pytest.mark.asyncio
    async def test_falls_back_on_failure(self):
        broken = FakeStrategy("broken", error=RuntimeError("boom"))
        backup = FakeStrategy("backup")
        result = await FormatConverter([broken, backup]).convert(b"docx")
        assert result.success
        assert result.method == "backup"

    @pytest.mark.asyncio
    async def test_unavailable_is_skipped(self):
        missing = FakeStrategy("missing", error=StrategyUnavailable("not installed"))
        backup = FakeStrategy("backup", error=RuntimeError("bad input"))
        result = await FormatConverter([missing, backup]).convert(b"docx")
        assert isinstance(result, ConversionFailure)
        assert not result.success
        assert result.attempts == ("backup",)
        assert "missing unavailable" in result.reason
        assert "backup failed: bad input" in result.reason

    @pytest.mark.asyncio
    async def test_empty_output_is_failure(self):
        result = await FormatConverter([FakeStrategy("empty", result=b"")]).convert(b"docx")
        assert isinstance(result, ConversionFailure)
        assert "empty" in result.reason

    @pytest.mark.asyncio
    async def test_timeout(self):
        slow = FakeStrategy("slow", delay=5)
        never = FakeStrategy("never")
        result = await FormatConverter([slow, never]).convert(b"docx", ConversionOptions(timeout_ms=50))
        assert isinstance(result, ConversionFailure)
        assert result.reason == "timeout"
        assert result.processing_time_ms < 5000
        assert never.calls == 0

    @pytest.mark.asyncio
    async def test_no_strategies(self):
        result = await FormatConverter([]).convert(b"docx")
        assert isinstance(result, ConversionFailure)
        assert result.attempts == ()

    @pytest.mark.asyncio
    async def test_unexpected_error_never_raises(self):
        result = await FormatConverter([FakeStrategy("x", error=ValueError("odd"))]).convert(b"docx")
        assert isinstance(result, ConversionFailure)


class TestStrategies:
    def test_build_from_names(self):
        strategies = build_strategies(["fpdf2", "libreoffice"], soffice_binary="lo")
        assert [s.name for s in strategies] == ["fpdf2", "libreoffice"]
        assert strategies[1].binary == "lo"

    def test_unknown_method(self):
        with pytest.raises(ValueError, match="Unknown conversion method"):
            build_strategies(["magic"])

    def test_from_config(self):
        converter = FormatConverter.from_config(ConversionConfig(methods=("weasyprint",)))
        assert [s.name for s in converter.strategies] == ["weasyprint"]

    @pytest.mark.asyncio
    async def test_libreoffice_missing_binary(self):
        strategy = LibreOfficeStrategy("definitely-not-a-real-soffice")
        with pytest.raises(StrategyUnavailable):
            await strategy.convert(b"docx", ConversionOptions())

    @pytest.mark.asyncio
    async def test_fpdf2_renders_pdf(self):
        docx = build_docx(["Ada Lovelace", "Analyst at Engine Co"])
        pdf = await Fpdf2Strategy().convert(docx, ConversionOptions())
        assert pdf.startswith(b"%PDF")
        assert count_pages(pdf) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("strategy_cls", [WeasyPrintStrategy, Fpdf2Strategy])
    async def test_html_built_off_event_loop(self, monkeypatch, strategy_cls):
        threads = []

        def fake_docx_to_html(buffer, page_size="A4", text_direction="ltr"):
            threads.append(threading.current_thread())
            return "<html><body><p>x</p></body></html>"

        monkeypatch.setattr(converter_module, "docx_to_html", fake_docx_to_html)
        monkeypatch.setattr(converter_module, "html_to_pdf", lambda html: b"%PDF-fake")
        monkeypatch.setattr(converter_module, "html_to_pdf_fpdf2", lambda html, size, rtl: b"%PDF-fake")

        assert await strategy_cls().convert(b"docx", ConversionOptions()) == b"%PDF-fake"
        assert threads and threads[0] is not threading.main_thread()

    @pytest.mark.asyncio
    async def test_deadline_covers_html_building(self, monkeypatch):
        def slow_docx_to_html(buffer, page_size="A4", text_direction="ltr"):
            time.sleep(0.3)
            return "<html></html>"

        monkeypatch.setattr(converter_module, "docx_to_html", slow_docx_to_html)
        started = time.monotonic()
        result = await FormatConverter([Fpdf2Strategy()]).convert(b"docx", ConversionOptions(timeout_ms=50))
        assert isinstance(result, ConversionFailure)
        assert result.reason == "timeout"
        assert time.monotonic() - started < 0.25


class TestHtmlRenderer:
    def test_paragraphs_escaped(self):
        html = docx_to_html(build_docx(["a < b", "second"]))
        assert "<p>a &lt; b</p>" in html
        assert "<p>second</p>" in html

    def test_direction_and_page_size(self):
        html = docx_to_html(build_docx(["x"]), page_size="Letter", text_direction="rtl")
        assert 'dir="rtl"' in html
        assert "size: Letter" in html

    def test_table_cells(self):
        html = docx_to_html(build_docx([], table=[["left", "right"]]))
        assert "<td><p>left</p></td>" in html


def test_count_pages_on_garbage():
    assert count_pages(b"not a pdf") is None
