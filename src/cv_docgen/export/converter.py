"""Converts a filled ``.docx`` buffer into a PDF rendering.

Conversion is expected to fail sometimes (engine missing, bad input,
timeout), so :meth:`FormatConverter.convert` returns a result value instead
of raising. Strategies are tried in order against one shared deadline.
"""

from __future__ import annotations

import asyncio
import io
import logging
import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence, Union

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from cv_docgen.export.html_renderer import docx_to_html, html_to_pdf
from cv_docgen.export.pdf_fallback import html_to_pdf_fpdf2

logger = logging.getLogger(__name__)

DEFAULT_METHODS = ("libreoffice", "weasyprint", "fpdf2")


@dataclass(frozen=True)
class ConversionOptions:
    page_size: str = "A4"
    timeout_ms: int = 30_000
    text_direction: str = "ltr"


@dataclass(frozen=True)
class ConversionSuccess:
    buffer: bytes
    method: str
    processing_time_ms: int
    page_count: int | None = None

    @property
    def success(self) -> bool:
        return True


@dataclass(frozen=True)
class ConversionFailure:
    reason: str
    processing_time_ms: int
    attempts: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return False


ConversionResult = Union[ConversionSuccess, ConversionFailure]


class StrategyUnavailable(Exception):
    """The strategy's engine is not installed; try the next one."""


class ConversionStrategy(Protocol):
    name: str

    async def convert(self, buffer: bytes, options: ConversionOptions) -> bytes: ...


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

class LibreOfficeStrategy:
    """Headless ``soffice --convert-to pdf`` in a throwaway directory."""

    name = "libreoffice"

    def __init__(self, binary: str = "soffice"):
        self.binary = binary

    async def convert(self, buffer: bytes, options: ConversionOptions) -> bytes:
        executable = shutil.which(self.binary)
        if executable is None:
            raise StrategyUnavailable(f"{self.binary} not found on PATH")

        with tempfile.TemporaryDirectory(prefix="cv-docgen-") as tmp:
            workdir = Path(tmp)
            source = workdir / "document.docx"
            source.write_bytes(buffer)
            proc = await asyncio.create_subprocess_exec(
                executable,
                "--headless",
                "--norestore",
                f"-env:UserInstallation={(workdir / 'profile').as_uri()}",
                "--convert-to",
                "pdf",
                "--outdir",
                str(workdir),
                str(source),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            try:
                _, stderr = await proc.communicate()
            except asyncio.CancelledError:
                _kill(proc)
                await proc.wait()
                raise

            if proc.returncode != 0:
                raise RuntimeError(
                    f"soffice exited with {proc.returncode}: {stderr.decode(errors='replace')[:200]}"
                )
            output = workdir / "document.pdf"
            if not output.exists():
                raise RuntimeError("soffice produced no output")
            return output.read_bytes()


def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            pass


class WeasyPrintStrategy:
    name = "weasyprint"

    async def convert(self, buffer: bytes, options: ConversionOptions) -> bytes:
        try:
            return await asyncio.to_thread(_render_weasyprint, buffer, options)
        except (ImportError, OSError) as exc:
            raise StrategyUnavailable(f"WeasyPrint not available: {exc}") from exc


class Fpdf2Strategy:
    name = "fpdf2"

    async def convert(self, buffer: bytes, options: ConversionOptions) -> bytes:
        return await asyncio.to_thread(_render_fpdf2, buffer, options)


# Worker-thread bodies; HTML building must stay off the event loop.

def _render_weasyprint(buffer: bytes, options: ConversionOptions) -> bytes:
    html = docx_to_html(buffer, page_size=options.page_size, text_direction=options.text_direction)
    return html_to_pdf(html)


def _render_fpdf2(buffer: bytes, options: ConversionOptions) -> bytes:
    html = docx_to_html(buffer, page_size=options.page_size, text_direction=options.text_direction)
    return html_to_pdf_fpdf2(html, options.page_size, options.text_direction == "rtl")


def build_strategies(methods: Sequence[str], soffice_binary: str = "soffice") -> list[ConversionStrategy]:
    factories = {
        "libreoffice": lambda: LibreOfficeStrategy(soffice_binary),
        "weasyprint": WeasyPrintStrategy,
        "fpdf2": Fpdf2Strategy,
    }
    strategies = []
    for method in methods:
        if method not in factories:
            raise ValueError(f"Unknown conversion method: {method}")
        strategies.append(factories[method]())
    return strategies


# ---------------------------------------------------------------------------
# Converter
# ---------------------------------------------------------------------------

def count_pages(pdf: bytes) -> int | None:
    try:
        return len(PdfReader(io.BytesIO(pdf)).pages)
    except (PdfReadError, ValueError, OSError):
        logger.debug("Could not read page count from rendering")
        return None


class FormatConverter:
    """Runs conversion strategies in order until one produces a PDF."""

    def __init__(self, strategies: Sequence[ConversionStrategy] | None = None):
        self.strategies = list(strategies) if strategies is not None else build_strategies(DEFAULT_METHODS)

    @classmethod
    def from_config(cls, config) -> FormatConverter:
        return cls(build_strategies(config.methods, config.soffice_binary))

    async def convert(self, buffer: bytes, options: ConversionOptions | None = None) -> ConversionResult:
        options = options or ConversionOptions()
        start = time.monotonic()
        deadline = start + options.timeout_ms / 1000
        attempts: list[str] = []
        reasons: list[str] = []

        def elapsed_ms() -> int:
            return int((time.monotonic() - start) * 1000)

        for strategy in self.strategies:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return ConversionFailure("timeout", elapsed_ms(), tuple(attempts))
            attempts.append(strategy.name)
            try:
                pdf = await asyncio.wait_for(strategy.convert(buffer, options), timeout=remaining)
            except asyncio.TimeoutError:
                logger.warning("Conversion timed out after %d ms using %s", elapsed_ms(), strategy.name)
                return ConversionFailure("timeout", elapsed_ms(), tuple(attempts))
            except StrategyUnavailable as exc:
                logger.debug("Skipping %s: %s", strategy.name, exc)
                attempts.pop()
                reasons.append(f"{strategy.name} unavailable")
                continue
            except Exception as exc:
                logger.warning("Conversion with %s failed: %s", strategy.name, exc)
                reasons.append(f"{strategy.name} failed: {exc}")
                continue

            if not pdf:
                reasons.append(f"{strategy.name} produced an empty rendering")
                continue

            result = ConversionSuccess(
                buffer=pdf,
                method=strategy.name,
                processing_time_ms=elapsed_ms(),
                page_count=count_pages(pdf),
            )
            logger.info(
                "Converted document with %s in %d ms (%s pages)",
                result.method, result.processing_time_ms, result.page_count,
            )
            return result

        reason = "; ".join(reasons) or "no conversion method configured"
        return ConversionFailure(reason, elapsed_ms(), tuple(attempts))
