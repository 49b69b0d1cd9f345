"""DOCX template merge: fills ``{{placeholder}}`` markers from a payload map.

Template syntax (inside any paragraph, table cell, header or footer):

  - ``{{ EXPR }}``                 inline value; newlines become line breaks
  - ``{{{ EXPR }}}``               raw block; each line becomes its own paragraph
  - ``{{#NAME}}`` … ``{{/NAME}}``  repeated section; the paragraphs between the
    two marker paragraphs are cloned once per item of the list ``NAME``

Expressions run in a jinja2 immutable sandbox that only sees the payload and
the helper functions below. Values produced by expressions are written
straight into runs and are never scanned for markers again.
"""

from __future__ import annotations

import logging
import re
import zipfile
from collections.abc import Mapping
from copy import deepcopy
from dataclasses import dataclass, field
from io import BytesIO
from typing import Any, Callable

from docx import Document
from docx.opc.exceptions import PackageNotFoundError
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.text.paragraph import Paragraph
from jinja2 import TemplateError, Undefined
from jinja2.exceptions import SecurityError
from jinja2.sandbox import ImmutableSandboxedEnvironment
from lxml import etree

from cv_docgen.errors import FillError, TemplateTooLargeError
from cv_docgen.formatting import LIST_SEPARATOR, format_date, format_list, truncate

logger = logging.getLogger(__name__)

DEFAULT_MAX_TEMPLATE_BYTES = 10 * 1024 * 1024

TAG_PATTERN = re.compile(r"\{\{\{(.+?)\}\}\}|\{\{(.+?)\}\}", re.DOTALL)
SECTION_OPEN = re.compile(r"^\s*\{\{#\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}\s*$")
SECTION_CLOSE = re.compile(r"^\s*\{\{/\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}\s*$")

# Characters lxml refuses to serialize
_XML_ILLEGAL = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")

# Filters that cannot reach outside the value they are applied to
_SAFE_FILTERS = (
    "capitalize", "default", "first", "join", "last", "length", "lower",
    "replace", "title", "trim", "truncate", "upper",
)

# pPr children that must come after w:bidi
_BIDI_SUCCESSORS = (
    "w:adjustRightInd", "w:snapToGrid", "w:spacing", "w:ind",
    "w:contextualSpacing", "w:mirrorIndents", "w:suppressOverlap", "w:jc",
    "w:textDirection", "w:textAlignment", "w:textboxTightWrap",
    "w:outlineLvl", "w:divId", "w:cnfStyle", "w:rPr", "w:sectPr", "w:pPrChange",
)

TEMPLATE_HELPERS: dict[str, Callable[..., str]] = {
    "formatDate": format_date,
    "formatList": format_list,
    "truncate": truncate,
}


class _TemplateSandbox(ImmutableSandboxedEnvironment):
    """Sandbox that fails loudly on unsafe attribute access."""

    def unsafe_undefined(self, obj: Any, attribute: str) -> Undefined:
        raise SecurityError(
            f"access to attribute {attribute!r} of {type(obj).__name__!r} object is unsafe"
        )


def create_sandbox() -> ImmutableSandboxedEnvironment:
    """Build the evaluation context for template expressions.

    No loader, no default globals, a short list of filters and the three
    formatting helpers. Nothing here can touch the filesystem, the network or
    the process environment.
    """
    env = _TemplateSandbox(autoescape=False)
    env.globals.clear()
    env.globals.update(TEMPLATE_HELPERS)
    env.filters = {name: env.filters[name] for name in _SAFE_FILTERS if name in env.filters}
    return env


@dataclass(frozen=True)
class FillOptions:
    required_placeholders: tuple[str, ...] = ()
    remove_empty_paragraphs: bool = False
    right_to_left: bool = False
    max_template_bytes: int = DEFAULT_MAX_TEMPLATE_BYTES


@dataclass
class _FillStats:
    paragraphs: int = 0
    sections: int = 0
    removed: int = 0
    missing: set[str] = field(default_factory=set)


class DocumentFiller:
    """Merges a payload into a binary DOCX template."""

    def __init__(self, env: ImmutableSandboxedEnvironment | None = None):
        self.env = env or create_sandbox()
        self._compiled: dict[str, Callable[..., Any]] = {}

    def fill(
        self,
        template_bytes: bytes,
        payload: Mapping[str, Any],
        options: FillOptions | None = None,
    ) -> bytes:
        """Return the filled document as bytes, or raise :class:`FillError`."""
        options = options or FillOptions()
        if len(template_bytes) > options.max_template_bytes:
            raise TemplateTooLargeError(
                f"File too large: template is {len(template_bytes)} bytes "
                f"(max: {options.max_template_bytes})"
            )

        missing = [
            name for name in options.required_placeholders if payload.get(name) is None
        ]
        if missing:
            raise FillError(f"Missing required placeholders: {', '.join(missing)}")

        doc = _load_document(template_bytes)
        stats = _FillStats()
        context = dict(payload)

        try:
            self._render_container(doc.element.body, context, options, stats)
            for section in doc.sections:
                for part in (section.header, section.footer):
                    if not part.is_linked_to_previous:
                        self._render_container(part._element, context, options, stats)
            if options.right_to_left:
                _apply_right_to_left(doc)
            buffer = BytesIO()
            doc.save(buffer)
        except FillError:
            raise
        except (TemplateError, TypeError, ValueError, KeyError, AttributeError) as exc:
            raise FillError(f"Failed to process template: {exc}", cause=exc) from exc

        if stats.missing:
            logger.debug("Placeholders with no value: %s", ", ".join(sorted(stats.missing)))
        logger.debug(
            "Filled %d paragraphs, %d section blocks, removed %d empty paragraphs",
            stats.paragraphs, stats.sections, stats.removed,
        )
        return buffer.getvalue()

    # -----------------------------------------------------------------------
    # Block structure
    # -----------------------------------------------------------------------

    def _render_container(self, container, context, options, stats) -> None:
        self._render_sequence(container, list(container), context, options, stats)

    def _render_sequence(self, container, elements, context, options, stats) -> None:
        """Render a run of sibling block elements (paragraphs and tables)."""
        i = 0
        while i < len(elements):
            el = elements[i]
            if el.tag == qn("w:tbl"):
                for row in el.findall(qn("w:tr")):
                    for cell in row.findall(qn("w:tc")):
                        self._render_container(cell, context, options, stats)
                i += 1
                continue
            if el.tag != qn("w:p"):
                i += 1
                continue

            text = _paragraph_text(el)
            opened = SECTION_OPEN.match(text)
            if opened:
                name = opened.group(1)
                close_idx = _find_section_close(elements, i, name)
                self._render_section(
                    container, name, elements[i], elements[i + 1:close_idx],
                    elements[close_idx], context, options, stats,
                )
                i = close_idx + 1
                continue

            closed = SECTION_CLOSE.match(text)
            if closed:
                raise FillError(f"Section close tag {{{{/{closed.group(1)}}}}} has no opening tag")

            if "{{" in text:
                self._render_paragraph(container, el, context, options, stats)
            i += 1

    def _render_section(
        self, container, name, open_el, body, close_el, context, options, stats,
    ) -> None:
        items = context.get(name)
        if items is None or isinstance(items, Undefined):
            items = []
        if isinstance(items, (str, bytes, Mapping)) or not hasattr(items, "__iter__"):
            raise FillError(f"Section {name!r} expects a list, got {type(items).__name__}")

        stats.sections += 1
        for item in items:
            if isinstance(item, Mapping):
                item_context = {**context, **item}
            else:
                item_context = {**context, "ITEM": item}
            clones = [deepcopy(el) for el in body]
            for clone in clones:
                close_el.addprevious(clone)
            self._render_sequence(container, clones, item_context, options, stats)

        for el in (open_el, *body, close_el):
            container.remove(el)

    # -----------------------------------------------------------------------
    # Paragraph text
    # -----------------------------------------------------------------------

    def _render_paragraph(self, container, p_el, context, options, stats) -> None:
        stats.paragraphs += 1
        para = Paragraph(p_el, None)
        runs = para.runs
        has_raw = "{{{" in _paragraph_text(p_el)

        # Fast path: every marker sits inside a single run, keep run formatting.
        if not has_raw and all(_balanced(run.text) for run in runs):
            rendered_any = False
            for run in runs:
                if "{{" in run.text:
                    lines = self._render_text(run.text, context, stats)
                    run.text = "\n".join(lines)
                    rendered_any = True
            if rendered_any:
                self._maybe_remove(container, p_el, options, stats)
                return

        lines = self._render_text(_paragraph_text(p_el), context, stats)
        _set_paragraph_text(para, lines[0])
        anchor = p_el
        for line in lines[1:]:
            extra = deepcopy(p_el)
            _set_paragraph_text(Paragraph(extra, None), line)
            anchor.addnext(extra)
            anchor = extra
        self._maybe_remove(container, p_el, options, stats, extra_lines=lines[1:])

    def _maybe_remove(self, container, p_el, options, stats, extra_lines=()) -> None:
        if not options.remove_empty_paragraphs or extra_lines:
            return
        if _paragraph_text(p_el).strip() or p_el.getparent() is not container:
            return
        # A table cell must keep at least one paragraph
        if len(container.findall(qn("w:p"))) > 1:
            container.remove(p_el)
            stats.removed += 1

    def _render_text(self, text: str, context: Mapping[str, Any], stats: _FillStats) -> list[str]:
        """Render markers in ``text``. Returns one string per output paragraph."""
        paragraphs = [""]
        pos = 0
        for m in TAG_PATTERN.finditer(text):
            paragraphs[-1] += text[pos:m.start()]
            raw_expr, inline_expr = m.group(1), m.group(2)
            if raw_expr is not None:
                lines = self._evaluate(raw_expr, context, stats).split("\n")
                paragraphs[-1] += lines[0]
                paragraphs.extend(lines[1:])
            else:
                paragraphs[-1] += self._evaluate(inline_expr, context, stats)
            pos = m.end()
        paragraphs[-1] += text[pos:]
        return paragraphs

    def _evaluate(self, source: str, context: Mapping[str, Any], stats: _FillStats) -> str:
        source = source.strip()
        if source.startswith(("#", "/")):
            raise FillError(f"Section tag {{{{{source}}}}} must be alone in its paragraph")
        try:
            expression = self._compiled.get(source)
            if expression is None:
                expression = self.env.compile_expression(source, undefined_to_none=False)
                self._compiled[source] = expression
            value = expression(**context)
        except Exception as exc:
            raise FillError(f"Failed to evaluate {{{{{source}}}}}: {exc}", cause=exc) from exc
        if isinstance(value, Undefined):
            stats.missing.add(source)
            return ""
        return _to_text(value)

    # -----------------------------------------------------------------------
    # Inspection
    # -----------------------------------------------------------------------

    def list_placeholders(self, template_bytes: bytes) -> list[str]:
        """Every marker expression or section name used by a template, sorted."""
        doc = _load_document(template_bytes)
        found: set[str] = set()
        roots = [doc.element.body]
        for section in doc.sections:
            for part in (section.header, section.footer):
                if not part.is_linked_to_previous:
                    roots.append(part._element)
        for root in roots:
            for p_el in root.iter(qn("w:p")):
                text = _paragraph_text(p_el)
                for m in TAG_PATTERN.finditer(text):
                    expr = (m.group(1) or m.group(2)).strip()
                    found.add(expr.lstrip("#/").strip())
        return sorted(found)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_document(template_bytes: bytes):
    try:
        return Document(BytesIO(template_bytes))
    except (PackageNotFoundError, zipfile.BadZipFile, KeyError, ValueError, etree.XMLSyntaxError) as exc:
        raise FillError(f"Template is not a readable DOCX file: {exc}", cause=exc) from exc


def _paragraph_text(p_el) -> str:
    return "".join(run.text for run in Paragraph(p_el, None).runs)


def _balanced(text: str) -> bool:
    return text.count("{{") == text.count("}}")


def _set_paragraph_text(para: Paragraph, text: str) -> None:
    """Put ``text`` in the first run and empty the others, keeping run formatting."""
    runs = para.runs
    if not runs:
        para.add_run(text)
        return
    runs[0].text = text
    for run in runs[1:]:
        run.text = ""


def _find_section_close(elements, open_idx: int, name: str) -> int:
    depth = 0
    for j in range(open_idx + 1, len(elements)):
        el = elements[j]
        if el.tag != qn("w:p"):
            continue
        text = _paragraph_text(el)
        opened = SECTION_OPEN.match(text)
        if opened and opened.group(1) == name:
            depth += 1
            continue
        closed = SECTION_CLOSE.match(text)
        if closed and closed.group(1) == name:
            if depth == 0:
                return j
            depth -= 1
    raise FillError(f"Section {{{{#{name}}}}} is never closed")


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        value = LIST_SEPARATOR.join(str(v) for v in value if v not in (None, ""))
    return _XML_ILLEGAL.sub("", str(value))


def _apply_right_to_left(doc) -> None:
    roots = [doc.element.body]
    for section in doc.sections:
        for part in (section.header, section.footer):
            if not part.is_linked_to_previous:
                roots.append(part._element)
    for root in roots:
        for p_el in root.iter(qn("w:p")):
            p_pr = p_el.get_or_add_pPr()
            if p_pr.find(qn("w:bidi")) is None:
                p_pr.insert_element_before(OxmlElement("w:bidi"), *_BIDI_SUCCESSORS)
