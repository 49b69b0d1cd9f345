from __future__ import annotations

import io
import logging
from pathlib import Path

from docx import Document
from docx.oxml.ns import qn
from docx.table import Table
from docx.text.paragraph import Paragraph
from jinja2 import Environment, FileSystemLoader
from markupsafe import Markup, escape

logger = logging.getLogger(__name__)

BASE_TEMPLATE_DIR = Path(__file__).parent

# Paragraph style name prefix -> HTML tag
_STYLE_TAGS = (
    ("Title", "h1"),
    ("Heading 1", "h1"),
    ("Heading 2", "h2"),
    ("Heading 3", "h3"),
    ("List", "li"),
)

_env = Environment(loader=FileSystemLoader(str(BASE_TEMPLATE_DIR)), autoescape=True)


def docx_to_html(
    buffer: bytes,
    *,
    page_size: str = "A4",
    text_direction: str = "ltr",
    title: str = "Document",
) -> str:
    """Render the body of a ``.docx`` buffer as a standalone HTML page."""
    document = Document(io.BytesIO(buffer))
    body = Markup("\n").join(_render_block(el, document) for el in document.element.body.iterchildren())
    template = _env.get_template("base.html")
    return template.render(
        title=title,
        body=body,
        direction=text_direction,
        page_size=page_size,
    )


def html_to_pdf(html: str) -> bytes:
    """Render HTML with WeasyPrint. Raises ImportError/OSError when unavailable."""
    from weasyprint import HTML

    return HTML(string=html).write_pdf()


def _render_block(element, document) -> Markup:
    if element.tag == qn("w:p"):
        return _render_paragraph(Paragraph(element, document))
    if element.tag == qn("w:tbl"):
        return _render_table(Table(element, document))
    return Markup("")


def _paragraph_tag(paragraph: Paragraph) -> str:
    style = paragraph.style.name if paragraph.style is not None else ""
    for prefix, tag in _STYLE_TAGS:
        if style.startswith(prefix):
            return tag
    return "p"


def _render_runs(paragraph: Paragraph) -> Markup:
    parts = []
    for run in paragraph.runs:
        text = escape(run.text).replace("\n", Markup("<br>"))
        if not text:
            continue
        if run.bold:
            text = Markup("<strong>{}</strong>").format(text)
        if run.italic:
            text = Markup("<em>{}</em>").format(text)
        parts.append(text)
    return Markup("").join(parts)


def _render_paragraph(paragraph: Paragraph) -> Markup:
    content = _render_runs(paragraph)
    if not content:
        return Markup("")
    tag = _paragraph_tag(paragraph)
    if tag == "li":
        return Markup("<ul><li>{}</li></ul>").format(content)
    return Markup("<{tag}>{content}</{tag}>").format(tag=Markup(tag), content=content)


def _render_table(table: Table) -> Markup:
    rows = []
    for row in table.rows:
        cells = []
        for cell in row.cells:
            inner = Markup("").join(_render_paragraph(p) for p in cell.paragraphs)
            inner += Markup("").join(_render_table(t) for t in cell.tables)
            cells.append(Markup("<td>{}</td>").format(inner))
        rows.append(Markup("<tr>{}</tr>").format(Markup("").join(cells)))
    return Markup("<table>{}</table>").format(Markup("").join(rows))
