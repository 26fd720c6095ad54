"""Render lesson markdown to a printable A4 PDF."""

import io
import logging
import re
from datetime import date
from typing import Optional
from xml.sax.saxutils import escape
from bs4 import BeautifulSoup
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

logger = logging.getLogger(__name__)

MARGIN = 20 * mm
HEADING_COLOR = colors.HexColor("#4377BB")
TEXT_COLOR = colors.HexColor("#374151")

TECH_SUMMARY_PATTERN = re.compile(r'<div class="tech-summary">[\s\S]*?</div>', re.IGNORECASE)
BOLD_PATTERN = re.compile(r"\*\*(.*?)\*\*")
NUMBERED_PATTERN = re.compile(r"^\d+\.\s")

# (prefix, block kind, space before, space after) in millimetres
HEADINGS = [
    ("#### ", "h4", 3, 2),
    ("### ", "h3", 4, 3),
    ("## ", "h2", 6, 4),
    ("# ", "h1", 4, 6),
]


def html_text(html: str) -> str:
    return BeautifulSoup(html, "html.parser").get_text()


def overview_items(html: str) -> list[str]:
    soup = BeautifulSoup(html, "html.parser")
    return [span.get_text() for span in soup.find_all("span") if span.get_text()]


def markdown_to_blocks(markdown: str) -> list[tuple[str, object]]:
    """
    Reduce lesson markdown to simple layout blocks.

    The technical summary is dropped, the overview grid becomes one line
    joined with bullets, other HTML is reduced to its text and bold markers
    are removed.

    Returns:
        List of (kind, value) where kind is "space" (value in mm), a heading
        level "h1".."h4", "text" or "bold"
    """
    content = TECH_SUMMARY_PATTERN.sub("", markdown).strip()
    lines = content.split("\n")
    blocks: list[tuple[str, object]] = []

    i = 0
    while i < len(lines):
        trimmed = lines[i].strip()

        if not trimmed:
            blocks.append(("space", 3))
            i += 1
            continue

        if "overview-grid" in trimmed:
            html_block = trimmed
            while i < len(lines) - 1 and "</div>" not in html_block:
                i += 1
                html_block += " " + lines[i].strip()

            items = overview_items(html_block)
            if items:
                blocks.append(("text", "  •  ".join(items)))
                blocks.append(("space", 4))
            i += 1
            continue

        if trimmed.startswith("<") and ">" in trimmed:
            text = html_text(trimmed).strip()
            if len(text) > 2:
                blocks.append(("text", text))
                blocks.append(("space", 2))
            i += 1
            continue

        heading = next((h for h in HEADINGS if trimmed.startswith(h[0])), None)
        if heading:
            prefix, kind, before, after = heading
            blocks.append(("space", before))
            blocks.append((kind, trimmed[len(prefix):]))
            blocks.append(("space", after))
        elif trimmed.startswith("- ") or trimmed.startswith("* "):
            blocks.append(("text", "• " + BOLD_PATTERN.sub(r"\1", trimmed[2:])))
            blocks.append(("space", 2))
        elif NUMBERED_PATTERN.match(trimmed):
            blocks.append(("text", trimmed))
            blocks.append(("space", 2))
        elif trimmed.startswith("**") and trimmed.endswith("**") and len(trimmed) > 4:
            blocks.append(("bold", trimmed[2:-2]))
            blocks.append(("space", 2))
        else:
            blocks.append(("text", BOLD_PATTERN.sub(r"\1", trimmed)))
            blocks.append(("space", 2))

        i += 1

    return blocks


def _styles() -> dict[str, ParagraphStyle]:
    base = getSampleStyleSheet()["Normal"]
    body = ParagraphStyle("LessonBody", parent=base, fontName="Helvetica", fontSize=10, leading=13, textColor=TEXT_COLOR)
    styles = {
        "text": body,
        "bold": ParagraphStyle("LessonBold", parent=body, fontName="Helvetica-Bold"),
    }
    for kind, size in (("h1", 18), ("h2", 14), ("h3", 12), ("h4", 11)):
        styles[kind] = ParagraphStyle(
            f"Lesson{kind.upper()}",
            parent=base,
            fontName="Helvetica-Bold",
            fontSize=size,
            leading=size * 1.25,
            textColor=HEADING_COLOR,
        )
    return styles


def render_lesson_pdf(markdown: str) -> bytes:
    """
    Build the PDF for a lesson.

    Args:
        markdown: Lesson markdown as produced by the generator

    Returns:
        PDF file content
    """
    styles = _styles()
    elements = []
    for kind, value in markdown_to_blocks(markdown):
        if kind == "space":
            elements.append(Spacer(1, value * mm))
        else:
            elements.append(Paragraph(escape(str(value)), styles[kind]))

    pdf_buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        pdf_buffer,
        pagesize=A4,
        leftMargin=MARGIN,
        rightMargin=MARGIN,
        topMargin=MARGIN,
        bottomMargin=MARGIN,
        title="Lektionsplan",
    )
    doc.build(elements)

    logger.info(f"Rendered lesson PDF ({len(elements)} flowables)")
    return pdf_buffer.getvalue()


def export_filename(extension: str, today: Optional[date] = None) -> str:
    today = today or date.today()
    return f"lektionsplan-{today.isoformat()}.{extension}"
