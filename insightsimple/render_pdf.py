#!/usr/bin/env python3
"""Serialize laid-out pages to PDF bytes with a reportlab canvas."""

import io, re
from typing import Sequence
from reportlab.lib import colors
from reportlab.pdfgen import canvas

from insightsimple.layout_pages import FilledRect, Page, TextRun

CONTENT_TYPE = 'application/pdf'
DEFAULT_FILENAME = 'InsightSimple-Dashboard.pdf'

def suggested_filename(title: str) -> str:
    """Derive a download name from the report title."""
    stem = re.sub(r"[^A-Za-z0-9]+", "-", title or '').strip('-')
    return f"{stem}.pdf" if stem else DEFAULT_FILENAME

def _draw(c, item):
    if isinstance(item, FilledRect):
        c.setFillColor(colors.HexColor(item.fill))
        if item.stroke:
            c.setStrokeColor(colors.HexColor(item.stroke))
        c.rect(item.x, item.y, item.width, item.height, fill=1, stroke=1 if item.stroke else 0)
    elif isinstance(item, TextRun):
        c.setFillColor(colors.HexColor(item.color))
        c.setFont(item.font, item.size)
        c.drawString(item.x, item.y, item.text)

def render_pdf(pages: Sequence[Page], title: str = '') -> bytes:
    buf = io.BytesIO()
    c = canvas.Canvas(buf)
    if title:
        c.setTitle(title)
    for page in pages:
        c.setPageSize((page.width, page.height))
        for item in page.items:
            _draw(c, item)
        c.showPage()
    c.save()
    return buf.getvalue()
