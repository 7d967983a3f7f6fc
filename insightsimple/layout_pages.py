#!/usr/bin/env python3
"""Lay a ReportRecord out onto three fixed-size pages.

Pages are plain data (text runs and filled rectangles in PDF points, origin
bottom-left) so the layout can be checked without rendering anything. Content
flows down from the top margin; whatever does not fit above the bottom margin
is dropped, never moved to another page.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union
from reportlab.lib.pagesizes import LETTER
from reportlab.pdfbase.pdfmetrics import stringWidth

from insightsimple.parse_report import Metric, ReportRecord

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = LETTER
PAGE_COUNT = 3
MARGIN_X = 54
BAND_HEIGHT = 36
TOP_MARGIN = PAGE_HEIGHT - BAND_HEIGHT - 18
BOTTOM_MARGIN = 64
FOOTER_Y = 30
CONTENT_WIDTH = PAGE_WIDTH - 2 * MARGIN_X

FONT = 'Helvetica'
BOLD_FONT = 'Helvetica-Bold'
BODY_SIZE = 10
LINE_HEIGHT = 14
TITLE_COLUMNS = 40
BODY_COLUMNS = 92
BULLET_COLUMNS = 86
BULLET = '•'
BULLET_INDENT = 14

COVER_METRICS = 4
GRID_GAP = 16
BOX_WIDTH = (CONTENT_WIDTH - GRID_GAP) / 2
BOX_HEIGHT = 64
BOX_PADDING = 12

BRAND_COLOR = '#1F3A5F'
TEXT_COLOR = '#1F2933'
MUTED_COLOR = '#6B7280'
WHITE = '#FFFFFF'
BOX_FILL = '#F3F6FA'
BOX_BORDER = '#C5D0DE'


@dataclass(frozen=True)
class TextRun:
    x: float
    y: float
    text: str
    size: float = BODY_SIZE
    bold: bool = False
    color: str = TEXT_COLOR

    @property
    def font(self) -> str:
        return BOLD_FONT if self.bold else FONT

    @property
    def width(self) -> float:
        return stringWidth(self.text, self.font, self.size)


@dataclass(frozen=True)
class FilledRect:
    x: float
    y: float
    width: float
    height: float
    fill: str
    stroke: Optional[str] = None


Primitive = Union[TextRun, FilledRect]


@dataclass(frozen=True)
class Page:
    number: int
    width: float
    height: float
    items: Tuple[Primitive, ...]

    def texts(self) -> List[str]:
        return [item.text for item in self.items if isinstance(item, TextRun)]


@dataclass(frozen=True)
class LayoutState:
    page_index: int
    cursor_y: float


@dataclass(frozen=True)
class TextLine:
    """One line of text; bullet lines draw the marker and hang the text after it."""
    text: str
    size: float = BODY_SIZE
    bold: bool = False
    color: str = TEXT_COLOR
    leading: float = LINE_HEIGHT
    spacing: float = 0
    bullet: bool = False
    hanging: bool = False

    @property
    def advance(self) -> float:
        return self.leading + self.spacing

    def draw(self, top: float) -> Tuple[Primitive, ...]:
        baseline = top - self.size
        text_x = MARGIN_X + (BULLET_INDENT if self.bullet or self.hanging else 0)
        run = TextRun(text_x, baseline, self.text, self.size, self.bold, self.color)
        available = PAGE_WIDTH - MARGIN_X - text_x
        if run.width > available:
            # words are never split; an over-wide single word is drawn smaller
            run = TextRun(text_x, baseline, self.text, self.size * available / run.width, self.bold, self.color)
        if self.bullet:
            return (TextRun(MARGIN_X, baseline, BULLET, self.size, True, BRAND_COLOR), run)
        return (run,)


@dataclass(frozen=True)
class MetricRow:
    metrics: Tuple[Metric, ...]
    spacing: float = GRID_GAP

    @property
    def advance(self) -> float:
        return BOX_HEIGHT + self.spacing

    def draw(self, top: float) -> Tuple[Primitive, ...]:
        items: List[Primitive] = []
        for col, metric in enumerate(self.metrics[:2]):
            x = MARGIN_X + col * (BOX_WIDTH + GRID_GAP)
            items.append(FilledRect(x, top - BOX_HEIGHT, BOX_WIDTH, BOX_HEIGHT, BOX_FILL, BOX_BORDER))
            items.append(TextRun(x + BOX_PADDING, top - 20, clip_text(metric.label, BOX_WIDTH - 2 * BOX_PADDING, 9), 9, False, MUTED_COLOR))
            items.append(TextRun(x + BOX_PADDING, top - 48, clip_text(metric.value, BOX_WIDTH - 2 * BOX_PADDING, 20, True), 20, True, BRAND_COLOR))
        return tuple(items)


Element = Union[TextLine, MetricRow]


def wrap_text(text: str, columns: int) -> List[str]:
    """Greedy word wrap. Words longer than the budget get a line of their own."""
    if columns <= 0:
        raise ValueError(f"columns must be positive, got {columns}")
    lines = []
    current = ''
    for word in text.split():
        if not current:
            current = word
        elif len(current) + 1 + len(word) <= columns:
            current = f"{current} {word}"
        else:
            lines.append(current)
            current = word
    if current:
        lines.append(current)
    return lines

def text_width(text: str, size: float, bold: bool = False) -> float:
    return stringWidth(text, BOLD_FONT if bold else FONT, size)

def fit_lines(text: str, columns: int, size: float, bold: bool = False,
              width: float = CONTENT_WIDTH) -> List[str]:
    """wrap_text, narrowing the column budget until every multi-word line fits the width."""
    lines = wrap_text(text, columns)
    while columns > 1 and any(' ' in line and text_width(line, size, bold) > width for line in lines):
        columns -= 1
        lines = wrap_text(text, columns)
    return lines

def clip_text(text: str, width: float, size: float, bold: bool = False) -> str:
    text = ' '.join(text.split())
    if text_width(text, size, bold) <= width:
        return text
    while text and text_width(text + '...', size, bold) > width:
        text = text[:-1]
    return text.rstrip() + '...'

def place(state: LayoutState, element: Element) -> Tuple[LayoutState, Tuple[Primitive, ...]]:
    """Place one element at the cursor, or drop it and pin the cursor to the bottom margin."""
    next_y = state.cursor_y - element.advance
    if next_y < BOTTOM_MARGIN:
        return LayoutState(state.page_index, BOTTOM_MARGIN), ()
    return LayoutState(state.page_index, next_y), element.draw(state.cursor_y)


def _heading(text: str) -> TextLine:
    return TextLine(text, size=15, bold=True, color=BRAND_COLOR, leading=22, spacing=4)

def _placeholder(text: str) -> List[Element]:
    return [TextLine(text, color=MUTED_COLOR, spacing=10)]

def _paragraph(text: str, placeholder: str) -> List[Element]:
    lines = fit_lines(text, BODY_COLUMNS, BODY_SIZE)
    if not lines:
        return _placeholder(placeholder)
    elements: List[Element] = [TextLine(line) for line in lines]
    elements[-1] = TextLine(lines[-1], spacing=10)
    return elements

def _bullets(entries: Sequence[str], placeholder: str) -> List[Element]:
    elements: List[Element] = []
    for entry in entries:
        lines = fit_lines(entry, BULLET_COLUMNS, BODY_SIZE, width=CONTENT_WIDTH - BULLET_INDENT)
        for i, line in enumerate(lines):
            last = i == len(lines) - 1
            elements.append(TextLine(line, bullet=i == 0, hanging=i > 0, spacing=4 if last else 0))
    return elements or _placeholder(placeholder)

def _metric_grid(metrics: Sequence[Metric]) -> List[Element]:
    shown = list(metrics[:COVER_METRICS])
    if not shown:
        return _placeholder("No metrics available.")
    return [MetricRow(tuple(shown[i:i + 2])) for i in range(0, len(shown), 2)]

def cover_elements(record: ReportRecord) -> List[Element]:
    elements: List[Element] = [
        TextLine(line, size=24, bold=True, color=BRAND_COLOR, leading=30)
        for line in fit_lines(record.title, TITLE_COLUMNS, 24, bold=True)
    ]
    meta = (f"{len(record.metrics)} metrics · {len(record.insights)} insights · "
            f"{len(record.recommendations)} recommendations")
    elements.append(TextLine(meta, color=MUTED_COLOR, spacing=18))
    elements.append(_heading("Key metrics"))
    elements.extend(_metric_grid(record.metrics))
    return elements

def summary_elements(record: ReportRecord) -> List[Element]:
    elements: List[Element] = [_heading("Executive summary")]
    elements.extend(_paragraph(record.summary, "No summary available."))
    elements.append(_heading("Key insights"))
    elements.extend(_bullets(record.insights, "No insights available."))
    return elements

def recommendation_elements(record: ReportRecord) -> List[Element]:
    elements: List[Element] = [_heading("Recommendations")]
    elements.extend(_bullets(record.recommendations, "No recommendations available."))
    return elements


def build_page(number: int, band_label: str, elements: Sequence[Element]) -> Page:
    items: List[Primitive] = [
        FilledRect(0, PAGE_HEIGHT - BAND_HEIGHT, PAGE_WIDTH, BAND_HEIGHT, BRAND_COLOR),
        TextRun(MARGIN_X, PAGE_HEIGHT - 23, band_label, 11, True, WHITE),
    ]
    state = LayoutState(number - 1, TOP_MARGIN)
    dropped = 0
    for element in elements:
        state, drawn = place(state, element)
        if drawn:
            items.extend(drawn)
        else:
            dropped += 1
    if dropped:
        logger.debug("Page %d: %d elements did not fit and were dropped", state.page_index + 1, dropped)
    items.append(TextRun(MARGIN_X, FOOTER_Y, f"InsightSimple · Page {number} of {PAGE_COUNT}", 8, False, MUTED_COLOR))
    return Page(number, PAGE_WIDTH, PAGE_HEIGHT, tuple(items))

def layout_report(record: ReportRecord) -> List[Page]:
    """Always three pages: cover with metrics, summary with insights, recommendations."""
    return [
        build_page(1, "Dashboard", cover_elements(record)),
        build_page(2, "Summary & insights", summary_elements(record)),
        build_page(3, "Recommendations", recommendation_elements(record)),
    ]
