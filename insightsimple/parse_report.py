#!/usr/bin/env python3
"""Recover a dashboard report record from free-form model output.

The model is asked for a single JSON object, but what comes back is often
wrapped in Markdown fences, preceded by prose, sprinkled with smart quotes or
slightly off-grammar (trailing commas, bare keys). Each pass below is a plain
text -> text function that leaves well-formed input alone; whatever cannot be
recovered ends in a fixed fallback record instead of an exception.
"""

import argparse, json, logging, pathlib, re
from typing import Any, Callable, List, Optional, Tuple
from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

MAX_METRICS = 6
MAX_INSIGHTS = 8
MAX_RECOMMENDATIONS = 8

DEFAULT_TITLE = "InsightSimple Dashboard"
RETRY_SUMMARY = ("The model response could not be read as a report. "
                 "Please retry the generation.")

class Metric(BaseModel):
    label: str
    value: str

class ReportRecord(BaseModel):
    title: str = Field(min_length=1)
    summary: str = ''
    metrics: List[Metric] = Field(default_factory=list, max_length=MAX_METRICS)
    insights: List[str] = Field(default_factory=list, max_length=MAX_INSIGHTS)
    recommendations: List[str] = Field(default_factory=list, max_length=MAX_RECOMMENDATIONS)


_FENCE_RE = re.compile(r"```(?:[ \t]*[A-Za-z][\w+.-]*(?=\s))?")
_SMART_QUOTES = str.maketrans({
    '“': '"', '”': '"', '„': '"', '‟': '"', '″': '"',
    '‘': "'", '’': "'", '‚': "'", '‛': "'", '′': "'",
})
_SPACE_RUN_RE = re.compile(r"[\s\u00a0\u2007\u202f]+")
_TRAILING_COMMA_RE = re.compile(r",(\s*[}\]])")
_BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_$][\w$-]*)(\s*:)")


def strip_fences(text: str) -> str:
    """Drop ``` fence markers (and their language tag) wherever they sit."""
    return _FENCE_RE.sub("", text)

def collapse_whitespace(text: str) -> str:
    text = text.replace('\r\n', '\n').replace('\r', '\n')
    return _SPACE_RUN_RE.sub(' ', text).strip()

def normalize_text(text: str) -> str:
    return collapse_whitespace(text.translate(_SMART_QUOTES))

def find_balanced_block(text: str) -> Optional[str]:
    """Return the first top-level {...} span, ignoring braces inside strings."""
    start = None
    depth = 0
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if start is None:
            if ch == '{':
                start, depth = i, 1
            continue
        if in_string:
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth == 0:
                return text[start:i + 1]
    return None

def _split_literals(text: str) -> List[Tuple[bool, str]]:
    """Split text into (is_string_literal, chunk) pieces."""
    pieces = []
    buf = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            buf.append(ch)
            if escaped:
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == '"':
                pieces.append((True, ''.join(buf)))
                buf, in_string = [], False
        elif ch == '"':
            if buf:
                pieces.append((False, ''.join(buf)))
            buf, in_string = [ch], True
        else:
            buf.append(ch)
    if buf:
        pieces.append((in_string, ''.join(buf)))
    return pieces

def _outside_literals(text: str, fix: Callable[[str], str]) -> str:
    return ''.join(chunk if is_literal else fix(chunk)
                   for is_literal, chunk in _split_literals(text))

def remove_trailing_commas(text: str) -> str:
    return _outside_literals(text, lambda chunk: _TRAILING_COMMA_RE.sub(r"\1", chunk))

def quote_bare_keys(text: str) -> str:
    return _outside_literals(text, lambda chunk: _BARE_KEY_RE.sub(r'\1"\2"\3', chunk))

# Applied cumulatively, least invasive first; parsing is retried after each.
REPAIRS: Tuple[Callable[[str], str], ...] = (
    lambda text: text,
    remove_trailing_commas,
    quote_bare_keys,
)

def _try_load(text: str) -> Optional[dict]:
    try:
        data = json.loads(text)
    except (ValueError, RecursionError):
        return None
    return data if isinstance(data, dict) else None

def load_with_repairs(block: str) -> Optional[dict]:
    text = block
    for repair in REPAIRS:
        text = repair(text)
        data = _try_load(text)
        if data is not None:
            if repair is not REPAIRS[0]:
                logger.debug("Recovered JSON block after %s", getattr(repair, '__name__', 'repair'))
            return data
    return None


def _clean(value: str) -> str:
    """Replace lone surrogates (half an emoji escape) and trim."""
    return value.encode('utf-8', 'replace').decode('utf-8').strip()

def _first_present(data: dict, *keys: str) -> Tuple[Optional[str], Any]:
    for key in keys:
        if data.get(key) is not None:
            return key, data[key]
    return None, None

def _coerce_string(data: dict, *keys: str) -> str:
    key, value = _first_present(data, *keys)
    if key is None:
        return ''
    if not isinstance(value, str):
        logger.warning("Field %r is %s, expected a string; ignoring it", key, type(value).__name__)
        return ''
    return _clean(value)

def _coerce_strings(data: dict, key: str, cap: int) -> List[str]:
    value = data.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        logger.warning("Field %r is %s, expected a list; ignoring it", key, type(value).__name__)
        return []
    items = []
    for item in value:
        if not isinstance(item, str):
            logger.warning("Skipping non-string entry in %r: %r", key, item)
            continue
        item = _clean(item)
        if item:
            items.append(item)
    return items[:cap]

def _coerce_metrics(data: dict) -> List[Metric]:
    key, value = _first_present(data, 'kpis', 'metrics')
    if key is None:
        return []
    if not isinstance(value, list):
        logger.warning("Field %r is %s, expected a list; ignoring it", key, type(value).__name__)
        return []
    metrics = []
    for item in value:
        label = item.get('label') if isinstance(item, dict) else None
        raw_value = item.get('value') if isinstance(item, dict) else None
        if (not isinstance(label, str) or not label.strip()
                or isinstance(raw_value, bool)
                or not isinstance(raw_value, (str, int, float))):
            logger.warning("Skipping malformed entry in %r: %r", key, item)
            continue
        metrics.append(Metric(label=_clean(label), value=_clean(str(raw_value))))
    return metrics[:MAX_METRICS]

def coerce_record(data: dict) -> ReportRecord:
    """Map a parsed JSON object onto a ReportRecord; wrong shapes count as absent."""
    return ReportRecord(
        title=_coerce_string(data, 'title') or DEFAULT_TITLE,
        summary=_coerce_string(data, 'executive_summary', 'summary'),
        metrics=_coerce_metrics(data),
        insights=_coerce_strings(data, 'insights', MAX_INSIGHTS),
        recommendations=_coerce_strings(data, 'recommendations', MAX_RECOMMENDATIONS),
    )

def fallback_record() -> ReportRecord:
    return ReportRecord(title=DEFAULT_TITLE, summary=RETRY_SUMMARY)

def parse_report(text: Any) -> ReportRecord:
    """Turn raw model output into a ReportRecord. Never raises for bad input."""
    if text is None:
        text = ''
    elif not isinstance(text, str):
        text = str(text)

    # Smart quotes inside otherwise valid string values must survive, so the
    # block with quotes left untouched is tried before the fully normalized one.
    stripped = strip_fences(text)
    blocks = []
    for candidate in (collapse_whitespace(stripped), normalize_text(stripped)):
        block = find_balanced_block(candidate)
        if block is not None and block not in blocks:
            blocks.append(block)
    if not blocks:
        logger.warning("No JSON object found in model output (%d chars); using fallback record", len(text))
        return fallback_record()

    for block in blocks:
        data = load_with_repairs(block)
        if data is None:
            continue
        try:
            return coerce_record(data)
        except ValidationError as e:
            logger.warning("Parsed JSON does not fit a report (%s); using fallback record", e)
            return fallback_record()
    logger.warning("JSON block could not be repaired; using fallback record")
    return fallback_record()


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument('-i', '--input', required=True, help='Raw model output text file')
    args = ap.parse_args()

    path = pathlib.Path(args.input)
    if not path.exists():
        raise SystemExit(f"Error: {path} not found")

    record = parse_report(path.read_text(encoding='utf-8'))
    print(json.dumps(record.model_dump(), indent=2, ensure_ascii=False))

if __name__ == '__main__':
    main()
