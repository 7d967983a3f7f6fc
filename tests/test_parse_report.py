import json
import logging

import pytest
from pydantic import ValidationError

from insightsimple.parse_report import (
    DEFAULT_TITLE,
    MAX_INSIGHTS,
    MAX_METRICS,
    MAX_RECOMMENDATIONS,
    REPAIRS,
    RETRY_SUMMARY,
    ReportRecord,
    coerce_record,
    fallback_record,
    find_balanced_block,
    load_with_repairs,
    normalize_text,
    parse_report,
    quote_bare_keys,
    remove_trailing_commas,
    strip_fences,
)


def _assert_fallback(record: ReportRecord) -> None:
    assert record.title == DEFAULT_TITLE
    assert record.summary == RETRY_SUMMARY
    assert record.metrics == []
    assert record.insights == []
    assert record.recommendations == []


def test_round_trip_on_well_formed_json() -> None:
    text = ('{"title":"T","executive_summary":"S","kpis":[{"label":"A","value":"1"}],'
            '"insights":["i1"],"recommendations":["r1"]}')
    record = parse_report(text)
    assert record.title == "T"
    assert record.summary == "S"
    assert [(m.label, m.value) for m in record.metrics] == [("A", "1")]
    assert record.insights == ["i1"]
    assert record.recommendations == ["r1"]


def test_trailing_comma_is_repaired() -> None:
    text = '{"title":"T","executive_summary":"S","kpis":[],"insights":[],"recommendations":[],}'
    record = parse_report(text)
    assert record.title == "T"
    assert record.summary == "S"


def test_fenced_block_with_prose_and_second_object() -> None:
    text = (
        "Sure! Here is the dashboard you asked for:\n"
        "```json\n"
        '{"title": "Q3 Sales", "executive_summary": "Revenue up {10%}", "kpis": [],\n'
        ' "insights": ["North grew fastest"], "recommendations": []}\n'
        "```\n"
        'Alternative version: {"title": "Other"}'
    )
    record = parse_report(text)
    assert record.title == "Q3 Sales"
    assert record.summary == "Revenue up {10%}"
    assert record.insights == ["North grew fastest"]


def test_prose_without_delimiters_falls_back() -> None:
    _assert_fallback(parse_report("I'm sorry, I could not read the attached spreadsheet."))


def test_unrepairable_block_falls_back() -> None:
    _assert_fallback(parse_report('{"title": "T" "summary": }'))


def test_smart_quotes_and_raw_newlines_are_normalized() -> None:
    text = "{\u201ctitle\u201d: \u201cWeekly\nreport\u201d,\r\n \u201cinsights\u201d: [\u201cone\u00a0\u00a0two\u201d]}"
    record = parse_report(text)
    assert record.title == "Weekly report"
    assert record.insights == ["one two"]


def test_bare_keys_and_trailing_commas_together() -> None:
    record = parse_report('{title: "T", insights: ["x", "a, b: c",], recommendations: [],}')
    assert record.title == "T"
    assert record.insights == ["x", "a, b: c"]


@pytest.mark.parametrize(
    "text",
    [
        "",
        "   ",
        "{",
        "}",
        "{{{{",
        '{"a":',
        "[1, 2, 3]",
        "\x00\xff\ufffd random bytes \x1b[0m",
        "```json\n```",
        '{"title": "\\ud83d", "insights": ["\\ude00"]}',
        '{"a": ' + "[" * 100000 + "]" * 100000 + "}",
        None,
        12345,
    ],
)
def test_parser_never_raises(text) -> None:
    record = parse_report(text)
    assert isinstance(record, ReportRecord)
    assert record.title


def test_non_object_json_falls_back() -> None:
    _assert_fallback(parse_report('"just a string"'))


def test_wrong_field_shapes_are_treated_as_absent(caplog) -> None:
    caplog.set_level(logging.WARNING, logger="insightsimple.parse_report")
    record = parse_report(json.dumps({
        "title": 5,
        "executive_summary": ["not", "a", "string"],
        "kpis": {"label": "A", "value": "1"},
        "insights": "not a list",
        "recommendations": ["keep", 3, None, "  ", "also keep"],
    }))
    assert record.title == DEFAULT_TITLE
    assert record.summary == ""
    assert record.metrics == []
    assert record.insights == []
    assert record.recommendations == ["keep", "also keep"]
    assert "'insights'" in caplog.text
    assert "'kpis'" in caplog.text


def test_metric_entries_are_coerced_individually() -> None:
    record = coerce_record({"kpis": [
        {"label": "Revenue", "value": 1200},
        {"label": "Flag", "value": True},
        "junk",
        {"value": "no label"},
        {"label": " Margin ", "value": "12% "},
    ]})
    assert [(m.label, m.value) for m in record.metrics] == [("Revenue", "1200"), ("Margin", "12%")]


def test_summary_and_metrics_accept_alternate_keys() -> None:
    record = coerce_record({"summary": "S", "metrics": [{"label": "A", "value": "1"}]})
    assert record.summary == "S"
    assert record.metrics[0].label == "A"


def test_collections_are_capped_in_order() -> None:
    text = json.dumps({
        "title": "Caps",
        "kpis": [{"label": f"k{i}", "value": str(i)} for i in range(10)],
        "insights": [f"i{i}" for i in range(12)],
        "recommendations": [f"r{i}" for i in range(12)],
    })
    record = parse_report(text)
    assert [m.label for m in record.metrics] == [f"k{i}" for i in range(MAX_METRICS)]
    assert record.insights == [f"i{i}" for i in range(MAX_INSIGHTS)]
    assert record.recommendations == [f"r{i}" for i in range(MAX_RECOMMENDATIONS)]


def test_normalization_is_idempotent() -> None:
    samples = [
        "{\u201ca\u201d:\r\n\u2018b\u2019}",
        "  lots \t of\n\n space\u00a0here  ",
        '{"already": "normal"}',
    ]
    for sample in samples:
        once = normalize_text(sample)
        assert normalize_text(once) == once


def test_strip_fences_removes_markers_and_language_tag() -> None:
    assert strip_fences('```json\n{"a": 1}\n```').strip() == '{"a": 1}'
    assert strip_fences('```\n{"a": 1}```') == '\n{"a": 1}'
    assert strip_fences('{"a": 1}') == '{"a": 1}'


def test_balanced_block_ignores_braces_in_strings() -> None:
    assert find_balanced_block('noise {"a": "}"} {"b": 1}') == '{"a": "}"}'
    assert find_balanced_block('{"a": "say \\"}\\" ok"} tail') == '{"a": "say \\"}\\" ok"}'
    assert find_balanced_block('{"a": {"b": 1}}') == '{"a": {"b": 1}}'
    assert find_balanced_block('{"a": 1') is None
    assert find_balanced_block("no braces") is None


def test_repairs_only_touch_text_outside_strings() -> None:
    assert remove_trailing_commas('{"a": ",]", "b": [1,],}') == '{"a": ",]", "b": [1]}'
    assert quote_bare_keys('{title: "x, y: z", count_2: 3}') == '{"title": "x, y: z", "count_2": 3}'


def test_repairs_are_noops_on_valid_json() -> None:
    text = '{"title": "T", "insights": ["a", "b"]}'
    for repair in REPAIRS:
        assert repair(text) == text


def test_load_with_repairs_stops_at_first_success() -> None:
    assert load_with_repairs('{"a": 1,}') == {"a": 1}
    assert load_with_repairs("{a: [1,],}") == {"a": [1]}
    assert load_with_repairs("{nope") is None


def test_record_construction_fails_fast_on_impossible_shapes() -> None:
    with pytest.raises(ValidationError):
        ReportRecord(title="")
    with pytest.raises(ValidationError):
        ReportRecord(title="T", insights=["x"] * (MAX_INSIGHTS + 1))


def test_fallback_record_is_fully_populated() -> None:
    _assert_fallback(fallback_record())


def test_lone_surrogate_escapes_are_replaced() -> None:
    text = ('{"title": "T \\ud83d", "insights": ["x \\ude00"], '
            '"kpis": [{"label": "Growth \\ud83d", "value": "5%"}]}')
    record = parse_report(text)
    assert record.title == "T ?"
    assert record.insights == ["x ?"]
    assert [(m.label, m.value) for m in record.metrics] == [("Growth ?", "5%")]
    assert json.loads(record.model_dump_json())["title"] == "T ?"


def test_typographic_quotes_inside_valid_strings_survive() -> None:
    text = json.dumps({"title": "Q3", "executive_summary": "The “Pro” plan led growth"},
                      ensure_ascii=False)
    record = parse_report(text)
    assert record.title == "Q3"
    assert record.summary == "The “Pro” plan led growth"


def test_typographic_quotes_inside_strings_survive_repairs() -> None:
    record = parse_report('{"title": "Q3", "insights": ["the ‘Pro’ tier", "a “big” win",],}')
    assert record.title == "Q3"
    assert record.insights == ["the ‘Pro’ tier", "a “big” win"]


def test_record_that_fails_validation_falls_back(monkeypatch) -> None:
    import insightsimple.parse_report as parse_module

    monkeypatch.setattr(parse_module, "coerce_record", lambda data: ReportRecord(title=""))
    _assert_fallback(parse_report('{"title": "T"}'))
