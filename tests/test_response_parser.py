try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json

from agents.insight_pipeline.parsing import (
    extract_json_object,
    load_json_object,
    parse_response,
    strip_code_fence,
)
from finance_app.schemas import InsightShape

WEEKLY = {
    "weeklyTarget": 5000,
    "spent": 2000,
    "remaining": 3000,
    "dailyLimit": 750,
    "daysRemaining": 4,
    "onTrack": True,
}


def test_direct_json_is_parsed():
    assert load_json_object(json.dumps(WEEKLY)) == WEEKLY


def test_code_fence_is_stripped():
    raw = "```json\n" + json.dumps(WEEKLY) + "\n```"

    assert strip_code_fence(raw) == json.dumps(WEEKLY)
    assert load_json_object(raw) == WEEKLY


def test_object_embedded_in_prose_is_extracted():
    raw = 'Sure! Here it is: {"note": "use {braces} and \\"quotes\\"", "n": 1} Hope this helps.'

    assert load_json_object(raw) == {"note": 'use {braces} and "quotes"', "n": 1}


def test_extract_json_object_handles_nesting_and_unbalanced_input():
    assert extract_json_object('x {"a": {"b": "}"}} y') == '{"a": {"b": "}"}}'
    assert extract_json_object('{"a": 1') is None
    assert extract_json_object("no braces here") is None


def test_non_json_falls_back_to_raw_text():
    raw = "Your spending looks healthy this month."

    result = parse_response(raw)

    assert load_json_object(raw) is None
    assert result.content == raw
    assert result.sections is None
    assert result.structured_data is None


def test_top_level_array_is_not_an_object():
    assert load_json_object('[{"healthScore": 80}]') is None


def test_invalid_embedded_object_falls_back():
    assert load_json_object("prefix {not: valid} suffix") is None


def test_parse_response_dispatches_recognised_shape():
    raw = "Here is your plan:\n" + json.dumps(WEEKLY)

    result = parse_response(raw)

    assert result.structured_data is not None
    assert result.structured_data.shape is InsightShape.WEEKLY_BUDGET
    assert result.structured_data.data == WEEKLY
    assert result.sections[0].id == "week_glance"
    assert result.content.startswith("## Week at a Glance")
