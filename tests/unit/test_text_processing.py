import json

import pytest

from farmvoice.generation.routing import classify_query
from farmvoice.generation.sanitizer import parse_structured, sanitize
from farmvoice.obs.density import score_density
from farmvoice.speech.languages import busy_message, normalize_language, to_locale
from farmvoice.types import QueryRoute

_RAW_OUTPUTS = [
    '{"response": "Apply **48 kg** N per acre", "hidden_risks": []}',
    '```json\n{"response": "x"}\n```\nResponse: "Use *zinc* sulphate"',
    'explanation: [ {"label": "pH drift"} ]\n: trailing colon line',
    "  plain   answer\n\nwith   gaps  ",
    "தென்னைக்கு **யூரியா** 560 கிராம் போடுங்க",
    '{"response": "{\\"response\\": \\"nested\\"}"}',
    "",
]


@pytest.mark.parametrize("raw", _RAW_OUTPUTS)
def test_sanitize_is_idempotent(raw: str) -> None:
    once = sanitize(raw)

    assert sanitize(once) == once


def test_sanitize_unwraps_json_response_field() -> None:
    raw = json.dumps({"response": "Apply **48 kg** N per acre.", "sources": ["TNAU"]})

    assert sanitize(raw) == "Apply 48 kg N per acre."


def test_sanitize_strips_labels_fences_and_punctuation() -> None:
    raw = 'Response: "Use zinc"\n```\ncode\n```\n{hidden_risks: [low]}'

    cleaned = sanitize(raw)

    assert "Response" not in cleaned
    assert "hidden_risks" not in cleaned
    assert "```" not in cleaned
    for char in '{}[]"':
        assert char not in cleaned
    assert cleaned.startswith("Use zinc")


def test_sanitize_empty_input() -> None:
    assert sanitize(None) == ""
    assert sanitize("") == ""


def test_parse_structured_reads_fenced_and_embedded_json() -> None:
    assert parse_structured('```json\n{"summary": "ok"}\n```') == {"summary": "ok"}
    assert parse_structured('Here you go: {"summary": "ok"} thanks') == {"summary": "ok"}
    assert parse_structured("not json at all") is None
    assert parse_structured("[1, 2]") is None


@pytest.mark.parametrize(
    ("transcript", "route"),
    [
        ("hello", QueryRoute.GREETING),
        ("Hi there, testing the mic", QueryRoute.GREETING),
        ("வணக்கம்", QueryRoute.GREETING),
        ("what time", QueryRoute.SHORT),
        ("", QueryRoute.SHORT),
        ("coconut fertilizer", QueryRoute.NORMAL),
        ("how much urea for one acre of coconut", QueryRoute.NORMAL),
        ("tell me about the local market today", QueryRoute.NORMAL),
    ],
)
def test_classify_query(transcript: str, route: QueryRoute) -> None:
    assert classify_query(transcript) is route


def test_score_density_bounds() -> None:
    assert score_density("") == 0.0
    assert score_density("N 48 P 20 K 20 kg acre") == 1.0
    low = score_density("please water the plants regularly and watch them grow well")
    assert 0.0 <= low < 0.2


def test_score_density_counts_numbers_and_terms() -> None:
    # 1 number, 2 domain terms over 6 words
    assert score_density("soil needs 48 kg more compost") == pytest.approx((2 + 3) / 6)


@pytest.mark.parametrize(
    ("tag", "language"),
    [("ta-IN", "ta"), ("ML", "ml"), ("en_US", "en"), ("fr", "en"), (None, "en"), ("", "en")],
)
def test_normalize_language(tag: str | None, language: str) -> None:
    assert normalize_language(tag) == language


def test_locale_and_busy_message_tables() -> None:
    assert to_locale("ta") == "ta-IN"
    assert to_locale("de") == "en-IN"
    assert busy_message("ml").startswith("സേവനം")
    assert busy_message("xx") == busy_message("en")


def test_deeply_nested_brackets_degrade_to_plain_text() -> None:
    raw = "[" * 5000 + "N 48 kg"

    assert sanitize(raw) == "N 48 kg"
    assert parse_structured(raw) is None
    assert parse_structured("{" * 5000 + "}" * 5000) is None
