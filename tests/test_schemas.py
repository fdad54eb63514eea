import pytest

from voicescreen.interview.schemas import (
    InterviewState, TurnDecision, TurnAction, ResponseQuality, parse_json_object,
)
from voicescreen.interview.transcript import TranscriptLog
from voicescreen.interview.models import ResponseRecord, NO_RESPONSE_SENTINEL, count_words


def test_parse_plain_json():
    assert parse_json_object('{"action": "next"}') == {"action": "next"}


def test_parse_fenced_json():
    raw = '```json\n{"action": "follow_up", "message": "More?"}\n```'
    assert parse_json_object(raw)["action"] == "follow_up"


def test_parse_embedded_object_with_braces_in_strings():
    raw = 'Sure! Here you go: {"message": "use {braces} here", "action": "next"} hope that helps'
    data = parse_json_object(raw)
    assert data["message"] == "use {braces} here"


@pytest.mark.parametrize("raw", ["", "no json here", "[1, 2, 3]", "{not: valid"])
def test_parse_failures_raise_value_error(raw):
    with pytest.raises(ValueError):
        parse_json_object(raw)


def test_decision_defaults_invalid_fields():
    decision = TurnDecision.from_payload({"responseQuality": "great", "action": "dance", "message": 3})
    assert decision.response_quality == ResponseQuality.INCOMPLETE
    assert decision.action == TurnAction.NEXT
    assert decision.message == ""


def test_decision_from_valid_payload():
    decision = TurnDecision.from_payload({
        "responseQuality": "off-topic", "action": "wrap_up", "message": "  Thanks.  ",
    })
    assert decision.response_quality == ResponseQuality.OFF_TOPIC
    assert decision.action == TurnAction.WRAP_UP
    assert decision.to_dict()["message"] == "Thanks."


def test_state_index_is_monotonic():
    state = InterviewState()
    state.advance_to(2)
    state.advance_to(1)
    assert state.current_index == 2


def test_word_count_ignores_sentinel():
    assert count_words(NO_RESPONSE_SENTINEL) == 0
    assert count_words("  one two   three ") == 3


def test_transcript_format():
    log = TranscriptLog()
    log.start("2024-01-01T00:00:00Z")
    log.add_question(1, "Why sales?")
    log.add_answer(ResponseRecord.create("q1", "Why sales?", "I like people"))
    log.add_follow_up("Can you give an example?")
    log.complete("2024-01-01T00:05:00Z")
    log.complete("2024-01-01T00:06:00Z")

    text = log.text
    assert text.startswith("AI INTERVIEW TRANSCRIPT\nStarted at: 2024-01-01T00:00:00Z\n" + "=" * 50)
    assert "\n\nQ1: Why sales?\nA: I like people\nFollow-up: Can you give an example?\n" in text
    assert text.endswith("Interview completed at: 2024-01-01T00:05:00Z")
    assert len(log) == 1
