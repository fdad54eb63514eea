import json

from voicescreen.errors import TransportError
from voicescreen.interview.models import ResponseRecord, NO_RESPONSE_SENTINEL
from voicescreen.interview.questions import SDR_SCREENING
from voicescreen.interview.scoring import (
    ScoringCoordinator, fallback_score, normalize_scoring, decision_for, question_score,
)
from voicescreen.interview.testing import MockLLMClient


def words(n):
    return " ".join(["word"] * n)


def record(question_id, text, follow_up=False):
    return ResponseRecord.create(question_id, f"Question {question_id}", text, is_follow_up=follow_up)


def test_question_score_formula():
    assert question_score(0, False) == 2
    assert question_score(40, False) == 5
    assert question_score(44, False) == 6  # 5.5 rounds half up
    assert question_score(500, False) == 9
    assert question_score(500, True) == 10
    assert question_score(40, True) == 6


def test_decision_thresholds():
    assert decision_for(7.5) == "hire"
    assert decision_for(7.49) == "maybe"
    assert decision_for(6.0) == "maybe"
    assert decision_for(5.99) == "no_hire"


def test_fallback_scores_main_answers_only():
    responses = [
        record("q1", words(40)),
        record("q1", words(10), follow_up=True),
        record("q2", NO_RESPONSE_SENTINEL),
    ]
    result = fallback_score(responses)

    assert result.fallback is True
    assert [q.question_id for q in result.question_scores] == ["q1", "q2"]
    assert [q.score for q in result.question_scores] == [6, 2]
    assert result.question_scores[0].feedback == "Good, but could use one concrete example or data point."
    assert result.question_scores[1].feedback == "No response provided."
    assert result.question_scores[1].response == ""
    assert result.category_scores == {
        "communication": 4.0, "salesKnowledge": 3.5, "problemSolving": 4.0, "professionalism": 3.8,
    }
    assert result.overall_score == 3.8
    assert result.decision == "no_hire"
    assert len(result.recommendations) == 2


def test_fallback_with_no_responses():
    result = fallback_score([])
    assert result.question_scores == []
    assert result.category_scores["communication"] == 5.0
    assert result.overall_score == 4.8


def test_fallback_is_pure():
    responses = [record("q1", words(70)), record("q2", words(15))]
    assert fallback_score(responses) == fallback_score(list(responses))


def test_fallback_uses_configured_question_text():
    result = fallback_score([ResponseRecord.create("intro", "", words(5))], SDR_SCREENING.questions)
    assert result.question_scores[0].question == SDR_SCREENING.questions[0].question


def test_normalize_fills_and_clamps():
    result = normalize_scoring({
        "overallScore": "12",
        "categoryScores": {"communication": -3, "salesKnowledge": "7.26"},
        "questionScores": [{"questionId": "q1", "score": 0}, "junk", {"questionId": "q2", "score": 14}],
        "summary": "Fine",
        "recommendations": "Practice more",
        "decision": "definitely",
    })
    assert result.overall_score == 10.0
    assert result.category_scores == {
        "communication": 0.0, "salesKnowledge": 7.3, "problemSolving": 5.0, "professionalism": 5.0,
    }
    assert [q.score for q in result.question_scores] == [1, 10]
    assert result.recommendations == ["Practice more"]
    assert result.decision == "hire"
    assert result.fallback is False


def test_coordinator_without_client_falls_back():
    result = ScoringCoordinator(None).score("transcript", [record("q1", words(40))])
    assert result.fallback is True
    assert result.raw_llm_error is None


def test_coordinator_empty_transcript_falls_back():
    llm = MockLLMClient([json.dumps({"overallScore": 9})])
    result = ScoringCoordinator(llm).score("  ", [])
    assert result.fallback is True
    assert result.raw_llm_error == "No transcript to score"
    assert llm.request_history == []


def test_coordinator_service_error_falls_back():
    llm = MockLLMClient([TransportError("LLM REST error 500", status=500)])
    result = ScoringCoordinator(llm).score("transcript", [record("q1", words(40))])
    assert result.fallback is True
    assert result.raw_llm_error == "LLM REST error 500"


def test_coordinator_unparseable_output_falls_back():
    llm = MockLLMClient(["The candidate was fine."])
    result = ScoringCoordinator(llm).score("transcript", [])
    assert result.fallback is True
    assert result.raw_llm_text == "The candidate was fine."
    assert result.to_dict()["rawLLMText"] == "The candidate was fine."


def test_coordinator_uses_judgment():
    payload = {
        "overallScore": 8.2,
        "categoryScores": {"communication": 8, "salesKnowledge": 8, "problemSolving": 9, "professionalism": 8},
        "questionScores": [{"questionId": "intro", "question": "Tell me", "response": "...", "score": 8,
                            "feedback": "Good"}],
        "summary": "Strong",
        "recommendations": ["Keep going"],
        "decision": "hire",
    }
    llm = MockLLMClient(["```json\n" + json.dumps(payload) + "\n```"])
    result = ScoringCoordinator(llm, SDR_SCREENING.questions).score("transcript", [])
    assert result.fallback is False
    assert result.overall_score == 8.2
    assert result.decision == "hire"
    request = llm.request_history[0]
    assert request["temperature"] == 0.3
    assert request["kwargs"]["response_mime_type"] == "application/json"
    assert "Tell me about yourself" in request["prompt"]
