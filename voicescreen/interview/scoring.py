"""
Interview scoring: structured judgment with a deterministic local fallback.
"""
import logging
import math
from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from ..config import (
    SCORING_TEMPERATURE, SCORING_MAX_OUTPUT_TOKENS,
    HIRE_THRESHOLD, MAYBE_THRESHOLD, CATEGORY_WEIGHTS,
)
from .models import (
    InterviewQuestion, ResponseRecord, QuestionScore, ScoringResult,
    CATEGORY_KEYS, DECISIONS, count_words,
)
from .prompts import InterviewPrompts
from .schemas import parse_json_object

logger = logging.getLogger("scoring")

FALLBACK_SUMMARY = (
    "Fallback scoring computed from responses (word counts & follow-ups). "
    "This is an approximate result while LLM scoring is unavailable."
)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _one_decimal(value: float) -> float:
    return float(f"{value:.1f}")


def _clamp(low: float, high: float, value: float) -> float:
    return min(high, max(low, value))


def decision_for(overall_score: float) -> str:
    if overall_score >= HIRE_THRESHOLD:
        return "hire"
    if overall_score >= MAYBE_THRESHOLD:
        return "maybe"
    return "no_hire"


def feedback_for(word_count: int, empty: bool) -> str:
    if empty:
        return "No response provided."
    if word_count < 20:
        return "Short answer. Try adding a specific example."
    if word_count < 60:
        return "Good, but could use one concrete example or data point."
    return "Solid answer: clear, specific, and detailed."


def question_score(word_count: int, has_follow_up: bool) -> int:
    """Length-based score in [2, 9], plus one (capped at 10) when a follow-up was asked."""
    score = _round_half_up(_clamp(2, 9, (word_count / 80) * 10))
    if has_follow_up:
        score = min(10, score + 1)
    return score


def weighted_overall(category_scores: Dict[str, float]) -> float:
    return sum(category_scores[key] * weight for key, weight in CATEGORY_WEIGHTS.items())


def fallback_score(responses: Sequence[ResponseRecord],
                   questions: Sequence[InterviewQuestion] = ()) -> ScoringResult:
    """
    Deterministic score computed only from the response log.

    One question score per main (non follow-up) answer, in log order. Pure:
    the same responses always give the same result.
    """
    question_text = {q.id: q.question for q in questions}
    followed_up = {r.question_id for r in responses if r.is_follow_up}

    question_scores: List[QuestionScore] = []
    for record in responses:
        if record.is_follow_up:
            continue
        empty = record.is_empty
        text = "" if empty else record.response_text.strip()
        words = count_words(text)
        question_scores.append(QuestionScore(
            question_id=record.question_id,
            question=record.question_text or question_text.get(record.question_id, ""),
            response=text,
            score=question_score(words, record.question_id in followed_up),
            feedback=feedback_for(words, empty),
        ))

    if question_scores:
        mean = sum(q.score for q in question_scores) / len(question_scores)
    else:
        mean = 5.0

    categories = {
        "communication": _clamp(1, 10, mean),
        "salesKnowledge": _clamp(1, 10, mean - 0.5),
        "problemSolving": _clamp(1, 10, mean),
        "professionalism": _clamp(1, 10, mean - 0.2),
    }
    overall = weighted_overall(categories)

    return ScoringResult(
        overall_score=_one_decimal(overall),
        category_scores={key: _one_decimal(value) for key, value in categories.items()},
        question_scores=question_scores,
        summary=FALLBACK_SUMMARY,
        recommendations=InterviewPrompts.fallback_recommendations(),
        decision=decision_for(overall),
        fallback=True,
    )


def _number(value: Any, default: float = 0.0) -> float:
    if isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def normalize_scoring(data: Dict[str, Any]) -> ScoringResult:
    """Coerce raw judgment output into a valid ScoringResult."""
    overall = _one_decimal(_clamp(0, 10, _number(data.get("overallScore"))))

    raw_categories = data.get("categoryScores")
    if not isinstance(raw_categories, dict):
        raw_categories = {}
    category_scores = {
        key: _one_decimal(_clamp(0, 10, _number(raw_categories.get(key), 5.0)))
        for key in CATEGORY_KEYS
    }

    question_scores = []
    raw_questions = data.get("questionScores")
    for item in raw_questions if isinstance(raw_questions, list) else []:
        if not isinstance(item, dict):
            continue
        question_scores.append(QuestionScore(
            question_id=str(item.get("questionId") or ""),
            question=str(item.get("question") or ""),
            response=str(item.get("response") or ""),
            score=_clamp(1, 10, _number(item.get("score"), 1.0)),
            feedback=str(item.get("feedback") or ""),
        ))

    recommendations = data.get("recommendations")
    if isinstance(recommendations, str):
        recommendations = [recommendations]
    elif not isinstance(recommendations, list):
        recommendations = []

    decision = data.get("decision")
    if decision not in DECISIONS:
        decision = decision_for(overall)

    return ScoringResult(
        overall_score=overall,
        category_scores=category_scores,
        question_scores=question_scores,
        summary=str(data.get("summary") or ""),
        recommendations=[str(r) for r in recommendations],
        decision=decision,
        fallback=False,
    )


class ScoringCoordinator:
    """
    Scores a finished interview.

    score() never raises. Missing configuration, transport errors, rate
    limiting and unparseable output all take the same fallback path.
    """

    def __init__(self, llm_client=None, questions: Sequence[InterviewQuestion] = ()):
        self.llm_client = llm_client
        self.questions = tuple(questions)

    def fallback(self, responses: Sequence[ResponseRecord], raw_llm_error: Optional[str] = None,
                 raw_llm_text: Optional[str] = None) -> ScoringResult:
        result = fallback_score(responses, self.questions)
        if raw_llm_error or raw_llm_text:
            result = replace(result, raw_llm_error=raw_llm_error, raw_llm_text=raw_llm_text)
        logger.info(f"Fallback score {result.overall_score} ({result.decision})")
        return result

    def score(self, transcript: str, responses: Sequence[ResponseRecord]) -> ScoringResult:
        if self.llm_client is None:
            logger.info("No judgment service configured; using fallback scoring")
            return self.fallback(responses)
        if not (transcript or "").strip():
            logger.warning("No transcript to score; using fallback scoring")
            return self.fallback(responses, raw_llm_error="No transcript to score")

        prompt = InterviewPrompts.scoring_prompt(transcript, self.questions)
        try:
            raw = self.llm_client.generate_content(
                prompt,
                temperature=SCORING_TEMPERATURE,
                max_output_tokens=SCORING_MAX_OUTPUT_TOKENS,
                response_mime_type="application/json",
            )
        except Exception as e:
            logger.error(f"Scoring request failed: {e}")
            return self.fallback(responses, raw_llm_error=str(e))

        try:
            data = parse_json_object(raw)
        except ValueError as e:
            logger.warning(f"Scoring output unparseable: {e}")
            return self.fallback(responses, raw_llm_text=raw)

        result = normalize_scoring(data)
        logger.info(f"Judged score {result.overall_score} ({result.decision})")
        return result
