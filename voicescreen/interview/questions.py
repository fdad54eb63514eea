"""
Interview question sets: the default SDR screening config, validation,
JSON import/export and simple statistics.
"""
import json
import logging
from typing import Dict, Any, Iterable

from .models import InterviewConfig, InterviewQuestion

logger = logging.getLogger("questions")


SDR_SCREENING = InterviewConfig(
    id="sdr-screening",
    name="SDR Screening Interview",
    description="Standard screening interview for Sales Development Representative positions",
    duration=10,
    passing_score=7.0,
    categories=("communication", "sales_knowledge", "problem_solving", "professionalism"),
    questions=(
        InterviewQuestion(
            id="intro",
            question="Tell me about yourself and why you're interested in a sales development role.",
            max_response_time=90,
            category="general",
            follow_up_triggers={
                "no_sales_mention": "What specifically attracts you to sales?",
                "vague_response": "Can you be more specific about your experience?",
            },
            scoring_weight=1,
        ),
        InterviewQuestion(
            id="cold_calling",
            question="How would you approach making a cold call to a potential prospect?",
            max_response_time=120,
            category="technical",
            required_elements=("research", "value proposition", "objection handling"),
            scoring_weight=2,
        ),
        InterviewQuestion(
            id="objection_handling",
            question="A prospect says 'We're not interested right now.' How do you respond?",
            max_response_time=90,
            category="situational",
            required_elements=("acknowledge", "probe", "provide value"),
            scoring_weight=2,
        ),
        InterviewQuestion(
            id="qualification",
            question="What questions would you ask to qualify a lead during your first conversation?",
            max_response_time=120,
            category="technical",
            required_elements=("budget", "authority", "need", "timing"),
            scoring_weight=2,
        ),
        InterviewQuestion(
            id="motivation",
            question="What motivates you in a sales role, and how do you handle rejection?",
            max_response_time=90,
            category="behavioral",
            scoring_weight=1,
        ),
        InterviewQuestion(
            id="scenario",
            question="You have 50 leads to contact today, but only have time for 30 calls. How do you prioritize?",
            max_response_time=120,
            category="situational",
            required_elements=("prioritization criteria", "efficiency", "data-driven approach"),
            scoring_weight=2,
        ),
    ),
)


def validate_config(config: InterviewConfig) -> None:
    """
    Validate an interview config.

    Raises:
        ValueError: On the first problem found
    """
    if not config.id or not config.name:
        raise ValueError("Config must have id and name")
    if not config.questions:
        raise ValueError("Config must have at least one question")
    if config.duration <= 0:
        raise ValueError("Duration must be positive")

    for index, question in enumerate(config.questions):
        if not question.id or not question.question:
            raise ValueError(f"Question {index} must have id and question text")
        if question.max_response_time <= 0:
            raise ValueError(f"Question {index} must have positive maxResponseTime")

    ids = [q.id for q in config.questions]
    if len(ids) != len(set(ids)):
        raise ValueError("Question IDs must be unique within a config")


def _extract_categories(questions: Iterable[InterviewQuestion]) -> tuple:
    seen = []
    for q in questions:
        if q.category and q.category not in seen:
            seen.append(q.category)
    return tuple(seen)


def config_from_dict(data: Dict[str, Any]) -> InterviewConfig:
    """Build and validate a config from its JSON shape."""
    # Also accept the {"screening": {...}} wrapper used by older config files
    if "screening" in data and "questions" not in data:
        screening = data["screening"] or {}
        data = {"id": "screening", "name": "Screening Interview", **screening}

    questions = tuple(InterviewQuestion.from_dict(q) for q in data.get("questions") or [])
    config = InterviewConfig(
        id=str(data.get("id", "")),
        name=str(data.get("name", "")),
        description=str(data.get("description", "") or ""),
        duration=float(data.get("duration", 0) or 0),
        passing_score=data.get("passingScore"),
        categories=tuple(data.get("categories") or _extract_categories(questions)),
        questions=questions,
    )
    validate_config(config)
    return config


def config_to_dict(config: InterviewConfig) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": config.id,
        "name": config.name,
        "description": config.description,
        "duration": config.duration,
        "questions": [q.to_dict() for q in config.questions],
    }
    if config.passing_score is not None:
        data["passingScore"] = config.passing_score
    if config.categories:
        data["categories"] = list(config.categories)
    return data


def export_config(config: InterviewConfig) -> str:
    return json.dumps(config_to_dict(config), indent=2)


def import_config(config_json: str) -> InterviewConfig:
    return config_from_dict(json.loads(config_json))


def load_config_file(path: str) -> InterviewConfig:
    """Load an interview config from a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        config = import_config(f.read())
    logger.info(f"Loaded interview config '{config.id}' with {config.total_questions} questions from {path}")
    return config


def config_stats(config: InterviewConfig) -> Dict[str, Any]:
    category_counts: Dict[str, int] = {}
    total_response_time = 0.0
    for q in config.questions:
        if q.category:
            category_counts[q.category] = category_counts.get(q.category, 0) + 1
        total_response_time += q.max_response_time

    return {
        "totalQuestions": config.total_questions,
        "estimatedDuration": config.duration,
        "categoryCounts": category_counts,
        "averageResponseTime": total_response_time / config.total_questions if config.questions else 0.0,
    }
