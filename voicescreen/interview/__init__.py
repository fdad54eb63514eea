"""Interview system components.

This module contains the business logic for conducting timed voice screening
interviews: orchestration, turn evaluation, scoring and the question bank.
"""

# Core orchestrator class
from .orchestrator import InterviewOrchestrator

# Data models
from .models import (
    InterviewQuestion, InterviewConfig, ResponseRecord,
    QuestionScore, ScoringResult, NO_RESPONSE_SENTINEL
)

# Structured schemas and state management
from .schemas import (
    InterviewPhase, InterviewState, EvaluationState,
    TurnDecision, TurnAction, ResponseQuality, parse_json_object
)

# Judgment
from .turn_evaluator import TurnEvaluator, evaluation_state
from .scoring import ScoringCoordinator, fallback_score, normalize_scoring

# Question bank
from .questions import SDR_SCREENING, validate_config, load_config_file, config_stats

# Listening
from .silence import SilenceDetector, TurnCapture, TurnEndReason
from .transcript import TranscriptLog

# Event system
from .events import (
    InterviewEventBus, EventLogger, InterviewAnalytics,
    EventType, InterviewEvent
)

__all__ = [
    # Orchestrator
    "InterviewOrchestrator",

    # Data models
    "InterviewQuestion", "InterviewConfig", "ResponseRecord",
    "QuestionScore", "ScoringResult", "NO_RESPONSE_SENTINEL",

    # Schemas and state
    "InterviewPhase", "InterviewState", "EvaluationState",
    "TurnDecision", "TurnAction", "ResponseQuality", "parse_json_object",

    # Judgment
    "TurnEvaluator", "evaluation_state",
    "ScoringCoordinator", "fallback_score", "normalize_scoring",

    # Question bank
    "SDR_SCREENING", "validate_config", "load_config_file", "config_stats",

    # Listening
    "SilenceDetector", "TurnCapture", "TurnEndReason", "TranscriptLog",

    # Events
    "InterviewEventBus", "EventLogger", "InterviewAnalytics",
    "EventType", "InterviewEvent",
]
