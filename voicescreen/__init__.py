"""
VoiceScreen: timed voice screening interviews with LLM judgment.

Asks a fixed bank of questions aloud, listens to the spoken answers, decides
per turn whether to follow up, advance or wrap up, and scores the whole
interview with a deterministic fallback when the judgment service is absent.
"""

__version__ = "1.0.0"

# Main entry points
from .interview.orchestrator import InterviewOrchestrator
from .interview.models import InterviewConfig, ResponseRecord, ScoringResult

__all__ = ["InterviewOrchestrator", "InterviewConfig", "ResponseRecord", "ScoringResult"]
