"""
Data models for the interview system.
"""
import time
from dataclasses import dataclass, field
from typing import Optional, Dict, List, Any


NO_RESPONSE_SENTINEL = "[No response provided]"

CATEGORY_KEYS = ("communication", "salesKnowledge", "problemSolving", "professionalism")
DECISIONS = ("hire", "maybe", "no_hire")


@dataclass(frozen=True)
class InterviewQuestion:
    """A single configured question. Loaded once, never mutated."""
    id: str
    question: str
    max_response_time: float
    required_elements: tuple = ()
    scoring_weight: float = 1.0
    category: Optional[str] = None
    follow_up_triggers: Dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InterviewQuestion":
        return cls(
            id=str(data.get("id", "")),
            question=str(data.get("question", "")),
            max_response_time=float(data.get("maxResponseTime", 0)),
            required_elements=tuple(data.get("requiredElements") or ()),
            scoring_weight=float(data.get("scoringWeight", 1) or 1),
            category=data.get("category"),
            follow_up_triggers=dict(data.get("followUpTriggers") or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "question": self.question,
            "maxResponseTime": self.max_response_time,
            "scoringWeight": self.scoring_weight,
        }
        if self.required_elements:
            data["requiredElements"] = list(self.required_elements)
        if self.category:
            data["category"] = self.category
        if self.follow_up_triggers:
            data["followUpTriggers"] = dict(self.follow_up_triggers)
        return data


@dataclass(frozen=True)
class InterviewConfig:
    """A named, ordered set of questions with a total duration."""
    id: str
    name: str
    duration: float  # minutes
    questions: tuple
    description: str = ""
    passing_score: Optional[float] = None
    categories: tuple = ()

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    @property
    def duration_seconds(self) -> float:
        return self.duration * 60.0


@dataclass
class ResponseRecord:
    """One answered turn: a main answer or a follow-up answer."""
    question_id: str
    question_text: str
    response_text: str
    timestamp: float = field(default_factory=time.time)
    duration_seconds: float = 0.0
    word_count: int = 0
    is_follow_up: bool = False

    @classmethod
    def create(cls, question_id: str, question_text: str, response_text: str,
               duration_seconds: float = 0.0, is_follow_up: bool = False,
               timestamp: Optional[float] = None) -> "ResponseRecord":
        text = response_text.strip()
        return cls(
            question_id=question_id,
            question_text=question_text,
            response_text=text,
            timestamp=time.time() if timestamp is None else timestamp,
            duration_seconds=round(max(0.0, duration_seconds), 2),
            word_count=count_words(text),
            is_follow_up=is_follow_up,
        )

    @property
    def is_empty(self) -> bool:
        return self.response_text == NO_RESPONSE_SENTINEL or not self.response_text.strip()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionId": self.question_id,
            "questionText": self.question_text,
            "responseText": self.response_text,
            "timestamp": self.timestamp,
            "durationSeconds": self.duration_seconds,
            "wordCount": self.word_count,
            "isFollowUp": self.is_follow_up,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResponseRecord":
        text = str(data.get("responseText", data.get("response", "")) or "")
        return cls(
            question_id=str(data.get("questionId", "")),
            question_text=str(data.get("questionText", data.get("question", "")) or ""),
            response_text=text,
            timestamp=float(data.get("timestamp", 0.0) or 0.0),
            duration_seconds=float(data.get("durationSeconds", 0.0) or 0.0),
            word_count=int(data.get("wordCount", count_words(text)) or 0),
            is_follow_up=bool(data.get("isFollowUp", False)),
        )


@dataclass(frozen=True)
class QuestionScore:
    """Score and feedback for one asked question."""
    question_id: str
    question: str
    response: str
    score: float
    feedback: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "questionId": self.question_id,
            "question": self.question,
            "response": self.response,
            "score": self.score,
            "feedback": self.feedback,
        }


@dataclass(frozen=True)
class ScoringResult:
    """Terminal artifact of an interview. Created once, immutable."""
    overall_score: float
    category_scores: Dict[str, float]
    question_scores: List[QuestionScore]
    summary: str
    recommendations: List[str]
    decision: str
    fallback: bool = False
    raw_llm_error: Optional[str] = None
    raw_llm_text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "overallScore": self.overall_score,
            "categoryScores": dict(self.category_scores),
            "questionScores": [q.to_dict() for q in self.question_scores],
            "summary": self.summary,
            "recommendations": list(self.recommendations),
            "decision": self.decision,
            "fallback": self.fallback,
        }
        if self.raw_llm_error:
            data["rawLLMError"] = self.raw_llm_error
        if self.raw_llm_text:
            data["rawLLMText"] = self.raw_llm_text
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoringResult":
        return cls(
            overall_score=float(data.get("overallScore", 0.0)),
            category_scores={k: float(v) for k, v in (data.get("categoryScores") or {}).items()},
            question_scores=[
                QuestionScore(
                    question_id=str(q.get("questionId", "")),
                    question=str(q.get("question", "")),
                    response=str(q.get("response", "")),
                    score=float(q.get("score", 0)),
                    feedback=str(q.get("feedback", "")),
                )
                for q in data.get("questionScores") or []
            ],
            summary=str(data.get("summary", "")),
            recommendations=[str(r) for r in data.get("recommendations") or []],
            decision=str(data.get("decision", "")),
            fallback=bool(data.get("fallback", False)),
            raw_llm_error=data.get("rawLLMError"),
            raw_llm_text=data.get("rawLLMText"),
        )


def count_words(text: str) -> int:
    """Whitespace word count; the no-response sentinel counts as zero."""
    text = (text or "").strip()
    if not text or text == NO_RESPONSE_SENTINEL:
        return 0
    return len(text.split())

