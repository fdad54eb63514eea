"""
Structured state and decision schemas for the interview system.
"""
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from enum import Enum
import json
import re


class InterviewPhase(str, Enum):
    """Phases of the orchestrator state machine."""
    IDLE = "idle"
    SPEAKING = "speaking"
    LISTENING = "listening"
    EVALUATING = "evaluating"
    WRAP_UP = "wrap_up"
    COMPLETED = "completed"


class ResponseQuality(str, Enum):
    COMPLETE = "complete"
    INCOMPLETE = "incomplete"
    OFF_TOPIC = "off-topic"


class TurnAction(str, Enum):
    FOLLOW_UP = "follow_up"
    NEXT = "next"
    WRAP_UP = "wrap_up"


@dataclass
class InterviewState:
    """
    Mutable run state. The orchestrator is the only writer.

    Invariants: current_index < total while running; phase COMPLETED
    implies not running.
    """
    phase: InterviewPhase = InterviewPhase.IDLE
    current_index: int = 0
    start_time: float = 0.0
    is_running: bool = False
    is_paused: bool = False

    def advance_to(self, index: int):
        """Move to a later question; the index never goes backwards."""
        if index > self.current_index:
            self.current_index = index

    def snapshot(self) -> "InterviewState":
        return InterviewState(
            phase=self.phase,
            current_index=self.current_index,
            start_time=self.start_time,
            is_running=self.is_running,
            is_paused=self.is_paused,
        )


@dataclass(frozen=True)
class EvaluationState:
    """Interview context sent to the turn evaluator alongside a transcript."""
    current_question_text: str
    time_elapsed_sec: int
    questions_remaining: int
    question_index: int
    total_questions: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "currentQuestion": self.current_question_text,
            "timeElapsedSec": self.time_elapsed_sec,
            "questionsRemaining": self.questions_remaining,
            "questionIndex": self.question_index,
            "totalQuestions": self.total_questions,
        }


@dataclass
class TurnDecision:
    """Decision structure for interview flow."""
    response_quality: ResponseQuality = ResponseQuality.INCOMPLETE
    action: TurnAction = TurnAction.NEXT
    message: str = ""
    reasoning: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "TurnDecision":
        """
        Build a decision from raw service output, defaulting anything invalid.

        Invalid or absent quality becomes "incomplete"; invalid or absent
        action becomes "next".
        """
        try:
            quality = ResponseQuality(str(data.get("responseQuality", "")).strip())
        except ValueError:
            quality = ResponseQuality.INCOMPLETE
        try:
            action = TurnAction(str(data.get("action", "")).strip())
        except ValueError:
            action = TurnAction.NEXT

        message = data.get("message")
        reasoning = data.get("reasoning")
        return cls(
            response_quality=quality,
            action=action,
            message=message.strip() if isinstance(message, str) else "",
            reasoning=reasoning if isinstance(reasoning, str) else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "responseQuality": self.response_quality.value,
            "action": self.action.value,
            "message": self.message,
        }
        if self.reasoning:
            data["reasoning"] = self.reasoning
        return data


_CODE_FENCE = re.compile(r"```(?:json)?[ \t]*\r?\n?", re.IGNORECASE)


def strip_code_fences(text: str) -> str:
    return _CODE_FENCE.sub("", text or "").strip()


def first_balanced_object(text: str) -> Optional[str]:
    """
    Return the first balanced {...} substring, honouring JSON string quoting.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for pos in range(start, len(text)):
            ch = text[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:pos + 1]
        # unbalanced from this brace; try the next one
        start = text.find("{", start + 1)
    return None


def parse_json_object(raw_response: str) -> Dict[str, Any]:
    """
    Parse LLM output into a JSON object with robust error handling.

    Tries a strict parse first, then the first balanced object-like
    substring, then gives up.

    Raises:
        ValueError: If no JSON object can be recovered
    """
    cleaned = strip_code_fences(raw_response)
    try:
        data = json.loads(cleaned)
    except json.JSONDecodeError:
        candidate = first_balanced_object(cleaned)
        if candidate is None:
            raise ValueError(f"No JSON found in LLM response: {raw_response!r}")
        try:
            data = json.loads(candidate)
        except json.JSONDecodeError:
            raise ValueError(f"Could not extract valid JSON from LLM response: {raw_response!r}")

    if not isinstance(data, dict):
        raise ValueError(f"LLM response is not a JSON object: {raw_response!r}")
    return data
