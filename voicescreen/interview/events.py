"""
Event-driven architecture for the interview system.
"""
import logging
import time
from typing import Dict, Any, List, Callable, Optional
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger("events")


class EventType(str, Enum):
    """Types of interview events."""
    INTERVIEW_STARTED = "interview_started"
    QUESTION_ASKED = "question_asked"
    RESPONSE_RECORDED = "response_recorded"
    PHASE_CHANGED = "phase_changed"
    DECISION_MADE = "decision_made"
    INTERVIEW_PAUSED = "interview_paused"
    INTERVIEW_RESUMED = "interview_resumed"
    ERROR_OCCURRED = "error_occurred"
    INTERVIEW_COMPLETED = "interview_completed"


@dataclass
class InterviewEvent:
    """Base class for all interview events."""
    event_type: EventType
    session_id: Optional[str]
    timestamp: float = field(default_factory=time.time)
    data: Dict[str, Any] = field(default_factory=dict)


def interview_started(session_id: Optional[str], total_questions: int, room_url: Optional[str] = None) -> InterviewEvent:
    return InterviewEvent(EventType.INTERVIEW_STARTED, session_id,
                          data={"total_questions": total_questions, "room_url": room_url})


def question_asked(session_id: Optional[str], index: int, question_id: str, text: str,
                   is_follow_up: bool = False) -> InterviewEvent:
    return InterviewEvent(EventType.QUESTION_ASKED, session_id, data={
        "index": index,
        "question_id": question_id,
        "text": text,
        "is_follow_up": is_follow_up,
    })


def response_recorded(session_id: Optional[str], record_dict: Dict[str, Any]) -> InterviewEvent:
    return InterviewEvent(EventType.RESPONSE_RECORDED, session_id, data=record_dict)


def phase_changed(session_id: Optional[str], old_phase: str, new_phase: str) -> InterviewEvent:
    return InterviewEvent(EventType.PHASE_CHANGED, session_id, data={"from": old_phase, "to": new_phase})


def decision_made(session_id: Optional[str], index: int, decision: Dict[str, Any]) -> InterviewEvent:
    return InterviewEvent(EventType.DECISION_MADE, session_id, data={"index": index, **decision})


def interview_paused(session_id: Optional[str], phase: str) -> InterviewEvent:
    return InterviewEvent(EventType.INTERVIEW_PAUSED, session_id, data={"phase": phase})


def interview_resumed(session_id: Optional[str], phase: str, paused_seconds: float) -> InterviewEvent:
    return InterviewEvent(EventType.INTERVIEW_RESUMED, session_id,
                          data={"phase": phase, "paused_seconds": round(paused_seconds, 2)})


def error_occurred(session_id: Optional[str], error_code: str, error_message: str, component: str) -> InterviewEvent:
    return InterviewEvent(EventType.ERROR_OCCURRED, session_id, data={
        "error_code": error_code,
        "error_message": error_message,
        "component": component,
    })


def interview_completed(session_id: Optional[str], response_count: int, overall_score: Optional[float],
                        decision: Optional[str], fallback: Optional[bool], stopped: bool) -> InterviewEvent:
    return InterviewEvent(EventType.INTERVIEW_COMPLETED, session_id, data={
        "response_count": response_count,
        "overall_score": overall_score,
        "decision": decision,
        "fallback": fallback,
        "stopped": stopped,
    })


EventHandler = Callable[[InterviewEvent], None]


class InterviewEventBus:
    """Event bus for interview system communication."""

    def __init__(self):
        self._handlers: Dict[EventType, List[EventHandler]] = {}
        self._global_handlers: List[EventHandler] = []

    def subscribe(self, event_type: EventType, handler: EventHandler) -> None:
        """
        Subscribe to specific event type.

        Args:
            event_type: Type of event to listen for
            handler: Function to call when event occurs
        """
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed handler to {event_type}")

    def subscribe_all(self, handler: EventHandler) -> None:
        """
        Subscribe to all events.

        Args:
            handler: Function to call for any event
        """
        self._global_handlers.append(handler)
        logger.debug("Subscribed global handler")

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        if event_type in self._handlers:
            try:
                self._handlers[event_type].remove(handler)
                logger.debug(f"Unsubscribed handler from {event_type}")
            except ValueError:
                logger.warning(f"Handler not found for {event_type}")

    def emit(self, event: InterviewEvent) -> None:
        """
        Emit an event to all subscribers.

        A failing handler is logged and skipped; it never reaches the emitter.
        """
        logger.debug(f"Emitting event: {event.event_type.value} for session {event.session_id}")

        for handler in list(self._handlers.get(event.event_type, [])):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event.event_type.value}: {e}")

        for handler in list(self._global_handlers):
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in global event handler: {e}")

    def clear_handlers(self) -> None:
        """Clear all event handlers."""
        self._handlers.clear()
        self._global_handlers.clear()
        logger.debug("Cleared all event handlers")


class EventLogger:
    """Logs all events for debugging and analysis."""

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger("event_logger")
        self.log_level = log_level

    def handle_event(self, event: InterviewEvent) -> None:
        self.logger.log(self.log_level, f"Event: {event.event_type.value} | Session: {event.session_id} | Data: {event.data}")


class InterviewAnalytics:
    """Collects per-interview analytics from events."""

    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self.started_at: Optional[float] = None
        self.completed_at: Optional[float] = None
        self.response_times: List[float] = []
        self.total_words = 0
        self.questions_completed = 0
        self.pause_count = 0
        self.error_count = 0

    def handle_event(self, event: InterviewEvent) -> None:
        """Update analytics based on event."""
        if event.event_type == EventType.INTERVIEW_STARTED:
            self.started_at = event.timestamp
        elif event.event_type == EventType.INTERVIEW_COMPLETED:
            self.completed_at = event.timestamp
        elif event.event_type == EventType.RESPONSE_RECORDED:
            self.response_times.append(float(event.data.get("durationSeconds", 0.0)))
            self.total_words += int(event.data.get("wordCount", 0))
            if not event.data.get("isFollowUp"):
                self.questions_completed += 1
        elif event.event_type == EventType.INTERVIEW_PAUSED:
            self.pause_count += 1
        elif event.event_type == EventType.ERROR_OCCURRED:
            self.error_count += 1

    def get_metrics(self) -> Dict[str, Any]:
        """Get current analytics snapshot."""
        duration = 0.0
        if self.started_at is not None:
            end = self.completed_at if self.completed_at is not None else time.time()
            duration = max(0.0, end - self.started_at)
        average = sum(self.response_times) / len(self.response_times) if self.response_times else 0.0
        return {
            "total_duration": round(duration, 2),
            "average_response_time": round(average, 2),
            "total_words": self.total_words,
            "questions_completed": self.questions_completed,
            "pause_count": self.pause_count,
            "error_count": self.error_count,
        }
