"""
Error taxonomy for the interview system.

Input-device and judgment errors are absorbed with safe defaults by their
callers; transport and persistence errors are logged and swallowed on
non-critical paths. Only an unsupported speech input device halts a run.
"""
from enum import Enum
from typing import Any, Optional


class ErrorCode(str, Enum):
    """Error codes surfaced through the orchestrator's error slot."""
    SPEECH_NOT_SUPPORTED = "SPEECH_NOT_SUPPORTED"
    SPEECH_RECOGNITION_FAILED = "SPEECH_RECOGNITION_FAILED"
    SPEECH_SYNTHESIS_FAILED = "SPEECH_SYNTHESIS_FAILED"
    LLM_API_ERROR = "LLM_API_ERROR"
    ROOM_API_ERROR = "ROOM_API_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"
    INTERVIEW_CONFIG_INVALID = "INTERVIEW_CONFIG_INVALID"
    INTERVIEW_SESSION_NOT_FOUND = "INTERVIEW_SESSION_NOT_FOUND"
    INTERVIEW_ALREADY_STARTED = "INTERVIEW_ALREADY_STARTED"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT_ERROR = "TIMEOUT_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


USER_MESSAGES = {
    ErrorCode.SPEECH_NOT_SUPPORTED: "Voice recognition isn't available on this device.",
    ErrorCode.SPEECH_RECOGNITION_FAILED: "We couldn't hear you clearly. Check your microphone and try speaking again.",
    ErrorCode.SPEECH_SYNTHESIS_FAILED: "Having trouble with audio playback.",
    ErrorCode.LLM_API_ERROR: "Our AI is taking a quick break. Give it a moment and try again.",
    ErrorCode.ROOM_API_ERROR: "Video connection hiccup. Try again in a moment.",
    ErrorCode.DATABASE_ERROR: "Having trouble saving your progress. Don't worry, you can continue.",
    ErrorCode.INTERVIEW_CONFIG_INVALID: "Something's not right with the interview setup.",
    ErrorCode.INTERVIEW_SESSION_NOT_FOUND: "Looks like your session expired. Let's start fresh!",
    ErrorCode.INTERVIEW_ALREADY_STARTED: "You've already begun this interview.",
    ErrorCode.NETWORK_ERROR: "Internet connection seems spotty. Check your connection and try again.",
    ErrorCode.TIMEOUT_ERROR: "That took longer than expected. Let's try once more.",
    ErrorCode.VALIDATION_ERROR: "Something doesn't look right with that input.",
    ErrorCode.PERMISSION_DENIED: "We need permission to access your microphone.",
    ErrorCode.UNKNOWN_ERROR: "Oops! Something unexpected happened. Let's try that again.",
}


def user_message(code: ErrorCode) -> str:
    """Get the user-friendly message for an error code."""
    return USER_MESSAGES.get(code, USER_MESSAGES[ErrorCode.UNKNOWN_ERROR])


class InterviewSystemError(Exception):
    """Base class for all interview system errors."""
    code = ErrorCode.UNKNOWN_ERROR


# --- input-device errors ------------------------------------------------------

class SpeechInputError(InterviewSystemError):
    """Speech recognition reported an error."""
    code = ErrorCode.SPEECH_RECOGNITION_FAILED
    BENIGN_REASONS = frozenset({"no-speech", "aborted"})

    def __init__(self, reason: str, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or f"Speech recognition error: {reason}")

    @property
    def is_benign(self) -> bool:
        return self.reason in self.BENIGN_REASONS


class SpeechInputUnsupportedError(SpeechInputError):
    """No speech recognition is available; listening is impossible."""
    code = ErrorCode.SPEECH_NOT_SUPPORTED

    def __init__(self, message: str = "Speech recognition not supported"):
        super().__init__("not-supported", message)


class SpeechOutputError(InterviewSystemError):
    """Speech synthesis or playback failed."""
    code = ErrorCode.SPEECH_SYNTHESIS_FAILED
    BENIGN_REASONS = frozenset({"interrupted", "canceled", "service-not-allowed"})

    def __init__(self, reason: str, message: Optional[str] = None):
        self.reason = reason
        super().__init__(message or f"TTS error: {reason}")

    @property
    def is_benign(self) -> bool:
        return self.reason in self.BENIGN_REASONS


# --- transport errors ----------------------------------------------------------

class TransportError(InterviewSystemError):
    """A call to an external service failed."""
    code = ErrorCode.NETWORK_ERROR

    def __init__(self, message: str, status: Optional[int] = None):
        self.status = status
        super().__init__(message)


class TransportTimeoutError(TransportError):
    code = ErrorCode.TIMEOUT_ERROR


class RateLimitError(TransportError):
    """The service refused the call because of quota or rate limiting."""
    code = ErrorCode.LLM_API_ERROR


# --- judgment errors -----------------------------------------------------------

class JudgmentError(InterviewSystemError):
    """The judgment service returned absent or malformed output."""
    code = ErrorCode.LLM_API_ERROR

    def __init__(self, message: str, raw: Optional[str] = None):
        self.raw = raw
        super().__init__(message)


# --- persistence errors --------------------------------------------------------

class PersistenceError(InterviewSystemError):
    code = ErrorCode.DATABASE_ERROR


class SessionNotFoundError(PersistenceError):
    code = ErrorCode.INTERVIEW_SESSION_NOT_FOUND


# --- room provisioning errors --------------------------------------------------

class RoomProvisioningError(InterviewSystemError):
    """The room provider rejected the request; surfaced as 502."""
    code = ErrorCode.ROOM_API_ERROR

    def __init__(self, message: str, upstream_status: Optional[int] = None,
                 detail: Any = None, status: int = 502):
        self.status = status
        self.upstream_status = upstream_status
        self.detail = detail
        super().__init__(message)


class RoomTimeoutError(RoomProvisioningError):
    code = ErrorCode.TIMEOUT_ERROR

    def __init__(self, message: str = "daily-request-timeout"):
        super().__init__(message, status=504)
