"""
Authoritative transcript text and response log for one interview run.
"""
from datetime import datetime, timezone
from typing import List, Optional

from .models import ResponseRecord

TRANSCRIPT_HEADER = "AI INTERVIEW TRANSCRIPT"
RULE = "=" * 50


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


class TranscriptLog:
    """
    Append-only record of what was asked and answered.

    The response list is chronological and never reordered; callers only ever
    receive copies of it.
    """

    def __init__(self):
        self._text = ""
        self._responses: List[ResponseRecord] = []
        self.started_at: Optional[str] = None
        self.completed_at: Optional[str] = None

    def start(self, started_at: Optional[str] = None):
        self.started_at = started_at or _iso_now()
        self._text = f"{TRANSCRIPT_HEADER}\nStarted at: {self.started_at}\n{RULE}"
        self._responses = []
        self.completed_at = None

    def add_question(self, number: int, question: str):
        self._text += f"\n\nQ{number}: {question}\n"

    def add_answer(self, record: ResponseRecord):
        self._responses.append(record)
        self._text += f"A: {record.response_text}\n"

    def add_follow_up(self, message: str):
        self._text += f"Follow-up: {message}\n"

    def complete(self, completed_at: Optional[str] = None):
        if self.completed_at is not None:
            return
        self.completed_at = completed_at or _iso_now()
        self._text += f"\n\nInterview completed at: {self.completed_at}"

    @property
    def text(self) -> str:
        return self._text

    @property
    def responses(self) -> List[ResponseRecord]:
        return list(self._responses)

    def __len__(self) -> int:
        return len(self._responses)
