"""
End-of-turn detection for the listening phase.

A turn resolves exactly once, through whichever of silence, explicit submit
or the response deadline fires first. The text captured at that instant is
final; input arriving afterwards is ignored.
"""
import asyncio
import logging
from typing import Callable, List, Optional

logger = logging.getLogger("silence")


class TurnEndReason:
    SILENCE = "silence"
    SUBMIT = "submit"
    SKIP = "skip"
    DEADLINE = "deadline"
    STOPPED = "stopped"
    ERROR = "error"


class SilenceDetector:
    """
    Countdown reset by every piece of incoming text.

    Not armed until the first text arrives, so a candidate who has not yet
    started speaking is only bounded by the response deadline.
    """

    def __init__(self, window: float, on_silence: Callable[[], None],
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        self.window = window
        self._on_silence = on_silence
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._cancelled = False

    def touch(self):
        """New input observed; restart the countdown."""
        if self._cancelled:
            return
        if self._handle is not None:
            self._handle.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self.window, self._fire)

    def _fire(self):
        self._handle = None
        if not self._cancelled:
            self._on_silence()

    def suspend(self):
        """Drop the pending countdown; the next touch() re-arms it."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def cancel(self):
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    @property
    def armed(self) -> bool:
        return self._handle is not None


class TurnCapture:
    """
    Single-shot capture of one answer.

    Collects finalized segments and the latest interim text, and resolves a
    future with (reason, text) the first time resolve() is called.
    """

    def __init__(self, silence_window: float, deadline: Optional[float] = None,
                 loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop or asyncio.get_running_loop()
        self.future: asyncio.Future = self._loop.create_future()
        self.finals: List[str] = []
        self.interim = ""
        self.error = None
        self._silence = SilenceDetector(silence_window, lambda: self.resolve(TurnEndReason.SILENCE), self._loop)
        self._deadline_handle: Optional[asyncio.TimerHandle] = None
        if deadline is not None:
            self.arm_deadline(deadline)

    def arm_deadline(self, seconds: float):
        """(Re)arm the response deadline, e.g. with the time left after a pause."""
        if self._deadline_handle is not None:
            self._deadline_handle.cancel()
        if self.done:
            return
        self._deadline_handle = self._loop.call_later(max(0.0, seconds), self.resolve, TurnEndReason.DEADLINE)

    def disarm(self):
        """Suspend both timers without resolving (used while paused)."""
        if self._deadline_handle is not None:
            self._deadline_handle.cancel()
            self._deadline_handle = None
        self._silence.suspend()

    @property
    def done(self) -> bool:
        return self.future.done()

    def on_partial(self, text: str):
        if self.done:
            return
        self.interim = text or ""
        if self.interim.strip():
            self._silence.touch()

    def on_final(self, text: str):
        if self.done:
            return
        text = (text or "").strip()
        self.interim = ""
        if text:
            self.finals.append(text)
            self._silence.touch()

    def on_error(self, error: Exception):
        if self.done:
            return
        self.error = error
        self.resolve(TurnEndReason.ERROR)

    def snapshot(self) -> str:
        """Finalized segments plus the current interim text."""
        parts = list(self.finals)
        if self.interim.strip():
            parts.append(self.interim.strip())
        return " ".join(parts).strip()

    def resolve(self, reason: str) -> bool:
        """Resolve the turn; later calls are ignored. Returns True if this call won."""
        if self.done:
            return False
        text = self.snapshot()
        self.close()
        self.future.set_result((reason, text))
        logger.debug(f"Turn resolved by {reason} with {len(text.split())} words")
        return True

    def close(self):
        self._silence.cancel()
        if self._deadline_handle is not None:
            self._deadline_handle.cancel()
            self._deadline_handle = None
