"""
Interview orchestrator: the state machine that drives a timed screening.

One question at a time goes through speak -> listen -> evaluate and then a
single optional follow-up, the next question, or wrap-up. Every adapter
failure is absorbed where possible so that a partial interview is still
scored rather than discarded.
"""
import asyncio
import logging
import time
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from ..config import (
    TTS_MS_PER_CHAR, TTS_MIN_WAIT_SECONDS, TTS_MAX_WAIT_SECONDS,
    SILENCE_WINDOW_SECONDS, INTERVIEW_DURATION_SECONDS, DEFAULT_MAX_RESPONSE_TIME,
)
from ..errors import (
    ErrorCode, InterviewSystemError, SpeechInputError, SpeechInputUnsupportedError,
    SpeechOutputError, user_message,
)
from . import events
from .events import InterviewEventBus
from .models import InterviewConfig, InterviewQuestion, ResponseRecord, ScoringResult, NO_RESPONSE_SENTINEL
from .prompts import InterviewPrompts
from .schemas import InterviewPhase, InterviewState, TurnAction, TurnDecision
from .scoring import fallback_score
from .silence import TurnCapture, TurnEndReason
from .transcript import TranscriptLog
from .turn_evaluator import evaluation_state

logger = logging.getLogger("orchestrator")

# Outcomes of running one question
ADVANCE = "advance"
WRAP_UP = "wrap_up"
STOPPED = "stopped"


class _Stopped(Exception):
    """Raised inside the run when stop() interrupts a suspension."""


class _Halted(Exception):
    """Raised inside the run when listening is impossible."""

    def __init__(self, error: InterviewSystemError):
        self.error = error
        super().__init__(str(error))


def speech_ceiling(text: str) -> float:
    """Bounded wait for speech output: proportional to length, clamped."""
    return min(TTS_MAX_WAIT_SECONDS, max(TTS_MIN_WAIT_SECONDS, len(text) * TTS_MS_PER_CHAR / 1000.0))


class InterviewOrchestrator:
    """
    Drives one interview run to completion.

    The orchestrator is the only writer of the interview state and the
    response log. Controls (submit, skip_question, repeat_question, pause,
    resume, stop) may be called from callbacks on the same event loop while
    start() is running.
    """

    def __init__(self,
                 config: InterviewConfig,
                 speech_output,
                 speech_input,
                 evaluator,
                 scorer,
                 recorder=None,
                 event_bus: Optional[InterviewEventBus] = None,
                 silence_window: float = SILENCE_WINDOW_SECONDS,
                 duration_ceiling: float = INTERVIEW_DURATION_SECONDS,
                 room_url: Optional[str] = None,
                 clock: Callable[[], float] = time.monotonic):
        self.config = config
        self.questions: List[InterviewQuestion] = list(config.questions)
        self.speech_output = speech_output
        self.speech_input = speech_input
        self.evaluator = evaluator
        self.scorer = scorer
        self.recorder = recorder
        self.event_bus = event_bus or InterviewEventBus()
        self.silence_window = silence_window
        self.duration_ceiling = duration_ceiling
        self.room_url = room_url
        self.clock = clock

        self._state = InterviewState()
        self._log = TranscriptLog()
        self._error: Optional[str] = None
        self._error_code: Optional[ErrorCode] = None
        self._result: Optional[ScoringResult] = None
        self._session_id: Optional[str] = None
        self._started = False
        self._stop_requested = False
        self._driving = False

        # Created in start() so they bind to the running loop
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop_event: Optional[asyncio.Event] = None
        self._resume_event: Optional[asyncio.Event] = None
        self._finished: Optional[asyncio.Event] = None

        self._capture: Optional[TurnCapture] = None
        self._listen_handle = None
        self._listen_signal: Optional[asyncio.Future] = None
        self._deadline_at: Optional[float] = None
        self._deadline_left: Optional[float] = None
        self._turn_duration = 0.0
        self._live_transcript = ""
        self._speaking_task: Optional[asyncio.Future] = None
        self._speech_interrupted = False
        self._persist_task: Optional[asyncio.Future] = None
        self._paused_at: Optional[float] = None
        self._paused_total = 0.0

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> InterviewState:
        return self._state.snapshot()

    @property
    def phase(self) -> InterviewPhase:
        return self._state.phase

    @property
    def responses(self) -> List[ResponseRecord]:
        return self._log.responses

    @property
    def transcript(self) -> str:
        return self._log.text

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def error_code(self) -> Optional[ErrorCode]:
        return self._error_code

    @property
    def result(self) -> Optional[ScoringResult]:
        return self._result

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def live_transcript(self) -> str:
        if self._capture is not None and not self._capture.done:
            return self._capture.snapshot()
        return self._live_transcript

    @property
    def seconds_remaining(self) -> Optional[float]:
        """Time left to answer the current question, while listening."""
        if self._state.phase != InterviewPhase.LISTENING or self._capture is None:
            return None
        if self._state.is_paused:
            return self._deadline_left
        if self._deadline_at is None or self._loop is None:
            return None
        return max(0.0, self._deadline_at - self._loop.time())

    @property
    def elapsed(self) -> float:
        if not self._started:
            return 0.0
        return max(0.0, self.clock() - self._state.start_time)

    # ------------------------------------------------------------------
    # Controls
    # ------------------------------------------------------------------

    async def start(self) -> Optional[ScoringResult]:
        """
        Run the interview to a terminal phase.

        Returns the scoring result, or None when the run halted (or this
        orchestrator was already started).
        """
        if self._started:
            logger.warning("start() called on an interview that already started; ignoring")
            return None
        if not self.questions:
            self._set_error(ErrorCode.INTERVIEW_CONFIG_INVALID, "Interview has no questions")
            return None

        self._started = True
        self._loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        self._resume_event = asyncio.Event()
        self._resume_event.set()
        self._finished = asyncio.Event()

        self._state.is_running = True
        self._state.current_index = 0
        self._state.start_time = self.clock()
        self._log.start()

        logger.info(f"Starting interview '{self.config.id}' with {len(self.questions)} questions")
        self.event_bus.emit(events.interview_started(None, len(self.questions), self.room_url))

        if self.recorder is not None:
            self._persist(self._create_session)

        try:
            try:
                await self._drive()
            except _Halted as e:
                self._halt(e.error)
                return None
            except Exception as e:
                logger.exception(f"Interview loop failed: {e}")
                self._halt(e)
                return None
            return await self._wrap_up()
        finally:
            self._finished.set()

    async def stop(self):
        """
        Stop the interview: halt both adapters now, then score what was captured.

        Returns once the run has completed.
        """
        if not self._started or self._finished is None or self._finished.is_set():
            return
        if not self._stop_requested:
            logger.info("Stop requested")
            self._stop_requested = True
            self._stop_event.set()
            self._resume_event.set()
            self._silence_adapters()
            if self._capture is not None:
                self._capture.resolve(TurnEndReason.STOPPED)
        await self._finished.wait()

    def submit(self):
        """Explicit submit of the current answer; ignored while nothing was said."""
        capture = self._capture
        if capture is None or capture.done or self._state.is_paused:
            return
        if not capture.snapshot():
            logger.debug("Submit ignored: nothing captured yet")
            return
        capture.resolve(TurnEndReason.SUBMIT)

    def skip_question(self):
        """Record whatever was captured for this turn and move on without evaluation."""
        capture = self._capture
        if capture is None or capture.done or self._state.is_paused:
            return
        capture.resolve(TurnEndReason.SKIP)

    def repeat_question(self):
        """Speak the current question again while listening; ignored in other phases."""
        if self._state.phase != InterviewPhase.LISTENING or self._state.is_paused:
            return
        signal = self._listen_signal
        if signal is not None and not signal.done():
            signal.set_result("repeat")

    def pause(self):
        """Freeze transitions and tear down both adapters; state is kept."""
        if not self._state.is_running or self._state.is_paused or self._stop_requested:
            return
        self._state.is_paused = True
        self._paused_at = self.clock()
        self._resume_event.clear()

        if self._speaking_task is not None and not self._speaking_task.done():
            self._speech_interrupted = True
        self.speech_output.cancel()

        if self._capture is not None and not self._capture.done:
            if self._deadline_at is not None:
                self._deadline_left = max(0.0, self._deadline_at - self._loop.time())
            self._capture.disarm()
            self._stop_input()

        logger.info(f"Interview paused during {self._state.phase.value}")
        self.event_bus.emit(events.interview_paused(self._session_id, self._state.phase.value))

    def resume(self):
        """Continue from the suspended phase, restarting listening if that was active."""
        if not self._state.is_paused:
            return
        self._state.is_paused = False
        paused_for = 0.0 if self._paused_at is None else self.clock() - self._paused_at
        self._paused_total += paused_for
        self._paused_at = None

        capture = self._capture
        if self._state.phase == InterviewPhase.LISTENING and capture is not None and not capture.done:
            try:
                self._start_input(capture)
            except _Halted as e:
                capture.on_error(e.error)
            else:
                left = self._deadline_left if self._deadline_left is not None else 0.0
                self._arm_deadline(capture, left)

        self._resume_event.set()
        logger.info(f"Interview resumed after {paused_for:.1f}s")
        self.event_bus.emit(events.interview_resumed(self._session_id, self._state.phase.value, paused_for))

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    async def _drive(self):
        index = 0
        total = len(self.questions)
        while index < total:
            outcome = await self._run_question(index)
            if outcome is None or outcome != ADVANCE:
                return
            if index + 1 >= total:
                logger.info("Last question answered")
                return
            if self._ceiling_reached():
                logger.info(f"Duration ceiling of {self.duration_ceiling}s reached; wrapping up")
                return
            index += 1
            self._state.advance_to(index)

    async def _run_question(self, index: int) -> Optional[str]:
        """Run one question; a call while another is in flight is a no-op."""
        if self._driving:
            logger.warning("Question procedure already active; ignoring re-entrant call")
            return None
        self._driving = True
        try:
            return await self._ask(index)
        except _Stopped:
            return STOPPED
        finally:
            self._driving = False

    async def _ask(self, index: int) -> str:
        question = self.questions[index]
        total = len(self.questions)
        self._check_stopped()

        self._log.add_question(index + 1, question.question)
        self.event_bus.emit(events.question_asked(self._session_id, index, question.id, question.question))
        logger.info(f"Question {index + 1}/{total}: {question.question}")

        self._set_phase(InterviewPhase.SPEAKING)
        await self._speak(question.question)

        reason, text = await self._listen(question, question.question)
        outcome = self._handle_capture(question, question.question, reason, text, is_follow_up=False)
        if outcome is not None:
            return outcome
        if not text:
            # Silent turn: sentinel recorded, no evaluation
            return ADVANCE

        decision = await self._evaluate(question, index, text)
        await self._wait_while_paused()

        if decision.action == TurnAction.FOLLOW_UP and index >= total - 1:
            logger.info("Follow-up requested on the last question; wrapping up instead")
            decision.action = TurnAction.WRAP_UP
        if decision.action != TurnAction.WRAP_UP and self._ceiling_reached():
            logger.info("Duration ceiling passed; overriding decision with wrap_up")
            decision.action = TurnAction.WRAP_UP

        if decision.action == TurnAction.FOLLOW_UP:
            return await self._follow_up(question, decision.message)

        self._set_phase(InterviewPhase.SPEAKING)
        await self._speak(decision.message)
        if decision.action == TurnAction.WRAP_UP:
            return WRAP_UP
        return ADVANCE

    async def _follow_up(self, question: InterviewQuestion, message: str) -> str:
        """Ask the single follow-up allowed per question, then acknowledge and advance."""
        message = message or "Could you expand on that with a specific example?"
        self._log.add_follow_up(message)
        self.event_bus.emit(events.question_asked(self._session_id, self._state.current_index, question.id,
                                                  message, is_follow_up=True))

        self._set_phase(InterviewPhase.SPEAKING)
        await self._speak(message)

        reason, text = await self._listen(question, message)
        outcome = self._handle_capture(question, message, reason, text, is_follow_up=True)
        if outcome is not None:
            return outcome

        self._set_phase(InterviewPhase.SPEAKING)
        await self._speak(InterviewPrompts.fixed_messages()["follow_up_acknowledgment"])
        return WRAP_UP if self._ceiling_reached() else ADVANCE

    def _handle_capture(self, question: InterviewQuestion, asked: str, reason: str, text: str,
                        is_follow_up: bool) -> Optional[str]:
        """
        Record a resolved turn. Returns an outcome when the turn ends the
        question without evaluation, or None to carry on.
        """
        if reason in (TurnEndReason.STOPPED, TurnEndReason.ERROR, TurnEndReason.SKIP):
            if text:
                self._record(question, asked, text, is_follow_up)
            if reason == TurnEndReason.STOPPED:
                return STOPPED
            if reason == TurnEndReason.ERROR:
                return WRAP_UP
            return ADVANCE

        if text:
            self._record(question, asked, text, is_follow_up)
        elif not is_follow_up:
            logger.info(f"No response for {question.id}")
            self._record(question, asked, NO_RESPONSE_SENTINEL, is_follow_up)
        return None

    async def _evaluate(self, question: InterviewQuestion, index: int, text: str) -> TurnDecision:
        self._set_phase(InterviewPhase.EVALUATING)
        state = evaluation_state(question.question, self.elapsed, index, len(self.questions))
        task = asyncio.ensure_future(asyncio.to_thread(self.evaluator.evaluate, text, state))
        try:
            await self._race(task)
        except _Stopped:
            task.add_done_callback(_consume_result)
            raise

        try:
            decision = task.result()
        except Exception as e:
            logger.error(f"Turn evaluation failed: {e}")
            decision = TurnDecision()

        logger.info(f"Decision for {question.id}: {decision.response_quality.value}/{decision.action.value}")
        self.event_bus.emit(events.decision_made(self._session_id, index, decision.to_dict()))
        return decision

    async def _wrap_up(self) -> ScoringResult:
        self._set_phase(InterviewPhase.WRAP_UP)
        self._silence_adapters()

        if not self._stop_requested:
            try:
                await self._speak(InterviewPrompts.fixed_messages()["closing"])
            except _Stopped:
                logger.info("Closing line interrupted by stop")

        self._log.complete()
        result = await self._score()

        self._result = result
        self._state.is_running = False
        self._state.is_paused = False
        self._set_phase(InterviewPhase.COMPLETED)
        logger.info(f"Interview completed: {result.overall_score} ({result.decision}), fallback={result.fallback}")
        self.event_bus.emit(events.interview_completed(
            self._session_id, len(self._log), result.overall_score, result.decision,
            result.fallback, self._stop_requested,
        ))
        return result

    async def _score(self) -> ScoringResult:
        """Score via the session store when there is one, otherwise locally."""
        transcript = self._log.text
        responses = self._log.responses

        if self.recorder is not None:
            await self._flush_persistence()
            if self._session_id is not None:
                try:
                    return await asyncio.to_thread(self.recorder.finalize_and_score, self._session_id, transcript)
                except Exception as e:
                    logger.warning(f"Finalize and score failed, scoring locally: {e}")

        try:
            return await asyncio.to_thread(self.scorer.score, transcript, responses)
        except Exception as e:
            logger.error(f"Scoring failed, using fallback: {e}")
            return fallback_score(responses, self.questions)

    def _halt(self, error: Exception):
        """Unrecoverable failure: back to idle with the error shown, no scoring."""
        self._silence_adapters()
        code = getattr(error, "code", ErrorCode.UNKNOWN_ERROR)
        self._set_error(code, str(error) or user_message(code))
        self._state.is_running = False
        self._state.is_paused = False
        self._set_phase(InterviewPhase.IDLE)
        logger.error(f"Interview halted: {error}")

    # ------------------------------------------------------------------
    # Speaking
    # ------------------------------------------------------------------

    async def _speak(self, text: str):
        """Speak and wait for completion, a bounded ceiling, or stop."""
        if not text or not text.strip():
            return
        while True:
            await self._wait_while_paused()
            self._speech_interrupted = False
            task = asyncio.ensure_future(self.speech_output.speak(text))
            self._speaking_task = task
            try:
                finished = await self._race(task, timeout=speech_ceiling(text))
            except _Stopped:
                self.speech_output.cancel()
                task.add_done_callback(_consume_result)
                raise
            finally:
                self._speaking_task = None

            if not finished:
                logger.warning(f"Speech output did not finish within {speech_ceiling(text):.1f}s; continuing")
                task.add_done_callback(_consume_result)
                return

            error = task.exception()
            if error is not None:
                if isinstance(error, SpeechOutputError) and error.is_benign:
                    logger.debug(f"Speech output ended: {error.reason}")
                else:
                    logger.error(f"Speech output failed: {error}")
                    self._set_error(getattr(error, "code", ErrorCode.SPEECH_SYNTHESIS_FAILED), str(error))

            if self._speech_interrupted:
                # Cut off by pause; say it again once resumed
                continue
            return

    # ------------------------------------------------------------------
    # Listening
    # ------------------------------------------------------------------

    async def _listen(self, question: InterviewQuestion, asked: str):
        """Capture one answer; returns (reason, text)."""
        await self._wait_while_paused()
        self._check_stopped()
        self._set_phase(InterviewPhase.LISTENING)

        max_time = question.max_response_time or DEFAULT_MAX_RESPONSE_TIME
        capture = TurnCapture(self.silence_window)
        self._capture = capture
        self._live_transcript = ""
        started = self.clock()
        paused_before = self._paused_total

        try:
            self._start_input(capture)
            self._arm_deadline(capture, max_time)

            while not capture.done:
                self._listen_signal = self._loop.create_future()
                await asyncio.wait({capture.future, self._listen_signal}, return_when=asyncio.FIRST_COMPLETED)
                if capture.done:
                    break
                if self._listen_signal.result() == "repeat":
                    await self._repeat(capture, asked, max_time)
        finally:
            self._listen_signal = None
            self._stop_input()
            capture.close()
            self._capture = None
            self._deadline_at = None
            self._deadline_left = None

        reason, text = capture.future.result()
        self._live_transcript = text
        self._turn_duration = max(0.0, self.clock() - started - (self._paused_total - paused_before))
        if capture.error is not None and reason == TurnEndReason.ERROR:
            self._set_error(getattr(capture.error, "code", ErrorCode.SPEECH_RECOGNITION_FAILED), str(capture.error))
        logger.debug(f"Listening ended by {reason} after {self._turn_duration:.1f}s")
        return reason, text

    async def _repeat(self, capture: TurnCapture, text: str, max_time: float):
        logger.info("Repeating the current question")
        capture.disarm()
        self._stop_input()
        self._set_phase(InterviewPhase.SPEAKING)
        try:
            await self._speak(text)
        except _Stopped:
            capture.resolve(TurnEndReason.STOPPED)
            return
        if capture.done:
            return
        self._set_phase(InterviewPhase.LISTENING)
        self._start_input(capture)
        self._arm_deadline(capture, max_time)

    def _arm_deadline(self, capture: TurnCapture, seconds: float):
        self._deadline_at = self._loop.time() + seconds
        self._deadline_left = seconds
        capture.arm_deadline(seconds)

    def _start_input(self, capture: TurnCapture):
        """Start the single speech input channel feeding `capture`."""
        self._stop_input()

        def on_partial(text: str):
            if self._capture is capture and not self._state.is_paused:
                capture.on_partial(text)

        def on_final(text: str):
            if self._capture is capture and not self._state.is_paused:
                capture.on_final(text)

        def on_error(error: Exception):
            if self._capture is not capture:
                return
            if isinstance(error, SpeechInputError) and error.is_benign:
                logger.debug(f"Ignoring benign speech input error: {error.reason}")
                return
            logger.error(f"Speech input error: {error}")
            capture.on_error(error)

        try:
            self._listen_handle = self.speech_input.start(on_partial, on_final, on_error)
        except SpeechInputUnsupportedError as e:
            raise _Halted(e)

    def _stop_input(self):
        handle = self._listen_handle
        self._listen_handle = None
        if handle is not None:
            try:
                handle.stop()
            except Exception as e:
                logger.warning(f"Error stopping speech input: {e}")

    def _silence_adapters(self):
        self._stop_input()
        try:
            self.speech_output.cancel()
        except Exception as e:
            logger.warning(f"Error cancelling speech output: {e}")

    # ------------------------------------------------------------------
    # Persistence (best effort, ordered)
    # ------------------------------------------------------------------

    def _persist(self, coro_fn: Callable, *args):
        """Queue a store call after every earlier one; never blocks the run."""
        previous = self._persist_task
        self._persist_task = asyncio.ensure_future(self._persist_after(previous, coro_fn, *args))

    async def _persist_after(self, previous, coro_fn: Callable, *args):
        if previous is not None:
            await asyncio.gather(previous, return_exceptions=True)
        try:
            await coro_fn(*args)
        except Exception as e:
            logger.warning(f"Session store call {coro_fn.__name__} failed: {e}")

    async def _create_session(self):
        metadata: Dict[str, Any] = {
            "configId": self.config.id,
            "configName": self.config.name,
            "totalQuestions": len(self.questions),
        }
        self._session_id = await asyncio.to_thread(
            self.recorder.create_session, self.room_url, self._log.text, metadata
        )
        logger.info(f"Session {self._session_id} created")

    async def _append_response(self, record: ResponseRecord):
        if self._session_id is None:
            return
        await asyncio.to_thread(self.recorder.append_response, self._session_id, record)

    async def _flush_persistence(self):
        if self._persist_task is not None:
            await asyncio.gather(self._persist_task, return_exceptions=True)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _record(self, question: InterviewQuestion, asked: str, text: str, is_follow_up: bool):
        record = ResponseRecord.create(
            question_id=question.id,
            question_text=asked,
            response_text=text,
            duration_seconds=self._turn_duration,
            is_follow_up=is_follow_up,
        )
        self._log.add_answer(record)
        self.event_bus.emit(events.response_recorded(self._session_id, record.to_dict()))
        if self.recorder is not None:
            self._persist(self._append_response, replace(record))

    def _set_phase(self, phase: InterviewPhase):
        old = self._state.phase
        if old == phase:
            return
        self._state.phase = phase
        logger.debug(f"Phase {old.value} -> {phase.value}")
        self.event_bus.emit(events.phase_changed(self._session_id, old.value, phase.value))

    def _set_error(self, code: ErrorCode, message: str):
        self._error = message
        self._error_code = code
        self.event_bus.emit(events.error_occurred(self._session_id, code.value, message, "orchestrator"))

    def _ceiling_reached(self) -> bool:
        return self.elapsed > self.duration_ceiling

    def _check_stopped(self):
        if self._stop_event is not None and self._stop_event.is_set():
            raise _Stopped()

    async def _race(self, fut: asyncio.Future, timeout: Optional[float] = None) -> bool:
        """
        Wait for `fut`, a stop request, or the timeout.

        Returns True if `fut` finished, False on timeout; raises _Stopped on stop.
        """
        stop_wait = asyncio.ensure_future(self._stop_event.wait())
        try:
            done, _ = await asyncio.wait({fut, stop_wait}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_wait.cancel()
        if fut in done:
            return True
        if self._stop_event.is_set():
            raise _Stopped()
        return False

    async def _wait_while_paused(self):
        if self._state.is_paused:
            await self._race(asyncio.ensure_future(self._resume_event.wait()))
        self._check_stopped()


def _consume_result(task: asyncio.Future):
    """Done-callback for abandoned tasks so their errors are logged, not lost."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None and not (isinstance(error, SpeechOutputError) and error.is_benign):
        logger.debug(f"Abandoned task finished with {error!r}")
