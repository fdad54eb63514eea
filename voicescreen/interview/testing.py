"""
Testing infrastructure with mock services for the interview system.
"""
import asyncio
import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from bson import ObjectId

from ..errors import JudgmentError, SpeechInputUnsupportedError, SpeechOutputError
from ..infrastructure.speech.stt import ListenHandle, SpeechInput
from ..infrastructure.speech.tts import SpeechOutput
from .models import InterviewConfig, InterviewQuestion
from .schemas import parse_json_object


@dataclass
class ScriptStep:
    """One scripted recognizer event, `at` seconds after start()."""
    kind: str  # "partial", "final", "error" or "call"
    value: Any = None
    at: float = 0.0


def answer(text: str, at: float = 0.01) -> List[ScriptStep]:
    """Interim then final result for one spoken answer."""
    return [ScriptStep("partial", text, at), ScriptStep("final", text, at + 0.005)]


def silence() -> List[ScriptStep]:
    """A turn where the candidate says nothing."""
    return []


class MockSpeechInput(SpeechInput):
    """
    Speech input driven by per-session scripts.

    Each start() consumes the next script; once they run out the recognizer
    stays silent. Steps still pending when the handle is stopped are dropped.
    """

    def __init__(self, scripts: Sequence[List[ScriptStep]] = (), unsupported: bool = False):
        self.scripts = [list(s) for s in scripts]
        self.unsupported = unsupported
        self.start_count = 0
        self.stop_count = 0
        self.active = False

    def start(self, on_partial, on_final, on_error) -> ListenHandle:
        if self.unsupported:
            raise SpeechInputUnsupportedError()
        loop = asyncio.get_running_loop()
        script = self.scripts.pop(0) if self.scripts else []
        self.start_count += 1
        self.active = True
        timers = []

        def run(step: ScriptStep):
            if step.kind == "partial":
                on_partial(step.value)
            elif step.kind == "final":
                on_final(step.value)
            elif step.kind == "error":
                on_error(step.value)
            elif step.kind == "call":
                step.value()

        for step in script:
            timers.append(loop.call_later(step.at, run, step))

        def stop():
            self.stop_count += 1
            self.active = False
            for timer in timers:
                timer.cancel()

        return ListenHandle(stop)


class MockSpeechOutput(SpeechOutput):
    """Records every utterance instead of playing it."""

    def __init__(self, delay: float = 0.0, fail_with: Optional[SpeechOutputError] = None):
        self.delay = delay
        self.fail_with = fail_with
        self.spoken: List[str] = []
        self.cancel_count = 0
        self._current: Optional[asyncio.Future] = None

    async def speak(self, text: str) -> None:
        self.spoken.append(text)
        if self.fail_with is not None:
            raise self.fail_with
        if self.delay <= 0:
            return
        self._current = asyncio.get_running_loop().create_future()
        try:
            await asyncio.wait_for(asyncio.shield(self._current), timeout=self.delay)
        except asyncio.TimeoutError:
            return
        finally:
            self._current = None
        raise SpeechOutputError("canceled")

    def cancel(self) -> None:
        self.cancel_count += 1
        if self._current is not None and not self._current.done():
            self._current.set_result(None)


class MockLLMClient:
    """Mock LLM client returning queued responses; exceptions in the queue are raised."""

    def __init__(self, mock_responses: Sequence[Union[str, Exception]] = (), default: str = ""):
        self.mock_responses = list(mock_responses)
        self.default = default
        self.request_history: List[Dict[str, Any]] = []

    def generate_content(self, prompt: str, temperature: float = 0.0, **kwargs) -> str:
        self.request_history.append({
            "prompt": prompt,
            "temperature": temperature,
            "kwargs": kwargs,
        })
        if self.mock_responses:
            response = self.mock_responses.pop(0)
            if isinstance(response, Exception):
                raise response
            return response
        return self.default

    def generate_json(self, prompt: str, temperature: float = 0.0, **kwargs) -> Dict[str, Any]:
        text = self.generate_content(prompt.strip() + "\n\nRespond ONLY with minified JSON.",
                                     temperature=temperature, **kwargs)
        try:
            return parse_json_object(text)
        except ValueError as e:
            raise JudgmentError(str(e), raw=text) from e


class MockEvaluator:
    """Counts calls and delegates to a decision factory."""

    def __init__(self, decide: Callable):
        self.decide = decide
        self.calls: List[Any] = []

    def evaluate(self, transcript, state):
        self.calls.append((transcript, state))
        return self.decide(transcript, state)


class MockScorer:
    """Wraps a scorer and counts score() calls."""

    def __init__(self, inner):
        self.inner = inner
        self.calls = 0

    def score(self, transcript, responses):
        self.calls += 1
        return self.inner.score(transcript, responses)


# --- in-memory MongoDB ---------------------------------------------------------

@dataclass
class _InsertResult:
    inserted_id: ObjectId


@dataclass
class _UpdateResult:
    matched_count: int
    modified_count: int


@dataclass
class MockCollection:
    """The subset of a pymongo collection the session store uses."""
    docs: Dict[ObjectId, Dict[str, Any]] = field(default_factory=dict)
    fail_with: Optional[Exception] = None

    def insert_one(self, doc):
        if self.fail_with is not None:
            raise self.fail_with
        oid = ObjectId()
        stored = dict(doc)
        stored["_id"] = oid
        self.docs[oid] = stored
        return _InsertResult(oid)

    def update_one(self, flt, update):
        if self.fail_with is not None:
            raise self.fail_with
        doc = self.docs.get(flt.get("_id"))
        if doc is None:
            return _UpdateResult(0, 0)
        for key, value in update.get("$set", {}).items():
            doc[key] = value
        for key, value in update.get("$push", {}).items():
            doc.setdefault(key, []).append(value)
        return _UpdateResult(1, 1)

    def find_one(self, flt):
        if self.fail_with is not None:
            raise self.fail_with
        doc = self.docs.get(flt.get("_id"))
        return dict(doc) if doc is not None else None


class MockMongoClient:
    """Stands in for MongoClient; pass the class as a connection's client_factory."""

    instances: List["MockMongoClient"] = []

    def __init__(self, uri: str = "mongodb://mock", **kwargs):
        self.uri = uri
        self.kwargs = kwargs
        self.closed = False
        self.databases: Dict[str, Dict[str, MockCollection]] = {}
        MockMongoClient.instances.append(self)

    def __getitem__(self, name: str):
        return self.databases.setdefault(name, _MockDatabase())

    def close(self):
        self.closed = True


class _MockDatabase(dict):
    def __missing__(self, key):
        collection = MockCollection()
        self[key] = collection
        return collection


def create_test_config(count: int = 3, max_response_time: float = 0.3) -> InterviewConfig:
    """Small interview with short response deadlines for timer-driven tests."""
    questions = tuple(
        InterviewQuestion(
            id=f"q{i + 1}",
            question=f"Test question {i + 1}?",
            max_response_time=max_response_time,
            category="general",
        )
        for i in range(count)
    )
    return InterviewConfig(id="test", name="Test Screening", duration=10, questions=questions)


def decision_json(action: str = "next", quality: str = "complete", message: str = "") -> str:
    return json.dumps({"responseQuality": quality, "action": action, "message": message})
