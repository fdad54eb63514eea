import asyncio
from types import SimpleNamespace

from voicescreen.errors import (
    ErrorCode, PersistenceError, SpeechInputError, SpeechOutputError, TransportError,
)
from voicescreen.infrastructure.data import MongoConnection, SessionRecorder
from voicescreen.interview.events import EventType
from voicescreen.interview.models import NO_RESPONSE_SENTINEL
from voicescreen.interview.orchestrator import InterviewOrchestrator, speech_ceiling
from voicescreen.interview.prompts import InterviewPrompts
from voicescreen.interview.schemas import InterviewPhase, ResponseQuality, TurnAction, TurnDecision
from voicescreen.interview.scoring import ScoringCoordinator
from voicescreen.interview.testing import (
    MockEvaluator, MockLLMClient, MockMongoClient, MockScorer, MockSpeechInput, MockSpeechOutput,
    ScriptStep, answer, create_test_config, silence,
)
from voicescreen.interview.turn_evaluator import TurnEvaluator

CLOSING = InterviewPrompts.fixed_messages()["closing"]
ACK = InterviewPrompts.fixed_messages()["follow_up_acknowledgment"]


def next_decision(transcript, state):
    return TurnDecision(ResponseQuality.COMPLETE, TurnAction.NEXT, "")


def build(scripts=(), decide=None, count=3, max_time=0.3, output=None, speech_input=None,
          evaluator=None, scorer=None, **kwargs):
    config = create_test_config(count, max_time)
    h = SimpleNamespace(
        config=config,
        output=output or MockSpeechOutput(),
        speech_input=speech_input or MockSpeechInput(scripts),
        evaluator=evaluator or MockEvaluator(decide or next_decision),
        scorer=scorer or MockScorer(ScoringCoordinator(None, config.questions)),
        events=[],
    )
    h.orch = InterviewOrchestrator(config, h.output, h.speech_input, h.evaluator, h.scorer,
                                   silence_window=0.05, **kwargs)
    h.orch.event_bus.subscribe_all(h.events.append)
    return h


def event_types(h):
    return [e.event_type for e in h.events]


def test_speech_ceiling_is_clamped():
    assert speech_ceiling("hi") == 2.0
    assert speech_ceiling("x" * 100) == 6.0
    assert speech_ceiling("x" * 1000) == 12.0


def test_all_questions_answered():
    h = build([answer("first answer"), answer("second answer"), answer("third answer")])
    result = asyncio.run(h.orch.start())

    assert result is not None and result.fallback
    assert [r.question_id for r in h.orch.responses] == ["q1", "q2", "q3"]
    assert [r.response_text for r in h.orch.responses] == ["first answer", "second answer", "third answer"]
    assert h.orch.state.phase == InterviewPhase.COMPLETED
    assert not h.orch.state.is_running
    assert h.orch.result is result
    assert h.scorer.calls == 1
    assert len(h.evaluator.calls) == 3
    assert h.output.spoken == ["Test question 1?", "Test question 2?", "Test question 3?", CLOSING]
    assert "Q3: Test question 3?\nA: third answer" in h.orch.transcript
    assert "Interview completed at:" in h.orch.transcript
    assert h.orch.error is None

    types = event_types(h)
    assert types[0] == EventType.INTERVIEW_STARTED
    assert types[-1] == EventType.INTERVIEW_COMPLETED
    assert types.count(EventType.RESPONSE_RECORDED) == 3
    phases = [e.data["to"] for e in h.events if e.event_type == EventType.PHASE_CHANGED]
    assert phases[:3] == ["speaking", "listening", "evaluating"]
    assert phases[-2:] == ["wrap_up", "completed"]


def test_silent_turn_records_sentinel_without_evaluation():
    h = build([answer("one"), silence(), answer("three")])
    result = asyncio.run(h.orch.start())

    assert result is not None
    assert [r.response_text for r in h.orch.responses] == ["one", NO_RESPONSE_SENTINEL, "three"]
    assert len(h.evaluator.calls) == 2
    assert [t for t, _ in h.evaluator.calls] == ["one", "three"]
    assert "A: [No response provided]" in h.orch.transcript


def test_malformed_evaluator_output_advances():
    llm = MockLLMClient(["not json", "{broken", "```nope```"])
    h = build([answer("a"), answer("b"), answer("c")], evaluator=TurnEvaluator(llm))
    result = asyncio.run(h.orch.start())

    assert result is not None
    assert len(h.orch.responses) == 3
    assert len(llm.request_history) == 3
    assert h.orch.state.phase == InterviewPhase.COMPLETED


def test_stop_while_listening_scores_partial_interview():
    h = build([answer("first answer")])
    stop_tasks = []
    h.speech_input.scripts.append([
        ScriptStep("partial", "I would start by", 0.01),
        ScriptStep("call", lambda: stop_tasks.append(asyncio.ensure_future(h.orch.stop())), 0.02),
    ])

    async def scenario():
        result = await h.orch.start()
        await asyncio.gather(*stop_tasks)
        return result

    result = asyncio.run(scenario())

    assert result is not None
    assert [r.response_text for r in h.orch.responses] == ["first answer", "I would start by"]
    assert len(h.evaluator.calls) == 1
    assert CLOSING not in h.output.spoken
    assert h.scorer.calls == 1
    assert h.orch.state.phase == InterviewPhase.COMPLETED
    assert not h.speech_input.active
    completed = [e for e in h.events if e.event_type == EventType.INTERVIEW_COMPLETED]
    assert completed[0].data["stopped"] is True


def test_stop_before_start_is_ignored():
    h = build()
    asyncio.run(h.orch.stop())
    assert h.orch.state.phase == InterviewPhase.IDLE


def test_one_follow_up_per_question():
    def always_follow_up(transcript, state):
        return TurnDecision(ResponseQuality.INCOMPLETE, TurnAction.FOLLOW_UP, "Tell me more.")

    h = build([answer("a1"), answer("a1 more"), answer("a2"), answer("a2 more"), answer("a3")],
              decide=always_follow_up)
    result = asyncio.run(h.orch.start())

    assert result is not None
    records = h.orch.responses
    assert [(r.question_id, r.is_follow_up) for r in records] == [
        ("q1", False), ("q1", True), ("q2", False), ("q2", True), ("q3", False),
    ]
    assert len(h.evaluator.calls) == 3
    assert h.output.spoken.count(ACK) == 2
    assert "Follow-up: Tell me more.\nA: a1 more" in h.orch.transcript
    assert [q.score for q in result.question_scores] == [3, 3, 2]


def test_elapsed_ceiling_overrides_evaluator():
    now = [0.0]

    def jump_clock(transcript, state):
        now[0] = 1000.0
        return TurnDecision(ResponseQuality.COMPLETE, TurnAction.NEXT, "")

    h = build([answer("a1"), answer("a2"), answer("a3")], decide=jump_clock,
              duration_ceiling=100, clock=lambda: now[0])
    result = asyncio.run(h.orch.start())

    assert result is not None
    assert [r.question_id for r in h.orch.responses] == ["q1"]
    assert len(h.evaluator.calls) == 1
    assert h.output.spoken[-1] == CLOSING


def test_pause_and_resume_while_listening():
    h = build([silence(), answer("after pause"), answer("two"), answer("three")])

    async def scenario():
        task = asyncio.ensure_future(h.orch.start())
        await asyncio.sleep(0.05)
        assert h.orch.phase == InterviewPhase.LISTENING
        h.orch.pause()
        assert h.orch.state.is_paused
        remaining = h.orch.seconds_remaining
        assert 0 < remaining <= 0.3
        await asyncio.sleep(0.5)
        assert h.orch.phase == InterviewPhase.LISTENING
        assert h.orch.responses == []
        assert not h.speech_input.active
        h.orch.resume()
        return await task

    result = asyncio.run(scenario())

    assert result is not None
    assert [r.response_text for r in h.orch.responses] == ["after pause", "two", "three"]
    assert h.speech_input.start_count == 4
    assert event_types(h).count(EventType.INTERVIEW_PAUSED) == 1
    assert event_types(h).count(EventType.INTERVIEW_RESUMED) == 1


def test_pause_while_speaking_repeats_utterance():
    h = build([answer("only answer")], count=1, output=MockSpeechOutput(delay=0.2))

    async def scenario():
        task = asyncio.ensure_future(h.orch.start())
        await asyncio.sleep(0.05)
        assert h.orch.phase == InterviewPhase.SPEAKING
        h.orch.pause()
        await asyncio.sleep(0.1)
        h.orch.resume()
        return await task

    result = asyncio.run(scenario())

    assert result is not None
    assert h.output.spoken == ["Test question 1?", "Test question 1?", CLOSING]
    assert h.orch.error is None


def test_immediate_resume_while_speaking_repeats_utterance():
    h = build([answer("only answer")], count=1, output=MockSpeechOutput(delay=0.2))

    async def scenario():
        task = asyncio.ensure_future(h.orch.start())
        await asyncio.sleep(0.05)
        assert h.orch.phase == InterviewPhase.SPEAKING
        h.orch.pause()
        h.orch.resume()
        return await task

    result = asyncio.run(scenario())

    assert result is not None
    assert h.output.spoken == ["Test question 1?", "Test question 1?", CLOSING]
    assert [r.response_text for r in h.orch.responses] == ["only answer"]


def test_evaluator_wrap_up_ends_interview_early():
    def decide(transcript, state):
        return TurnDecision(ResponseQuality.COMPLETE, TurnAction.WRAP_UP, "That covers everything.")

    h = build([answer("first answer"), answer("second answer")], decide=decide)
    result = asyncio.run(h.orch.start())

    assert result is not None
    assert [r.question_id for r in h.orch.responses] == ["q1"]
    assert len(h.evaluator.calls) == 1
    assert h.speech_input.start_count == 1
    assert h.output.spoken == ["Test question 1?", "That covers everything.", CLOSING]
    assert h.orch.state.phase == InterviewPhase.COMPLETED
    assert h.scorer.calls == 1


def test_question_procedure_is_not_reentrant():
    h = build([answer("first answer", at=0.2)], count=1, max_time=1.0)

    async def scenario():
        task = asyncio.ensure_future(h.orch.start())
        await asyncio.sleep(0.05)
        assert h.orch.phase == InterviewPhase.LISTENING
        nested = await h.orch._run_question(0)
        return nested, await task

    nested, result = asyncio.run(scenario())

    assert nested is None
    assert result is not None
    assert h.speech_input.start_count == 1
    assert h.output.spoken == ["Test question 1?", CLOSING]
    assert [r.response_text for r in h.orch.responses] == ["first answer"]


def test_unsupported_input_halts_to_idle():
    h = build(speech_input=MockSpeechInput(unsupported=True))
    result = asyncio.run(h.orch.start())

    assert result is None
    assert h.orch.state.phase == InterviewPhase.IDLE
    assert not h.orch.state.is_running
    assert h.orch.error == "Speech recognition not supported"
    assert h.orch.error_code == ErrorCode.SPEECH_NOT_SUPPORTED
    assert h.scorer.calls == 0
    assert h.orch.responses == []


def test_recognition_error_routes_to_wrap_up():
    h = build([answer("one"), [ScriptStep("error", SpeechInputError("network"), 0.01)]])
    result = asyncio.run(h.orch.start())

    assert result is not None
    assert [r.question_id for r in h.orch.responses] == ["q1"]
    assert h.orch.error == "Speech recognition error: network"
    assert h.orch.error_code == ErrorCode.SPEECH_RECOGNITION_FAILED
    assert h.output.spoken[-1] == CLOSING
    assert h.orch.state.phase == InterviewPhase.COMPLETED


def test_benign_recognition_error_is_ignored():
    h = build([[ScriptStep("error", SpeechInputError("no-speech"), 0.01)]], count=1)
    asyncio.run(h.orch.start())

    assert h.orch.error is None
    assert h.orch.responses[0].response_text == NO_RESPONSE_SENTINEL


def test_speech_output_failure_does_not_stop_interview():
    h = build([answer("a"), answer("b"), answer("c")],
              output=MockSpeechOutput(fail_with=SpeechOutputError("audio-hardware")))
    result = asyncio.run(h.orch.start())

    assert result is not None
    assert len(h.orch.responses) == 3
    assert h.orch.error_code == ErrorCode.SPEECH_SYNTHESIS_FAILED


def test_scoring_service_failure_falls_back():
    llm = MockLLMClient([TransportError("LLM REST error 500", status=500)])
    h = build([answer("a"), answer("b"), answer("c")], scorer=ScoringCoordinator(llm))
    result = asyncio.run(h.orch.start())

    assert result.fallback is True
    assert result.raw_llm_error == "LLM REST error 500"
    assert h.orch.state.phase == InterviewPhase.COMPLETED


def test_raising_scorer_still_completes():
    class BrokenScorer:
        def score(self, transcript, responses):
            raise RuntimeError("scorer exploded")

    h = build([answer("a"), answer("b"), answer("c")], scorer=BrokenScorer())
    result = asyncio.run(h.orch.start())

    assert result.fallback is True
    assert len(result.question_scores) == 3
    assert h.orch.state.phase == InterviewPhase.COMPLETED


def test_session_is_recorded_and_scored_once():
    connection = MongoConnection("mongodb://mock", "voicescreen_test", client_factory=MockMongoClient)
    config = create_test_config()
    scorer = MockScorer(ScoringCoordinator(None, config.questions))
    recorder = SessionRecorder(connection, scorer)
    h = build([answer("a"), silence(), answer("c")], scorer=scorer, recorder=recorder,
              room_url="https://rooms.example/r1")
    result = asyncio.run(h.orch.start())

    assert h.orch.session_id is not None
    doc = recorder.get_session(h.orch.session_id)
    assert [r["questionId"] for r in doc["responses"]] == ["q1", "q2", "q3"]
    assert doc["responses"][1]["responseText"] == NO_RESPONSE_SENTINEL
    assert doc["status"] == "scored"
    assert doc["roomUrl"] == "https://rooms.example/r1"
    assert doc["metadata"]["configId"] == "test"
    assert doc["scoring"]["overallScore"] == result.overall_score
    assert scorer.calls == 1
    recorder.close()


def test_failing_session_store_scores_locally():
    class DownRecorder:
        def create_session(self, *args):
            raise PersistenceError("Create session error: down")

        def finalize_and_score(self, *args):
            raise AssertionError("no session to finalize")

    h = build([answer("a"), answer("b"), answer("c")], recorder=DownRecorder())
    result = asyncio.run(h.orch.start())

    assert result is not None
    assert h.orch.session_id is None
    assert h.scorer.calls == 1
    assert h.orch.error is None


def test_skip_records_capture_without_evaluation():
    h = build([answer("two"), answer("three")])
    h.speech_input.scripts.insert(0, [
        ScriptStep("partial", "half an answer", 0.01),
        ScriptStep("call", lambda: h.orch.skip_question(), 0.02),
    ])
    asyncio.run(h.orch.start())

    assert [r.response_text for r in h.orch.responses] == ["half an answer", "two", "three"]
    assert [t for t, _ in h.evaluator.calls] == ["two", "three"]


def test_repeat_question_while_listening():
    h = build([answer("one"), answer("two"), answer("three")])
    h.speech_input.scripts.insert(0, [ScriptStep("call", lambda: h.orch.repeat_question(), 0.01)])
    asyncio.run(h.orch.start())

    assert h.output.spoken[:3] == ["Test question 1?", "Test question 1?", "Test question 2?"]
    assert [r.response_text for r in h.orch.responses] == ["one", "two", "three"]
    assert h.speech_input.start_count == 4


def test_submit_ends_turn_and_empty_submit_is_ignored():
    h = build(count=2)
    h.speech_input.scripts = [
        [ScriptStep("final", "typed answer", 0.01), ScriptStep("call", lambda: h.orch.submit(), 0.02)],
        [ScriptStep("call", lambda: h.orch.submit(), 0.01)],
    ]
    asyncio.run(h.orch.start())

    assert [r.response_text for r in h.orch.responses] == ["typed answer", NO_RESPONSE_SENTINEL]


def test_second_start_is_a_no_op():
    h = build([answer("a")], count=1)
    assert asyncio.run(h.orch.start()) is not None
    assert asyncio.run(h.orch.start()) is None
    assert len(h.orch.responses) == 1


def test_broken_subscriber_does_not_affect_run():
    h = build([answer("a"), answer("b"), answer("c")])

    def broken(event):
        raise RuntimeError("subscriber bug")

    h.orch.event_bus.subscribe_all(broken)
    result = asyncio.run(h.orch.start())
    assert result is not None
    assert len(h.orch.responses) == 3
