#!/usr/bin/env python3
"""
Main entry point for the VoiceScreen interview system.
Allows running the package with: python -m voicescreen
"""
import asyncio
import signal
import sys
from typing import Optional

from .config import get_config, Config
from .errors import InterviewSystemError, PersistenceError, RoomProvisioningError
from .utils import setup_logging
from .interview.events import EventLogger, EventType, InterviewAnalytics, InterviewEvent
from .interview.models import InterviewConfig, ScoringResult
from .interview.orchestrator import InterviewOrchestrator
from .interview.questions import SDR_SCREENING, config_stats, load_config_file
from .interview.scoring import ScoringCoordinator
from .interview.turn_evaluator import TurnEvaluator

DEMO_ANSWERS = [
    "Hi, I'm Sam. I spent two years in retail sales and I'm now moving into tech sales "
    "because I love the pace and talking with customers every day.",
    "I'd open with a quick reason for the call tied to something I saw on their site, "
    "ask one question about their current process and aim for a fifteen minute follow-up.",
    "I'd acknowledge the concern, ask what they're using today, and offer to send a short "
    "case study so the follow-up call has something concrete.",
    "I'd ask about budget, who else is involved in the decision, the problem they need "
    "solved and their timeline.",
    "The fast feedback loop. Every call teaches me something and the numbers show it.",
    "I'd thank them for their time, ask which department owns the problem and request a "
    "warm introduction to the right person.",
]


def _flag_value(name: str) -> Optional[str]:
    prefix = f"--{name}="
    for arg in sys.argv[1:]:
        if arg.startswith(prefix):
            return arg[len(prefix):]
    return None


def _positive_float(name: str, default: float) -> float:
    raw = _flag_value(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        print(f"❌ Invalid {name} value '{raw}'. Use --{name}=<seconds>")
        sys.exit(1)
    if value <= 0:
        print(f"❌ --{name} must be greater than zero")
        sys.exit(1)
    return value


def _print_event(event: InterviewEvent):
    """Console progress lines for the interesting events."""
    data = event.data
    if event.event_type == EventType.QUESTION_ASKED and not data.get("is_follow_up"):
        print(f"\n❓ Question {data['index'] + 1}")
    elif event.event_type == EventType.RESPONSE_RECORDED:
        print(f"💬 \"{data.get('responseText') or '(no speech detected)'}\"")
    elif event.event_type == EventType.DECISION_MADE:
        print(f"   Decided: {data.get('action')} ({data.get('responseQuality')})")
    elif event.event_type == EventType.INTERVIEW_PAUSED:
        print("⏸️  Paused (type /resume to continue)")
    elif event.event_type == EventType.INTERVIEW_RESUMED:
        print("▶️  Resumed")
    elif event.event_type == EventType.ERROR_OCCURRED:
        print(f"⚠️  {data.get('error_message')}")


def _print_result(result: Optional[ScoringResult], orchestrator: InterviewOrchestrator,
                  analytics: InterviewAnalytics):
    print("\n" + "=" * 50)
    if result is None:
        print("❌ Interview did not complete")
        if orchestrator.error:
            print(f"🛑 Reason: {orchestrator.error}")
        return

    print(f"🔢 Overall Score: {result.overall_score:.1f}/10")
    print(f"📊 Decision: {result.decision.replace('_', ' ').title()}")
    if result.fallback:
        print("🧮 Scored with the offline fallback")
    print("\n📂 Categories:")
    for name, value in result.category_scores.items():
        print(f"   {name}: {value:.1f}")
    if result.question_scores:
        print("\n📝 Questions:")
        for q in result.question_scores:
            print(f"   [{q.score:.0f}] {q.question_id}: {q.feedback}")
    print(f"\n💭 {result.summary}")
    if result.recommendations:
        print("\n💡 Recommendations:")
        for rec in result.recommendations:
            print(f"   - {rec}")

    metrics = analytics.get_metrics()
    print(f"\n⏱️  {metrics['total_duration']:.0f}s, {metrics['questions_completed']} answers, "
          f"{metrics['total_words']} words")
    if orchestrator.session_id:
        print(f"🗄️  Session: {orchestrator.session_id}")


def _load_interview(config: Config) -> InterviewConfig:
    path = _flag_value("config") or config.questions_file
    if not path:
        return SDR_SCREENING
    try:
        return load_config_file(path)
    except (OSError, ValueError) as e:
        print(f"❌ Could not load interview config {path}: {e}")
        sys.exit(1)


def _build_speech(config: Config, use_tts: bool, demo: bool, on_command):
    from .infrastructure.speech import (
        ConsoleSpeechInput, ConsoleSpeechOutput, GoogleSpeechOutput, GoogleStreamingSpeechInput,
    )

    if use_tts and not demo:
        output = GoogleSpeechOutput(voice=config.tts_voice, language_code=config.language_code,
                                    speaking_rate=config.speech_rate)
    else:
        output = ConsoleSpeechOutput()

    if demo:
        from .interview.testing import MockSpeechInput, answer
        speech_input = MockSpeechInput([answer(text, at=0.2) for text in DEMO_ANSWERS])
    elif use_tts:
        speech_input = GoogleStreamingSpeechInput(language_code=config.language_code)
    else:
        speech_input = ConsoleSpeechInput(on_command=on_command)
    return output, speech_input


def _build_recorder(config: Config, scorer: ScoringCoordinator):
    if not config.has_session_store:
        return None
    from .infrastructure.data import MongoConnection, SessionRecorder
    try:
        return SessionRecorder(MongoConnection(config.mongodb_uri, config.mongodb_db), scorer)
    except PersistenceError as e:
        print(f"⚠️  Session store unavailable: {e}")
        return None


def _create_room(config: Config) -> Optional[str]:
    if not config.has_room_provider:
        print("⚠️  --room needs DAILY_API_KEY; continuing without a room")
        return None
    from .infrastructure.rooms import DailyRoomClient
    try:
        room = DailyRoomClient(config.daily_api_key, config.daily_domain).create_room()
    except RoomProvisioningError as e:
        print(f"⚠️  Could not create a room: {e}")
        return None
    print(f"📹 Room: {room.url}")
    return room.url


async def run(config: Config, use_tts: bool, demo: bool) -> Optional[ScoringResult]:
    interview = _load_interview(config)
    duration = _positive_float("duration", config.duration_ceiling(interview))
    silence_window = _positive_float("silence", 0.6 if demo else config.silence_window_seconds)

    llm_client = None
    if not demo:
        from .infrastructure.llm import build_llm_client
        llm_client = build_llm_client(config)

    scorer = ScoringCoordinator(llm_client, interview.questions)
    evaluator = TurnEvaluator(llm_client, duration_ceiling_sec=duration)
    recorder = None if demo else _build_recorder(config, scorer)
    room_url = _create_room(config) if "--room" in sys.argv and not demo else None

    loop = asyncio.get_running_loop()
    orchestrator: Optional[InterviewOrchestrator] = None

    def on_command(name: str):
        if orchestrator is None:
            return
        if name == "submit":
            orchestrator.submit()
        elif name in ("skip", "next"):
            orchestrator.skip_question()
        elif name == "repeat":
            orchestrator.repeat_question()
        elif name == "pause":
            orchestrator.pause()
            _wait_for_resume()
        elif name == "stop":
            loop.create_task(orchestrator.stop())
        else:
            print(f"❓ Unknown command /{name} (try /skip, /repeat, /pause, /stop)")

    def _wait_for_resume():
        # Console input is torn down while paused; read commands directly
        fd = sys.stdin.fileno()

        def on_line():
            line = sys.stdin.readline().strip().lower()
            if line in ("/resume", ""):
                loop.remove_reader(fd)
                orchestrator.resume()
            elif line == "/stop":
                loop.remove_reader(fd)
                loop.create_task(orchestrator.stop())

        loop.add_reader(fd, on_line)

    speech_output, speech_input = _build_speech(config, use_tts, demo, on_command)

    orchestrator = InterviewOrchestrator(
        interview, speech_output, speech_input, evaluator, scorer,
        recorder=recorder,
        silence_window=silence_window,
        duration_ceiling=duration,
        room_url=room_url,
    )

    analytics = InterviewAnalytics()
    orchestrator.event_bus.subscribe_all(EventLogger().handle_event)
    orchestrator.event_bus.subscribe_all(analytics.handle_event)
    orchestrator.event_bus.subscribe_all(_print_event)

    try:
        loop.add_signal_handler(signal.SIGINT, lambda: loop.create_task(orchestrator.stop()))
    except (NotImplementedError, RuntimeError):
        pass

    stats = config_stats(interview)
    print(f"\n🎙️  Starting interview '{interview.name}' - {stats['totalQuestions']} questions, "
          f"about {stats['estimatedDuration']} minutes")
    if not use_tts and not demo:
        print("   Type your answers; a blank line submits. Commands: /skip /repeat /pause /stop")

    try:
        result = await orchestrator.start()
    finally:
        if recorder is not None:
            recorder.close()

    _print_result(result, orchestrator, analytics)
    return result


def main():
    """Command-line interface for the interview orchestrator."""

    # Load configuration from environment
    try:
        config = get_config()
    except ValueError as e:
        print(f"❌ Configuration Error: {e}")
        sys.exit(1)

    # TTS configuration with explicit flags taking precedence
    explicit_tts = "--tts" in sys.argv or "--speech" in sys.argv
    explicit_text = "--text" in sys.argv or "--no-tts" in sys.argv
    demo = "--demo" in sys.argv

    if explicit_text:
        use_tts = False
    elif explicit_tts:
        use_tts = True
    else:
        use_tts = config.enable_tts

    # Show configuration
    if demo:
        print("🧪 Demo Mode: scripted answers, offline scoring")
    elif use_tts:
        print("🔊 Voice Mode: questions are spoken and answers recognized from the microphone")
        print("   (Use --text or --no-tts to type instead)")
    else:
        print("📝 Text Mode: questions are displayed and answers typed")

    log_file = setup_logging(config.log_file, config.log_level)
    print(f"📝 Detailed logs: {log_file}")

    try:
        result = asyncio.run(run(config, use_tts, demo))
    except InterviewSystemError as e:
        print(f"❌ {e}")
        sys.exit(1)

    sys.exit(0 if result is not None else 2)


if __name__ == "__main__":
    main()
