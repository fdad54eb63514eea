from voicescreen.config import Config, INTERVIEW_DURATION_SECONDS, get_config
from voicescreen.interview.models import InterviewConfig
from voicescreen.interview.testing import create_test_config


def _interview(minutes):
    base = create_test_config(1)
    return InterviewConfig(id=base.id, name=base.name, duration=minutes, questions=base.questions)


def test_duration_ceiling_follows_interview_config():
    assert Config().duration_ceiling(_interview(15)) == 900.0


def test_explicit_duration_overrides_interview_config():
    assert Config(interview_duration_seconds=120.0).duration_ceiling(_interview(15)) == 120.0


def test_duration_ceiling_default_without_interview_duration():
    assert Config().duration_ceiling(_interview(0)) == INTERVIEW_DURATION_SECONDS


def test_get_config_reads_duration_from_environment(monkeypatch):
    monkeypatch.delenv("INTERVIEW_DURATION_SECONDS", raising=False)
    assert get_config().interview_duration_seconds is None

    monkeypatch.setenv("INTERVIEW_DURATION_SECONDS", "300")
    assert get_config().interview_duration_seconds == 300.0

    monkeypatch.setenv("INTERVIEW_DURATION_SECONDS", "soon")
    assert get_config().interview_duration_seconds is None
