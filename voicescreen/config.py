"""
VoiceScreen Configuration System
================================

This file contains ALL configuration for the VoiceScreen interview system.
- User settings at the top (things users might want to change)
- Internal constants at the bottom (technical defaults)
"""
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


# =============================================================================
# USER SETTINGS - Edit these to customize the screening interview
# =============================================================================

# Judgment service (either an API key or a Google Cloud project)
GEMINI_API_KEY = None
GOOGLE_CLOUD_PROJECT = None
GOOGLE_APPLICATION_CREDENTIALS = None  # Optional: path to credentials JSON

# Session store
MONGODB_URI = None
MONGODB_DB = "voicescreen"

# Video room provider
DAILY_API_KEY = None
DAILY_DOMAIN = None

# Interview settings
INTERVIEW_DURATION_SECONDS = 600.0  # elapsed-time ceiling when neither env nor interview config sets one
SILENCE_WINDOW_SECONDS = 3.0
QUESTIONS_FILE = None  # Optional: JSON interview config to load instead of the default
WORKDIR = "./_interviews"

# Speech settings
ENABLE_TTS = True
TTS_VOICE = "en-US-Neural2-F"
LANGUAGE_CODE = "en-US"
SPEECH_RATE = 0.9

# Logging
LOG_FILE = "./_interviews/interview.log"
LOG_LEVEL = "INFO"


# =============================================================================
# INTERNAL CONSTANTS - Don't change these unless you know what you're doing
# =============================================================================

# Speech output completion ceiling, proportional to text length
TTS_MS_PER_CHAR = 60
TTS_MIN_WAIT_SECONDS = 2.0
TTS_MAX_WAIT_SECONDS = 12.0

# Speech input
STT_SAMPLE_RATE = 16000
STT_CHUNK_MS = 100
DEFAULT_MAX_RESPONSE_TIME = 120.0

# LLM
VERTEX_LOCATION = "us-central1"
MODEL_NAME = "gemini-1.5-flash"
LLM_TIMEOUT = 60
MAX_OUTPUT_TOKENS = 512
TURN_TEMPERATURE = 0.7
TURN_MAX_OUTPUT_TOKENS = 500
SCORING_TEMPERATURE = 0.3
SCORING_MAX_OUTPUT_TOKENS = 1500

# Scoring
HIRE_THRESHOLD = 7.5
MAYBE_THRESHOLD = 6.0
CATEGORY_WEIGHTS = {
    "communication": 0.25,
    "salesKnowledge": 0.30,
    "problemSolving": 0.25,
    "professionalism": 0.20,
}

# Session store
MONGO_SERVER_SELECTION_TIMEOUT_MS = 20000
SESSIONS_COLLECTION = "sessions"

# Rooms
DAILY_API_URL = "https://api.daily.co/v1/rooms"
ROOM_REQUEST_TIMEOUT = 15


# =============================================================================
# MAIN CONFIG OBJECT
# =============================================================================

@dataclass
class Config:
    """Main configuration object."""
    gemini_api_key: Optional[str] = GEMINI_API_KEY
    google_cloud_project: Optional[str] = GOOGLE_CLOUD_PROJECT
    google_application_credentials: Optional[str] = GOOGLE_APPLICATION_CREDENTIALS
    mongodb_uri: Optional[str] = MONGODB_URI
    mongodb_db: str = MONGODB_DB
    daily_api_key: Optional[str] = DAILY_API_KEY
    daily_domain: Optional[str] = DAILY_DOMAIN
    interview_duration_seconds: Optional[float] = None  # None: use the interview config duration
    silence_window_seconds: float = SILENCE_WINDOW_SECONDS
    questions_file: Optional[str] = QUESTIONS_FILE
    workdir: str = WORKDIR
    enable_tts: bool = ENABLE_TTS
    tts_voice: str = TTS_VOICE
    language_code: str = LANGUAGE_CODE
    speech_rate: float = SPEECH_RATE
    model_name: str = MODEL_NAME
    vertex_location: str = VERTEX_LOCATION
    log_file: str = LOG_FILE
    log_level: str = LOG_LEVEL

    @property
    def has_judgment_service(self) -> bool:
        return bool(self.gemini_api_key or self.google_cloud_project)

    @property
    def has_session_store(self) -> bool:
        return bool(self.mongodb_uri)

    @property
    def has_room_provider(self) -> bool:
        return bool(self.daily_api_key)

    def duration_ceiling(self, interview) -> float:
        """Seconds allowed for `interview`; an explicit setting beats the config's own duration."""
        if self.interview_duration_seconds:
            return self.interview_duration_seconds
        return interview.duration_seconds or INTERVIEW_DURATION_SECONDS


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def get_config() -> Config:
    """
    Load configuration from the environment.

    Missing keys never raise; they leave the matching service unconfigured so
    the interview runs on its fallback paths.
    """
    load_dotenv()

    return Config(
        gemini_api_key=os.getenv("GEMINI_API_KEY") or GEMINI_API_KEY,
        google_cloud_project=os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT,
        google_application_credentials=os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or GOOGLE_APPLICATION_CREDENTIALS,
        mongodb_uri=os.getenv("MONGODB_URI") or MONGODB_URI,
        mongodb_db=os.getenv("MONGODB_DB") or MONGODB_DB,
        daily_api_key=os.getenv("DAILY_API_KEY") or DAILY_API_KEY,
        daily_domain=os.getenv("DAILY_DOMAIN") or DAILY_DOMAIN,
        interview_duration_seconds=_env_float("INTERVIEW_DURATION_SECONDS", None),
        silence_window_seconds=_env_float("SILENCE_WINDOW_SECONDS", SILENCE_WINDOW_SECONDS),
        questions_file=os.getenv("QUESTIONS_FILE") or QUESTIONS_FILE,
        workdir=os.getenv("WORKDIR") or WORKDIR,
        enable_tts=_env_bool("ENABLE_TTS", ENABLE_TTS),
        log_file=os.getenv("LOG_FILE") or LOG_FILE,
        log_level=os.getenv("LOG_LEVEL") or LOG_LEVEL,
    )
