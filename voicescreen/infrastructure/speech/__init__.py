"""Speech-to-text and text-to-speech adapters."""

from .tts import SpeechOutput, ConsoleSpeechOutput, GoogleSpeechOutput
from .stt import SpeechInput, ListenHandle, ConsoleSpeechInput, GoogleStreamingSpeechInput

__all__ = [
    "SpeechOutput", "ConsoleSpeechOutput", "GoogleSpeechOutput",
    "SpeechInput", "ListenHandle", "ConsoleSpeechInput", "GoogleStreamingSpeechInput",
]
