"""Infrastructure components for the VoiceScreen system.

This module contains the thin I/O wrappers the interview core talks to:
the judgment service, speech adapters, the session store and video rooms.
"""

# LLM infrastructure
from .llm import GeminiRestClient, VertexRestClient, build_llm_client

# Speech adapters
from .speech import (
    SpeechOutput, ConsoleSpeechOutput, GoogleSpeechOutput,
    SpeechInput, ConsoleSpeechInput, GoogleStreamingSpeechInput,
)

__all__ = [
    # LLM clients
    "GeminiRestClient", "VertexRestClient", "build_llm_client",

    # Speech services
    "SpeechOutput", "ConsoleSpeechOutput", "GoogleSpeechOutput",
    "SpeechInput", "ConsoleSpeechInput", "GoogleStreamingSpeechInput",
]
