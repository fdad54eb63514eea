"""
Speech output adapters.

Google Cloud Text-to-Speech synthesizes the audio and a local player
(afplay on macOS, aplay on Linux) plays it. Playback runs as a child
process so it can be killed on cancel.
"""
import asyncio
import logging
import os
import shutil
import tempfile
from typing import Optional

from ...config import TTS_VOICE, LANGUAGE_CODE, SPEECH_RATE
from ...errors import SpeechOutputError
from ...utils import with_suppressed_audio_warnings

logger = logging.getLogger("speech_tts")


class SpeechOutput:
    """
    Interface for a single speech output channel.

    speak() returns once the utterance has finished, was cancelled, or failed.
    Only one utterance plays at a time.
    """

    async def speak(self, text: str) -> None:
        raise NotImplementedError

    def cancel(self) -> None:
        """Stop the current utterance, if any."""


class ConsoleSpeechOutput(SpeechOutput):
    """Prints what would be spoken."""

    def __init__(self, prefix: str = "🤖"):
        self.prefix = prefix

    async def speak(self, text: str) -> None:
        if text.strip():
            print(f"{self.prefix} {text}")


def _find_player() -> Optional[str]:
    for player in ("afplay", "aplay"):
        path = shutil.which(player)
        if path:
            return path
    return None


class GoogleSpeechOutput(SpeechOutput):
    """High-quality Google Cloud Text-to-Speech through the local audio player."""

    def __init__(self,
                 voice: str = TTS_VOICE,
                 language_code: str = LANGUAGE_CODE,
                 speaking_rate: float = SPEECH_RATE,
                 echo: bool = True):
        self.voice = voice
        self.language_code = language_code
        self.speaking_rate = speaking_rate
        self.echo = echo
        self._client = None
        self._player = _find_player()
        self._process: Optional[asyncio.subprocess.Process] = None
        self._cancelled = False

    @with_suppressed_audio_warnings
    def _get_client(self):
        if self._client is None:
            from google.cloud import texttospeech
            self._client = texttospeech.TextToSpeechClient()
        return self._client

    def _synthesize(self, text: str) -> bytes:
        from google.cloud import texttospeech

        client = self._get_client()
        synthesis_input = texttospeech.SynthesisInput(text=text)
        voice_params = texttospeech.VoiceSelectionParams(
            language_code=self.language_code,
            name=self.voice,
        )
        audio_config = texttospeech.AudioConfig(
            audio_encoding=texttospeech.AudioEncoding.LINEAR16,
            sample_rate_hertz=16000,
            speaking_rate=self.speaking_rate,
        )
        response = client.synthesize_speech(
            input=synthesis_input, voice=voice_params, audio_config=audio_config
        )
        return response.audio_content

    async def speak(self, text: str) -> None:
        """
        Synthesize and play one utterance.

        Raises:
            SpeechOutputError: Synthesis or playback failed ("canceled" when cancelled)
        """
        if not text.strip():
            return

        # One utterance at a time
        self.cancel()
        self._cancelled = False

        if self.echo:
            print(f"🤖 {text}")

        try:
            audio = await asyncio.to_thread(self._synthesize, text)
        except Exception as e:
            raise SpeechOutputError("synthesis-failed", f"Google TTS failed: {e}") from e

        if self._cancelled:
            raise SpeechOutputError("canceled")
        if not self._player:
            raise SpeechOutputError("audio-hardware", "No audio player (afplay/aplay) found")

        with tempfile.NamedTemporaryFile(suffix=".wav", delete=False) as tmp_file:
            wav_path = tmp_file.name
            tmp_file.write(audio)

        try:
            self._process = await asyncio.create_subprocess_exec(
                self._player, wav_path,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
            returncode = await self._process.wait()
        finally:
            self._process = None
            try:
                os.unlink(wav_path)
            except OSError:
                logger.debug(f"Could not remove temp file {wav_path}")

        if self._cancelled:
            raise SpeechOutputError("canceled")
        if returncode != 0:
            raise SpeechOutputError("audio-hardware", f"Audio player exited with {returncode}")

    def cancel(self) -> None:
        self._cancelled = True
        process = self._process
        if process is not None and process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            logger.debug("Cancelled speech playback")

