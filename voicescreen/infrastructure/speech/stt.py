"""
Speech input adapters.

An adapter is started with three callbacks and returns a handle whose stop()
ends recognition. Callbacks always run on the event loop thread.
"""
import asyncio
import logging
import queue
import sys
import threading
from typing import Callable, Optional

from ...config import STT_SAMPLE_RATE, STT_CHUNK_MS, LANGUAGE_CODE
from ...errors import SpeechInputError, SpeechInputUnsupportedError
from ...utils import suppressed_stderr

logger = logging.getLogger("speech_stt")

TextCallback = Callable[[str], None]
ErrorCallback = Callable[[Exception], None]


class ListenHandle:
    """Handle for one active recognition session."""

    def __init__(self, on_stop: Optional[Callable[[], None]] = None):
        self._on_stop = on_stop
        self.stopped = False

    def stop(self):
        if self.stopped:
            return
        self.stopped = True
        if self._on_stop is not None:
            self._on_stop()


class SpeechInput:
    """Interface for the single speech input channel."""

    def start(self, on_partial: TextCallback, on_final: TextCallback,
              on_error: ErrorCallback) -> ListenHandle:
        """
        Begin recognition.

        Raises:
            SpeechInputUnsupportedError: No recognizer or microphone is available
        """
        raise NotImplementedError


class ConsoleSpeechInput(SpeechInput):
    """
    Reads typed answers from stdin.

    Every line is a finalized segment. A blank line submits the answer, and
    a line starting with "/" is passed to on_command (e.g. "/skip", "/stop").
    """

    def __init__(self, on_command: Optional[Callable[[str], None]] = None, stream=None):
        self.on_command = on_command
        self.stream = stream or sys.stdin

    def start(self, on_partial: TextCallback, on_final: TextCallback,
              on_error: ErrorCallback) -> ListenHandle:
        loop = asyncio.get_running_loop()
        try:
            fd = self.stream.fileno()
        except (AttributeError, OSError, ValueError) as e:
            raise SpeechInputUnsupportedError(f"Console input unavailable: {e}") from e

        def on_readable():
            line = self.stream.readline()
            if line == "":
                # EOF: nothing more will arrive
                handle.stop()
                self._command("submit")
                return
            text = line.strip()
            if not text:
                self._command("submit")
            elif text.startswith("/"):
                self._command(text[1:].strip().lower())
            else:
                on_final(text)

        try:
            loop.add_reader(fd, on_readable)
        except (NotImplementedError, ValueError) as e:
            raise SpeechInputUnsupportedError(f"Console input unavailable: {e}") from e

        handle = ListenHandle(on_stop=lambda: loop.remove_reader(fd))
        return handle

    def _command(self, name: str):
        if self.on_command is None:
            logger.debug(f"Ignoring console command '{name}'")
            return
        self.on_command(name)


class GoogleStreamingSpeechInput(SpeechInput):
    """
    Continuous recognition with Google Cloud Speech streaming and a PyAudio microphone.

    Audio is captured and streamed in a worker thread; interim and final
    results are marshalled back onto the event loop.
    """

    def __init__(self,
                 language_code: str = LANGUAGE_CODE,
                 sample_rate: int = STT_SAMPLE_RATE,
                 chunk_ms: int = STT_CHUNK_MS,
                 input_device: Optional[int] = None):
        self.language_code = language_code
        self.sample_rate = sample_rate
        self.chunk_size = int(sample_rate * chunk_ms / 1000)
        self.input_device = input_device

    def start(self, on_partial: TextCallback, on_final: TextCallback,
              on_error: ErrorCallback) -> ListenHandle:
        loop = asyncio.get_running_loop()
        try:
            # PyAudio is only needed for live microphone capture
            import pyaudio
            from google.cloud import speech
        except ImportError as e:
            raise SpeechInputUnsupportedError(f"Speech recognition not supported: {e}") from e

        stop_event = threading.Event()
        audio_queue: "queue.Queue[Optional[bytes]]" = queue.Queue()

        def deliver(callback, value):
            if not stop_event.is_set():
                loop.call_soon_threadsafe(callback, value)

        def audio_callback(in_data, frame_count, time_info, status):
            audio_queue.put(in_data)
            if stop_event.is_set():
                return None, pyaudio.paComplete
            return None, pyaudio.paContinue

        def requests_iter():
            while not stop_event.is_set():
                chunk = audio_queue.get()
                if chunk is None:
                    return
                yield speech.StreamingRecognizeRequest(audio_content=chunk)

        def worker():
            pa = None
            stream = None
            try:
                with suppressed_stderr():
                    pa = pyaudio.PyAudio()
                    stream = pa.open(
                        format=pyaudio.paInt16,
                        channels=1,
                        rate=self.sample_rate,
                        input=True,
                        input_device_index=self.input_device,
                        frames_per_buffer=self.chunk_size,
                        stream_callback=audio_callback,
                    )
            except Exception as e:
                logger.error(f"Could not open microphone: {e}")
                deliver(on_error, SpeechInputError("audio-capture", f"Could not open microphone: {e}"))
                if pa is not None:
                    pa.terminate()
                return

            try:
                client = speech.SpeechClient()
                config = speech.RecognitionConfig(
                    encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
                    sample_rate_hertz=self.sample_rate,
                    language_code=self.language_code,
                    enable_automatic_punctuation=True,
                )
                streaming_config = speech.StreamingRecognitionConfig(config=config, interim_results=True)
                responses = client.streaming_recognize(config=streaming_config, requests=requests_iter())

                for response in responses:
                    if stop_event.is_set():
                        break
                    for result in response.results:
                        if not result.alternatives:
                            continue
                        text = result.alternatives[0].transcript
                        if result.is_final:
                            deliver(on_final, text)
                        else:
                            deliver(on_partial, text)
            except Exception as e:
                if not stop_event.is_set():
                    reason = _classify_error(e)
                    logger.warning(f"Streaming recognition ended with {reason}: {e}")
                    deliver(on_error, SpeechInputError(reason, str(e)))
            finally:
                stream.stop_stream()
                stream.close()
                pa.terminate()
                logger.debug("Microphone closed")

        def stop():
            stop_event.set()
            audio_queue.put(None)

        thread = threading.Thread(target=worker, name="speech-input", daemon=True)
        thread.start()
        logger.info(f"Started streaming recognition ({self.language_code}, {self.sample_rate} Hz)")
        return ListenHandle(on_stop=stop)


def _classify_error(error: Exception) -> str:
    """Map a Cloud Speech failure to a recognition error reason."""
    from google.api_core import exceptions as gexc

    if isinstance(error, (gexc.OutOfRange, gexc.DeadlineExceeded)):
        # Stream limit reached or no audio for too long
        return "no-speech"
    if isinstance(error, (gexc.PermissionDenied, gexc.Unauthenticated)):
        return "not-allowed"
    if isinstance(error, (gexc.ServiceUnavailable, gexc.GoogleAPICallError)):
        return "network"
    return "unknown"
