"""
Transcript sources and the capture error taxonomy.

A transcript source is the external recognition capability consumed by the
capture session. It is started and stopped on request and reports back to a
bound listener through four callbacks:

- on_started(): the source is open and producing results
- on_result(event): a batch of interim and/or final recognition results
- on_error(code): a raw error code (see RAW_* constants)
- on_ended(): the source closed, requested or not

Two sources ship with Hippoplan: WhisperTranscriptSource turns audio files
into final results through the OpenAI Whisper API, and TextTranscriptSource
lets a user "dictate" by typing lines.
"""

import logging
import threading
from pathlib import Path
from typing import Any, Iterable, List, Optional, Protocol

import openai

from .config import ConfigError, config, get_client
from .types import RecognitionResult, ResultEvent

logger = logging.getLogger(__name__)

# Raw error codes reported by sources
RAW_NOT_ALLOWED = "not-allowed"
RAW_NO_SPEECH = "no-speech"
RAW_AUDIO_CAPTURE = "audio-capture"
RAW_NETWORK = "network"

SUPPORTED_AUDIO_EXTENSIONS = {".mp3", ".mp4", ".mpeg", ".mpga", ".m4a", ".wav", ".webm"}
MAX_AUDIO_BYTES = 25 * 1024 * 1024  # Whisper upload limit


class CaptureError(Exception):
    """
    Base class for capture session errors.

    Every capture error carries one user-facing message. They are recoverable
    by retrying: the session returns to idle and keeps the captured fields.
    """

    code = "unknown"
    default_message = "Speech recognition failed. Please try again."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class CapabilityUnsupported(CaptureError):
    code = "unsupported"
    default_message = "Speech recognition is not supported in this environment."


class PermissionDenied(CaptureError):
    code = RAW_NOT_ALLOWED
    default_message = "Microphone access was denied. Please allow microphone access and try again."


class NoSpeechDetected(CaptureError):
    code = RAW_NO_SPEECH
    default_message = "No speech was detected. Please try speaking again."


class DeviceUnavailable(CaptureError):
    code = RAW_AUDIO_CAPTURE
    default_message = "No microphone was found. Please ensure your microphone is connected and working."


class ConnectivityFailure(CaptureError):
    code = RAW_NETWORK
    default_message = "Could not reach the speech recognition service. Please check your connection and try again."


class SourceError(CaptureError):
    """Any other failure reported by the source, carried with its raw code."""

    def __init__(self, raw: str, message: Optional[str] = None):
        self.raw = raw
        self.code = raw
        super().__init__(message or f"Speech recognition error: {raw}. Please try again.")


_ERRORS_BY_CODE = {cls.code: cls for cls in (PermissionDenied, NoSpeechDetected, DeviceUnavailable, ConnectivityFailure)}


def error_from_code(code: str) -> CaptureError:
    """
    Map a raw source error code onto the capture error taxonomy.

    Args:
        code: Raw code reported by the transcript source

    Returns:
        CaptureError instance with its user-facing message
    """
    error_cls = _ERRORS_BY_CODE.get(code)
    if error_cls is None:
        return SourceError(code)
    return error_cls()


class TranscriptListener(Protocol):
    """Callbacks a transcript source delivers to."""

    def on_started(self) -> None: ...

    def on_ended(self) -> None: ...

    def on_error(self, code: str) -> None: ...

    def on_result(self, event: ResultEvent) -> None: ...


class TranscriptSource:
    """
    Base class for recognition engines.

    Subclasses implement start() and stop() and report through the _emit_*
    helpers. Any engine honoring the callback contract can be plugged into a
    capture session.
    """

    def __init__(self):
        self._listener: Optional[TranscriptListener] = None

    def bind(self, listener: TranscriptListener) -> None:
        """Attach the listener that receives this source's events."""
        self._listener = listener

    def is_supported(self) -> bool:
        """Whether the capability is available in this environment."""
        return True

    def start(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        raise NotImplementedError

    def _emit_started(self) -> None:
        if self._listener is not None:
            self._listener.on_started()

    def _emit_ended(self) -> None:
        if self._listener is not None:
            self._listener.on_ended()

    def _emit_error(self, code: str) -> None:
        if self._listener is not None:
            self._listener.on_error(code)

    def _emit_result(self, event: ResultEvent) -> None:
        if self._listener is not None:
            self._listener.on_result(event)


class TextTranscriptSource(TranscriptSource):
    """
    Typed dictation: every fed line is recognized as one utterance.

    start() and stop() report synchronously, which makes this source handy for
    interactive terminals and for tests.
    """

    def __init__(self):
        super().__init__()
        self.running = False

    def start(self) -> None:
        self.running = True
        self._emit_started()

    def stop(self) -> None:
        if not self.running:
            return
        self.running = False
        self._emit_ended()

    def feed(self, line: str) -> bool:
        """
        Deliver one typed line as an interim hypothesis followed by a final result.

        Returns:
            False if the source is not running and the line was dropped
        """
        if not self.running:
            return False
        self._emit_result(ResultEvent(results=[RecognitionResult(is_final=False, transcript=line)]))
        self._emit_result(ResultEvent(results=[RecognitionResult(is_final=True, transcript=line)]))
        return True


def _segment_text(segment: Any) -> str:
    if isinstance(segment, dict):
        return str(segment.get("text", ""))
    return str(getattr(segment, "text", ""))


class WhisperTranscriptSource(TranscriptSource):
    """
    Transcribes audio files with OpenAI Whisper on a worker thread.

    Each transcript segment is delivered as one final result so that every
    utterance lands in its own capture field. The source stays open once the
    files are exhausted and only reports "ended" after stop(). A restart
    resumes with the first file that was not transcribed yet.
    """

    def __init__(self, paths: Iterable[str], client: Optional[Any] = None, model: Optional[str] = None, language: Optional[str] = None):
        super().__init__()
        self.paths: List[str] = [str(p) for p in paths]
        self.model = model or config.asr_model
        self.language = language
        self._client = client
        self._next_path = 0
        self._stop_event = threading.Event()
        self._drained = threading.Event()
        self._worker: Optional[threading.Thread] = None
        self._open = False
        self._lock = threading.Lock()

    def is_supported(self) -> bool:
        return self._client is not None or config.has_api_key

    def validate_audio_format(self, path: str) -> bool:
        """Check if the audio file extension is supported by Whisper."""
        return Path(path).suffix.lower() in SUPPORTED_AUDIO_EXTENSIONS

    def start(self) -> None:
        """
        Open the source and begin transcribing on a worker thread.

        A worker left over from a stopped run keeps its own stop event, so
        whatever it is still transcribing is discarded instead of delivered.

        Raises:
            CapabilityUnsupported: If no OpenAI client can be configured
        """
        if self._client is None:
            try:
                self._client = get_client()
            except ConfigError as e:
                raise CapabilityUnsupported(f"Speech recognition is not available: {e}")

        with self._lock:
            if self._open:
                return
            self._open = True
            self._stop_event = threading.Event()
            self._drained = threading.Event()
            self._worker = threading.Thread(
                target=self._run,
                args=(self._stop_event, self._drained),
                name="whisper-source",
                daemon=True,
            )
            self._worker.start()

    def stop(self) -> None:
        with self._lock:
            if not self._open:
                return
            self._open = False
            self._stop_event.set()
        self._emit_ended()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the current run transcribed every pending file (or gave up)."""
        return self._drained.wait(timeout)

    def _claim_next(self, stop_event: threading.Event) -> Optional[int]:
        with self._lock:
            if stop_event.is_set() or self._next_path >= len(self.paths):
                return None
            return self._next_path

    def _commit(self, stop_event: threading.Event, index: int) -> bool:
        # The cursor only moves for runs that were not stopped meanwhile
        with self._lock:
            if stop_event.is_set():
                return False
            self._next_path = index + 1
            return True

    def _run(self, stop_event: threading.Event, drained: threading.Event) -> None:
        try:
            self._emit_started()
            heard_anything = False
            processed = 0
            while True:
                index = self._claim_next(stop_event)
                if index is None:
                    break
                segments = self._transcribe(self.paths[index], stop_event)
                if segments is None or not self._commit(stop_event, index):
                    return
                processed += 1
                for text in segments:
                    if stop_event.is_set():
                        return
                    if text.strip():
                        heard_anything = True
                    self._emit_result(ResultEvent(results=[RecognitionResult(is_final=True, transcript=text)]))
            if processed and not heard_anything:
                self._report(stop_event, RAW_NO_SPEECH)
        finally:
            drained.set()

    def _report(self, stop_event: threading.Event, code: str) -> None:
        if not stop_event.is_set():
            self._emit_error(code)

    def _transcribe(self, path: str, stop_event: threading.Event) -> Optional[List[str]]:
        """
        Transcribe one file into segment texts.

        Errors are reported through the listener; None is returned in that case.
        """
        audio_path = Path(path)
        if not audio_path.is_file() or not self.validate_audio_format(path):
            logger.warning(f"Audio file missing or unsupported: {path}")
            self._report(stop_event, RAW_AUDIO_CAPTURE)
            return None

        size = audio_path.stat().st_size
        if size > MAX_AUDIO_BYTES:
            logger.warning(f"Audio file too large: {size / 1024 / 1024:.1f}MB (max: 25MB)")
            self._report(stop_event, "file-too-large")
            return None

        params = {"model": self.model, "response_format": "verbose_json"}
        if self.language:
            params["language"] = self.language

        try:
            with open(audio_path, "rb") as audio_file:
                response = self._client.audio.transcriptions.create(file=audio_file, **params)
        except (openai.AuthenticationError, openai.PermissionDeniedError) as e:
            logger.warning(f"Whisper rejected credentials: {e}")
            self._report(stop_event, RAW_NOT_ALLOWED)
            return None
        except openai.APIConnectionError as e:
            logger.warning(f"Whisper unreachable: {e}")
            self._report(stop_event, RAW_NETWORK)
            return None
        except openai.OpenAIError as e:
            logger.warning(f"Whisper transcription failed: {e}")
            self._report(stop_event, "transcription-failed")
            return None

        segments = getattr(response, "segments", None)
        if segments:
            return [_segment_text(s).strip() for s in segments]
        return [str(getattr(response, "text", response)).strip()]
