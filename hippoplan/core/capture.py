"""
Continuous capture session.

A CaptureSession turns a restartable transcript stream into an ordered,
editable list of capture fields. Every final transcript is committed into the
current field, after which a fresh empty field becomes current, so rapid
utterances never merge. Interim transcripts are only published as a preview.

Source callbacks may arrive on another thread at any time relative to user
edits. All state lives behind a single re-entrant lock, and callbacks always
resolve the current field against the live field list rather than a copy.
"""

import logging
import threading
from typing import Any, Callable, List, Optional

from pydantic import ValidationError

from .config import config
from .debug_log import DebugLogger
from .speech import CapabilityUnsupported, CaptureError, SourceError, TranscriptSource, error_from_code
from .types import CaptureField, ResultEvent, SessionState

logger = logging.getLogger(__name__)

ContentsListener = Callable[[List[str]], None]


def fields_from_records(raw: Any) -> List[str]:
    """
    Rebuild field texts from stored records.

    Accepts a list of {"text": ...} records (plain strings are tolerated).
    Anything absent or malformed yields an empty list.
    """
    if not isinstance(raw, list):
        return []
    texts = []
    try:
        for item in raw:
            if isinstance(item, str):
                texts.append(item)
            else:
                texts.append(CaptureField.model_validate(item).text)
    except ValidationError:
        logger.warning("Stored capture fields are malformed, starting empty")
        return []
    return texts


class CaptureSession:
    """
    Maps transcript source events onto capture field mutations.

    States: IDLE -> LISTENING -> IDLE. Errors are kept in `error` and always
    leave the session IDLE with every captured field retained.

    The source is started and stopped while the session lock is held, so a
    source must not block waiting for its own callbacks to return.
    """

    def __init__(
        self,
        source: Optional[TranscriptSource] = None,
        fields: Optional[List[str]] = None,
        countdown_seconds: Optional[int] = None,
        debug_logger: Optional[DebugLogger] = None,
    ):
        """
        Initialize the session.

        Args:
            source: Transcript source to drive, can be attached later
            fields: Initial field texts (e.g. restored from storage)
            countdown_seconds: Countdown length in ticks, defaults to HP_CAPTURE_SECONDS
            debug_logger: Event logger, disabled when omitted
        """
        self._lock = threading.RLock()
        self._fields: List[CaptureField] = [CaptureField(text=text) for text in fields or []]
        self._current: Optional[int] = None
        self._state = SessionState.IDLE
        self._starting = False
        self._stop_requested = False
        self._listeners: List[ContentsListener] = []

        self.interim = ""
        self.error: Optional[CaptureError] = None
        self.countdown_seconds = countdown_seconds or config.capture_seconds
        self.time_left = 0
        self.debug_logger = debug_logger or DebugLogger(enabled=False)

        self.source: Optional[TranscriptSource] = None
        if source is not None:
            self.attach(source)

    # --- snapshots ---

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_listening(self) -> bool:
        return self._state is SessionState.LISTENING

    @property
    def fields(self) -> List[str]:
        """Copy of every field text, blank fields included."""
        with self._lock:
            return [f.text for f in self._fields]

    @property
    def contents(self) -> List[str]:
        """Field texts that hold content, in field order."""
        with self._lock:
            return [f.text for f in self._fields if f.text.strip()]

    @property
    def current_index(self) -> Optional[int]:
        """Index of the field the next final transcript lands in."""
        with self._lock:
            return self._current if self._has_current() else None

    @property
    def countdown_expired(self) -> bool:
        """Display-only warning: the countdown ran out, the session keeps listening."""
        return self.is_listening and self.time_left == 0

    def to_records(self) -> List[dict]:
        with self._lock:
            return [f.model_dump() for f in self._fields]

    # --- wiring ---

    def attach(self, source: TranscriptSource) -> None:
        """Drive the given transcript source from now on."""
        with self._lock:
            self.source = source
            source.bind(self)

    def on_change(self, listener: ContentsListener) -> None:
        """Register a callback receiving the content list after every field mutation."""
        self._listeners.append(listener)

    def _notify(self) -> None:
        contents = [f.text for f in self._fields if f.text.strip()]
        for listener in self._listeners:
            listener(contents)

    # --- session control ---

    def start(self) -> None:
        """
        Start listening.

        The session only becomes LISTENING once the source confirms it started.
        """
        with self._lock:
            if self._state is SessionState.LISTENING or self._starting:
                return

            self.error = None
            self.time_left = self.countdown_seconds
            self._stop_requested = False

            if self.source is None or not self.source.is_supported():
                self._fail(CapabilityUnsupported())
                return

            self._starting = True
            self.debug_logger.log_transition("start", self._state.value, self.fields)
            try:
                self.source.start()
            except CaptureError as e:
                self._fail(e)
            except Exception as e:
                logger.warning(f"Transcript source failed to start: {e}")
                self._fail(SourceError("start-failed"))

    def stop(self) -> None:
        """Stop listening, dropping the interim preview and every blank field."""
        with self._lock:
            self._terminate()

    def tick(self) -> int:
        """
        Advance the countdown by one tick while listening.

        Returns:
            Ticks left; never below zero
        """
        with self._lock:
            if self._state is SessionState.LISTENING and self.time_left > 0:
                self.time_left -= 1
            return self.time_left

    def _fail(self, error: CaptureError) -> None:
        logger.info(f"Capture session error ({error.code}): {error.message}")
        self.debug_logger.log_error(error.code, error.message)
        self.error = error
        self._terminate()

    def _terminate(self) -> None:
        was_active = self._state is SessionState.LISTENING or self._starting

        self._stop_requested = True
        self._starting = False
        self._state = SessionState.IDLE
        self.time_left = 0
        self.interim = ""
        self._current = None

        if was_active:
            before = len(self._fields)
            self._fields = [f for f in self._fields if f.text.strip()]
            if len(self._fields) != before:
                self._notify()
            self.debug_logger.log_transition("stop", self._state.value, self.fields)
            if self.source is not None:
                self.source.stop()

    # --- source callbacks ---

    def on_started(self) -> None:
        with self._lock:
            if self._stop_requested:
                logger.debug("Ignoring start confirmation after stop")
                return
            self._starting = False
            self._state = SessionState.LISTENING
            if not self._has_current():
                self._current = self._append_blank()
            self.debug_logger.log_transition("started", self._state.value, self.fields)

    def on_ended(self) -> None:
        with self._lock:
            if self._stop_requested:
                self.debug_logger.log_transition("ended", self._state.value, self.fields)
                return

            if self._state is SessionState.LISTENING:
                logger.info("Transcript source ended unexpectedly, restarting")
                self.debug_logger.log_transition("restart", self._state.value, self.fields)
                try:
                    self.source.start()
                except CaptureError as e:
                    self._fail(e)
                except Exception as e:
                    logger.warning(f"Transcript source failed to restart: {e}")
                    self._fail(SourceError("restart-failed"))
                return

            # Ended before ever confirming a start
            self._terminate()

    def on_error(self, code: str) -> None:
        with self._lock:
            if self._state is not SessionState.LISTENING and not self._starting:
                logger.debug(f"Ignoring source error {code!r} outside a session")
                return
            self._fail(error_from_code(code))

    def on_result(self, event: ResultEvent) -> None:
        with self._lock:
            if self._state is not SessionState.LISTENING:
                return

            committed = False
            for result in event.pending():
                if not result.is_final:
                    self.interim = result.transcript
                    self.debug_logger.log_result(False, result.transcript, None)
                    continue

                text = result.transcript.strip()
                if not text:
                    self.debug_logger.log_result(True, result.transcript, None)
                    continue

                if not self._has_current():
                    self._current = self._append_blank()
                index = self._current
                self._fields[index] = CaptureField(text=text)
                self._current = self._append_blank()
                self.interim = ""
                committed = True
                self.debug_logger.log_result(True, text, index)

            if committed:
                self._notify()

    # --- manual field operations ---

    def add_empty_field(self) -> int:
        """
        Append an empty field.

        Returns:
            Index of the new field
        """
        with self._lock:
            index = self._append_blank()
            self._notify()
            return index

    def update_field(self, index: int, text: str) -> bool:
        """
        Replace the text of one field.

        Returns:
            False if the index does not exist
        """
        with self._lock:
            if not 0 <= index < len(self._fields):
                logger.debug(f"Ignoring update of missing field {index}")
                return False
            self._fields[index] = CaptureField(text=text)
            self._notify()
            return True

    def remove_phrase(self, index: int) -> bool:
        """
        Remove one field, keeping the current field pointing at the same field.

        Returns:
            False if the index does not exist
        """
        with self._lock:
            if not 0 <= index < len(self._fields):
                return False
            del self._fields[index]
            if self._current is not None:
                if index < self._current:
                    self._current -= 1
                elif index == self._current:
                    self._current = None
            self._notify()
            return True

    # --- helpers ---

    def _has_current(self) -> bool:
        return self._current is not None and 0 <= self._current < len(self._fields)

    def _append_blank(self) -> int:
        self._fields.append(CaptureField())
        return len(self._fields) - 1
