"""
Debug logging for capture sessions.

When HP_DEBUG=1 (or the CLI --debug flag) is set, every capture session event
(state transitions, recognition results, source errors, field mutations) is
written as a JSON file under {project_root}/.hippoplan/debug/session_<ts>/.
"""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import config


class DebugLogger:
    """
    Handles detailed debug logging for capture session events.

    Files are numbered in arrival order so that a session can be replayed
    exactly as the session processed it.
    """

    def __init__(self, project_root: str = ".", enabled: Optional[bool] = None):
        """
        Initialize debug logger.

        Args:
            project_root: Project root directory for log storage
            enabled: Override debug enable flag, uses config.debug (HP_DEBUG) if None
        """
        self.project_root = project_root
        self.enabled = enabled if enabled is not None else config.debug
        self.session_id = datetime.now().strftime("%Y%m%d_%H%M%S")
        self._sequence = 0

        if self.enabled:
            self._setup_log_directory()

    def _setup_log_directory(self) -> None:
        """Create debug log directory structure."""
        self.log_dir = Path(self.project_root) / ".hippoplan" / "debug"
        self.session_dir = self.log_dir / f"session_{self.session_id}"
        self.session_dir.mkdir(parents=True, exist_ok=True)

    def is_enabled(self) -> bool:
        """Check if debug logging is enabled."""
        return self.enabled

    def _write(self, step: str, payload: Dict[str, Any]) -> None:
        self._sequence += 1
        log_data = {
            "timestamp": datetime.now().isoformat(),
            "session_id": self.session_id,
            "sequence": self._sequence,
            "step": step,
            **payload,
        }
        log_file = self.session_dir / f"{self._sequence:05d}_{step}.json"
        with open(log_file, "w", encoding="utf-8") as f:
            json.dump(log_data, f, indent=2, ensure_ascii=False, default=str)

    def log_transition(self, event: str, state: str, fields: List[str]) -> None:
        """
        Log a session lifecycle event.

        Args:
            event: Event name (start, started, ended, restart, stop)
            state: Session state after the event
            fields: Field texts after the event
        """
        if not self.enabled:
            return
        self._write(event, {"type": "transition", "state": state, "fields": fields})

    def log_result(self, is_final: bool, transcript: str, field_index: Optional[int]) -> None:
        """
        Log one recognition result as the session handled it.

        Args:
            is_final: Whether the result was final
            transcript: Recognized text
            field_index: Field that received the text, None for interim or skipped results
        """
        if not self.enabled:
            return
        self._write("final_result" if is_final else "interim_result", {"type": "result", "transcript": transcript, "field_index": field_index})

    def log_error(self, code: str, message: str) -> None:
        """Log a source error after it was mapped to a user-facing message."""
        if not self.enabled:
            return
        self._write("error", {"type": "error", "code": code, "message": message})
