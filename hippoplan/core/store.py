"""
JSON key-value persistence for planner state.

Values live in one JSON document under {project_root}/.hippoplan/planner.json.
The store hands back whatever was stored, or None
when the file or key is missing or unreadable, and leaves validation to the
core components that own the data.
"""

import json
import logging
from typing import Any, Dict, Optional

from .config import METADATA_DIRNAME, resolve_project_root

logger = logging.getLogger(__name__)

STORE_FILENAME = "planner.json"


class StoreError(Exception):
    """Raised when planner state cannot be written."""

    pass


class PlannerStore:
    """Reads and writes planner state for one project root."""

    def __init__(self, project_root: Optional[str] = None):
        self.project_root = resolve_project_root(project_root)
        self.path = self.project_root / METADATA_DIRNAME / STORE_FILENAME

    def _read_document(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable planner store {self.path}: {e}")
            return {}
        if not isinstance(document, dict):
            logger.warning(f"Ignoring planner store {self.path}: not a JSON object")
            return {}
        return document

    def load(self, key: str) -> Optional[Any]:
        """Return the stored value for key, or None."""
        return self._read_document().get(key)

    def save(self, key: str, value: Any) -> None:
        """Store one value, keeping the others."""
        document = self._read_document()
        document[key] = value
        self.save_all(document)

    def save_all(self, values: Dict[str, Any]) -> None:
        """
        Replace the stored document.

        Raises:
            StoreError: If the file cannot be written
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(values, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise StoreError(f"Failed to save planner state to {self.path}: {e}")
