"""
Configuration management for Hippoplan.

This module handles environment variables, the project-scoped .hippoplan
directory and the OpenAI client used for Whisper transcription. Environment
files are loaded explicitly through python-dotenv; nothing is loaded at
import time.
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from openai import OpenAI

logger = logging.getLogger(__name__)

METADATA_DIRNAME = ".hippoplan"
DEFAULT_ENV_FILENAME = os.getenv("HP_ENV_FILENAME", ".env")
ENV_FILE_ENV_VARS = ("HP_ENV_FILE", "HIPPOPLAN_ENV_FILE")
PROJECT_ROOT_ENV_VARS = ("HP_PROJECT_ROOT", "HIPPOPLAN_PROJECT_ROOT")


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


@lru_cache(maxsize=32)
def load_config(env_path: Optional[str] = None, override: bool = False) -> None:
    """Explicitly load environment variables from the given .env file path."""
    if env_path:
        load_dotenv(dotenv_path=env_path, override=override)


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid {name} value: {raw!r}. Using {default} as default.")
        return default


class Config:
    """Configuration settings for Hippoplan."""

    @property
    def openai_api_key(self) -> str:
        """Get OpenAI API key from environment."""
        key = os.getenv("OPENAI_API_KEY")
        if not key:
            raise ConfigError("OPENAI_API_KEY not found in environment. Please set it in your environment or .hippoplan/.env file.")
        return key

    @property
    def has_api_key(self) -> bool:
        return bool(os.getenv("OPENAI_API_KEY"))

    @property
    def asr_model(self) -> str:
        """Get the model name for ASR (default: whisper-1)."""
        return os.getenv("ASR_MODEL", "whisper-1")

    @property
    def openai_timeout(self) -> int:
        """Get OpenAI API timeout in seconds (default: 60)."""
        return _int_env("OPENAI_TIMEOUT", 60)

    @property
    def max_retries(self) -> int:
        """Get maximum number of retries for API calls (default: 3)."""
        return _int_env("MAX_RETRIES", 3)

    @property
    def capture_seconds(self) -> int:
        """Get the capture countdown length in ticks (default: 120)."""
        seconds = _int_env("HP_CAPTURE_SECONDS", 120)
        if seconds <= 0:
            logger.warning(f"Invalid HP_CAPTURE_SECONDS value: {seconds}. Using 120 as default.")
            return 120
        return seconds

    @property
    def language(self) -> str:
        """Get the recognition language hint (default: en)."""
        return os.getenv("HP_LANGUAGE", "en")

    @property
    def debug(self) -> bool:
        """Check whether debug event logging is enabled (HP_DEBUG=1)."""
        return os.getenv("HP_DEBUG", "0") == "1"


# Global config instance
config = Config()

# --- Project-scoped helpers ---


def detect_project_root(start_dir: Optional[str] = None) -> Optional[Path]:
    """Detect project root by looking for a .hippoplan directory upwards from start_dir (or CWD)."""
    start = Path(start_dir) if start_dir else Path.cwd()
    for current in [start] + list(start.parents):
        if (current / METADATA_DIRNAME).exists():
            return current
    return None


def resolve_project_root(project_root: Optional[str] = None) -> Path:
    """
    Resolve the project root used for storage.

    Explicit argument wins, then HP_PROJECT_ROOT / HIPPOPLAN_PROJECT_ROOT, then
    the nearest ancestor holding a .hippoplan directory, then the CWD.
    """
    if project_root:
        return Path(project_root)
    for var in PROJECT_ROOT_ENV_VARS:
        if os.getenv(var):
            return Path(os.environ[var])
    return detect_project_root() or Path.cwd()


def get_project_metadata_dir(project_root: Optional[str] = None) -> Path:
    """Return the .hippoplan directory for a given or detected project root."""
    return resolve_project_root(project_root) / METADATA_DIRNAME


def ensure_project_metadata_dir(project_root: Optional[str] = None) -> Path:
    """Ensure the .hippoplan directory exists and return its path."""
    meta_dir = get_project_metadata_dir(project_root)
    meta_dir.mkdir(parents=True, exist_ok=True)
    return meta_dir


def get_project_env_path(project_root: Optional[str] = None, filename: str = DEFAULT_ENV_FILENAME) -> Path:
    """Compute the path to the project-scoped environment file inside .hippoplan."""
    return get_project_metadata_dir(project_root) / filename


def ensure_project_env(project_root: Optional[str] = None, filename: str = DEFAULT_ENV_FILENAME, overwrite: bool = False) -> Path:
    """
    Create a template env file under .hippoplan if none exists.

    Never loads the file; it only places it.

    Returns:
        Path to the env file under the project's .hippoplan directory.
    """
    target = ensure_project_metadata_dir(project_root) / filename
    if target.exists() and not overwrite:
        return target

    template = (
        "# Project-scoped environment for hippoplan\n"
        "ASR_MODEL=whisper-1\n"
        "HP_LANGUAGE=en\n"
        "HP_CAPTURE_SECONDS=120\n"
        "OPENAI_TIMEOUT=60\n"
        "MAX_RETRIES=3\n"
        "# OPENAI_API_KEY=your-key-here\n"
    )
    target.write_text(template, encoding="utf-8")
    return target


def load_project_env(project_root: Optional[str] = None, filename: str = DEFAULT_ENV_FILENAME, override: bool = False) -> Optional[str]:
    """
    Load a project-scoped environment file, if available.

    Load order (first match wins):
    1) Explicit env file path via HP_ENV_FILE or HIPPOPLAN_ENV_FILE
    2) <project_root>/.hippoplan/<filename> (default: .env)

    Returns the path loaded, or None if nothing was loaded.
    """
    for var in ENV_FILE_ENV_VARS:
        explicit = os.getenv(var)
        if explicit and Path(explicit).is_file():
            load_config(explicit, override=override)
            return explicit

    env_path = get_project_env_path(project_root, filename)
    if env_path.is_file():
        load_config(str(env_path), override=override)
        return str(env_path)

    return None


@lru_cache(maxsize=1)
def get_client() -> OpenAI:
    """
    Get configured OpenAI client with timeout and retry settings.

    If OPENAI_API_KEY is missing, attempts to load the project-scoped env first.

    Raises:
        ConfigError: If API key is not configured after project env lookup
    """
    if not config.has_api_key:
        loaded_path = load_project_env()
        if not config.has_api_key:
            where = loaded_path or f"{METADATA_DIRNAME}/{DEFAULT_ENV_FILENAME}"
            raise ConfigError(f"OPENAI_API_KEY not found in environment. Looked for project env at {where}.")
    try:
        return OpenAI(
            api_key=config.openai_api_key,
            timeout=config.openai_timeout,
            max_retries=config.max_retries,
        )
    except Exception as e:
        raise ConfigError(f"Failed to create OpenAI client: {e}")
