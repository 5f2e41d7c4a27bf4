"""
Configuration management for Flow Assist.

Settings come from environment variables, optionally overridden by explicit
keyword arguments. python-dotenv is used for explicit, project-scoped .env
loading; nothing is loaded implicitly at import time.
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv
from openai import OpenAI

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


@lru_cache(maxsize=32)
def load_config(env_path: Optional[str] = None, override: bool = False) -> None:
    """Explicitly load environment variables from the given .env file path."""
    if env_path:
        load_dotenv(dotenv_path=env_path, override=override)


METADATA_DIRNAME = ".flow_assist"
DEFAULT_ENV_FILENAME = ".env"
ENV_FILE_ENV_VAR = "FA_ENV_FILE"


def _env_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes", "on")


class Config:
    """
    Configuration settings for Flow Assist.

    Every property reads its environment variable unless a value was passed
    explicitly to the constructor, e.g. ``Config(llm_model="gpt-4o")``.
    Components take a Config instance in their constructor.
    """

    def __init__(self, **overrides: Any):
        self._overrides = overrides

    def _get(self, name: str, env_var: str, default: str) -> str:
        if name in self._overrides and self._overrides[name] is not None:
            return str(self._overrides[name])
        return os.getenv(env_var, default)

    def has_override(self, name: str) -> bool:
        """Check whether ``name`` was passed explicitly to the constructor."""
        return self._overrides.get(name) is not None

    @property
    def openai_api_key(self) -> str:
        """Get OpenAI API key from overrides or environment."""
        key = self._get("openai_api_key", "OPENAI_API_KEY", "")
        if not key:
            raise ConfigError("OPENAI_API_KEY not found in environment. Please set it in your environment or .env file.")
        return key

    @property
    def llm_model(self) -> str:
        """Chat model used for command interpretation, translation and text improvement."""
        return self._get("llm_model", "LLM_MODEL", "gpt-4o-mini")

    @property
    def is_reasoning_model(self) -> bool:
        return _env_bool(self._get("is_reasoning_model", "IS_REASONING_MODEL", "false"))

    @property
    def model_temperature(self) -> float:
        """Sampling temperature; falls back to 0.2 when the value is out of range or malformed."""
        raw = self._get("model_temperature", "MODEL_TEMPERATURE", "0.2")
        try:
            temp = float(raw)
        except (TypeError, ValueError):
            logger.warning(f"Invalid MODEL_TEMPERATURE format: {raw}. Using 0.2 as default.")
            return 0.2
        if not (0.0 <= temp <= 2.0):
            logger.warning(f"Invalid MODEL_TEMPERATURE value: {temp}. Using 0.2 as default.")
            return 0.2
        return temp

    @property
    def tts_model(self) -> str:
        return self._get("tts_model", "TTS_MODEL", "tts-1")

    @property
    def tts_voice(self) -> str:
        return self._get("tts_voice", "TTS_VOICE", "nova")

    @property
    def tts_format(self) -> str:
        return self._get("tts_format", "TTS_FORMAT", "mp3")

    @property
    def openai_timeout(self) -> int:
        """OpenAI API timeout in seconds (default: 60)."""
        return int(self._get("openai_timeout", "OPENAI_TIMEOUT", "60"))

    @property
    def max_retries(self) -> int:
        """Retries performed by the OpenAI SDK itself (default: 3)."""
        return int(self._get("max_retries", "MAX_RETRIES", "3"))

    @property
    def store_dir(self) -> Path:
        """Directory holding flow folders for the file store."""
        return Path(self._get("store_dir", "FLOW_STORE_DIR", str(Path(METADATA_DIRNAME) / "flows")))

    @property
    def history_capacity(self) -> int:
        return int(self._get("history_capacity", "HISTORY_CAPACITY", "50"))

    @property
    def debug(self) -> bool:
        """Write JSON debug traces (FA_DEBUG=1)."""
        return _env_bool(self._get("debug", "FA_DEBUG", "0"))


def get_project_env_path(project_root: Optional[str] = None, filename: str = DEFAULT_ENV_FILENAME) -> Path:
    """Path of the project-scoped env file: <project_root>/.flow_assist/<filename>."""
    root = Path(project_root) if project_root else Path.cwd()
    return root / METADATA_DIRNAME / filename


def load_project_env(project_root: Optional[str] = None, filename: str = DEFAULT_ENV_FILENAME, override: bool = False) -> Optional[str]:
    """
    Load a project-scoped environment file, if available.

    Load order (first match wins):
    1) Explicit env file path via FA_ENV_FILE
    2) <project_root>/.flow_assist/<filename>

    Returns the path loaded, or None if nothing was loaded.
    """
    explicit = os.getenv(ENV_FILE_ENV_VAR)
    if explicit and Path(explicit).is_file():
        load_config(explicit, override=override)
        return explicit

    env_path = get_project_env_path(project_root, filename)
    if env_path.is_file():
        load_config(str(env_path), override=override)
        return str(env_path)

    return None


def get_client(config: Config) -> OpenAI:
    """
    Build an OpenAI client with timeout and retry settings from ``config``.

    If OPENAI_API_KEY is missing, a project-scoped env file is tried first.

    Raises:
        ConfigError: If the API key is not configured after project env lookup
    """
    if not config.has_override("openai_api_key") and not os.getenv("OPENAI_API_KEY"):
        loaded_path = load_project_env()
        if not os.getenv("OPENAI_API_KEY"):
            where = loaded_path or f"{METADATA_DIRNAME}/{DEFAULT_ENV_FILENAME}"
            raise ConfigError(
                f"OPENAI_API_KEY not found in environment. Looked for project env at {where}. "
                f"Set it via environment, {ENV_FILE_ENV_VAR}, or place it under {METADATA_DIRNAME}/{DEFAULT_ENV_FILENAME}."
            )
    try:
        return OpenAI(
            api_key=config.openai_api_key,
            timeout=config.openai_timeout,
            max_retries=config.max_retries,
        )
    except ConfigError:
        raise
    except Exception as e:
        raise ConfigError(f"Failed to create OpenAI client: {e}")
