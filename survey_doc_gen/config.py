"""Configuration management for the survey document generator."""

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

# Load environment variables
load_dotenv()

PROJECT_ROOT = Path(__file__).resolve().parent.parent
RESOURCES_DIR = Path(__file__).resolve().parent / "resources"


def _resolve_path(env_name: str, default: Path) -> Path:
    value = os.getenv(env_name)
    if value:
        return Path(value).expanduser().resolve()
    return default.resolve()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def require_setting(name: str, value: Optional[str]) -> str:
    """Return *value* or fail fast when a required setting is absent."""

    if value is None or not str(value).strip():
        raise ConfigurationError(f"{name} is not set. Provide it via the environment or .env file")
    return value


# Template and artifacts
TEMPLATE_PATH = _resolve_path("TEMPLATE_PATH", RESOURCES_DIR / "template_tz.docx")
ARTIFACTS_DIR = _resolve_path("SURVEY_ARTIFACTS_DIR", PROJECT_ROOT / "data" / "artifacts")

# Language model
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY")
CLAUDE_MODEL = os.getenv("CLAUDE_MODEL", "claude-sonnet-4-5")
LLM_MAX_TOKENS = _env_int("LLM_MAX_TOKENS", 4000)
LLM_TEMPERATURE = _env_float("LLM_TEMPERATURE", 0.1)  # low for repeatable extraction
LLM_TIMEOUT_SECONDS = _env_float("LLM_TIMEOUT_SECONDS", 120.0)

# Conversion service. No default secret: the credential must come from outside.
CONVERT_API_SECRET = os.getenv("CONVERT_API_SECRET")
CONVERT_API_BASE_URL = os.getenv("CONVERT_API_BASE_URL", "https://v2.convertapi.com")
CONVERT_TIMEOUT_SECONDS = _env_float("CONVERT_TIMEOUT_SECONDS", 120.0)
DOWNLOAD_TIMEOUT_SECONDS = _env_float("DOWNLOAD_TIMEOUT_SECONDS", 60.0)

# Rendering / merging
MAX_LEADING_PAGES = _env_int("MAX_LEADING_PAGES", 1)
MISSING_VALUE_TEXT = os.getenv("MISSING_VALUE_TEXT", "Нет данных")

# Runtime
JOB_WORKERS = _env_int("JOB_WORKERS", 2)
KEEP_ARTIFACTS_ON_SUCCESS = _env_flag("KEEP_ARTIFACTS_ON_SUCCESS")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
