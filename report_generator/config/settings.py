"""Environment-backed runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

_PROJECT_ROOT = Path(__file__).resolve().parents[2]
_ENV_FILE = _PROJECT_ROOT / ".env"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _parse_optional_int(name: str, raw_value: str | None) -> Optional[int]:
    """Parse optional integer env values used for token ceilings and retries."""
    if raw_value is None:
        return None
    value = raw_value.strip()
    if value == "":
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer when set") from exc


def _parse_int(name: str, raw_value: str | None, default: int) -> int:
    parsed = _parse_optional_int(name, raw_value)
    return default if parsed is None else parsed


def _parse_float(name: str, raw_value: str | None, default: float) -> float:
    if raw_value is None or raw_value.strip() == "":
        return default
    try:
        return float(raw_value.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be a number when set") from exc


def _parse_bool(name: str, raw_value: str | None, default: bool) -> bool:
    if raw_value is None or raw_value.strip() == "":
        return default
    value = raw_value.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean (true/false) when set")


def _load_env_file(path: Path) -> None:
    """Populate process env vars from .env when present."""
    if not path.exists():
        return

    for raw_line in path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue

        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip("'\"")
        if key:
            os.environ.setdefault(key, value)


@dataclass(frozen=True)
class Settings:
    OPENAI_API_KEY: str = ""
    OAUTH_URL: str = ""
    CLIENT_ID: str = ""
    CLIENT_SECRET: str = ""
    AZURE_BASE_URL: str = ""
    OPENAI_MODEL: str = "gpt-4o"
    RESEARCH_MODEL: str = ""
    RESEARCH_SEARCH_MODEL: str = "gpt-4o-search-preview"
    EXTRACTION_MODEL: str = ""
    RESEARCH_MAX_TOKENS: int = 4000
    EXTRACTION_MAX_TOKENS: int = 3000
    RESEARCH_TIMEOUT_SECONDS: float = 120.0
    EXTRACTION_TIMEOUT_SECONDS: float = 120.0
    ENABLE_WEB_SEARCH: bool = True
    EXTRACTION_MAX_RETRIES: int = 1
    EXPORT_TIMEOUT_SECONDS: float = 30.0
    EXPORT_PAGE_SIZE: str = "A4"
    LOG_LEVEL: str = "INFO"
    CORS_ALLOW_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            OPENAI_API_KEY=os.getenv("OPENAI_API_KEY", ""),
            OAUTH_URL=os.getenv("OAUTH_URL", ""),
            CLIENT_ID=os.getenv("CLIENT_ID", ""),
            CLIENT_SECRET=os.getenv("CLIENT_SECRET", ""),
            AZURE_BASE_URL=os.getenv("AZURE_BASE_URL", ""),
            OPENAI_MODEL=os.getenv("OPENAI_MODEL", "gpt-4o"),
            RESEARCH_MODEL=os.getenv("RESEARCH_MODEL", ""),
            RESEARCH_SEARCH_MODEL=os.getenv("RESEARCH_SEARCH_MODEL", "gpt-4o-search-preview"),
            EXTRACTION_MODEL=os.getenv("EXTRACTION_MODEL", ""),
            RESEARCH_MAX_TOKENS=_parse_int(
                "RESEARCH_MAX_TOKENS", os.getenv("RESEARCH_MAX_TOKENS"), 4000
            ),
            EXTRACTION_MAX_TOKENS=_parse_int(
                "EXTRACTION_MAX_TOKENS", os.getenv("EXTRACTION_MAX_TOKENS"), 3000
            ),
            RESEARCH_TIMEOUT_SECONDS=_parse_float(
                "RESEARCH_TIMEOUT_SECONDS", os.getenv("RESEARCH_TIMEOUT_SECONDS"), 120.0
            ),
            EXTRACTION_TIMEOUT_SECONDS=_parse_float(
                "EXTRACTION_TIMEOUT_SECONDS", os.getenv("EXTRACTION_TIMEOUT_SECONDS"), 120.0
            ),
            ENABLE_WEB_SEARCH=_parse_bool(
                "ENABLE_WEB_SEARCH", os.getenv("ENABLE_WEB_SEARCH"), True
            ),
            # Bounded: at most one stricter re-prompt after a schema violation.
            EXTRACTION_MAX_RETRIES=min(
                max(_parse_int("EXTRACTION_MAX_RETRIES", os.getenv("EXTRACTION_MAX_RETRIES"), 1), 0),
                1,
            ),
            EXPORT_TIMEOUT_SECONDS=_parse_float(
                "EXPORT_TIMEOUT_SECONDS", os.getenv("EXPORT_TIMEOUT_SECONDS"), 30.0
            ),
            EXPORT_PAGE_SIZE=os.getenv("EXPORT_PAGE_SIZE", "A4").strip() or "A4",
            LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO",
            CORS_ALLOW_ORIGINS=os.getenv(
                "CORS_ALLOW_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000"
            ),
        )


@lru_cache
def get_settings() -> Settings:
    _load_env_file(_ENV_FILE)
    return Settings.from_env()
