"""Runtime configuration for conversion jobs."""

from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path
from typing import Mapping


DEFAULT_MAX_WORKERS = 1
DEFAULT_MEDIA_DIR = "media"
DEFAULT_LOG_LEVEL = "INFO"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}
_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _parse_positive_int(*, name: str, raw_value: str, minimum: int = 1) -> int:
    try:
        value = int(raw_value)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}")
    return value


def _parse_flag(*, name: str, raw_value: str) -> bool:
    lowered = raw_value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean flag (true/false)")


def _optional_path(raw_value: str) -> Path | None:
    stripped = raw_value.strip()
    return Path(stripped) if stripped else None


@dataclass(frozen=True, slots=True)
class ConverterSettings:
    """Validated conversion settings."""

    rules_path: Path | None = None
    grammar_path: Path | None = None
    max_workers: int = DEFAULT_MAX_WORKERS
    fail_on_error: bool = False
    repair: bool = False
    require_initial_heading: bool = False
    media_dir: str = DEFAULT_MEDIA_DIR
    log_level: str = DEFAULT_LOG_LEVEL

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ConverterSettings":
        source: Mapping[str, str] = os.environ if environ is None else environ

        max_workers = _parse_positive_int(
            name="TOPICFORGE_MAX_WORKERS",
            raw_value=source.get("TOPICFORGE_MAX_WORKERS", str(DEFAULT_MAX_WORKERS)).strip(),
        )

        media_dir = source.get("TOPICFORGE_MEDIA_DIR", DEFAULT_MEDIA_DIR).strip().strip("/")
        if not media_dir:
            raise ValueError("TOPICFORGE_MEDIA_DIR cannot be empty")

        log_level = source.get("TOPICFORGE_LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper()
        if log_level not in _LOG_LEVELS:
            raise ValueError(f"TOPICFORGE_LOG_LEVEL must be one of {', '.join(sorted(_LOG_LEVELS))}")

        return cls(
            rules_path=_optional_path(source.get("TOPICFORGE_RULES_PATH", "")),
            grammar_path=_optional_path(source.get("TOPICFORGE_GRAMMAR_PATH", "")),
            max_workers=max_workers,
            fail_on_error=_parse_flag(name="TOPICFORGE_FAIL_ON_ERROR", raw_value=source.get("TOPICFORGE_FAIL_ON_ERROR", "")),
            repair=_parse_flag(name="TOPICFORGE_REPAIR", raw_value=source.get("TOPICFORGE_REPAIR", "")),
            require_initial_heading=_parse_flag(
                name="TOPICFORGE_REQUIRE_INITIAL_HEADING",
                raw_value=source.get("TOPICFORGE_REQUIRE_INITIAL_HEADING", ""),
            ),
            media_dir=media_dir,
            log_level=log_level,
        )
