# src/affirm_checklist/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- Nothing required at import time: with no runtime URL the app runs in offline mode.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import List

from dotenv import load_dotenv

ENV_PREFIX = "AFFIRM"

load_dotenv(override=False)


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    store_path: Path

    # ---- Model runtime ----
    runtime_base_url: str
    model_name: str
    temperature: float
    top_k: int
    expected_languages: List[str]
    output_language: str
    request_timeout_seconds: float

    # ---- Session lifecycle tuning ----
    create_timeout_warning_seconds: float
    poll_interval_seconds: float
    poll_max_wait_seconds: float

    # ---- Background jobs ----
    rollover_enabled: bool

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "affirm") or "affirm"
        log_level = _env(_k("LOG_LEVEL"), "WARNING")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/affirm"))
        store_path = _env_path(_k("STORE_PATH"), data_dir / "checklist.sqlite3")

        # Empty URL => offline runtime (checklist still works, affirmations use fallbacks).
        runtime_base_url = _env(_k("RUNTIME_BASE_URL"), "").strip()
        model_name = _env(_k("MODEL_NAME"), "gemma3:1b").strip() or "gemma3:1b"

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            store_path=store_path,
            runtime_base_url=runtime_base_url,
            model_name=model_name,
            temperature=_env_float(_k("TEMPERATURE"), 0.7),
            top_k=_env_int(_k("TOP_K"), 40),
            expected_languages=_env_list(_k("EXPECTED_LANGUAGES"), ["en", "ja", "es"]),
            output_language=_env(_k("OUTPUT_LANGUAGE"), "en"),
            request_timeout_seconds=_env_float(_k("REQUEST_TIMEOUT_SECONDS"), 60.0),
            create_timeout_warning_seconds=_env_float(_k("CREATE_TIMEOUT_WARNING_SECONDS"), 30.0),
            poll_interval_seconds=_env_float(_k("POLL_INTERVAL_SECONDS"), 5.0),
            poll_max_wait_seconds=_env_float(_k("POLL_MAX_WAIT_SECONDS"), 300.0),
            rollover_enabled=_env_bool(_k("ROLLOVER_ENABLED"), True),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
