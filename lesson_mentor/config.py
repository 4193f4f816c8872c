from __future__ import annotations

import logging
import os
from pathlib import Path


def env(name: str, default: str | None = None) -> str | None:
    val = os.environ.get(name)
    if val is None or val.strip() == "":
        return default
    return val.strip()


def log_level() -> str:
    return (env("LOG_LEVEL", "INFO") or "INFO").upper()


def setup_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=level or log_level(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def progress_dir() -> Path:
    raw = env("PROGRESS_DIR")
    if raw:
        return Path(raw).expanduser()
    return Path.home() / ".lesson_mentor" / "progress"


def cors_allow_origins() -> list[str]:
    raw = env("CORS_ALLOW_ORIGINS", "*") or "*"
    return [o.strip() for o in raw.split(",") if o.strip()]
