"""Runtime settings loaded from the environment."""
from __future__ import annotations

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load project-level .env regardless of current working directory.
_DOTENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(_DOTENV_PATH)


def _env_int(name: str, default: int, *, minimum: int = 1) -> int:
    raw = str(os.getenv(name, "")).strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return max(minimum, value)


def _env_list(name: str, default: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


# Payload limits for the HTTP surface
MAX_ROWS = _env_int("VIS_MAX_ROWS", 10000, minimum=1)
MAX_CONTENT_LENGTH = _env_int("VIS_MAX_CONTENT_LENGTH", 2_000_000, minimum=1)

CORS_ALLOW_ORIGINS = _env_list(
    "CORS_ALLOW_ORIGINS",
    "http://localhost:3000,http://127.0.0.1:3000",
)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"
