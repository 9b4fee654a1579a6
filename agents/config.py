# agents/config.py
"""
CoachCore - Configuration
==========================
Environment-driven settings, loaded once from `.env` via python-dotenv.

Environment variables:
    GOOGLE_API_KEY                  Gemini key; generation is off without it
    COACHCORE_MODEL                 default gemini-2.0-flash
    COACHCORE_GENERATION_TIMEOUT    seconds, default 60
    COACHCORE_LOOKUP_TIMEOUT        seconds, default 10
    COACHCORE_HISTORY_LIMIT         messages kept in context, default 30
    COACHCORE_TIMEZONE              default America/New_York
    COACHCORE_LOG_LEVEL             default INFO
"""

import os
import sys

from dotenv import load_dotenv
from loguru import logger

load_dotenv()


# =============================================================================
# ERRORS
# =============================================================================

class CoachCoreError(Exception):
    """Base class for configuration and boundary faults."""


class GenerationUnavailableError(CoachCoreError):
    """Text generation is not configured or the model call failed."""


# =============================================================================
# SETTINGS
# =============================================================================

def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise CoachCoreError(f"{name} must be a number, got {raw!r}") from None


def _env_int(name: str, default: int) -> int:
    return int(_env_float(name, default))


ORCHESTRATOR_CONFIG = {
    "app_name": "coachcore",
    "lookup_timeout": _env_float("COACHCORE_LOOKUP_TIMEOUT", 10.0),
    "history_limit": _env_int("COACHCORE_HISTORY_LIMIT", 30),
    "timezone": os.getenv("COACHCORE_TIMEZONE", "America/New_York"),
}

GENERATION_CONFIG = {
    "model": os.getenv("COACHCORE_MODEL", "gemini-2.0-flash"),
    "timeout": _env_float("COACHCORE_GENERATION_TIMEOUT", 60.0),
    "temperature": 0.7,
    "max_output_tokens": 2048,
}

LOG_LEVEL = os.getenv("COACHCORE_LOG_LEVEL", "INFO").upper()


def get_api_key() -> str:
    """The Gemini key, or GenerationUnavailableError when unset."""
    api_key = os.getenv("GOOGLE_API_KEY")
    if not api_key:
        raise GenerationUnavailableError("GOOGLE_API_KEY is not set; text generation is disabled")
    return api_key


def configure_logging(level: str = LOG_LEVEL) -> int:
    """Replace loguru's default sink with a stderr sink at `level`."""
    logger.remove()
    return logger.add(
        sys.stderr,
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level:<8} | {message} | {extra}",
    )


__all__ = [
    "CoachCoreError",
    "GenerationUnavailableError",
    "ORCHESTRATOR_CONFIG",
    "GENERATION_CONFIG",
    "LOG_LEVEL",
    "get_api_key",
    "configure_logging",
]
