# agents/events.py
"""
CoachCore - Structured Events
==============================
One helper for the leveled events the orchestrator and coach agent emit at
tool boundaries. Fields are bound onto the loguru record (`record["extra"]`)
so a JSON sink can ship them as-is; the message stays short for humans.
"""

from typing import Any

from loguru import logger


EVENTS = (
    "tags_detected",
    "tool_started",
    "tool_completed",
    "tool_failed",
    "tool_unavailable",
    "tool_skipped",
    "estimation_applied",
    "knowledge_unavailable",
    "generation_failed",
)


def _summary(fields: dict) -> str:
    return " ".join(f"{key}={value}" for key, value in fields.items())


def emit(event: str, level: str = "INFO", **fields: Any) -> None:
    """Log `event` at `level` with `fields` bound as structured extras."""
    logger.bind(event=event, **fields).log(level, "{} {}", event, _summary(fields))


__all__ = ["EVENTS", "emit"]
