# src/logging/context.py — v2
"""Contextual logging support: attach partner_id and pass_id to log records."""

from __future__ import annotations

import contextvars
import uuid
from dataclasses import dataclass
from typing import Any

# Set by the resolution engine at the start of every pass. Each asyncio
# task copies the context at creation, so concurrent passes stay apart.
_partner_id: contextvars.ContextVar[int | None] = contextvars.ContextVar(
    "partner_id", default=None
)
_pass_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "pass_id", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    partner_id: int | None = None
    pass_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(partner_id=_partner_id.get(), pass_id=_pass_id.get())


def set_pass_context(partner_id: int | None, pass_id: str | None = None) -> str:
    """Set per-pass context; generates a short pass id when none is given."""
    pass_id = pass_id or uuid.uuid4().hex[:12]
    _partner_id.set(partner_id)
    _pass_id.set(pass_id)
    return pass_id


def clear_context() -> None:
    """Reset all context variables."""
    _partner_id.set(None)
    _pass_id.set(None)
