# src/engine/status.py — v1
"""Per-caller resolution status: the session object each pass reports into.

Replaces process-wide flags: every ``Id5Api.init`` call gets its own
status, so several embeddings in one process never share state.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from typing import Any, Literal

from id5resolver.config.options import Id5Options, OptionDiagnostic, merge_options

logger = logging.getLogger(__name__)

PassOutcome = Literal["denied", "fresh", "refreshed", "failed"]


class ResolutionStatus:
    """Holds the resolved identifier and the options it was resolved with."""

    def __init__(
        self,
        options: Id5Options,
        diagnostics: list[OptionDiagnostic] | None = None,
    ) -> None:
        self.options = options
        self.diagnostics: list[OptionDiagnostic] = list(diagnostics or [])
        self.callback_fired = False
        self.is_refreshing = False
        self.force_fetch = False
        self.last_outcome: PassOutcome | None = None
        self._user_id: str | None = None
        self._link_type = 0
        self._from_cache = False
        self._tasks: set[asyncio.Task[Any]] = set()

    # --- identifier ---

    @property
    def user_id(self) -> str | None:
        return self._user_id

    @property
    def link_type(self) -> int:
        return self._link_type

    @property
    def from_cache(self) -> bool:
        return self._from_cache

    def is_available(self) -> bool:
        return bool(self._user_id)

    def set_user_id(self, user_id: str, link_type: int, from_cache: bool) -> None:
        """Publish an identifier; fires the ``callback`` option once."""
        self._user_id = user_id
        self._link_type = link_type
        self._from_cache = from_cache
        logger.info(
            "User id available: link_type=%d, from_cache=%s", link_type, from_cache,
        )
        self._fire_callback()

    def _fire_callback(self) -> None:
        callback = self.options.callback
        if callback is None or self.callback_fired:
            return
        self.callback_fired = True
        try:
            callback(self)
        except Exception:
            logger.exception("Exception raised by the callback option")

    # --- refresh ---

    def start_refresh(self, force_fetch: bool) -> None:
        self.is_refreshing = True
        self.force_fetch = force_fetch

    def update_options(self, updates: Mapping[str, Any] | None) -> list[OptionDiagnostic]:
        """Merge option updates; the partner id cannot change."""
        if not updates:
            return []
        updates = dict(updates)
        diagnostics: list[OptionDiagnostic] = []
        for key in ("partnerId", "partner_id"):
            if key in updates and updates[key] != self.options.partner_id:
                updates.pop(key)
                diagnostics.append(
                    OptionDiagnostic(key=key, message="partnerId cannot be changed")
                )
                logger.error("Cannot change partnerId on an existing status")
        self.options, merge_diags = merge_options(self.options, updates)
        diagnostics.extend(merge_diags)
        self.diagnostics.extend(diagnostics)
        return diagnostics

    # --- background work ---

    def track(self, task: asyncio.Task[Any]) -> None:
        """Keep a reference to a pass task until it finishes."""
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(
                "Resolution task failed: %s", error,
                exc_info=(type(error), error, error.__traceback__),
            )

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def settled(self) -> None:
        """Wait until every pass (and pixel) started on this status is done."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def as_dict(self) -> dict[str, Any]:
        return {
            "partner_id": self.options.partner_id,
            "user_id": self._user_id,
            "link_type": self._link_type,
            "from_cache": self._from_cache,
            "last_outcome": self.last_outcome,
            "diagnostics": [d.model_dump() for d in self.diagnostics],
        }
