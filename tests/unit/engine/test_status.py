# tests/unit/engine/test_status.py — v1
"""Tests for engine/status.py — per-call resolution status."""

from __future__ import annotations

import asyncio

import pytest

from id5resolver.config.options import build_options
from id5resolver.engine.status import ResolutionStatus


def _status(**raw) -> ResolutionStatus:
    options, diagnostics = build_options({"partnerId": 7, **raw})
    return ResolutionStatus(options, diagnostics)


class TestUserId:
    def test_initially_unavailable(self):
        status = _status()
        assert status.user_id is None
        assert not status.is_available()

    def test_set_user_id(self):
        status = _status()
        status.set_user_id("ID5-1", 2, from_cache=True)
        assert status.is_available()
        assert status.link_type == 2
        assert status.from_cache is True

    def test_callback_once(self):
        seen = []
        status = _status(callback=seen.append)
        status.set_user_id("a", 0, from_cache=True)
        status.set_user_id("b", 0, from_cache=False)
        assert seen == [status]
        assert status.callback_fired

    def test_callback_exception_logged(self, caplog):
        def boom(_):
            raise RuntimeError("callback broke")

        status = _status(callback=boom)
        with caplog.at_level("ERROR", logger="id5resolver"):
            status.set_user_id("a", 0, from_cache=False)
        assert status.user_id == "a"
        assert any("callback" in r.getMessage() for r in caplog.records)


class TestUpdateOptions:
    def test_merge(self):
        status = _status(pd="a")
        assert status.update_options({"pd": "b"}) == []
        assert status.options.pd == "b"

    def test_partner_id_cannot_change(self):
        status = _status()
        diagnostics = status.update_options({"partnerId": 8, "pd": "x"})
        assert status.options.partner_id == 7
        assert status.options.pd == "x"
        assert [d.key for d in diagnostics] == ["partnerId"]

    def test_same_partner_id_is_fine(self):
        assert _status().update_options({"partnerId": 7}) == []

    def test_none(self):
        assert _status().update_options(None) == []

    def test_diagnostics_accumulate(self):
        status = _status(bogus=1)
        status.update_options({"other": 2})
        assert [d.key for d in status.diagnostics] == ["bogus", "other"]


class TestBackgroundTasks:
    @pytest.mark.asyncio
    async def test_settled_waits_for_tasks(self):
        status = _status()
        done = []

        async def work():
            await asyncio.sleep(0)
            done.append(1)

        status.track(asyncio.get_running_loop().create_task(work()))
        assert status.pending == 1
        await status.settled()
        assert done == [1]
        assert status.pending == 0

    @pytest.mark.asyncio
    async def test_failed_task_is_logged(self, caplog):
        status = _status()

        async def broken():
            raise RuntimeError("pass exploded")

        with caplog.at_level("ERROR", logger="id5resolver"):
            status.track(asyncio.get_running_loop().create_task(broken()))
            await status.settled()
        assert any("pass exploded" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_settled_with_nothing_pending(self):
        await _status().settled()


class TestAsDict:
    def test_as_dict(self):
        status = _status(bogus=True)
        status.set_user_id("ID5-1", 1, from_cache=False)
        status.last_outcome = "refreshed"
        data = status.as_dict()
        assert data["partner_id"] == 7
        assert data["user_id"] == "ID5-1"
        assert data["last_outcome"] == "refreshed"
        assert data["diagnostics"][0]["key"] == "bogus"
