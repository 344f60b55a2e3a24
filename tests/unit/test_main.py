# tests/unit/test_main.py — v2
"""Tests for main.py — CLI entry point."""

from __future__ import annotations

import json
import logging

import pytest

import id5resolver.main as cli
from id5resolver.logging.logger import ROOT_LOGGER
from id5resolver.main import _build_parser, main, parse_frames
from id5resolver.storage.json_store import JsonFileStorage


@pytest.fixture(autouse=True)
def restore_root_logger(monkeypatch):
    for key in ("ID5_STORAGE_BACKEND", "ID5_STORAGE_PATH", "ID5_LOG_FILE"):
        monkeypatch.delenv(key, raising=False)
    root = logging.getLogger(ROOT_LOGGER)
    level, handlers = root.level, list(root.handlers)
    yield
    root.setLevel(level)
    root.handlers[:] = handlers


# ---------------------------------------------------------------------------
# Parser tests
# ---------------------------------------------------------------------------

class TestBuildParser:
    def test_version_flag(self):
        parser = _build_parser()
        with pytest.raises(SystemExit) as exc_info:
            parser.parse_args(["--version"])
        assert exc_info.value.code == 0

    def test_resolve_subcommand(self):
        args = _build_parser().parse_args([
            "resolve", "--partner", "99", "--pd", "abc", "--force",
            "--frame", "https://pub.com/",
        ])
        assert args.command == "resolve"
        assert args.partner == 99
        assert args.pd == "abc"
        assert args.force is True
        assert args.frame == ["https://pub.com/"]

    def test_partner_required(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["show-cache"])

    def test_global_storage_options(self):
        args = _build_parser().parse_args([
            "--backend", "json", "--storage-path", "/tmp/x", "show-cache", "--partner", "1",
        ])
        assert args.backend == "json"
        assert args.storage_path == "/tmp/x"

    def test_no_command(self, capsys):
        assert main([]) == 1


class TestParseFrames:
    def test_empty(self):
        frame = parse_frames([])
        assert frame.parent is None
        assert frame.location is None

    def test_chain(self):
        leaf = parse_frames([
            "https://pub.com/page",
            "https://ads.com/frame,https://pub.com/page",
        ])
        assert leaf.location == "https://ads.com/frame"
        assert leaf.referrer == "https://pub.com/page"
        assert leaf.parent.location == "https://pub.com/page"
        assert leaf.parent.parent is None

    def test_empty_url_is_cross_origin(self):
        leaf = parse_frames([",", "https://ads.com/frame"])
        assert leaf.parent.cross_origin is True


# ---------------------------------------------------------------------------
# Command tests
# ---------------------------------------------------------------------------

class TestRefererCommand:
    def test_same_origin(self, capsys):
        code = main([
            "referer",
            "--frame", "http://example.com/page.html,http://example.com/page.html",
            "--frame", "http://example.com/iframe1.html,http://example.com/page.html",
        ])
        assert code == 0
        info = json.loads(capsys.readouterr().out)
        assert info["reached_top"] is True
        assert info["num_iframes"] == 1
        assert info["stack"] == [
            "http://example.com/page.html",
            "http://example.com/iframe1.html",
        ]


class TestShowCacheCommand:
    def test_empty_memory_store(self, capsys):
        assert main(["show-cache", "--partner", "99"]) == 0
        state = json.loads(capsys.readouterr().out)
        assert state["nb_counter"] == 0
        assert "record" not in state

    def test_json_store(self, capsys, tmp_path):
        store = JsonFileStorage(tmp_path / "id5_storage.json")
        store.set("id5id", json.dumps({"universal_uid": "ID5-X", "signature": "s"}), 3600)
        store.set("id5id_99_nb", "4", 3600)
        code = main([
            "--backend", "json", "--storage-path", str(tmp_path),
            "show-cache", "--partner", "99",
        ])
        assert code == 0
        state = json.loads(capsys.readouterr().out)
        assert state["record"]["universal_uid"] == "ID5-X"
        assert state["nb_counter"] == 4


class TestResolveCommand:
    def test_resolve(self, capsys, monkeypatch, transport):
        monkeypatch.setattr(cli, "HttpxTransport", lambda timeout_s: transport)
        code = main([
            "resolve", "--partner", "99", "--no-consent-api",
            "--frame", "https://pub.com/page",
        ])
        assert code == 0
        status = json.loads(capsys.readouterr().out)
        assert status["user_id"] == "ID5-ABC"
        assert status["last_outcome"] == "refreshed"
        transport.aclose.assert_awaited_once()

    def test_resolve_with_static_consent(self, capsys, monkeypatch, transport):
        monkeypatch.setattr(cli, "HttpxTransport", lambda timeout_s: transport)
        code = main([
            "resolve", "--partner", "99", "--gdpr", "--consent-string", "CS-1",
        ])
        assert code == 0
        payload = json.loads(transport.post.await_args.args[1])
        assert payload["gdpr"] == 1
        assert payload["gdpr_consent"] == "CS-1"

    def test_resolve_denied(self, capsys, monkeypatch, transport):
        monkeypatch.setattr(cli, "HttpxTransport", lambda timeout_s: transport)
        code = main(["resolve", "--partner", "99", "--gdpr"])
        assert code == 1
        status = json.loads(capsys.readouterr().out)
        assert status["last_outcome"] == "denied"
        assert transport.post.await_count == 0


class TestMainErrors:
    def test_configuration_error(self, capsys, monkeypatch):
        monkeypatch.setenv("ID5_API_HOST", " ")
        assert main(["show-cache", "--partner", "1"]) == 2
        assert "Configuration error" in capsys.readouterr().err
