"""Tests for the command-line entry point."""

import json
import logging

import pytest
import structlog

from scraper.irl_events.__main__ import build_parser, run
from scraper.irl_events.logging_config import configure_logging
from scraper.irl_events.snapshot import ALL_EVENTS_FILE, DELTA_FILE, META_FILE


def parse(*argv: str):
    return build_parser().parse_args(["--no-enrich", *argv])


class TestParser:
    """Tests for argument parsing."""

    def test_defaults(self):
        args = build_parser().parse_args([])
        assert args.config is None
        assert not args.test
        assert not args.no_enrich
        assert args.log_format == "console"

    def test_rejects_unknown_log_format(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--log-format", "xml"])


class TestRun:
    """Tests for a full offline run (curated recurring source only)."""

    @pytest.mark.asyncio
    async def test_test_mode_writes_nothing(self, tmp_path, capsys):
        code = await run(parse("--test", "--output-dir", str(tmp_path)))
        assert code == 0
        assert list(tmp_path.iterdir()) == []
        assert "Sample events:" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_writes_snapshot_and_delta(self, tmp_path, capsys):
        code = await run(parse("--output-dir", str(tmp_path), "--seed", "3"))
        assert code == 0

        events = json.loads((tmp_path / ALL_EVENTS_FILE).read_text())
        assert events
        assert all(e["sourceName"] == "Curated Recurring" for e in events)
        assert (tmp_path / META_FILE).exists()
        delta = json.loads((tmp_path / DELTA_FILE).read_text())
        assert len(delta["added"]) == len(events)
        assert f"Saved to: {tmp_path}" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_second_run_has_no_changes(self, tmp_path):
        await run(parse("--output-dir", str(tmp_path)))
        await run(parse("--output-dir", str(tmp_path)))
        delta = json.loads((tmp_path / DELTA_FILE).read_text())
        assert delta["added"] == []
        assert delta["modified"] == []

    @pytest.mark.asyncio
    async def test_config_error(self, tmp_path, capsys):
        config = tmp_path / "run.json"
        config.write_text("{broken")
        code = await run(parse("--config", str(config)))
        assert code == 1
        assert "Config error" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_snapshot_error(self, tmp_path, capsys):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        code = await run(parse("--output-dir", str(blocker / "data")))
        assert code == 1
        assert "Failed to write snapshot" in capsys.readouterr().err


class TestConfigureLogging:
    """Tests for configure_logging."""

    @pytest.fixture(autouse=True)
    def restore_logging(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)
        structlog.reset_defaults()

    def test_sets_level_and_single_handler(self):
        configure_logging(json_output=True, log_level="debug")
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self):
        configure_logging(json_output=False, log_level="chatty")
        assert logging.getLogger().level == logging.INFO
