"""Tests for startup logging configuration."""

import json
from pathlib import Path

import structlog

from gradient.nbstartup.constants import APP_NAME
from gradient.nbstartup.storage.logging import configure_logging


def test_json_logfile(tmp_path: Path) -> None:
    logfile = tmp_path / "logs" / "startup.log"
    configure_logging(logfile=logfile)
    logger = structlog.get_logger(APP_NAME)
    logger.debug("not shown")
    logger.info("Linked cache", name="torch")
    lines = logfile.read_text().splitlines()
    assert len(lines) == 1
    event = json.loads(lines[0])
    assert event["event"] == "Linked cache"
    assert event["name"] == "torch"
    assert event["severity"] == "info"
    assert event["logger"] == APP_NAME
    assert "timestamp" in event


def test_debug_logfile(tmp_path: Path) -> None:
    logfile = tmp_path / "startup.log"
    configure_logging(debug=True, logfile=logfile)
    logger = structlog.get_logger(APP_NAME)
    logger.debug("Running 'ldconfig'")
    text = logfile.read_text()
    assert "Running 'ldconfig'" in text
    assert "debug" in text


def test_reconfigure(tmp_path: Path) -> None:
    first = tmp_path / "first.log"
    second = tmp_path / "second.log"
    configure_logging(logfile=first)
    configure_logging(logfile=second)
    structlog.get_logger(APP_NAME).info("only once")
    assert not first.read_text()
    assert "only once" in second.read_text()
