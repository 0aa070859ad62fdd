"""Tests for the external command wrapper."""

from datetime import timedelta
from pathlib import Path

import pytest

from gradient.nbstartup.exceptions import (
    CommandFailedError,
    CommandTimedOutError,
)
from gradient.nbstartup.storage.command import Command


def test_capture() -> None:
    result = Command().run("sh", "-c", "echo out; echo err >&2")
    assert result.returncode == 0
    assert result.stdout == "out\n"
    assert result.stderr == "err\n"


def test_output_appended(tmp_path: Path) -> None:
    log = tmp_path / "startup.log"
    log.write_text("earlier\n")
    cmd = Command()
    cmd.run("sh", "-c", "echo out; echo err >&2", output=log)
    cmd.run("echo", "again", output=log)
    assert log.read_text() == "earlier\nout\nerr\nagain\n"


def test_env_and_cwd(tmp_path: Path) -> None:
    result = Command().run(
        "sh",
        "-c",
        'echo "$GREETING"; pwd',
        cwd=tmp_path,
        env={"GREETING": "hello", "PATH": "/usr/bin:/bin"},
    )
    lines = result.stdout.splitlines()
    assert lines[0] == "hello"
    assert Path(lines[1]).resolve() == tmp_path.resolve()


def test_failure() -> None:
    with pytest.raises(CommandFailedError) as excinfo:
        Command().run("sh", "-c", "echo broken >&2; exit 2")
    assert excinfo.value.returncode == 2
    assert excinfo.value.stderr == "broken\n"

    result = Command(ignore_fail=True).run("sh", "-c", "exit 2")
    assert result.returncode == 2


def test_timeout() -> None:
    with pytest.raises(CommandTimedOutError):
        Command().run("sleep", "10", timeout=timedelta(seconds=0.2))
