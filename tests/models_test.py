"""Tests for service models."""

from pathlib import Path

import pytest

from gradient.nbstartup.models.service import (
    PidRecord,
    ServiceHandle,
    ServiceOutcome,
    ServiceState,
)


def test_pid_record() -> None:
    record = PidRecord.parse("1234\n")
    assert record == PidRecord(pid=1234)
    assert record.to_text() == "1234\n"

    record = PidRecord.parse("1234\n1729350000.25\n")
    assert record == PidRecord(pid=1234, token="1729350000.25")
    assert record.to_text() == "1234\n1729350000.25\n"

    # Written by hand, without a trailing newline.
    assert PidRecord.parse("  42").pid == 42


@pytest.mark.parametrize("text", ["", "\n", "abc\n", "-5\n", "0\n"])
def test_pid_record_invalid(text: str) -> None:
    with pytest.raises(ValueError, match=r".+"):
        PidRecord.parse(text)


def test_handle_from_dict() -> None:
    handle = ServiceHandle.from_dict(
        {
            "name": "inference-server",
            "pid_file": "/notebooks/server.pid",
            "log_file": "/notebooks/server.log",
            "command": ["python", "server.py", "--port", 8081],
            "cwd": "/notebooks/server",
            "env_overrides": {"LD_LIBRARY_PATH": "/notebooks/.venv/lib"},
            "required_paths": ["/notebooks/server/server.py"],
        }
    )
    assert handle.pid_file == Path("/notebooks/server.pid")
    assert handle.command == ["python", "server.py", "--port", "8081"]
    assert handle.cwd == Path("/notebooks/server")
    assert handle.env_overrides == {"LD_LIBRARY_PATH": "/notebooks/.venv/lib"}
    assert handle.required_paths == [Path("/notebooks/server/server.py")]

    handle = ServiceHandle.from_dict(
        {
            "name": "minimal",
            "pid_file": "/run/minimal.pid",
            "log_file": "/var/log/minimal.log",
            "command": ["minimal"],
        }
    )
    assert handle.cwd is None
    assert handle.env_overrides == {}
    assert handle.required_paths == []


def test_outcome_ok() -> None:
    assert ServiceOutcome(state=ServiceState.STARTED, pid=5).ok
    assert ServiceOutcome(state=ServiceState.ALREADY_RUNNING, pid=5).ok
    assert ServiceOutcome(state=ServiceState.SKIPPED, reason="missing").ok
    assert not ServiceOutcome(state=ServiceState.START_FAILED, pid=5).ok
