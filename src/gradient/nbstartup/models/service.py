"""Models for supervised background services."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Self

__all__ = [
    "PidRecord",
    "ServiceHandle",
    "ServiceOutcome",
    "ServiceState",
]


@dataclass
class ServiceHandle:
    """Identifies one supervised background process.

    At most one live process is associated with a given ``pid_file``.  The
    pid file is the sole record of whether the service is running: it is
    written when the process is launched and removed when the process is
    found to be dead.
    """

    name: str
    """Human-readable name, used only for logging."""

    pid_file: Path
    """Where the process id of the running service is recorded."""

    log_file: Path
    """Where the service's standard output and error are appended."""

    command: list[str]
    """Command and arguments used to start the service."""

    cwd: Path | None = None
    """Working directory for the service, if not the caller's."""

    env_overrides: dict[str, str] = field(default_factory=dict)
    """Variables set only in the service's environment."""

    required_paths: list[Path] = field(default_factory=list)
    """Paths that must exist before the service can be launched."""

    @classmethod
    def from_dict(cls, obj: dict[str, Any]) -> Self:
        """Build a handle from a configuration document section."""
        cwd = obj.get("cwd")
        return cls(
            name=obj["name"],
            pid_file=Path(obj["pid_file"]),
            log_file=Path(obj["log_file"]),
            command=[str(x) for x in obj["command"]],
            cwd=Path(cwd) if cwd else None,
            env_overrides={
                str(k): str(v)
                for k, v in (obj.get("env_overrides") or {}).items()
            },
            required_paths=[Path(x) for x in obj.get("required_paths", [])],
        )


class ServiceState(Enum):
    """Result of one attempt to ensure a service is running."""

    ALREADY_RUNNING = "already_running"
    STARTED = "started"
    START_FAILED = "start_failed"
    SKIPPED = "skipped"


@dataclass
class ServiceOutcome:
    """What the supervisor found or did for one service."""

    state: ServiceState
    pid: int | None = None
    reason: str | None = None
    log_file: Path | None = None

    @property
    def ok(self) -> bool:
        """Whether the outcome needs no operator attention."""
        return self.state is not ServiceState.START_FAILED


@dataclass
class PidRecord:
    """Contents of a pid file.

    The first line is the process id.  The optional second line is the
    process start time, used to tell the recorded process apart from an
    unrelated process that has since been given the same id.
    """

    pid: int
    token: str | None = None

    @classmethod
    def parse(cls, text: str) -> Self:
        """Parse pid file contents.

        Raises
        ------
        ValueError
            Raised if the first line is not a positive integer.
        """
        lines = text.split()
        if not lines:
            raise ValueError("Empty pid file")
        pid = int(lines[0])
        if pid <= 0:
            raise ValueError(f"Invalid pid {pid}")
        token = lines[1] if len(lines) > 1 else None
        return cls(pid=pid, token=token)

    def to_text(self) -> str:
        if self.token is None:
            return f"{self.pid}\n"
        return f"{self.pid}\n{self.token}\n"
