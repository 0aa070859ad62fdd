"""Process liveness probing and detached process launch."""

from __future__ import annotations

import os
import subprocess
from pathlib import Path
from shlex import join

import psutil
import structlog

from ..constants import APP_NAME

__all__ = ["launch_detached", "process_token", "probe"]


def process_token(pid: int) -> str | None:
    """Return an identity token for a live process, or `None` if the
    process does not exist.

    The token is the process start time, which, unlike the pid, is not
    reused by the operating system.
    """
    try:
        return f"{psutil.Process(pid).create_time():.2f}"
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return None


def probe(pid: int, token: str | None = None) -> bool:
    """Check whether a process with the given id is alive.

    Parameters
    ----------
    pid
        Process id to check.
    token
        If given, the process must also have this identity token (see
        `process_token`), otherwise it is considered a different process
        that happens to have been given the same id.

    Returns
    -------
    bool
        Whether the process is alive.  Zombies are not alive.
    """
    try:
        proc = psutil.Process(pid)
        if proc.status() == psutil.STATUS_ZOMBIE:
            return False
        if token is not None:
            return f"{proc.create_time():.2f}" == token
    except psutil.NoSuchProcess:
        # Includes psutil.ZombieProcess.
        return False
    except psutil.AccessDenied:
        # It exists; it just isn't ours.
        return token is None
    return True


def launch_detached(
    command: list[str],
    *,
    log_file: Path,
    cwd: Path | None = None,
    env: dict[str, str] | None = None,
    logger: structlog.stdlib.BoundLogger | None = None,
) -> subprocess.Popen:
    """Start a process that outlives the caller.

    The process gets its own session, so it is not killed along with the
    caller's process group, reads from ``/dev/null``, and appends both
    standard output and standard error to ``log_file``.

    Parameters
    ----------
    command
        Command and arguments.
    log_file
        File receiving the process's output.  Never truncated.
    cwd
        Working directory for the process.
    env
        Complete environment for the process; the caller's if not given.
    logger
        Logger to use.  If not given, the application logger is used.

    Returns
    -------
    subprocess.Popen
        Handle on the launched process.

    Raises
    ------
    OSError
        Raised if the process could not be started at all.
    """
    if logger is None:
        logger = structlog.get_logger(APP_NAME)
    log_file.parent.mkdir(parents=True, exist_ok=True)
    logger.debug(
        f"Launching '{join(command)}'",
        cwd=str(cwd) if cwd else None,
        log_file=str(log_file),
    )
    with log_file.open("ab") as f:
        # The child keeps its own copy of the descriptor.
        proc = subprocess.Popen(
            command,
            cwd=cwd,
            env=env if env is not None else os.environ.copy(),
            stdin=subprocess.DEVNULL,
            stdout=f,
            stderr=subprocess.STDOUT,
            start_new_session=True,
        )
    logger.debug(f"Launched '{join(command)}'", pid=proc.pid)
    return proc
