"""Keep a single instance of a background service running."""

from __future__ import annotations

import asyncio
import os
import shutil
import subprocess
from datetime import timedelta
from pathlib import Path

import structlog

from ..constants import APP_NAME, CONFIRM_DELAY
from ..models.service import (
    PidRecord,
    ServiceHandle,
    ServiceOutcome,
    ServiceState,
)
from ..storage.process import launch_detached, probe, process_token

__all__ = ["Supervisor"]


class Supervisor:
    """Ensure background services are running, without ever starting a
    second copy of one across repeated provisioning passes.

    The pid file named by each `ServiceHandle` is the only record of
    whether its service is running.  There are no retries: a service that
    fails to start is reported, and the operator (or the next provisioning
    pass) deals with it.

    Parameters
    ----------
    env
        Base environment for launched services; each handle's
        ``env_overrides`` are applied on top of it.  Defaults to a copy of
        the caller's environment.
    confirm_delay
        How long to wait after launch before checking that the service
        survived its startup.
    logger
        Logger to use.  If not given, the application logger is used.
    """

    def __init__(
        self,
        *,
        env: dict[str, str] | None = None,
        confirm_delay: timedelta = CONFIRM_DELAY,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._env = env if env is not None else os.environ.copy()
        self._confirm_delay = confirm_delay
        if logger is None:
            self._logger = structlog.get_logger(APP_NAME)
        else:
            self._logger = logger
        # Children we launched, so they can be reaped when they exit.
        self._children: dict[Path, subprocess.Popen] = {}

    async def ensure_running(self, handle: ServiceHandle) -> ServiceOutcome:
        """Start the service described by ``handle`` unless it is already
        running.

        Returns
        -------
        ServiceOutcome
            ``ALREADY_RUNNING`` if a live process matches the pid file,
            ``SKIPPED`` if the launch target is missing, ``STARTED`` if the
            service was launched and survived the confirmation delay, and
            ``START_FAILED`` if it was launched and died.

        Raises
        ------
        OSError
            Raised if the pid file cannot be read, removed, or written.
        """
        logger = self._logger.bind(service=handle.name)
        child = self._children.get(handle.pid_file)
        if child is not None:
            # Reap an earlier launch that has since exited.
            child.poll()
        record = self._read_pid_file(handle)
        if record is not None:
            if probe(record.pid, record.token):
                logger.info("Service already running", pid=record.pid)
                return ServiceOutcome(
                    state=ServiceState.ALREADY_RUNNING,
                    pid=record.pid,
                    log_file=handle.log_file,
                )
            logger.info("Removing stale pid file", pid=record.pid)
            handle.pid_file.unlink(missing_ok=True)

        env = {**self._env, **handle.env_overrides}
        reason = self._check_launch_target(handle, env)
        if reason:
            logger.warning(f"Not starting service: {reason}")
            return ServiceOutcome(state=ServiceState.SKIPPED, reason=reason)

        try:
            proc = launch_detached(
                handle.command,
                log_file=handle.log_file,
                cwd=handle.cwd,
                env=env,
                logger=logger,
            )
        except OSError as exc:
            logger.warning(
                "Could not launch service",
                error=str(exc),
                log_file=str(handle.log_file),
            )
            return ServiceOutcome(
                state=ServiceState.START_FAILED,
                reason=str(exc),
                log_file=handle.log_file,
            )
        self._children[handle.pid_file] = proc
        token = process_token(proc.pid)
        handle.pid_file.parent.mkdir(parents=True, exist_ok=True)
        handle.pid_file.write_text(PidRecord(proc.pid, token).to_text())

        await asyncio.sleep(self._confirm_delay.total_seconds())

        # poll() reaps the child if it has exited, so it cannot linger as
        # a zombie that looks alive.
        if proc.poll() is None and probe(proc.pid, token):
            logger.info("Started service", pid=proc.pid)
            return ServiceOutcome(
                state=ServiceState.STARTED,
                pid=proc.pid,
                log_file=handle.log_file,
            )
        logger.warning(
            "Service exited during startup; check its log",
            pid=proc.pid,
            rc=proc.returncode,
            log_file=str(handle.log_file),
        )
        return ServiceOutcome(
            state=ServiceState.START_FAILED,
            pid=proc.pid,
            reason=f"exited with status {proc.returncode}",
            log_file=handle.log_file,
        )

    def _read_pid_file(self, handle: ServiceHandle) -> PidRecord | None:
        if not handle.pid_file.exists():
            return None
        try:
            return PidRecord.parse(handle.pid_file.read_text())
        except ValueError:
            self._logger.warning(
                "Removing unreadable pid file",
                service=handle.name,
                pid_file=str(handle.pid_file),
            )
            handle.pid_file.unlink(missing_ok=True)
            return None

    def _check_launch_target(
        self, handle: ServiceHandle, env: dict[str, str]
    ) -> str | None:
        """Return why the service cannot be launched, or `None` if it
        looks launchable.
        """
        if not handle.command:
            return "no command configured"
        if handle.cwd is not None and not handle.cwd.is_dir():
            return f"working directory {handle.cwd!s} does not exist"
        exe = handle.command[0]
        if os.sep in exe:
            exe_path = Path(exe)
            if not exe_path.is_absolute() and handle.cwd is not None:
                exe_path = handle.cwd / exe_path
            if not exe_path.is_file():
                return f"command {exe_path!s} does not exist"
        elif shutil.which(exe, path=env.get("PATH")) is None:
            return f"command {exe} not found on PATH"
        for path in handle.required_paths:
            if not path.exists():
                return f"required path {path!s} does not exist"
        return None
