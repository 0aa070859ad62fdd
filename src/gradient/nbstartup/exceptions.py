"""Exceptions for notebook runtime startup."""

from __future__ import annotations

import subprocess
from collections.abc import Iterable
from shlex import join

__all__ = [
    "CommandFailedError",
    "CommandTimedOutError",
    "ConfigurationError",
    "ProvisioningError",
]


class CommandFailedError(Exception):
    """Execution of a command failed.

    Parameters
    ----------
    args
        Command (args[0]) and arguments to that command.
    exc
        Exception reporting the failure.

    Attributes
    ----------
    returncode
        Exit status of the failed command.
    stdout
        Standard output from the failed command, if it was captured.
    stderr
        Standard error from the failed command, if it was captured.
    """

    def __init__(
        self,
        args: Iterable[str],
        exc: subprocess.CalledProcessError,
    ) -> None:
        args_str = join(args)
        msg = f"'{args_str}' failed with status {exc.returncode}"
        super().__init__(msg)
        self.returncode = exc.returncode
        self.stdout = exc.stdout
        self.stderr = exc.stderr


class CommandTimedOutError(Exception):
    """Execution of a command took longer than its timeout.

    Parameters
    ----------
    args
        Command (args[0]) and arguments to that command.
    exc
        Exception reporting the timeout.

    Attributes
    ----------
    stdout
        Standard output from the command, if it was captured.
    stderr
        Standard error from the command, if it was captured.
    """

    def __init__(
        self,
        args: Iterable[str],
        exc: subprocess.TimeoutExpired,
    ) -> None:
        args_str = join(args)
        msg = f"'{args_str}' timed out after {exc.timeout}s"
        super().__init__(msg)
        self.stdout = exc.stdout
        self.stderr = exc.stderr


class ConfigurationError(Exception):
    """Startup configuration is missing or malformed.

    Parameters
    ----------
    message
        Description of the problem.
    setting
        Name of the environment variable or configuration key at fault.
    """

    def __init__(self, message: str, setting: str | None = None) -> None:
        if setting:
            message = f"{setting}: {message}"
        super().__init__(message)
        self.setting = setting


class ProvisioningError(Exception):
    """A provisioning step failed, aborting the provisioning pass.

    The underlying error is chained as ``__cause__``.

    Parameters
    ----------
    step
        Name of the step that failed.
    message
        Description of the failure.

    Attributes
    ----------
    step
        Name of the step that failed.
    """

    def __init__(self, step: str, message: str) -> None:
        super().__init__(f"Provisioning step '{step}' failed: {message}")
        self.step = step
