"""Tests for startup exceptions."""

import subprocess

from gradient.nbstartup.exceptions import (
    CommandFailedError,
    CommandTimedOutError,
    ConfigurationError,
    ProvisioningError,
)


def test_command_failed() -> None:
    args = ["apt-get", "install", "-y", "nosuchpkg"]
    cpe = subprocess.CalledProcessError(100, args, "", "E: Unable to locate")
    exc = CommandFailedError(args, cpe)
    assert str(exc) == (
        "'apt-get install -y nosuchpkg' failed with status 100"
    )
    assert exc.returncode == 100
    assert exc.stderr == "E: Unable to locate"


def test_command_timed_out() -> None:
    args = ["uv", "pip", "install", "fairseq2"]
    te = subprocess.TimeoutExpired(args, 30.0)
    exc = CommandTimedOutError(args, te)
    assert str(exc) == "'uv pip install fairseq2' timed out after 30.0s"


def test_configuration_error() -> None:
    exc = ConfigurationError("must be set", "HOME")
    assert str(exc) == "HOME: must be set"
    assert exc.setting == "HOME"
    exc = ConfigurationError("bad document")
    assert str(exc) == "bad document"
    assert exc.setting is None


def test_provisioning_error() -> None:
    exc = ProvisioningError("venv", "no space left on device")
    assert exc.step == "venv"
    assert str(exc) == (
        "Provisioning step 'venv' failed: no space left on device"
    )
