"""Provision a notebook runtime environment before JupyterLab starts."""

from importlib.metadata import PackageNotFoundError, version

from .config import ProvisionerConfig, config_from_env
from .exceptions import (
    CommandFailedError,
    CommandTimedOutError,
    ConfigurationError,
    ProvisioningError,
)
from .models import PidRecord, ServiceHandle, ServiceOutcome, ServiceState
from .services import Provisioner, Supervisor

__version__: str
"""The application version string of (PEP 440 / SemVer compatible)."""

try:
    __version__ = version("gradient-nbstartup")
except PackageNotFoundError:
    # package is not installed
    __version__ = "0.0.0"

__all__ = [
    "CommandFailedError",
    "CommandTimedOutError",
    "ConfigurationError",
    "PidRecord",
    "ProvisionerConfig",
    "Provisioner",
    "ProvisioningError",
    "ServiceHandle",
    "ServiceOutcome",
    "ServiceState",
    "Supervisor",
    "__version__",
    "config_from_env",
]
