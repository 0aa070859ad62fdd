"""CLI launchers for notebook runtime provisioning."""

import asyncio
import os
import sys

import structlog

from .config import config_from_env
from .constants import APP_NAME
from .exceptions import ConfigurationError, ProvisioningError
from .services import Provisioner
from .storage.logging import configure_logging
from .util import str_bool

__all__ = ["ensure_services", "launch_lab", "provision"]


def _provision() -> Provisioner:
    configure_logging(debug=str_bool(os.getenv("DEBUG", "")))
    logger = structlog.get_logger(APP_NAME)
    try:
        provisioner = Provisioner.from_env()
        asyncio.run(provisioner.go())
    except (ConfigurationError, ProvisioningError) as exc:
        logger.error("Provisioning failed", error=str(exc))
        sys.exit(1)
    return provisioner


def provision() -> None:
    """Run one provisioning pass.  All settings are in the environment.

    Exits with a nonzero status if any provisioning step fails, so that a
    startup command chained with ``&&`` does not go on to start the lab in
    a half-built environment.  Services that fail to start do not count.
    """
    _provision()


def launch_lab() -> None:
    """Provision, then replace this process with the lab.

    The lab command is taken from the arguments (``jupyter lab`` if there
    are none) and is started with the provisioned environment, rather than
    relying on the system-wide files to reach it.
    """
    provisioner = _provision()
    command = sys.argv[1:] or ["jupyter", "lab"]
    logger = structlog.get_logger(APP_NAME)
    logger.info("Starting lab", command=command)
    sys.stdout.flush()
    sys.stderr.flush()
    os.execvpe(command[0], command, provisioner.env)


def ensure_services() -> None:
    """Check the configured background services and start any that are
    not running, without repeating the rest of provisioning.  Services get
    the same environment a full pass would give them.

    Only bad configuration is an error; services that fail to start are
    logged as warnings.
    """
    configure_logging(debug=str_bool(os.getenv("DEBUG", "")))
    logger = structlog.get_logger(APP_NAME)
    try:
        config = config_from_env()
    except ConfigurationError as exc:
        logger.error("Bad configuration", error=str(exc))
        sys.exit(1)
    provisioner = Provisioner(config)
    asyncio.run(provisioner.ensure_services())
    for name, outcome in provisioner.outcomes.items():
        logger.info(
            f"Service {name}: {outcome.state.value}",
            pid=outcome.pid,
            reason=outcome.reason,
        )
