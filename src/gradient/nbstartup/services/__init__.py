"""Provisioning services."""

from .provisioner import Provisioner
from .supervisor import Supervisor

__all__ = ["Provisioner", "Supervisor"]
