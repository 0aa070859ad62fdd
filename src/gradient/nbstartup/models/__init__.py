"""Data models for notebook runtime startup."""

from .service import PidRecord, ServiceHandle, ServiceOutcome, ServiceState

__all__ = ["PidRecord", "ServiceHandle", "ServiceOutcome", "ServiceState"]
