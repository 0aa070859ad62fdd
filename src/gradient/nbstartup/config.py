"""Provisioner configuration from the environment and an optional YAML
document.
"""

from __future__ import annotations

import os
import shlex
import sys
from dataclasses import dataclass, field, fields
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml

from .constants import (
    CACHE_VARIABLES,
    CONFIRM_DELAY,
    DEFAULT_LAB_PACKAGES,
    DEFAULT_PYTHON_PACKAGES,
    DEFAULT_SYSTEM_PACKAGES,
    ETC_PATH,
    NOTEBOOKS_PATH,
    PROFILE_NAME,
    STEPS,
    UV_INSTALL_URL,
)
from .exceptions import ConfigurationError
from .models.service import ServiceHandle
from .util import split_list, str_bool

__all__ = ["ProvisionerConfig", "config_from_env"]

_PATH_FIELDS = {"notebooks_dir", "home", "log_file", "venv", "etc_dir"}
_LIST_FIELDS = {"system_packages", "lab_packages", "python_packages"}


@dataclass
class ProvisionerConfig:
    """Everything a provisioning pass needs to know.

    ``host_python`` is the interpreter Jupyter runs under.  Lab packages are
    installed into it and the venv is created from it; by default it is the
    interpreter running this package.
    """

    home: Path
    notebooks_dir: Path = NOTEBOOKS_PATH
    log_file: Path = NOTEBOOKS_PATH / "startup.log"
    venv: Path = NOTEBOOKS_PATH / ".venv"
    etc_dir: Path = ETC_PATH
    profile_name: str = PROFILE_NAME
    uv_install_url: str = UV_INSTALL_URL
    host_python: str = sys.executable
    system_packages: list[str] = field(
        default_factory=lambda: list(DEFAULT_SYSTEM_PACKAGES)
    )
    lab_packages: list[str] = field(
        default_factory=lambda: list(DEFAULT_LAB_PACKAGES)
    )
    python_packages: list[str] = field(
        default_factory=lambda: list(DEFAULT_PYTHON_PACKAGES)
    )
    caches: dict[str, str] = field(
        default_factory=lambda: dict(CACHE_VARIABLES)
    )
    skip: set[str] = field(default_factory=set)
    services: list[ServiceHandle] = field(default_factory=list)
    confirm_delay: timedelta = CONFIRM_DELAY
    debug: bool = False

    @property
    def cache_root(self) -> Path:
        """Persistent parent of the cache directories."""
        return self.notebooks_dir / ".cache"

    @property
    def uv_bin_dir(self) -> Path:
        return self.home / ".local" / "bin"

    def apply(self, obj: dict[str, Any]) -> None:
        """Overlay settings from a parsed configuration document.

        Raises
        ------
        ConfigurationError
            Raised if the document names an unknown setting or a step that
            does not exist.
        """
        known = {f.name for f in fields(self)}
        for key, value in obj.items():
            if key not in known:
                raise ConfigurationError("unknown setting", key)
            if key in _PATH_FIELDS:
                setattr(self, key, Path(value))
            elif key in _LIST_FIELDS:
                setattr(self, key, [str(x) for x in value])
            elif key == "caches":
                self.caches = {str(k): str(v) for k, v in value.items()}
            elif key == "skip":
                self.skip = _check_steps(set(value), key)
            elif key == "services":
                self.services.extend(_parse_services(value))
            elif key == "confirm_delay":
                self.confirm_delay = timedelta(seconds=float(value))
            else:
                setattr(self, key, value)


def _check_steps(steps: set[str], setting: str) -> set[str]:
    unknown = steps - set(STEPS)
    if unknown:
        raise ConfigurationError(
            f"unknown steps {', '.join(sorted(unknown))}", setting
        )
    return steps


def _parse_services(value: list[dict[str, Any]]) -> list[ServiceHandle]:
    try:
        return [ServiceHandle.from_dict(x) for x in value]
    except (KeyError, TypeError, AttributeError) as exc:
        raise ConfigurationError(
            f"malformed service: {exc}", "services"
        ) from exc


def _inference_server(
    script: Path, config: ProvisionerConfig
) -> ServiceHandle:
    python = config.venv / "bin" / "python"
    extra = shlex.split(os.getenv("INFERENCE_SERVER_ARGS", ""))
    return ServiceHandle(
        name="inference-server",
        pid_file=config.notebooks_dir / "inference_server.pid",
        log_file=config.notebooks_dir / "inference_server.log",
        command=[str(python), str(script), *extra],
        cwd=script.parent,
        env_overrides={
            "LD_LIBRARY_PATH": str(config.venv / "lib"),
            "VIRTUAL_ENV": str(config.venv),
        },
        required_paths=[script],
    )


def config_from_env() -> ProvisionerConfig:
    """Construct configuration from environment and defaults.

    If ``NBSTARTUP_CONFIG`` names a YAML file, its settings are applied on
    top of those from the environment.

    Raises
    ------
    ConfigurationError
        Raised if ``HOME`` is unset or the configuration document is not
        usable.
    """
    home = os.getenv("HOME")
    if not home:
        raise ConfigurationError("must be set", "HOME")
    notebooks_dir = Path(os.getenv("NOTEBOOKS_DIR") or NOTEBOOKS_PATH)
    config = ProvisionerConfig(
        home=Path(home),
        notebooks_dir=notebooks_dir,
        log_file=Path(
            os.getenv("NBSTARTUP_LOG") or notebooks_dir / "startup.log"
        ),
        venv=Path(os.getenv("NBSTARTUP_VENV") or notebooks_dir / ".venv"),
        etc_dir=Path(os.getenv("NBSTARTUP_ETC_DIR") or ETC_PATH),
        host_python=os.getenv("NBSTARTUP_HOST_PYTHON") or sys.executable,
        skip=_check_steps(
            set(split_list(os.getenv("NBSTARTUP_SKIP", ""))),
            "NBSTARTUP_SKIP",
        ),
        debug=str_bool(os.getenv("DEBUG", "")),
    )
    delay = os.getenv("NBSTARTUP_CONFIRM_DELAY")
    if delay:
        try:
            config.confirm_delay = timedelta(seconds=float(delay))
        except ValueError:
            raise ConfigurationError(
                f"not a number of seconds: {delay}", "NBSTARTUP_CONFIRM_DELAY"
            ) from None

    doc_path = os.getenv("NBSTARTUP_CONFIG")
    if doc_path:
        try:
            obj = yaml.safe_load(Path(doc_path).read_text())
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(str(exc), "NBSTARTUP_CONFIG") from exc
        if obj is not None:
            if not isinstance(obj, dict):
                raise ConfigurationError(
                    "document must be a mapping", "NBSTARTUP_CONFIG"
                )
            try:
                config.apply(obj)
            except (ValueError, TypeError, AttributeError) as exc:
                raise ConfigurationError(
                    str(exc), "NBSTARTUP_CONFIG"
                ) from exc

    script = os.getenv("INFERENCE_SERVER_SCRIPT")
    if script:
        config.services.append(_inference_server(Path(script), config))
    return config
