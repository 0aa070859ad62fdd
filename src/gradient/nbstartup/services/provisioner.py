"""Provision the notebook runtime before JupyterLab starts.

Everything except service supervision runs under a fail-the-whole-pass
policy: the first failed command or filesystem error aborts the pass with a
`~gradient.nbstartup.exceptions.ProvisioningError`.  Service supervision
only ever warns; the operator can read the service's log and try again.
"""

from __future__ import annotations

import errno
import os
import shlex
import shutil
import subprocess
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Self

import structlog

from ..config import ProvisionerConfig, config_from_env
from ..constants import APP_NAME, MANAGED_BLOCK_BEGIN, MANAGED_BLOCK_END
from ..exceptions import (
    CommandFailedError,
    CommandTimedOutError,
    ProvisioningError,
)
from ..models.service import ServiceOutcome, ServiceState
from ..storage.command import Command
from ..storage.logging import configure_logging
from .supervisor import Supervisor

__all__ = ["Provisioner"]


class Provisioner:
    """Run one provisioning pass.

    Parameters
    ----------
    config
        Settings for the pass.
    """

    def __init__(self, config: ProvisionerConfig) -> None:
        self._config = config
        self._home = config.home
        self._logger = structlog.get_logger(APP_NAME)
        self._cmd = Command(logger=self._logger)
        self._exports = self._build_exports()
        # Downstream processes get this explicitly; the system-wide copies
        # written by the environment step are only for processes we do not
        # launch ourselves.
        self._env = os.environ.copy()
        self._env.update(self._exports)
        self._env["PATH"] = os.pathsep.join(
            [
                str(config.venv / "bin"),
                str(config.uv_bin_dir),
                os.environ.get("PATH", os.defpath),
            ]
        )
        ld_path = os.environ.get("LD_LIBRARY_PATH")
        if ld_path:
            self._env["LD_LIBRARY_PATH"] = os.pathsep.join(
                [self._exports["LD_LIBRARY_PATH"], ld_path]
            )
        self.outcomes: dict[str, ServiceOutcome] = {}

    @classmethod
    def from_env(cls) -> Self:
        """Create provisioner from environment."""
        return cls(config_from_env())

    @property
    def env(self) -> dict[str, str]:
        """Environment for processes started after provisioning."""
        return dict(self._env)

    async def go(self) -> None:
        """Run every step that is not skipped, in order.

        Raises
        ------
        ProvisioningError
            Raised if any step other than service supervision fails.
        """
        self._start_log()
        steps: list[tuple[str, str, Callable[[], Awaitable[None]]]] = [
            (
                "system_packages",
                "Installing system packages",
                self._install_system_packages,
            ),
            ("uv", "Installing uv", self._install_uv),
            (
                "lab_packages",
                "Installing Jupyter packages",
                self._install_lab_packages,
            ),
            (
                "venv",
                "Setting up Python virtual environment",
                self._setup_venv,
            ),
            ("cache_links", "Setting up cache links", self._link_caches),
            (
                "environment",
                "Exporting environment variables",
                self._export_environment,
            ),
        ]
        total = len(steps)
        for idx, (name, desc, step) in enumerate(steps, start=1):
            if name in self._config.skip:
                self._logger.info(f"[{idx}/{total}] Skipping {name}")
                continue
            self._logger.info(f"[{idx}/{total}] {desc}")
            try:
                await step()
            except (
                CommandFailedError,
                CommandTimedOutError,
                subprocess.SubprocessError,
                OSError,
            ) as exc:
                self._logger.exception(
                    f"Step {name} failed", log_file=str(self._config.log_file)
                )
                raise ProvisioningError(name, str(exc)) from exc
        if "services" in self._config.skip:
            self._logger.info("Skipping services")
        else:
            await self.ensure_services()
        self._summarize()

    def _start_log(self) -> None:
        logfile = self._config.log_file
        logfile.parent.mkdir(parents=True, exist_ok=True)
        # One log per pass.
        logfile.write_text("")
        configure_logging(debug=self._config.debug, logfile=logfile)
        self._logger.info("Notebook provisioning starting")

    def _build_exports(self) -> dict[str, str]:
        venv = self._config.venv
        exports = {
            "LD_LIBRARY_PATH": str(venv / "lib"),
            "VIRTUAL_ENV": str(venv),
        }
        for name, var in self._config.caches.items():
            exports[var] = str(self._config.cache_root / name)
        return exports

    def _run(self, *args: str, env: dict[str, str] | None = None) -> None:
        self._cmd.run(
            *args,
            env=env if env is not None else self._env,
            output=self._config.log_file,
        )

    async def _install_system_packages(self) -> None:
        env = dict(self._env)
        env["DEBIAN_FRONTEND"] = "noninteractive"
        self._run("apt-get", "update", "-qq", env=env)
        pkgs = self._config.system_packages
        if pkgs:
            self._run("apt-get", "install", "-y", "-qq", *pkgs, env=env)
        # Refresh shared library cache.
        self._run("ldconfig", env=env)
        self._logger.info("System packages installed", packages=pkgs)

    async def _install_uv(self) -> None:
        uv = self._config.uv_bin_dir / "uv"
        if uv.is_file():
            self._logger.info(f"uv already installed at {uv!s}")
            return
        url = self._config.uv_install_url
        self._run("sh", "-c", f"curl -LsSf {shlex.quote(url)} | sh")
        # The installer pipeline reports the shell's status, not curl's.
        if not uv.is_file():
            raise FileNotFoundError(
                errno.ENOENT, "uv installer did not install uv", str(uv)
            )
        self._logger.info(f"uv installed at {uv!s}")

    async def _install_lab_packages(self) -> None:
        pkgs = self._config.lab_packages
        if not pkgs:
            return
        python = self._config.host_python
        self._run(python, "-m", "pip", "install", "-q", *pkgs)
        self._logger.info("Jupyter packages installed", packages=pkgs)

    async def _setup_venv(self) -> None:
        venv = self._config.venv
        if not venv.is_dir():
            self._logger.info(f"Creating venv at {venv!s}")
            self._run(self._config.host_python, "-m", "venv", str(venv))
        pkgs = self._config.python_packages
        if not pkgs:
            return
        uv = self._config.uv_bin_dir / "uv"
        self._run(
            str(uv),
            "pip",
            "install",
            "--python",
            str(venv / "bin" / "python"),
            *pkgs,
        )
        self._logger.info("Python packages installed in venv", packages=pkgs)

    async def _link_caches(self) -> None:
        for name in self._config.caches:
            await self._link_cache(name)

    async def _link_cache(self, name: str) -> None:
        nb_cache = self._config.cache_root / name
        home_cache = self._home / ".cache" / name
        nb_cache.mkdir(parents=True, exist_ok=True)
        if home_cache.is_symlink():
            self._logger.debug(f"{home_cache!s} is already a link")
            return
        if home_cache.is_dir():
            # Keep whatever was downloaded before persistent storage was
            # linked in.
            try:
                shutil.copytree(
                    home_cache, nb_cache, symlinks=True, dirs_exist_ok=True
                )
            except shutil.Error:
                self._logger.warning(
                    f"Could not copy all of {home_cache!s} to {nb_cache!s}"
                )
            shutil.rmtree(home_cache)
        elif home_cache.exists():
            home_cache.unlink()
        home_cache.parent.mkdir(parents=True, exist_ok=True)
        home_cache.symlink_to(nb_cache)
        self._logger.info(f"Linked {home_cache!s} -> {nb_cache!s}")

    async def _export_environment(self) -> None:
        etc = self._config.etc_dir
        # PAM reads this without shell expansion, so values are literal.
        pam_lines = [f'{k}="{v}"' for k, v in self._exports.items()]
        self._replace_block(etc / "environment", pam_lines)

        shell_lines = self._shell_exports()
        profile = etc / "profile.d" / self._config.profile_name
        profile.parent.mkdir(parents=True, exist_ok=True)
        profile.write_text(
            "\n".join(["# Notebook environment setup", *shell_lines]) + "\n"
        )
        profile.chmod(0o755)

        bashrc = self._home / ".bashrc"
        self._replace_block(bashrc, shell_lines)
        self._logger.info(
            "Environment variables configured",
            variables=sorted(self._exports),
            files=[str(etc / "environment"), str(profile), str(bashrc)],
        )

    def _shell_exports(self) -> list[str]:
        lines = []
        for key, value in self._exports.items():
            if key == "LD_LIBRARY_PATH":
                lines.append(f'export {key}="{value}:${key}"')
            else:
                lines.append(f'export {key}="{value}"')
        path = os.pathsep.join(
            [str(self._config.venv / "bin"), str(self._config.uv_bin_dir)]
        )
        lines.append(f'export PATH="{path}:$PATH"')
        return lines

    def _replace_block(self, path: Path, lines: list[str]) -> None:
        """Write ``lines`` into a marked block in ``path``, replacing the
        block from an earlier pass if there is one.

        A begin marker with no end marker is dropped, but the lines after
        it are kept.
        """
        kept: list[str] = []
        if path.exists():
            pending: list[str] | None = None
            for line in path.read_text().splitlines():
                if line == MANAGED_BLOCK_BEGIN:
                    if pending is not None:
                        kept.extend(pending)
                    pending = []
                elif line == MANAGED_BLOCK_END and pending is not None:
                    pending = None
                elif pending is not None:
                    pending.append(line)
                elif line != MANAGED_BLOCK_END:
                    kept.append(line)
            if pending is not None:
                kept.extend(pending)
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
        while kept and not kept[-1].strip():
            kept.pop()
        if kept:
            kept.append("")
        block = [MANAGED_BLOCK_BEGIN, *lines, MANAGED_BLOCK_END]
        path.write_text("\n".join(kept + block) + "\n")

    async def ensure_services(self) -> None:
        """Ensure each configured service is running.

        Services are launched with the provisioned environment.  Failures
        are logged as warnings and recorded in `outcomes`; none is raised.
        """
        if not self._config.services:
            return
        self._logger.info("Ensuring background services are running")
        supervisor = Supervisor(
            env=self._env,
            confirm_delay=self._config.confirm_delay,
            logger=self._logger,
        )
        for handle in self._config.services:
            try:
                outcome = await supervisor.ensure_running(handle)
            except OSError as exc:
                self._logger.exception(
                    f"Could not supervise service {handle.name}"
                )
                outcome = ServiceOutcome(
                    state=ServiceState.START_FAILED,
                    reason=str(exc),
                    log_file=handle.log_file,
                )
            self.outcomes[handle.name] = outcome
            if not outcome.ok:
                log_file = handle.log_file
                self._logger.warning(
                    f"Service {handle.name} is not running; see {log_file!s}",
                    reason=outcome.reason,
                )

    def _summarize(self) -> None:
        self._logger.info(
            "Notebook provisioning complete",
            venv=str(self._config.venv),
            cache=str(self._config.cache_root),
            uv=str(self._config.uv_bin_dir / "uv"),
            log=str(self._config.log_file),
            skipped=sorted(self._config.skip),
            services={k: v.state.value for k, v in self.outcomes.items()},
        )
