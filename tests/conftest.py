"""Pytest configuration and fixtures."""

from collections.abc import Iterator
from pathlib import Path
from tempfile import TemporaryDirectory

import pytest

from gradient.nbstartup.config import ProvisionerConfig, config_from_env


@pytest.fixture
def _nb_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    """Point every location the provisioner touches into a scratch tree,
    and yield its root.
    """
    with TemporaryDirectory() as fake_root:
        root = Path(fake_root)
        t_home = root / "home" / "paperspace"
        t_home.mkdir(parents=True)
        t_notebooks = root / "notebooks"
        t_notebooks.mkdir()
        t_etc = root / "etc"
        t_etc.mkdir()
        monkeypatch.setenv("HOME", str(t_home))
        monkeypatch.setenv("NOTEBOOKS_DIR", str(t_notebooks))
        monkeypatch.setenv("NBSTARTUP_ETC_DIR", str(t_etc))
        monkeypatch.setenv("NBSTARTUP_CONFIRM_DELAY", "0.5")
        for var in (
            "DEBUG",
            "INFERENCE_SERVER_ARGS",
            "INFERENCE_SERVER_SCRIPT",
            "LD_LIBRARY_PATH",
            "NBSTARTUP_CONFIG",
            "NBSTARTUP_HOST_PYTHON",
            "NBSTARTUP_LOG",
            "NBSTARTUP_SKIP",
            "NBSTARTUP_VENV",
        ):
            monkeypatch.delenv(var, raising=False)
        yield root


@pytest.fixture
def nb_config(_nb_env: Path) -> ProvisionerConfig:
    return config_from_env()
