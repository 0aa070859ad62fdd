"""Constants for notebook runtime startup."""

from datetime import timedelta
from pathlib import Path

__all__ = [
    "APP_NAME",
    "CACHE_VARIABLES",
    "CONFIRM_DELAY",
    "DEFAULT_LAB_PACKAGES",
    "DEFAULT_PYTHON_PACKAGES",
    "DEFAULT_SYSTEM_PACKAGES",
    "ETC_PATH",
    "MANAGED_BLOCK_BEGIN",
    "MANAGED_BLOCK_END",
    "NOTEBOOKS_PATH",
    "PROFILE_NAME",
    "STEPS",
    "UV_INSTALL_URL",
]

APP_NAME = "nbstartup"
"""Application name, used for logging."""

NOTEBOOKS_PATH = Path("/notebooks")
"""Persistent storage that survives notebook restarts."""

ETC_PATH = Path("/etc")
"""Configuration directory, usually /etc, but overrideable for tests."""

PROFILE_NAME = "gradient-setup.sh"
"""Name of the script written to ``profile.d`` for login shells."""

UV_INSTALL_URL = "https://astral.sh/uv/install.sh"
"""Official uv installer script."""

CONFIRM_DELAY = timedelta(seconds=2)
"""How long to wait after launching a service before checking it is alive.

Long enough for a bad import or missing model file to kill the process.
"""

MANAGED_BLOCK_BEGIN = "# >>> nbstartup >>>"
MANAGED_BLOCK_END = "# <<< nbstartup <<<"

STEPS = (
    "system_packages",
    "uv",
    "lab_packages",
    "venv",
    "cache_links",
    "environment",
    "services",
)
"""Provisioning steps, in the order they run."""

DEFAULT_SYSTEM_PACKAGES = [
    "ffmpeg",
    "libtbb12",  # fairseq2
    "libsndfile1",
    "libc++1",
    "libc++abi1",
]

DEFAULT_LAB_PACKAGES = ["jupyter-server-proxy"]

DEFAULT_PYTHON_PACKAGES = [
    "cryptography",
    "fairseq2",
    "google-cloud-firestore",
    "google-cloud-secret-manager",
    "google-genai",
    "boto3",
    "scipy",
    "pydantic",
    "pyannote.audio",
]

CACHE_VARIABLES = {
    "fairseq2": "FAIRSEQ2_CACHE_DIR",
    "huggingface": "HF_HOME",
    "torch": "TORCH_HOME",
}
"""Cache directory names under ``~/.cache`` and the variable that points
each library at its persistent location.
"""
