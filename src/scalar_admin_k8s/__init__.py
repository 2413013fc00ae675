"""Pause Scalar products on Kubernetes for consistent backups."""

from importlib.metadata import PackageNotFoundError, version

from .models.domain.target import PausedDuration
from .services.pauser import Pauser

__all__ = ["PausedDuration", "Pauser", "__version__"]


__version__: str
"""The application version string (PEP 440 / SemVer compatible)."""

try:
    __version__ = version("scalar-admin-k8s")
except PackageNotFoundError:
    # package is not installed
    __version__ = "0.0.0"
