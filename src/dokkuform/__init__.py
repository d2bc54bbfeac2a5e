"""dokkuform package bootstrap.

Exposes the package version alongside the handful of entry points that
declarative front-ends need to drive reconciliation against a Dokku host.
"""
from __future__ import annotations

__all__ = ["__version__", "get_version"]

# NOTE: The version is duplicated in ``pyproject.toml``.
__version__ = "0.1.0a0"


def get_version() -> str:
    """Return the current package version."""
    return __version__
