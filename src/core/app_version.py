"""Application version lookup."""

from __future__ import annotations

from functools import lru_cache
from importlib.metadata import PackageNotFoundError, version

DISTRIBUTION_NAME = "cachesifter"


@lru_cache(maxsize=1)
def get_app_version() -> str:
    """Return the installed distribution version, or "0.0.0" from a bare checkout."""
    try:
        return version(DISTRIBUTION_NAME)
    except PackageNotFoundError:
        return "0.0.0"
