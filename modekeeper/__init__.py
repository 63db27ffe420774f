"""Persistent execution-mode coordinator for stateless assistant hooks."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("modekeeper")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = ["__version__"]
