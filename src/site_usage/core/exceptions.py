"""Exception types raised by site-usage.

Per-entity problems are reported with EntityNotFoundError and handled inside
the tick loop; ConfigurationError is fatal and terminates the run before any
output is produced.
"""

from __future__ import annotations


class SiteUsageError(Exception):
    """Base class for all site-usage errors."""


class ConfigurationError(SiteUsageError):
    """Invalid run configuration (bad interval, nothing to track, ...)."""


class EntityNotFoundError(SiteUsageError):
    """A tracked entity has no backing cgroup directory."""

    def __init__(self, entity: str, path: object | None = None) -> None:
        message = f"Entity '{entity}' not found"
        if path is not None:
            message += f" in {path}"
        super().__init__(message)
        self.entity = entity
        self.path = path
