"""Hand-off to systemd-cgtop for a live, full-screen view.

This is a separate integration mode, not part of the sampling engine: the
current process is replaced by ``systemd-cgtop`` watching either one site's
cgroup or the whole parent cgroup.
"""

from __future__ import annotations

import logging
import os
import shutil
from collections.abc import Sequence
from pathlib import Path

from site_usage.core.constants import DEFAULT_CGROUP_ROOT
from site_usage.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CGTOP_BINARY = "systemd-cgtop"

# systemd-cgtop ordering flags; CPU is its default
SORT_FLAGS: dict[str, tuple[str, ...]] = {
    "cpu": (),
    "mem": ("-m",),
    "io": ("-i",),
}


def cgroup_unit_path(cgroup_root: Path, entity: str | None = None) -> str:
    """Path of the cgroup relative to the cgroup mount, as cgtop expects it.

    ``/sys/fs/cgroup/websites`` + ``abc`` -> ``/websites/abc``;
    without an entity the parent is returned with a trailing slash.
    """
    parts = Path(cgroup_root).parts
    if len(parts) >= 4 and parts[1:4] == ("sys", "fs", "cgroup"):
        relative = "/" + "/".join(parts[4:])
    else:
        relative = "/" + Path(cgroup_root).name
    if entity:
        return f"{relative.rstrip('/')}/{entity}"
    return relative.rstrip("/") + "/"


def build_cgtop_command(
    sort: str = "cpu",
    entity: str | None = None,
    cgroup_root: Path = DEFAULT_CGROUP_ROOT,
) -> list[str]:
    """Build the systemd-cgtop argv.

    Raises:
        ConfigurationError: If ``sort`` is not cpu, mem or io
    """
    mode = sort.lower()
    if mode not in SORT_FLAGS:
        raise ConfigurationError(f"Invalid sort mode '{sort}'. Use 'cpu', 'mem', or 'io'.")
    return [
        CGTOP_BINARY,
        "-p",
        *SORT_FLAGS[mode],
        "-n",
        "0",
        "--depth=1",
        cgroup_unit_path(cgroup_root, entity),
    ]


def exec_cgtop(command: Sequence[str]) -> None:
    """Replace the current process with ``command``. Does not return on success.

    Raises:
        ConfigurationError: If systemd-cgtop is not installed
    """
    binary = shutil.which(command[0])
    if binary is None:
        raise ConfigurationError(f"{command[0]} not found on PATH")
    logger.debug(f"Executing {' '.join(command)}")
    os.execv(binary, list(command))
