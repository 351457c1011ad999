"""cgroup v2 counter source.

Reads the raw counters, gauges and limits of one site's cgroup directly from
the cgroup v2 filesystem and the system memory total from procfs.

Files sourced (relative to the site's cgroup):
- cpu.stat: usage_usec (cumulative CPU time)
- cpu.max: "<quota|max> <period>" in microseconds
- io.stat: rbytes/wbytes per device (cumulative)
- memory.current / memory.max
- pids.current / pids.max

Any individual file may be missing while a cgroup is being created or torn
down; such fields read as zero (counters, gauges) or unlimited (limits). Only
a missing cgroup directory is reported, as EntityNotFoundError.
"""

from __future__ import annotations

import logging
import re
import threading
from pathlib import Path
from typing import Any

from site_usage.core.constants import (
    CGROUP_MAX,
    DEFAULT_CPU_PERIOD_USEC,
    DEFAULT_PROC_ROOT,
)
from site_usage.core.exceptions import EntityNotFoundError
from site_usage.monitoring.base import Limits, RawSample

logger = logging.getLogger(__name__)

_IO_FIELD_RE = re.compile(r"\b(rbytes|wbytes)=(\d+)")


# ---------------------------------------------------------------------------
# Parsers
#
# Pure functions over file contents. ``None`` content means the file could
# not be read.
# ---------------------------------------------------------------------------


def parse_int(content: str | None) -> int:
    """Parse a single non-negative integer, 0 for anything else."""
    if content is None:
        return 0
    value = content.strip()
    return int(value) if value.isdecimal() else 0


def parse_max_value(content: str | None) -> int | None:
    """Parse a "<number>|max" limit file (memory.max, pids.max).

    Returns None for "max", unreadable or non-numeric content.
    """
    if content is None:
        return None
    value = content.strip()
    if value.isdecimal():
        return int(value)
    if value and value != CGROUP_MAX:
        logger.debug(f"Unexpected limit value {value!r}, treating as unlimited")
    return None


def parse_cpu_stat_usage(content: str | None) -> int:
    """Extract usage_usec from cpu.stat.

    Format:
        usage_usec 123456
        user_usec 100000
        system_usec 23456
    """
    if content is None:
        return 0
    for line in content.splitlines():
        parts = line.split()
        if len(parts) == 2 and parts[0] == "usage_usec":
            return parse_int(parts[1])
    return 0


def parse_cpu_max(content: str | None) -> tuple[int | None, int]:
    """Parse cpu.max.

    Format: "$MAX $PERIOD" where MAX is the quota in microseconds or "max".

    Returns:
        Tuple of (quota_usec or None when unlimited, period_usec)
    """
    if content is None:
        return None, DEFAULT_CPU_PERIOD_USEC

    parts = content.split()
    quota: int | None = None
    period = DEFAULT_CPU_PERIOD_USEC

    if parts and parts[0].isdecimal():
        quota = int(parts[0])
    if len(parts) >= 2 and parts[1].isdecimal():
        period = int(parts[1])
    return quota, period


def parse_io_stat(content: str | None) -> tuple[int, int]:
    """Sum rbytes and wbytes over all devices in io.stat.

    Format (per device):
        8:0 rbytes=12345 wbytes=67890 rios=100 wios=50 dbytes=0 dios=0
    """
    read_bytes = 0
    write_bytes = 0
    if content is None:
        return read_bytes, write_bytes
    for match in _IO_FIELD_RE.finditer(content):
        key, value = match.groups()
        if key == "rbytes":
            read_bytes += int(value)
        else:
            write_bytes += int(value)
    return read_bytes, write_bytes


def parse_meminfo_total(content: str | None) -> int:
    """Extract MemTotal from /proc/meminfo, in bytes."""
    if content is None:
        return 0
    for line in content.splitlines():
        if line.startswith("MemTotal:"):
            parts = line.split()
            if len(parts) >= 2 and parts[1].isdecimal():
                return int(parts[1]) * 1024
            break
    return 0


class CgroupCounterSource:
    """Reads raw counters and limits for entities under one parent cgroup.

    Every file read is bounded by ``read_timeout_seconds``: each read runs on its
    own daemon thread so a stuck pseudo-file can hang neither the tick loop
    nor interpreter exit. A timed-out read counts as a missing file, and the
    same file is not retried while the abandoned read is still blocked.

    Example:
        ```python
        with CgroupCounterSource(Path("/sys/fs/cgroup/websites")) as source:
            sample, limits = source.read_counters("site-a")
        ```
    """

    def __init__(
        self,
        cgroup_root: Path,
        proc_root: Path = DEFAULT_PROC_ROOT,
        read_timeout_seconds: float = 2.0,
    ) -> None:
        self._cgroup_root = Path(cgroup_root)
        self._proc_root = Path(proc_root)
        self._read_timeout = read_timeout_seconds
        self._lock = threading.Lock()
        self._blocked_reads: dict[Path, threading.Thread] = {}
        self._system_memory_bytes: int | None = None

    @property
    def cgroup_root(self) -> Path:
        return self._cgroup_root

    def __enter__(self) -> CgroupCounterSource:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        """Forget blocked reads; their daemon threads are left to the interpreter."""
        with self._lock:
            if self._blocked_reads:
                logger.debug(f"Abandoning {len(self._blocked_reads)} blocked read(s)")
            self._blocked_reads.clear()

    def entity_path(self, entity: str) -> Path:
        """Return the cgroup directory of an entity.

        Raises:
            EntityNotFoundError: If the name is not a plain directory name
        """
        if not entity or "/" in entity or entity in (".", ".."):
            raise EntityNotFoundError(entity, self._cgroup_root)
        return self._cgroup_root / entity

    def exists(self, entity: str) -> bool:
        try:
            return self.entity_path(entity).is_dir()
        except EntityNotFoundError:
            return False

    def read_counters(self, entity: str) -> tuple[RawSample, Limits]:
        """Read one entity's counters, gauges and limits.

        Raises:
            EntityNotFoundError: If the entity's cgroup directory is absent
        """
        path = self.entity_path(entity)
        if not path.is_dir():
            raise EntityNotFoundError(entity, self._cgroup_root)

        read_bytes, write_bytes = parse_io_stat(self._read_text(path / "io.stat"))
        sample = RawSample(
            cpu_usage_usec=parse_cpu_stat_usage(self._read_text(path / "cpu.stat")),
            read_bytes=read_bytes,
            write_bytes=write_bytes,
            memory_bytes=parse_int(self._read_text(path / "memory.current")),
            processes=parse_int(self._read_text(path / "pids.current")),
        )

        quota, period = parse_cpu_max(self._read_text(path / "cpu.max"))
        limits = Limits(
            cpu_quota_usec=quota,
            cpu_period_usec=period,
            memory_max_bytes=parse_max_value(self._read_text(path / "memory.max")),
            pids_max=parse_max_value(self._read_text(path / "pids.max")),
        )
        return sample, limits

    def read_gauges(self, entity: str) -> RawSample:
        """Read only memory and process gauges (no counters, no limits)."""
        path = self.entity_path(entity)
        return RawSample(
            memory_bytes=parse_int(self._read_text(path / "memory.current")),
            processes=parse_int(self._read_text(path / "pids.current")),
        )

    def system_memory_bytes(self) -> int:
        """Total system memory from /proc/meminfo, 0 if unavailable.

        Cached after the first successful read.
        """
        if self._system_memory_bytes is None:
            total = parse_meminfo_total(self._read_text(self._proc_root / "meminfo"))
            if total <= 0:
                return 0
            self._system_memory_bytes = total
        return self._system_memory_bytes

    def _read_text(self, path: Path) -> str | None:
        """Read a counter file, returning None if it is missing, unreadable or stuck."""
        with self._lock:
            blocked = self._blocked_reads.get(path)
            if blocked is not None and blocked.is_alive():
                logger.debug(f"Earlier read of {path} is still blocked, skipping")
                return None
            self._blocked_reads.pop(path, None)

        outcome: dict[str, Any] = {}

        def _reader() -> None:
            try:
                outcome["text"] = path.read_text()
            except (OSError, UnicodeDecodeError) as e:
                outcome["error"] = e

        reader = threading.Thread(target=_reader, name=f"counter-read-{path.name}", daemon=True)
        reader.start()
        reader.join(self._read_timeout)

        if reader.is_alive():
            # Abandoned; a daemon thread does not keep the process alive
            with self._lock:
                self._blocked_reads[path] = reader
            logger.warning(f"Timed out after {self._read_timeout}s reading {path}")
            return None

        error = outcome.get("error")
        if error is None:
            return outcome.get("text")
        if isinstance(error, FileNotFoundError):
            logger.debug(f"Counter file missing: {path}")
        elif isinstance(error, PermissionError):
            logger.warning(f"Permission denied reading {path}")
        else:
            logger.debug(f"Error reading {path}: {error}")
        return None
