"""Test helpers: fake cgroup v2 directories and a hand-driven clock."""

from __future__ import annotations

from pathlib import Path

MIB = 1024 * 1024

# 2 GiB
MEMINFO = """\
MemTotal:        2097152 kB
MemFree:          524288 kB
MemAvailable:    1048576 kB
"""


def write_cgroup(
    root: Path,
    name: str,
    *,
    usage_usec: int = 0,
    cpu_max: str = "max 100000",
    rbytes: int = 0,
    wbytes: int = 0,
    memory_current: int = 0,
    memory_max: str = "max",
    pids_current: int = 0,
    pids_max: str = "max",
    omit: tuple[str, ...] = (),
) -> Path:
    """Create (or update) a fake site cgroup directory."""
    path = root / name
    path.mkdir(parents=True, exist_ok=True)
    files = {
        "cpu.stat": f"usage_usec {usage_usec}\nuser_usec {usage_usec}\nsystem_usec 0\n",
        "cpu.max": f"{cpu_max}\n",
        "io.stat": f"8:0 rbytes={rbytes} wbytes={wbytes} rios=1 wios=1 dbytes=0 dios=0\n",
        "memory.current": f"{memory_current}\n",
        "memory.max": f"{memory_max}\n",
        "pids.current": f"{pids_current}\n",
        "pids.max": f"{pids_max}\n",
    }
    for filename, content in files.items():
        if filename in omit:
            (path / filename).unlink(missing_ok=True)
        else:
            (path / filename).write_text(content)
    return path


class FakeClock:
    """Monotonic microsecond clock advanced by hand."""

    def __init__(self, start_usec: int = 1_000_000) -> None:
        self.now = start_usec

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1_000_000)
