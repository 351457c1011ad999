"""Shared fixtures: fake cgroup v2 trees and procfs."""

from __future__ import annotations

from pathlib import Path

import pytest
from helpers import MEMINFO, FakeClock


@pytest.fixture
def cgroup_root(tmp_path: Path) -> Path:
    root = tmp_path / "cgroup" / "websites"
    root.mkdir(parents=True)
    return root


@pytest.fixture
def proc_root(tmp_path: Path) -> Path:
    root = tmp_path / "proc"
    root.mkdir()
    (root / "meminfo").write_text(MEMINFO)
    return root


@pytest.fixture
def www_root(tmp_path: Path) -> Path:
    root = tmp_path / "www"
    root.mkdir()
    return root


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
