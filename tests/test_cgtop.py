"""Tests for the systemd-cgtop hand-off."""

from pathlib import Path

import pytest

from site_usage.core.exceptions import ConfigurationError
from site_usage.integrations import cgtop
from site_usage.integrations.cgtop import build_cgtop_command, cgroup_unit_path, exec_cgtop


class TestCgroupUnitPath:
    """Tests for cgroup path translation."""

    def test_entity(self) -> None:
        assert cgroup_unit_path(Path("/sys/fs/cgroup/websites"), "abc") == "/websites/abc"

    def test_parent(self) -> None:
        assert cgroup_unit_path(Path("/sys/fs/cgroup/websites")) == "/websites/"

    def test_nested(self) -> None:
        assert cgroup_unit_path(Path("/sys/fs/cgroup/a/b"), "c") == "/a/b/c"

    def test_outside_cgroup_mount(self) -> None:
        assert cgroup_unit_path(Path("/tmp/x/websites"), "abc") == "/websites/abc"


class TestBuildCommand:
    """Tests for argv construction."""

    @pytest.mark.parametrize(
        ("sort", "flags"), [("cpu", []), ("mem", ["-m"]), ("io", ["-i"]), ("MEM", ["-m"])]
    )
    def test_sort_flags(self, sort: str, flags: list[str]) -> None:
        command = build_cgtop_command(sort=sort)
        assert command == ["systemd-cgtop", "-p", *flags, "-n", "0", "--depth=1", "/websites/"]

    def test_single_entity(self) -> None:
        command = build_cgtop_command(entity="abc")
        assert command[-1] == "/websites/abc"

    def test_invalid_sort(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid sort mode"):
            build_cgtop_command(sort="disk")


class TestExecCgtop:
    """Tests for process replacement."""

    def test_missing_binary(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(cgtop.shutil, "which", lambda name: None)
        with pytest.raises(ConfigurationError, match="not found"):
            exec_cgtop(["systemd-cgtop"])

    def test_execs_resolved_binary(self, monkeypatch: pytest.MonkeyPatch) -> None:
        calls = []
        monkeypatch.setattr(cgtop.shutil, "which", lambda name: "/usr/bin/" + name)
        monkeypatch.setattr(cgtop.os, "execv", lambda path, argv: calls.append((path, argv)))

        exec_cgtop(["systemd-cgtop", "-p"])

        assert calls == [("/usr/bin/systemd-cgtop", ["systemd-cgtop", "-p"])]
