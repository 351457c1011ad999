"""Tests for the CLI commands."""

import json
import logging
from pathlib import Path

import pytest
import yaml
from helpers import MIB, write_cgroup
from rich.console import Console
from typer.testing import CliRunner

from site_usage import cli
from site_usage.cli import app
from site_usage.core.config import load_config
from site_usage.monitoring.scheduler import CancellationToken

runner = CliRunner(env={"COLUMNS": "200"})


def parse_json_stream(text: str) -> list:
    """Decode a stream of concatenated JSON documents."""
    decoder = json.JSONDecoder()
    docs = []
    index = 0
    text = text.strip()
    while index < len(text):
        doc, end = decoder.raw_decode(text, index)
        docs.append(doc)
        index = end
        while index < len(text) and text[index].isspace():
            index += 1
    return docs


@pytest.fixture(autouse=True)
def restore_logging():
    """setup_logging replaces root handlers; put them back after each test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture(autouse=True)
def wide_consoles(monkeypatch: pytest.MonkeyPatch) -> None:
    """Module consoles are sized at import time; widen them so tables do not wrap."""
    monkeypatch.setattr(cli, "console", Console(width=200))
    monkeypatch.setattr(cli, "err_console", Console(stderr=True, width=200))


@pytest.fixture(autouse=True)
def instant_wait(monkeypatch: pytest.MonkeyPatch) -> None:
    """Skip the sampling delay; cancellation is still honored."""
    monkeypatch.setattr(CancellationToken, "wait", lambda self, timeout: self.cancelled)


@pytest.fixture
def config_file(tmp_path: Path, cgroup_root: Path, proc_root: Path, www_root: Path) -> Path:
    path = tmp_path / "site-usage.yaml"
    path.write_text(
        yaml.dump(
            {
                "cgroup_root": str(cgroup_root),
                "www_root": str(www_root),
                "proc_root": str(proc_root),
            }
        )
    )
    return path


@pytest.fixture
def sites(cgroup_root: Path) -> list[str]:
    write_cgroup(
        cgroup_root,
        "site-a",
        cpu_max="50000 100000",
        memory_current=256 * MIB,
        memory_max=str(1024 * MIB),
        pids_current=5,
        pids_max="100",
    )
    write_cgroup(cgroup_root, "site-b", memory_current=64 * MIB, pids_current=2)
    return ["site-a", "site-b"]


class TestStats:
    """Tests for the stats command."""

    def test_single_site_json(self, config_file: Path, sites: list[str]) -> None:
        result = runner.invoke(app, ["stats", "site-a", "--json", "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        docs = parse_json_stream(result.stdout)
        assert len(docs) == 1
        doc = docs[0]
        assert doc["website_id"] == "site-a"
        assert doc["memory"] == {"used": 256, "max": 1024, "percentage": 25.0, "limited": True}
        assert '"percentage": 25.00' in result.stdout
        assert "timestamp" in doc
        assert doc["cpu"]["cores"] == 0.5
        assert doc["cpu"]["quota"] == "50000"
        assert doc["processes"] == {"current": 5, "max": 100}

    def test_all_sites_json_array(self, config_file: Path, sites: list[str]) -> None:
        result = runner.invoke(app, ["stats", "--all", "--json", "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        (docs,) = parse_json_stream(result.stdout)
        assert [d["website_id"] for d in docs] == sites
        assert docs[1]["memory"]["max"] == 2048
        assert docs[1]["memory"]["limited"] is False
        assert docs[1]["processes"]["max"] == "unlimited"

    def test_table(self, config_file: Path, sites: list[str]) -> None:
        result = runner.invoke(app, ["stats", "site-a", "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "CGROUP" in result.stdout
        assert "site-a" in result.stdout
        assert "256/1024" in result.stdout
        assert "5/100" in result.stdout
        assert "256/1024*" not in result.stdout

    def test_table_marks_unlimited_memory(self, config_file: Path, sites: list[str]) -> None:
        result = runner.invoke(app, ["stats", "site-b", "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "64/2048*" in result.stdout
        assert "memory.max unlimited" in result.stdout

    def test_perf_summary_once(self, config_file: Path, sites: list[str]) -> None:
        result = runner.invoke(
            app, ["stats", "site-a", "--json", "--perf-test", "-c", str(config_file)]
        )

        assert result.exit_code == 0, result.output
        docs = parse_json_stream(result.stdout)
        summaries = [d for d in docs if "performance" in d]
        assert len(summaries) == 1
        assert summaries[0]["performance"]["runs"] == 1

    def test_watch_until_cancelled(
        self, config_file: Path, sites: list[str], monkeypatch: pytest.MonkeyPatch
    ) -> None:
        calls = []

        def wait(self: CancellationToken, timeout: float) -> bool:
            calls.append(timeout)
            if len(calls) > 3:
                self.cancel()
            return self.cancelled

        monkeypatch.setattr(CancellationToken, "wait", wait)
        result = runner.invoke(
            app,
            [
                "stats", "site-b", "--watch", "--json", "--perf-test",
                "-s", "2", "-c", str(config_file),
            ],
        )

        assert result.exit_code == 0, result.output
        docs = parse_json_stream(result.stdout)
        assert [d["website_id"] for d in docs if "website_id" in d] == ["site-b"] * 3
        assert docs[-1]["performance"]["runs"] == 3
        assert calls == [2, 2, 2, 2]

    def test_unknown_site(self, config_file: Path, sites: list[str]) -> None:
        result = runner.invoke(app, ["stats", "nope", "-c", str(config_file)])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_invalid_interval(self, config_file: Path, sites: list[str]) -> None:
        result = runner.invoke(app, ["stats", "site-a", "-s", "0", "-c", str(config_file)])
        assert result.exit_code == 1
        assert "interval_seconds" in result.output

    def test_missing_config(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["stats", "site-a", "-c", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_missing_cgroup_root(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"cgroup_root": str(tmp_path / "nope")}))
        result = runner.invoke(app, ["stats", "--all", "-c", str(path)])
        assert result.exit_code == 1
        assert "does not exist" in result.output

    def test_interactive_selection(self, config_file: Path, sites: list[str]) -> None:
        result = runner.invoke(app, ["stats", "--json", "-c", str(config_file)], input="2\n")

        assert result.exit_code == 0, result.output
        assert '"website_id": "site-b"' in result.stdout

    def test_interactive_invalid_then_quit(self, config_file: Path, sites: list[str]) -> None:
        result = runner.invoke(app, ["stats", "-c", str(config_file)], input="9\nq\n")

        assert result.exit_code == 0
        assert "Invalid selection" in result.stdout
        assert "website_id" not in result.stdout


class TestListAndOwners:
    """Tests for the list and owners commands."""

    def test_list(self, config_file: Path, sites: list[str]) -> None:
        result = runner.invoke(app, ["list", "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "site-a" in result.stdout
        assert "site-b" in result.stdout
        assert "256" in result.stdout

    def test_list_empty(self, config_file: Path) -> None:
        result = runner.invoke(app, ["list", "-c", str(config_file)])
        assert result.exit_code == 1
        assert "No cgroups found" in result.output

    def test_owners(
        self, config_file: Path, www_root: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        owners = {"site-a": "alice", "site-b": "bob", "site-c": "alice"}
        for name in owners:
            (www_root / name).mkdir()
        monkeypatch.setattr(Path, "owner", lambda self, **kwargs: owners[self.name])

        result = runner.invoke(app, ["owners", "ali", "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        assert "alice" in result.stdout
        assert "site-a" in result.stdout
        assert "site-c" in result.stdout
        assert "site-b" not in result.stdout

    def test_owners_no_match(self, config_file: Path) -> None:
        result = runner.invoke(app, ["owners", "zed", "-c", str(config_file)])
        assert result.exit_code == 1
        assert "No users found" in result.output


class TestTop:
    """Tests for the systemd-cgtop hand-off."""

    @pytest.fixture
    def executed(self, monkeypatch: pytest.MonkeyPatch) -> list[list[str]]:
        commands: list[list[str]] = []
        monkeypatch.setattr(cli, "exec_cgtop", lambda command: commands.append(list(command)))
        return commands

    def test_all_sites(self, config_file: Path, executed: list[list[str]]) -> None:
        result = runner.invoke(app, ["top", "--sort", "mem", "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        assert executed == [["systemd-cgtop", "-p", "-m", "-n", "0", "--depth=1", "/websites/"]]

    def test_single_site(
        self, config_file: Path, www_root: Path, executed: list[list[str]]
    ) -> None:
        (www_root / "site-a").mkdir()
        result = runner.invoke(app, ["top", "--entity", "site-a", "-c", str(config_file)])

        assert result.exit_code == 0, result.output
        assert executed[0][-1] == "/websites/site-a"

    def test_unknown_site(self, config_file: Path, executed: list[list[str]]) -> None:
        result = runner.invoke(app, ["top", "--entity", "nope", "-c", str(config_file)])
        assert result.exit_code == 1
        assert executed == []

    def test_invalid_sort(self, config_file: Path, executed: list[list[str]]) -> None:
        result = runner.invoke(app, ["top", "--sort", "disk", "-c", str(config_file)])
        assert result.exit_code == 1
        assert "Invalid sort mode" in result.output
        assert executed == []

    def test_by_owner(
        self,
        config_file: Path,
        www_root: Path,
        executed: list[list[str]],
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        owners = {"site-a": "alice", "site-b": "alice"}
        for name in owners:
            (www_root / name).mkdir()
        monkeypatch.setattr(Path, "owner", lambda self, **kwargs: owners[self.name])

        result = runner.invoke(app, ["top", "--owner", "ali", "-c", str(config_file)], input="2\n")

        assert result.exit_code == 0, result.output
        assert executed[0][-1] == "/websites/site-b"


class TestInitConfig:
    """Tests for init-config."""

    def test_writes_loadable_config(self, tmp_path: Path) -> None:
        output = tmp_path / "out" / "site-usage.yaml"
        result = runner.invoke(app, ["init-config", "--output", str(output)])

        assert result.exit_code == 0, result.output
        config = load_config(output)
        assert config.interval_seconds == 1
        assert str(config.cgroup_root) == "/sys/fs/cgroup/websites"
