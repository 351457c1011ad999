"""Tests for configuration loading and validation."""

import json
from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from site_usage.core.config import apply_overrides, load_config
from site_usage.core.schemas import MonitorConfig


class TestMonitorConfig:
    """Tests for MonitorConfig validation."""

    def test_defaults(self) -> None:
        config = MonitorConfig()
        assert config.cgroup_root == Path("/sys/fs/cgroup/websites")
        assert config.www_root == Path("/var/www")
        assert config.interval_seconds == 1
        assert not config.watch
        assert config.log_level == "WARNING"

    @pytest.mark.parametrize("interval", [0, -5])
    def test_interval_must_be_positive(self, interval: int) -> None:
        with pytest.raises(ValidationError):
            MonitorConfig(interval_seconds=interval)

    def test_log_level_normalized(self) -> None:
        assert MonitorConfig(log_level="debug").log_level == "DEBUG"
        with pytest.raises(ValidationError):
            MonitorConfig(log_level="chatty")

    def test_unknown_keys_rejected(self) -> None:
        with pytest.raises(ValidationError):
            MonitorConfig.model_validate({"interval": 5})

    def test_frozen(self) -> None:
        config = MonitorConfig()
        with pytest.raises(ValidationError):
            config.watch = True


class TestLoadConfig:
    """Tests for load_config."""

    def test_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(
            yaml.dump({"cgroup_root": "/tmp/cg", "interval_seconds": 5, "watch": True})
        )
        config = load_config(path)
        assert config.cgroup_root == Path("/tmp/cg")
        assert config.interval_seconds == 5
        assert config.watch

    def test_json(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"json_output": True}))
        assert load_config(path).json_output

    def test_empty_yaml_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yml"
        path.write_text("")
        assert load_config(path) == MonitorConfig()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")

    def test_unsupported_format(self, tmp_path: Path) -> None:
        path = tmp_path / "config.toml"
        path.write_text("watch = true\n")
        with pytest.raises(ValueError, match="Unsupported config format"):
            load_config(path)

    def test_invalid_values(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("interval_seconds: 0\n")
        with pytest.raises(ValidationError):
            load_config(path)


class TestApplyOverrides:
    """Tests for CLI overrides on top of a loaded config."""

    def test_none_values_ignored(self) -> None:
        config = MonitorConfig(interval_seconds=3)
        assert apply_overrides(config, interval_seconds=None, watch=None) is config

    def test_overrides_applied(self) -> None:
        config = apply_overrides(MonitorConfig(interval_seconds=3), interval_seconds=7, watch=True)
        assert config.interval_seconds == 7
        assert config.watch

    def test_overrides_validated(self) -> None:
        with pytest.raises(ValidationError):
            apply_overrides(MonitorConfig(), interval_seconds=0)
