"""Integrations with external tools."""

from __future__ import annotations

from site_usage.integrations.cgtop import build_cgtop_command, cgroup_unit_path, exec_cgtop

__all__ = ["build_cgtop_command", "cgroup_unit_path", "exec_cgtop"]
