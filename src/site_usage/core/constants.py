"""Shared constants for site-usage.

Centralized constants to avoid duplication and ensure consistency across modules.
"""

from __future__ import annotations

from pathlib import Path

# Parent cgroup holding one child cgroup per site
DEFAULT_CGROUP_ROOT = Path("/sys/fs/cgroup/websites")

# Site document roots; ownership of these directories labels each site
DEFAULT_WWW_ROOT = Path("/var/www")

DEFAULT_PROC_ROOT = Path("/proc")

# cgroup v2 default cpu.max period when the file is missing or malformed
DEFAULT_CPU_PERIOD_USEC = 100_000

USEC_PER_SECOND = 1_000_000
BYTES_PER_MB = 1024 * 1024

# Fixed-point scale factors: two fractional digits for percentages/rates,
# one for core equivalents.
PERCENT_SCALE = 100
CORES_SCALE = 10

# Sentinels rendered for ceilings that are not set
UNLIMITED = "unlimited"
CGROUP_MAX = "max"
UNKNOWN_OWNER = "unknown"

# Table rendering: entity names wider than this are truncated with "..."
ENTITY_COLUMN_WIDTH = 36
