"""Delta and rate calculations on cgroup counters.

All percentages and rates are computed with scaled-integer arithmetic
(multiply before divide, then split into integer and fractional parts) and
returned as exact ``Decimal`` values with a fixed number of fractional
digits. No float enters the calculation, so results are reproducible across
platforms and locales.

Unit convention: CPU counters, quota and period are all microseconds. The CPU
percentage is the share of the CPU time the entity was allowed to consume
during the elapsed window:

    allowance = quota * elapsed / period      (bounded quota)
    allowance = cpu_count * elapsed           (unlimited)
    percent   = delta_usec * 100 / allowance

Functions:
    to_counter: Coerce raw input to a non-negative integer
    counter_delta: Non-negative difference between two counter readings
    scaled_ratio: numerator * scale // denominator, 0 on a bad denominator
    format_fixed: Render a scaled integer as "<int>.<frac>"
    fixed_point: Same as format_fixed but as a Decimal
    percentage: usage / total as a two-decimal percentage
    cpu_allowance_usec: CPU time the entity may consume in a window
    cpu_percent: CPU usage against the allowance
    core_equivalent: Allotted cores, one decimal
    throughput_mbps: Byte counter delta as MB/s
    bytes_to_mb: Whole megabytes
"""

from __future__ import annotations

from decimal import Decimal

from site_usage.core.constants import (
    BYTES_PER_MB,
    CORES_SCALE,
    PERCENT_SCALE,
    USEC_PER_SECOND,
)
from site_usage.monitoring.base import Limits


def to_counter(value: object) -> int:
    """Coerce a raw counter value to a non-negative int.

    Non-numeric and negative inputs become 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value if value > 0 else 0
    if isinstance(value, str):
        text = value.strip()
        return int(text) if text.isdecimal() else 0
    return 0


def counter_delta(previous: object, current: object) -> int:
    """Difference between two readings of a monotonically increasing counter.

    A reading lower than the previous one (entity restart, counter reset)
    yields 0 rather than a negative delta.
    """
    delta = to_counter(current) - to_counter(previous)
    return delta if delta > 0 else 0


def scaled_ratio(numerator: int, denominator: int, scale: int) -> int:
    """Return ``numerator * scale // denominator``.

    Args:
        numerator: Non-negative quantity
        denominator: Reference quantity; <= 0 yields 0
        scale: Fixed-point scale (100 for whole percent, 10000 for 2 decimals)

    Returns:
        Scaled integer ratio, 0 if either input is not positive
    """
    if denominator <= 0 or numerator <= 0:
        return 0
    return numerator * scale // denominator


def format_fixed(scaled: int, digits: int = 2) -> str:
    """Render a scaled integer with ``digits`` fractional digits.

    ``format_fixed(5000) == "50.00"``, ``format_fixed(333) == "3.33"``.
    """
    if scaled < 0:
        scaled = 0
    unit = 10**digits
    integer, fraction = divmod(scaled, unit)
    if digits == 0:
        return str(integer)
    return f"{integer}.{fraction:0{digits}d}"


def fixed_point(scaled: int, digits: int = 2) -> Decimal:
    """Return a scaled integer as an exact Decimal with ``digits`` places."""
    return Decimal(format_fixed(scaled, digits))


def percentage(usage: int, total: int) -> Decimal:
    """Return ``usage / total`` as a percentage with two decimals.

    A zero or negative ``total`` yields 0.00.
    """
    return fixed_point(scaled_ratio(to_counter(usage), total, 100 * PERCENT_SCALE))


def cpu_allowance_usec(limits: Limits, cpu_count: int, elapsed_usec: int) -> int:
    """CPU time (usec) the entity may consume during ``elapsed_usec``.

    Args:
        limits: Entity limits (quota/period in microseconds)
        cpu_count: Number of online CPUs, used when the quota is unlimited
        elapsed_usec: Wall-clock window length in microseconds

    Returns:
        Allowance in microseconds, 0 if it cannot be determined
    """
    if elapsed_usec <= 0:
        return 0
    if not limits.cpu_limited:
        return max(cpu_count, 0) * elapsed_usec
    if limits.cpu_period_usec <= 0:
        return 0
    return limits.cpu_quota_usec * elapsed_usec // limits.cpu_period_usec


def cpu_percent(previous_usec: object, current_usec: object, allowance_usec: int) -> Decimal:
    """CPU usage between two cpu.stat readings as a percentage of the allowance."""
    delta = counter_delta(previous_usec, current_usec)
    return fixed_point(scaled_ratio(delta, allowance_usec, 100 * PERCENT_SCALE))


def core_equivalent(limits: Limits, cpu_count: int) -> Decimal:
    """Allotted core equivalents with one decimal.

    ``quota / period`` for a bounded quota, the CPU count when unlimited.
    """
    if not limits.cpu_limited:
        return fixed_point(max(cpu_count, 0) * CORES_SCALE, digits=1)
    return fixed_point(
        scaled_ratio(limits.cpu_quota_usec, limits.cpu_period_usec, CORES_SCALE), digits=1
    )


def throughput_mbps(previous_bytes: object, current_bytes: object, elapsed_usec: int) -> Decimal:
    """Byte counter delta over the window, in MB/s with two decimals."""
    delta = counter_delta(previous_bytes, current_bytes)
    return fixed_point(
        scaled_ratio(delta * USEC_PER_SECOND, elapsed_usec * BYTES_PER_MB, PERCENT_SCALE)
    )


def bytes_to_mb(byte_count: int) -> int:
    """Convert bytes to whole megabytes (floor)."""
    return to_counter(byte_count) // BYTES_PER_MB
