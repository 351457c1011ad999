"""Entity discovery and owner lookup.

Entities are the child directories of the sites' parent cgroup. Owners are
the user names owning each site's directory under the www root.
"""

from __future__ import annotations

import logging
from pathlib import Path

from site_usage.core.constants import UNKNOWN_OWNER
from site_usage.core.schemas import EntityOverview
from site_usage.monitoring.counter_source import CgroupCounterSource
from site_usage.monitoring.rates import bytes_to_mb

logger = logging.getLogger(__name__)


def _child_dirs(root: Path) -> list[Path]:
    try:
        return [child for child in root.iterdir() if child.is_dir()]
    except (FileNotFoundError, NotADirectoryError):
        logger.debug(f"Directory not found: {root}")
    except (PermissionError, OSError) as e:
        logger.warning(f"Cannot list {root}: {e}")
    return []


def list_entities(cgroup_root: Path) -> list[str]:
    """Return the sorted, de-duplicated entity names under ``cgroup_root``."""
    return sorted({child.name for child in _child_dirs(Path(cgroup_root))})


def resolve_owner(www_root: Path, entity: str) -> str:
    """Return the user owning ``www_root/entity``, or "unknown" on any failure."""
    if not entity or "/" in entity or entity in (".", ".."):
        return UNKNOWN_OWNER
    try:
        return (Path(www_root) / entity).owner()
    except (KeyError, OSError, NotImplementedError):
        # KeyError: uid without a passwd entry
        return UNKNOWN_OWNER


def _owned_dirs(www_root: Path) -> list[tuple[str, str]]:
    """(owner, entity) for every site directory whose owner resolves."""
    pairs: list[tuple[str, str]] = []
    for child in _child_dirs(Path(www_root)):
        owner = resolve_owner(www_root, child.name)
        if owner != UNKNOWN_OWNER:
            pairs.append((owner, child.name))
    return pairs


def find_owners(www_root: Path, fragment: str) -> list[str]:
    """Return sorted owner names containing ``fragment`` (case-insensitive)."""
    needle = fragment.lower()
    return sorted({owner for owner, _ in _owned_dirs(www_root) if needle in owner.lower()})


def entities_for_owner(www_root: Path, owner: str) -> list[str]:
    """Return the sorted entities whose site directory is owned by ``owner``."""
    return sorted(entity for found, entity in _owned_dirs(www_root) if found == owner)


def partial_stats(
    source: CgroupCounterSource, www_root: Path, entity: str
) -> EntityOverview:
    """Owner, memory and process count for the selection listing."""
    gauges = source.read_gauges(entity)
    return EntityOverview(
        entity=entity,
        owner=resolve_owner(www_root, entity),
        memory_mb=bytes_to_mb(gauges.memory_bytes),
        processes=gauges.processes,
    )
