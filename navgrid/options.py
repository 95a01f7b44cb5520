"""Build and search configuration data models for the navgrid service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet

from .path import ALLOWED_PLANES, ChunkRect

DEFAULT_REGION = ChunkRect(min_i=45, max_i=55, min_j=48, max_j=56)
DEFAULT_PLANES: FrozenSet[int] = ALLOWED_PLANES
OPEN_SETTINGS: FrozenSet[int] = frozenset({0, 2, 3, 4, 5, 8})
FORCED_WALKABLE_IDS: FrozenSet[int] = frozenset({45156})

DEFAULT_MAX_EXPANSIONS = 250_000_000
DEFAULT_TIMEOUT_MS = 1_000_000_000
DEFAULT_WAYPOINT_INTERVAL = 15


@dataclass(slots=True)
class BuildOptions:
    """Configuration for a collision grid build.

    The region is an inclusive chunk rectangle; only placements and
    tiles inside it and on one of ``planes`` take part in the build.
    """

    region: ChunkRect = DEFAULT_REGION
    """Chunk-index rectangle to build."""

    planes: FrozenSet[int] = DEFAULT_PLANES
    """Planes to build; must be a subset of the allowed planes."""

    open_settings: FrozenSet[int] = OPEN_SETTINGS
    """Tile settings codes that are walkable before object rules apply."""

    forced_walkable_ids: FrozenSet[int] = FORCED_WALKABLE_IDS
    """Object types whose footprint is always walkable."""

    def __post_init__(self) -> None:
        if not self.region.is_valid():
            raise ValueError(f"Invalid chunk region (min > max): {self.region}")
        self.planes = frozenset(self.planes)
        unknown = self.planes - ALLOWED_PLANES
        if unknown:
            raise ValueError(f"Planes outside the allowed set {sorted(ALLOWED_PLANES)}: {sorted(unknown)}")

    def to_json_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable dictionary representation."""

        return {
            "region": {
                "min_i": self.region.min_i,
                "max_i": self.region.max_i,
                "min_j": self.region.min_j,
                "max_j": self.region.max_j,
            },
            "planes": sorted(self.planes),
            "open_settings": sorted(self.open_settings),
            "forced_walkable_ids": sorted(self.forced_walkable_ids),
        }


@dataclass(slots=True)
class SearchOptions:
    """Limits and tuning for grid searches."""

    max_expansions: int = DEFAULT_MAX_EXPANSIONS
    """Maximum dequeued nodes before returning ``reason="max-expansions"``."""

    timeout_ms: int = DEFAULT_TIMEOUT_MS
    """Maximum wall-clock time in milliseconds before returning ``reason="timeout"``."""

    waypoint_interval: int = DEFAULT_WAYPOINT_INTERVAL
    """Straight-line steps between checkpoint waypoints."""

    extras: Dict[str, Any] = field(default_factory=dict)
    """Arbitrary additional flags kept for forward compatibility."""

    def to_json_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable dictionary representation."""

        return {
            "max_expansions": self.max_expansions,
            "timeout_ms": self.timeout_ms,
            "waypoint_interval": self.waypoint_interval,
            "extras": dict(self.extras),
        }
