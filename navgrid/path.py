"""Coordinate and route data models for the navgrid service.

These definitions are shared by the collision builder and the grid
search. Route results are deliberately JSON-friendly so callers can
serialize them via :meth:`RouteResult.to_json_dict` without losing
fidelity.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, List, Literal, Optional, Tuple

Tile = Tuple[int, int, int]
"""Alias for a tile coordinate expressed as ``(x, y, plane)``."""

CHUNK_SIZE = 64
CHUNK_SHIFT = 6

ALLOWED_PLANES: FrozenSet[int] = frozenset({-1, 0, 1, 2, 3})
"""Vertical layers a tile or placement may live on."""

RouteReason = Literal[
    "unreachable",
    "max-expansions",
    "timeout",
    "cancelled",
    "invalid-input",
]


def global_coord(chunk_index: int, local_offset: int) -> int:
    """Combine a chunk index and a 0-63 local offset into a global coordinate."""

    return (chunk_index << CHUNK_SHIFT) + local_offset


def chunk_of(global_value: int) -> Tuple[int, int]:
    """Split a global coordinate into ``(chunk_index, local_offset)``."""

    return global_value >> CHUNK_SHIFT, global_value & (CHUNK_SIZE - 1)


def is_valid_tile(tile: object) -> bool:
    return (
        isinstance(tile, tuple)
        and len(tile) == 3
        and all(isinstance(v, int) and not isinstance(v, bool) for v in tile)
    )


@dataclass(slots=True)
class RouteResult:
    """Outcome of a grid search.

    A found route has ``waypoints`` set and ``reason`` ``None``; every
    other outcome has ``waypoints`` ``None`` and a ``reason`` string
    (``"unreachable"`` is the plain not-found case).
    """

    waypoints: Optional[List[Tile]]
    """Compressed route from start to destination, or ``None``."""

    reason: Optional[RouteReason]
    """Why no route was produced, when relevant."""

    expanded: int
    """Number of frontier nodes dequeued by the search."""

    cost: int = 0
    """Accumulated search cost of the goal node (0 when not found)."""

    @property
    def found(self) -> bool:
        return self.waypoints is not None

    @classmethod
    def not_found(cls, reason: RouteReason, expanded: int = 0) -> "RouteResult":
        return cls(waypoints=None, reason=reason, expanded=expanded, cost=0)

    def to_json_dict(self) -> Dict[str, Any]:
        """Return a JSON-serializable dictionary representation."""

        return {
            "found": self.found,
            "waypoints": [list(t) for t in self.waypoints] if self.waypoints is not None else None,
            "reason": self.reason,
            "expanded": self.expanded,
            "cost": self.cost,
        }


@dataclass(frozen=True, slots=True)
class ChunkRect:
    """Inclusive rectangle of chunk indices."""

    min_i: int
    max_i: int
    min_j: int
    max_j: int

    def is_valid(self) -> bool:
        return self.min_i <= self.max_i and self.min_j <= self.max_j

    def contains(self, chunk_i: int, chunk_j: int) -> bool:
        return self.min_i <= chunk_i <= self.max_i and self.min_j <= chunk_j <= self.max_j

    def contains_tile(self, x: int, y: int) -> bool:
        return self.contains(x >> CHUNK_SHIFT, y >> CHUNK_SHIFT)

    def as_bounds(self) -> Tuple[int, int, int, int]:
        """Return ``(min_i, min_j, max_i, max_j)`` in interleaved order."""

        return self.min_i, self.min_j, self.max_i, self.max_j
