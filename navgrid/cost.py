"""Cost and heuristic utilities for the navgrid search."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence, Tuple

from .builder import Grid

DEFAULT_STEP_COST = 1
DEFAULT_CLEARANCE_WEIGHT = 5

_SURROUNDING: Sequence[Tuple[int, int]] = (
    (-1, -1), (-1, 0), (-1, 1),
    (0, -1), (0, 1),
    (1, -1), (1, 0), (1, 1),
)


@dataclass(slots=True)
class CostModel:
    """Step, clearance and heuristic costs for one search.

    Tiles hugging walls are penalized by ``clearance_weight`` per
    surrounding tile that is not walkable, which keeps routes away from
    obstacles. Tiles missing from the grid count as not walkable.
    """

    step_cost: int = DEFAULT_STEP_COST
    """Base cost of any single move (cardinal or diagonal)."""

    clearance_weight: int = DEFAULT_CLEARANCE_WEIGHT
    """Penalty per non-walkable tile among the 8 surrounding a tile."""

    def blocked_around(self, grid: Grid, x: int, y: int, plane: int) -> int:
        """Return how many of the 8 tiles around ``(x, y)`` are not walkable."""

        return sum(1 for dx, dy in _SURROUNDING if not grid.is_walkable(x + dx, y + dy, plane))

    def clearance_penalty(self, grid: Grid, x: int, y: int, plane: int) -> int:
        return self.blocked_around(grid, x, y, plane) * self.clearance_weight

    def step(self, grid: Grid, x: int, y: int, plane: int) -> int:
        """Return the cost of stepping onto ``(x, y)``."""

        return self.step_cost + self.clearance_penalty(grid, x, y, plane)

    @staticmethod
    def heuristic(x: int, y: int, goal_x: int, goal_y: int) -> int:
        """Return the Manhattan distance from ``(x, y)`` to the goal."""

        return abs(goal_x - x) + abs(goal_y - y)
