"""Grid search for the navgrid service.

Best-first search over a collision :class:`~navgrid.builder.Grid`. Each
successor's cost is ``parent cost + step cost + Manhattan distance``, so
the heuristic accumulates along a route and pulls the frontier toward
the goal much harder than textbook A*. Route shapes depend on it.
Tiles are marked visited when first accepted and never reopened, so
the result is not guaranteed cost-optimal.

Equal-cost frontier entries are dequeued in insertion order. Routes are
compressed into waypoints: one per direction change plus a checkpoint
every ``waypoint_interval`` straight steps. The entry step of a run
counts as its first step, so the first checkpoint of a run sits
``waypoint_interval - 1`` tiles after the entry waypoint and later ones
follow every ``waypoint_interval`` tiles.
"""

from __future__ import annotations

import heapq
import itertools
import time
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Set, Tuple

from .builder import Grid
from .cost import CostModel
from .options import SearchOptions
from .path import RouteResult, Tile

Direction = Tuple[int, int]

DIRECTIONS: Sequence[Direction] = (
    (1, 0), (-1, 0),
    (0, 1), (0, -1),
    (1, 1), (-1, 1),
    (1, -1), (-1, -1),
)


class CancelToken(Protocol):
    """Anything with ``is_set()``, e.g. :class:`threading.Event`."""

    def is_set(self) -> bool:
        ...


@dataclass(slots=True)
class _Node:
    x: int
    y: int
    cost: int
    path: Tuple[Tile, ...]
    last_dir: Optional[Direction]
    steps_in_dir: int


def is_diagonal_clear(grid: Grid, x: int, y: int, dx: int, dy: int, plane: int) -> bool:
    """Return whether both orthogonal tiles beside a diagonal move are walkable."""

    return grid.is_walkable(x + dx, y, plane) and grid.is_walkable(x, y + dy, plane)


def grid_search(
    grid: Grid,
    start: Tile,
    goal: Tile,
    plane: int,
    cost_model: Optional[CostModel] = None,
    options: Optional[SearchOptions] = None,
    cancel: Optional[CancelToken] = None,
) -> RouteResult:
    """Search ``grid`` on ``plane`` from ``start`` to ``goal``.

    Returns a found :class:`RouteResult` whose waypoints begin at
    ``start`` and end at ``goal``, or a not-found result with a reason:
    ``"unreachable"`` when the frontier empties, ``"max-expansions"``,
    ``"timeout"`` or ``"cancelled"`` when a bound stops the search.
    """

    cm = cost_model or CostModel()
    opts = options or SearchOptions()
    interval = max(1, int(opts.waypoint_interval))

    start_xy = (start[0], start[1])
    goal_x, goal_y = goal[0], goal[1]

    if start_xy == (goal_x, goal_y):
        return RouteResult(waypoints=[(start[0], start[1], plane)], reason=None, expanded=0, cost=0)

    start_time = time.monotonic_ns()
    timeout_ns = int(opts.timeout_ms) * 1_000_000

    counter = itertools.count()
    visited: Set[Tuple[int, int]] = {start_xy}
    seed = _Node(start[0], start[1], 0, ((start[0], start[1], plane),), None, 0)
    open_heap: List[Tuple[int, int, _Node]] = [(seed.cost, next(counter), seed)]

    expanded = 0

    while open_heap:
        if cancel is not None and cancel.is_set():
            return RouteResult.not_found("cancelled", expanded)
        if timeout_ns and (time.monotonic_ns() - start_time) >= timeout_ns:
            return RouteResult.not_found("timeout", expanded)

        _, _, current = heapq.heappop(open_heap)

        if current.x == goal_x and current.y == goal_y:
            waypoints = list(current.path)
            if waypoints[-1] != (goal_x, goal_y, plane):
                waypoints.append((goal_x, goal_y, plane))
            return RouteResult(waypoints=waypoints, reason=None, expanded=expanded, cost=current.cost)

        expanded += 1
        if expanded > opts.max_expansions:
            return RouteResult.not_found("max-expansions", expanded)

        for dx, dy in DIRECTIONS:
            nx = current.x + dx
            ny = current.y + dy
            key = (nx, ny)
            if key in visited:
                continue
            if not grid.is_walkable(nx, ny, plane):
                continue
            if dx != 0 and dy != 0 and not is_diagonal_clear(grid, current.x, current.y, dx, dy, plane):
                continue

            visited.add(key)

            heuristic = cm.heuristic(nx, ny, goal_x, goal_y)
            new_cost = current.cost + cm.step(grid, nx, ny, plane) + heuristic

            same_dir = current.last_dir == (dx, dy)
            steps = current.steps_in_dir + 1 if same_dir else 1
            path = current.path
            if not same_dir:
                path = path + ((nx, ny, plane),)
            elif steps >= interval:
                path = path + ((nx, ny, plane),)
                steps = 0

            node = _Node(nx, ny, new_cost, path, (dx, dy), steps)
            heapq.heappush(open_heap, (new_cost, next(counter), node))

    return RouteResult.not_found("unreachable", expanded)
