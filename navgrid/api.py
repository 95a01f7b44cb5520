"""Public API for navgrid.

Exposes ``build_grid(source, options=None)`` which runs the collision
builder, ``build_grid_from_db(source_db, output_db=None, options=None)``
for SQLite sources, and ``find_path(grid, start, goal, plane, ...)``
which validates inputs, runs the grid search and logs summary metrics
at INFO.
"""
from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Optional, Union

from .astar import CancelToken, grid_search
from .builder import CollisionBuilder, Grid
from .cost import CostModel
from .db import SqliteWorldSource, open_writable, write_grid
from .options import BuildOptions, SearchOptions
from .path import RouteResult, Tile, is_valid_tile
from .world import WorldSource

LOGGER = logging.getLogger(__name__)


def build_grid(source: WorldSource, options: Optional[BuildOptions] = None) -> Grid:
    """Build a collision grid from ``source`` for the configured region."""

    builder = CollisionBuilder(source, options)
    t0_ns = time.perf_counter_ns()
    grid = builder.build()
    duration_ms = int((time.perf_counter_ns() - t0_ns) / 1_000_000)

    LOGGER.info(
        "build_grid metrics: options=%s stats=%s duration_ms=%d",
        json.dumps(builder.options.to_json_dict(), sort_keys=True),
        json.dumps(builder.stats.to_json_dict(), sort_keys=True),
        duration_ms,
    )
    return grid


def build_grid_from_db(
    source_db: Union[str, Path],
    output_db: Optional[Union[str, Path]] = None,
    options: Optional[BuildOptions] = None,
) -> Grid:
    """Build from a SQLite source and optionally persist the ``tiles`` table."""

    source = SqliteWorldSource.connect(source_db)
    try:
        grid = build_grid(source, options)
    finally:
        source.close()

    if output_db is not None:
        conn = open_writable(output_db)
        try:
            rows = write_grid(conn, grid)
        finally:
            conn.close()
        LOGGER.info("Wrote %d tiles to %s", rows, output_db)
    return grid


def find_path(
    grid: Grid,
    start: Tile,
    goal: Tile,
    plane: Optional[int] = None,
    options: Optional[SearchOptions] = None,
    cost_model: Optional[CostModel] = None,
    cancel: Optional[CancelToken] = None,
) -> RouteResult:
    """Compute a waypoint route from ``start`` to ``goal`` on one plane.

    - ``plane`` defaults to the start tile's plane; both endpoints must
      lie on it since the search never changes plane
    - Returns a `RouteResult`; not-found outcomes carry a reason and
      are never raised
    """

    if not (is_valid_tile(start) and is_valid_tile(goal)):
        LOGGER.warning("Invalid input tiles: start=%r goal=%r", start, goal)
        return RouteResult.not_found("invalid-input")

    search_plane = start[2] if plane is None else plane
    if start[2] != search_plane or goal[2] != search_plane:
        LOGGER.warning("Endpoints not on search plane %s: start=%r goal=%r", search_plane, start, goal)
        return RouteResult.not_found("invalid-input")

    search_options = options or SearchOptions()
    t0_ns = time.perf_counter_ns()
    result = grid_search(grid, start, goal, search_plane, cost_model, search_options, cancel)
    duration_ms = int((time.perf_counter_ns() - t0_ns) / 1_000_000)

    waypoint_count = len(result.waypoints) if result.waypoints is not None else 0
    LOGGER.info(
        "find_path metrics: start=%s goal=%s reason=%s expanded=%d waypoints=%d cost=%d duration_ms=%d options=%s",
        start,
        goal,
        result.reason,
        result.expanded,
        waypoint_count,
        result.cost,
        duration_ms,
        json.dumps(search_options.to_json_dict(), sort_keys=True, default=str),
    )
    return result


__all__ = ["build_grid", "build_grid_from_db", "find_path"]
