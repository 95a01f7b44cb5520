"""Walkable-area polygons for inspecting a built grid.

Walkable tiles on a plane are turned into unit squares and merged with
Shapely's ``unary_union``; each resulting polygon is one connected
walkable area (holes are unwalkable pockets).
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Tuple

from shapely.geometry import MultiPolygon, Polygon, box
from shapely.ops import unary_union

from .builder import Grid


def tiles_to_polygons(tiles: Iterable[Tuple[int, int]]) -> List[Polygon]:
    """Convert ``(x, y)`` tile coords into merged polygons sorted by bounds."""

    boxes = [box(x, y, x + 1, y + 1) for (x, y) in tiles]
    if not boxes:
        return []
    merged = unary_union(boxes)
    if isinstance(merged, Polygon):
        polys = [merged]
    elif isinstance(merged, MultiPolygon):
        polys = list(merged.geoms)
    else:
        polys = [g for g in getattr(merged, "geoms", []) if isinstance(g, Polygon)]
    return sorted(polys, key=lambda p: p.bounds)


def walkable_polygons(grid: Grid, plane: int) -> List[Polygon]:
    return tiles_to_polygons(grid.walkable_tiles(plane))


def areas_to_json(polygons: Iterable[Polygon], plane: int) -> List[Dict[str, Any]]:
    """Render polygons as JSON-friendly dicts (WKT, bounds, tile area)."""

    out: List[Dict[str, Any]] = []
    for idx, poly in enumerate(polygons):
        minx, miny, maxx, maxy = poly.bounds
        out.append(
            {
                "id": idx,
                "plane": plane,
                "tiles": int(round(poly.area)),
                "holes": len(poly.interiors),
                "bounds": [int(minx), int(miny), int(maxx), int(maxy)],
                "wkt": poly.wkt,
            }
        )
    return out
