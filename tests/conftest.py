"""Shared fixtures for navgrid tests."""

from typing import Iterable, List, Optional, Sequence

import pytest

from navgrid.builder import Grid, GridTile
from navgrid.objects import ObjectDefinition
from navgrid.options import BuildOptions
from navgrid.path import ChunkRect, chunk_of
from navgrid.world import InMemoryWorldSource, ObjectPlacement, TileRecord

# Chunk (50, 50) covers global x/y 3200..3263.
BASE = 3200
REGION = ChunkRect(min_i=50, max_i=50, min_j=50, max_j=50)


def make_placement(object_id: int, x: int, y: int, rotation: Optional[int] = 0, plane: int = 0) -> ObjectPlacement:
    chunk_i, local_x = chunk_of(x)
    chunk_j, local_y = chunk_of(y)
    return ObjectPlacement(
        plane=plane,
        chunk_i=chunk_i,
        chunk_j=chunk_j,
        local_x=local_x,
        local_y=local_y,
        object_id=object_id,
        rotation=rotation,
    )


def make_tiles(xs: Iterable[int], ys: Iterable[int], plane: int = 0, settings: Optional[int] = 0) -> List[TileRecord]:
    ys = list(ys)
    return [TileRecord(x=x, y=y, plane=plane, settings=settings) for x in xs for y in ys]


def grid_from_ascii(rows: Sequence[str], plane: int = 0) -> Grid:
    """Build a grid where ``rows[y][x]`` is '.' walkable, '#' blocked, ' ' absent."""

    tiles = []
    for y, row in enumerate(rows):
        for x, ch in enumerate(row):
            if ch == " ":
                continue
            tiles.append(
                GridTile(
                    x=x,
                    y=y,
                    plane=plane,
                    height=0,
                    overlay_id=-1,
                    underlay_id=-1,
                    settings=0,
                    is_walkable=(ch == "."),
                )
            )
    return Grid(tiles)


@pytest.fixture
def build_options() -> BuildOptions:
    return BuildOptions(region=REGION, planes=frozenset({0, 1}))


@pytest.fixture
def square_source() -> InMemoryWorldSource:
    """10x10 open tiles at (3200..3209, 3200..3209) with a few objects."""

    definitions = [
        ObjectDefinition(object_id=1, name="Wall", dim_x=1, dim_y=1),
        ObjectDefinition(object_id=2, name="Fence", dim_x=2, dim_y=1),
        ObjectDefinition(object_id=3, name="Roof", dim_x=2, dim_y=2, occludes=True),
        ObjectDefinition(object_id=4, name="Bridge", dim_x=1, dim_y=2, bridge_deck=True, occludes=False),
        ObjectDefinition(object_id=5, name="Door frame", dim_x=0, dim_y=0),
    ]
    placements = [
        make_placement(1, BASE + 2, BASE + 2, rotation=1),
        make_placement(2, BASE + 5, BASE + 5, rotation=2),
        make_placement(3, BASE + 7, BASE + 7, rotation=0),
        make_placement(5, BASE + 1, BASE + 8, rotation=3),
    ]
    return InMemoryWorldSource(
        tiles=make_tiles(range(BASE, BASE + 10), range(BASE, BASE + 10)),
        definitions=definitions,
        placements=placements,
    )
