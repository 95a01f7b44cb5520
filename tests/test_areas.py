from conftest import grid_from_ascii
from navgrid.areas import areas_to_json, tiles_to_polygons, walkable_polygons


def test_separate_regions_become_separate_polygons():
    grid = grid_from_ascii(["..#..", "..#.."])
    polys = walkable_polygons(grid, 0)

    assert [p.bounds for p in polys] == [(0.0, 0.0, 2.0, 2.0), (3.0, 0.0, 5.0, 2.0)]
    assert walkable_polygons(grid, 1) == []


def test_unwalkable_pocket_is_a_hole():
    polys = walkable_polygons(grid_from_ascii(["...", ".#.", "..."]), 0)

    assert len(polys) == 1
    assert len(polys[0].interiors) == 1
    assert polys[0].area == 8


def test_areas_to_json():
    polys = tiles_to_polygons([(0, 0), (1, 0), (5, 5)])
    payload = areas_to_json(polys, plane=2)

    assert [a["tiles"] for a in payload] == [2, 1]
    assert payload[0]["bounds"] == [0, 0, 2, 1]
    assert payload[1]["plane"] == 2
    assert payload[1]["wkt"].startswith("POLYGON")
    assert tiles_to_polygons([]) == []
