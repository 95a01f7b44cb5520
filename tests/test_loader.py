"""Tests for reading an extracted world dump."""

import json

import pytest

from conftest import BASE, REGION
from navgrid.loader import (
    ExtractedDumpLoader,
    iter_chunk_tiles,
    load_extracted,
    merge_duplicate_pairs,
    read_json_allowing_duplicates,
)


def _write(path, payload):
    path.parent.mkdir(parents=True, exist_ok=True)
    text = payload if isinstance(payload, str) else json.dumps(payload)
    path.write_text(text, encoding="utf-8")


@pytest.fixture
def dump(tmp_path):
    root = tmp_path / "extracted"
    _write(root / "location_configs" / "1.json", '{"id": 1, "name": "Wall", "dim_x": 1, "dim_y": 1}')
    _write(
        root / "location_configs" / "3.json",
        '{"id": 3, "name": "Roof", "dim_x": 2, "dim_y": 2, "occludes_2": true, "unknown_7": 1, "unknown_7": 2}',
    )
    _write(root / "location_configs" / "broken.json", "{not json")
    _write(root / "location_configs" / "noid.json", {"name": "anonymous"})
    _write(
        root / "locations" / "50_50.json",
        [
            {"plane": 0, "i": 50, "j": 50, "x": 2, "y": 2, "id": 1, "rotation": 1, "type": 0},
            {"plane": 0, "i": 50, "j": 50, "x": 4, "y": 4, "id": 3},
            {"plane": 0, "i": 51, "j": 50, "x": 0, "y": 0, "id": 1, "rotation": 0},
            {"plane": 0, "i": 50, "j": 50, "x": 4, "id": 3},
            "garbage",
        ],
    )
    data = [{"settings": 0, "height": x * 10 + y} for x in range(2) for y in range(2)]
    data += [{"settings": 1} for _ in range(4)]
    _write(root / "tiles" / "50_50.json", {"dim": [2, 2, 2], "data": data})
    _write(root / "tiles" / "51_50.json", {"dim": [1, 1, 1], "data": [{"settings": 0}]})
    _write(root / "tiles" / "readme.json", {})
    return root


def test_merge_duplicate_pairs_keeps_every_value():
    merged = merge_duplicate_pairs([("a", 1), ("b", 2), ("a", 3), ("a", [4, 5])])
    assert merged == {"a": [1, 3, 4, 5], "b": 2}


def test_read_json_allowing_duplicates(tmp_path):
    path = tmp_path / "dup.json"
    path.write_text('{"id": 5, "flag": true, "flag": false}', encoding="utf-8")

    assert read_json_allowing_duplicates(path) == {"id": 5, "flag": [True, False]}


def test_iter_chunk_tiles_layout_and_plane_filter():
    data = [{"height": i} for i in range(8)]
    payload = {"dim": [2, 2, 2], "data": data}

    tiles = list(iter_chunk_tiles(payload, 50, 50))
    assert [(t.x - BASE, t.y - BASE, t.plane, t.height) for t in tiles] == [
        (0, 0, 0, 0),
        (0, 1, 0, 1),
        (1, 0, 0, 2),
        (1, 1, 0, 3),
        (0, 0, 1, 4),
        (0, 1, 1, 5),
        (1, 0, 1, 6),
        (1, 1, 1, 7),
    ]

    plane_one = list(iter_chunk_tiles(payload, 50, 50, planes=frozenset({1})))
    assert [t.height for t in plane_one] == [4, 5, 6, 7]


def test_iter_chunk_tiles_tolerates_short_or_malformed_payloads():
    short = list(iter_chunk_tiles({"dim": [1, 2, 2], "data": [{}, {"settings": 3}]}, 0, 0))
    assert len(short) == 2
    assert short[0].settings is None and short[0].overlay_id == -1
    assert short[1].settings == 3

    assert list(iter_chunk_tiles({"dim": [1, 2]}, 0, 0)) == []
    assert list(iter_chunk_tiles([], 0, 0)) == []


def test_load_extracted_reads_all_folders(dump):
    loader = ExtractedDumpLoader(dump)
    source = loader.load()

    assert loader.stats.definitions == 2
    assert loader.stats.definitions_skipped == 2
    assert loader.stats.placements == 3
    assert loader.stats.placements_skipped == 2
    assert loader.stats.tiles == 9
    assert loader.stats.tile_files_skipped == 1

    roof = source.object_definition(3)
    assert roof.occludes is True
    assert roof.extras == {"unknown_7": [1, 2]}

    wall_tile = source.tile_at((BASE + 1, BASE + 1, 0))
    assert wall_tile.height == 11
    assert source.tile_at((BASE, BASE, 1)).settings == 1


def test_load_extracted_region_and_plane_filter(dump):
    source = load_extracted(dump, region=REGION, planes=frozenset({0}))

    assert source.counts() == {"tiles": 4, "definitions": 2, "placements": 2}
    placements = sorted(p.origin for p in source.iter_placements())
    assert placements == [(BASE + 2, BASE + 2, 0), (BASE + 4, BASE + 4, 0)]


def test_missing_folders_yield_empty_source(tmp_path, caplog):
    source = load_extracted(tmp_path / "nowhere")

    assert source.counts() == {"tiles": 0, "definitions": 0, "placements": 0}
    assert "Missing dump folder" in caplog.text


def test_non_finite_numbers_are_treated_as_missing(tmp_path):
    root = tmp_path / "extracted"
    _write(root / "location_configs" / "9.json", '{"id": 9, "dim_x": Infinity, "unknown_186": NaN}')
    _write(
        root / "locations" / "50_50.json",
        '[{"plane": 0, "i": 50, "j": 50, "x": 1, "y": 1, "id": 9, "rotation": NaN, "type": 1e400},'
        ' {"plane": 0, "i": 50, "j": 50, "x": NaN, "y": 1, "id": 9}]',
    )
    _write(root / "tiles" / "50_50.json", '{"dim": [1, 1, 2], "data": [{"settings": 1e400, "height": -Infinity}, {"settings": 2}]}')

    loader = ExtractedDumpLoader(root)
    source = loader.load()

    defn = source.object_definition(9)
    assert defn.footprint == (1, 1)
    assert defn.overhead_threshold is None

    (placement,) = source.iter_placements()
    assert placement.rotation is None
    assert placement.type == 10
    assert loader.stats.placements_skipped == 1

    tile = source.tile_at((BASE, BASE, 0))
    assert tile.settings is None and tile.height == 0
    assert source.tile_at((BASE, BASE + 1, 0)).settings == 2
