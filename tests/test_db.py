"""Tests for the SQLite source tables and the tiles output table."""

import sqlite3

import pytest

from conftest import BASE, REGION, make_placement, make_tiles
from navgrid.api import build_grid, build_grid_from_db
from navgrid.db import (
    SqliteWorldSource,
    iter_grid_rows,
    load_grid,
    open_connection,
    open_writable,
    write_grid,
    write_source,
)
from navgrid.objects import ObjectDefinition
from navgrid.options import BuildOptions
from navgrid.world import InMemoryWorldSource, TileRecord

TILES_COLUMNS = [
    "global_x",
    "global_y",
    "plane",
    "height",
    "overlay_id",
    "underlay_id",
    "settings",
    "is_walkable",
    "blockN",
    "blockE",
    "blockS",
    "blockW",
    "debug_reason",
]


@pytest.fixture
def source_db(tmp_path, square_source):
    path = tmp_path / "source.db"
    conn = open_writable(path)
    try:
        write_source(conn, square_source)
    finally:
        conn.close()
    return path


def test_source_round_trip(source_db, build_options):
    src = SqliteWorldSource.connect(source_db)
    try:
        assert src.tile_at((BASE, BASE, 0)) == TileRecord(BASE, BASE, 0, settings=0)
        assert src.tile_at((0, 0, 0)) is None

        roof = src.object_definition(3)
        assert roof.name == "Roof"
        assert roof.footprint == (2, 2)
        assert roof.occludes is True
        assert src.object_definition(5).is_zero_sized
        assert src.object_definition(404) is None

        placements = list(src.placements_in_region(build_options.region, build_options.planes))
        assert [p.object_id for p in placements] == [1, 2, 3, 5]
        assert placements[0].origin == (BASE + 2, BASE + 2, 0)
        assert placements[0].rotation == 1

        tiles = list(src.tiles_in_region(build_options.region, frozenset({0})))
        assert len(tiles) == 100
        assert list(src.tiles_in_region(build_options.region, frozenset())) == []
    finally:
        src.close()


def test_sqlite_and_memory_sources_build_the_same_grid(source_db, square_source, build_options):
    from_memory = build_grid(square_source, build_options)
    from_db = build_grid_from_db(source_db, options=build_options)

    assert [t.to_row() for t in from_db.rows()] == [t.to_row() for t in from_memory.rows()]


def test_null_rotation_survives_round_trip(tmp_path):
    source = InMemoryWorldSource(
        tiles=make_tiles([BASE, BASE - 1], [BASE]),
        definitions=[ObjectDefinition(object_id=1)],
        placements=[make_placement(1, BASE, BASE, rotation=None)],
    )
    path = tmp_path / "null_rot.db"
    conn = open_writable(path)
    write_source(conn, source)
    conn.close()

    src = SqliteWorldSource.connect(path)
    try:
        (placement,) = src.placements_in_region(REGION, frozenset({0}))
    finally:
        src.close()
    assert placement.rotation is None


def test_write_grid_uses_tiles_columns(tmp_path, square_source, build_options):
    grid = build_grid(square_source, build_options)
    path = tmp_path / "world.db"
    conn = open_writable(path)
    try:
        assert write_grid(conn, grid) == 100
        columns = [row[1] for row in conn.execute("PRAGMA table_info(tiles)")]
        assert columns == TILES_COLUMNS

        row = conn.execute(
            "SELECT is_walkable, blockE, blockW, debug_reason FROM tiles WHERE global_x = ? AND global_y = ?",
            (BASE + 6, BASE + 5),
        ).fetchone()
        assert tuple(row) == (0, 1, 1, "Neighbor W by object 2; Object:2 rotation:2 dim:2x1")
    finally:
        conn.close()


def test_write_grid_replaces_previous_table(tmp_path, square_source, build_options):
    path = tmp_path / "world.db"
    conn = open_writable(path)
    try:
        write_grid(conn, build_grid(square_source, build_options))
        small = build_grid(InMemoryWorldSource(tiles=make_tiles([BASE], [BASE])), build_options)
        write_grid(conn, small)
        assert conn.execute("SELECT COUNT(*) FROM tiles").fetchone()[0] == 1
    finally:
        conn.close()


def test_load_grid_round_trip(tmp_path, square_source, build_options):
    grid = build_grid(square_source, build_options)
    path = tmp_path / "world.db"
    conn = open_writable(path)
    write_grid(conn, grid)
    conn.close()

    ro = open_connection(path)
    try:
        loaded = load_grid(ro)
        assert [t.to_row() for t in loaded.rows()] == [t.to_row() for t in grid.rows()]
        assert len(load_grid(ro, plane=1)) == 0

        rows = list(iter_grid_rows(ro))
        assert rows[0][:3] == (BASE, BASE, 0)
        assert len(rows) == 100

        with pytest.raises(sqlite3.OperationalError):
            ro.execute("DELETE FROM tiles")
    finally:
        ro.close()


def test_malformed_flags_column_is_ignored(tmp_path, caplog):
    path = tmp_path / "bad.db"
    conn = open_writable(path)
    write_source(conn, InMemoryWorldSource())
    with conn:
        conn.execute(
            "INSERT INTO objects VALUES (?,?,?,?,?,?,?)",
            (7, "Broken", 2, 2, "not json", 0, "{oops"),
        )
    conn.close()

    src = SqliteWorldSource.connect(path)
    try:
        defn = src.object_definition(7)
    finally:
        src.close()
    assert defn.footprint == (2, 2)
    assert defn.actions is None
    assert defn.occludes is None
    assert "malformed flags" in caplog.text


def test_non_finite_flag_values_do_not_abort_build(tmp_path):
    path = tmp_path / "inf.db"
    conn = open_writable(path)
    write_source(
        conn,
        InMemoryWorldSource(
            tiles=make_tiles([BASE, BASE - 1], [BASE]),
            placements=[make_placement(8, BASE, BASE)],
        ),
    )
    with conn:
        conn.execute(
            "INSERT INTO objects VALUES (?,?,?,?,?,?,?)",
            (8, "Odd", 1, 1, "[]", 0, '{"unknown_186": "inf", "unknown_21": "nan"}'),
        )
    conn.close()

    grid = build_grid_from_db(path, options=BuildOptions(region=REGION, planes=frozenset({0})))

    assert grid[(BASE, BASE, 0)].block_w
    assert grid[(BASE, BASE, 0)].debug_reason == "Object:8 rotation:0 dim:1x1"
