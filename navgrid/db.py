"""SQLite access helpers for the navgrid service.

This module centralises SQLite connections and provides typed accessors
over two groups of tables:

* source tables (``tile_records``, ``objects``, ``object_locations``)
  read by :class:`SqliteWorldSource` during a build, and
* the ``tiles`` output table holding a finished grid in the column
  layout downstream visualization tools expect.

All queries are parameterised.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import AbstractSet, Any, Dict, Iterator, Optional, Tuple, Union

from .builder import Grid, GridTile
from .objects import ObjectDefinition, actions_list, parse_definition
from .path import CHUNK_SIZE, ChunkRect, Tile, global_coord
from .world import DEFAULT_PLACEMENT_TYPE, InMemoryWorldSource, ObjectPlacement, TileRecord

LOGGER = logging.getLogger(__name__)

SqlConnection = sqlite3.Connection

SOURCE_SCHEMA = """
CREATE TABLE IF NOT EXISTS tile_records (
    global_x INTEGER,
    global_y INTEGER,
    plane INTEGER,
    height INTEGER,
    overlay_id INTEGER,
    underlay_id INTEGER,
    settings INTEGER,
    PRIMARY KEY(global_x, global_y, plane)
);

CREATE TABLE IF NOT EXISTS objects (
    object_id INTEGER PRIMARY KEY,
    name TEXT,
    dim_x INTEGER,
    dim_y INTEGER,
    actions TEXT,
    models_present BOOLEAN,
    flags TEXT
);

CREATE TABLE IF NOT EXISTS object_locations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    object_id INTEGER,
    chunk_i INTEGER,
    chunk_j INTEGER,
    local_x INTEGER,
    local_y INTEGER,
    plane INTEGER,
    rotation INTEGER,
    type INTEGER
);

CREATE INDEX IF NOT EXISTS idx_object_locations_chunk ON object_locations(chunk_i, chunk_j);
"""

TILES_SCHEMA = """
CREATE TABLE tiles (
    global_x INTEGER,
    global_y INTEGER,
    plane INTEGER,
    height INTEGER,
    overlay_id INTEGER,
    underlay_id INTEGER,
    settings INTEGER,
    is_walkable BOOLEAN,
    blockN BOOLEAN,
    blockE BOOLEAN,
    blockS BOOLEAN,
    blockW BOOLEAN,
    debug_reason TEXT,
    PRIMARY KEY(global_x, global_y, plane)
);
"""


def _coerce_path(path: Union[str, Path]) -> str:
    return str(Path(path))


def open_connection(db_path: Union[str, Path]) -> SqlConnection:
    """Return a SQLite connection opened in read-only mode when possible.

    The returned connection uses ``sqlite3.Row`` for ``row_factory`` so
    that column access by name is available to all downstream helpers.
    If read-only mode is unavailable, the function falls back to a
    normal connection kept in autocommit mode.
    """

    path = _coerce_path(db_path)
    uri = f"file:{Path(path).absolute()}?mode=ro"
    try:
        conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
    except sqlite3.OperationalError:
        conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.isolation_level = None  # autocommit; readers should not write
    return conn


def open_writable(db_path: Union[str, Path]) -> SqlConnection:
    """Return a read-write connection, creating the file if needed."""

    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path))
    conn.row_factory = sqlite3.Row
    return conn


def _plane_placeholders(planes: AbstractSet[int]) -> Tuple[str, Tuple[int, ...]]:
    ordered = tuple(sorted(planes))
    return ",".join("?" for _ in ordered), ordered


# -- source writing -----------------------------------------------------------

def create_source_schema(conn: SqlConnection) -> None:
    conn.executescript(SOURCE_SCHEMA)
    conn.commit()


def _definition_row(defn: ObjectDefinition) -> Tuple[Any, ...]:
    return (
        defn.object_id,
        defn.name,
        defn.dim_x,
        defn.dim_y,
        json.dumps(actions_list(defn)),
        defn.models_present,
        json.dumps(defn.raw_flags(), sort_keys=True),
    )


def write_source(conn: SqlConnection, source: InMemoryWorldSource) -> Dict[str, int]:
    """Persist an in-memory source into the source tables.

    Existing rows are replaced; the whole write is one transaction.
    """

    create_source_schema(conn)
    with conn:
        conn.execute("DELETE FROM tile_records")
        conn.execute("DELETE FROM objects")
        conn.execute("DELETE FROM object_locations")
        conn.executemany(
            "INSERT OR REPLACE INTO tile_records VALUES (?,?,?,?,?,?,?)",
            (
                (t.x, t.y, t.plane, t.height, t.overlay_id, t.underlay_id, t.settings)
                for t in source.iter_tiles()
            ),
        )
        conn.executemany(
            "INSERT OR REPLACE INTO objects VALUES (?,?,?,?,?,?,?)",
            (_definition_row(d) for d in source.iter_definitions()),
        )
        conn.executemany(
            "INSERT INTO object_locations "
            "(object_id, chunk_i, chunk_j, local_x, local_y, plane, rotation, type) "
            "VALUES (?,?,?,?,?,?,?,?)",
            (
                (p.object_id, p.chunk_i, p.chunk_j, p.local_x, p.local_y, p.plane, p.rotation, p.type)
                for p in source.iter_placements()
            ),
        )
    counts = source.counts()
    LOGGER.info(
        "write_source: tiles=%d definitions=%d placements=%d",
        counts["tiles"],
        counts["definitions"],
        counts["placements"],
    )
    return counts


# -- source reading -----------------------------------------------------------

def _tile_record(row: sqlite3.Row) -> TileRecord:
    return TileRecord(
        x=row["global_x"],
        y=row["global_y"],
        plane=row["plane"],
        height=row["height"] if row["height"] is not None else 0,
        overlay_id=row["overlay_id"] if row["overlay_id"] is not None else -1,
        underlay_id=row["underlay_id"] if row["underlay_id"] is not None else -1,
        settings=row["settings"],
    )


def _definition_from_row(row: sqlite3.Row) -> Optional[ObjectDefinition]:
    raw: Dict[str, Any] = {}
    try:
        flags = json.loads(row["flags"]) if row["flags"] else {}
    except ValueError:
        LOGGER.warning("Ignoring malformed flags for object %s", row["object_id"])
        flags = {}
    if isinstance(flags, dict):
        raw.update(flags)
    try:
        actions = json.loads(row["actions"]) if row["actions"] else None
    except ValueError:
        actions = None
    raw.update(
        {
            "id": row["object_id"],
            "name": row["name"],
            "dim_x": row["dim_x"],
            "dim_y": row["dim_y"],
            "actions": actions,
            "models_present": bool(row["models_present"]),
        }
    )
    return parse_definition(raw)


@dataclass(slots=True)
class SqliteWorldSource:
    """:class:`~navgrid.world.WorldSource` over the source tables."""

    connection: SqlConnection = field(repr=False)
    _definitions: Dict[int, Optional[ObjectDefinition]] = field(init=False, default_factory=dict, repr=False)

    _sql_tile_by_coord: str = field(init=False, default=(
        "SELECT global_x, global_y, plane, height, overlay_id, underlay_id, settings "
        "FROM tile_records WHERE global_x = ? AND global_y = ? AND plane = ?"
    ))
    _sql_tiles_in_box: str = field(init=False, default=(
        "SELECT global_x, global_y, plane, height, overlay_id, underlay_id, settings "
        "FROM tile_records WHERE global_x BETWEEN ? AND ? AND global_y BETWEEN ? AND ? "
        "AND plane IN ({planes}) ORDER BY plane ASC, global_x ASC, global_y ASC"
    ))
    _sql_object_by_id: str = field(init=False, default=(
        "SELECT object_id, name, dim_x, dim_y, actions, models_present, flags "
        "FROM objects WHERE object_id = ?"
    ))
    _sql_locations_in_box: str = field(init=False, default=(
        "SELECT object_id, chunk_i, chunk_j, local_x, local_y, plane, rotation, type "
        "FROM object_locations WHERE chunk_i BETWEEN ? AND ? AND chunk_j BETWEEN ? AND ? "
        "AND plane IN ({planes}) ORDER BY id ASC"
    ))

    @classmethod
    def connect(cls, db_path: Union[str, Path]) -> "SqliteWorldSource":
        """Create a read-only source bound to ``db_path``."""

        return cls(open_connection(db_path))

    def close(self) -> None:
        self.connection.close()

    def tile_at(self, tile: Tile) -> Optional[TileRecord]:
        row = self.connection.execute(self._sql_tile_by_coord, tile).fetchone()
        if row is None:
            return None
        return _tile_record(row)

    def object_definition(self, object_id: int) -> Optional[ObjectDefinition]:
        # Definitions are small and hit repeatedly; memoize misses too.
        if object_id in self._definitions:
            return self._definitions[object_id]
        row = self.connection.execute(self._sql_object_by_id, (object_id,)).fetchone()
        defn = _definition_from_row(row) if row is not None else None
        self._definitions[object_id] = defn
        return defn

    def tiles_in_region(self, region: ChunkRect, planes: AbstractSet[int]) -> Iterator[TileRecord]:
        if not planes:
            return
        marks, plane_params = _plane_placeholders(planes)
        params = (
            global_coord(region.min_i, 0),
            global_coord(region.max_i, CHUNK_SIZE - 1),
            global_coord(region.min_j, 0),
            global_coord(region.max_j, CHUNK_SIZE - 1),
            *plane_params,
        )
        for row in self.connection.execute(self._sql_tiles_in_box.format(planes=marks), params):
            yield _tile_record(row)

    def placements_in_region(self, region: ChunkRect, planes: AbstractSet[int]) -> Iterator[ObjectPlacement]:
        if not planes:
            return
        marks, plane_params = _plane_placeholders(planes)
        params = (region.min_i, region.max_i, region.min_j, region.max_j, *plane_params)
        for row in self.connection.execute(self._sql_locations_in_box.format(planes=marks), params):
            yield ObjectPlacement(
                plane=row["plane"],
                chunk_i=row["chunk_i"],
                chunk_j=row["chunk_j"],
                local_x=row["local_x"],
                local_y=row["local_y"],
                object_id=row["object_id"],
                rotation=row["rotation"],
                type=row["type"] if row["type"] is not None else DEFAULT_PLACEMENT_TYPE,
            )


# -- grid persistence ---------------------------------------------------------

def write_grid(conn: SqlConnection, grid: Grid) -> int:
    """Replace the ``tiles`` table with ``grid`` and return the row count."""

    with conn:
        conn.execute("DROP TABLE IF EXISTS tiles")
        conn.execute(TILES_SCHEMA)
        conn.executemany(
            "INSERT OR REPLACE INTO tiles VALUES (?,?,?,?,?,?,?,?,?,?,?,?,?)",
            (tile.to_row() for tile in grid.rows()),
        )
    return len(grid)


def _grid_tile(row: sqlite3.Row) -> GridTile:
    return GridTile(
        x=row["global_x"],
        y=row["global_y"],
        plane=row["plane"],
        height=row["height"],
        overlay_id=row["overlay_id"],
        underlay_id=row["underlay_id"],
        settings=row["settings"],
        is_walkable=bool(row["is_walkable"]),
        block_n=bool(row["blockN"]),
        block_e=bool(row["blockE"]),
        block_s=bool(row["blockS"]),
        block_w=bool(row["blockW"]),
        debug_reason=row["debug_reason"] or "",
    )


def load_grid(conn: SqlConnection, plane: Optional[int] = None) -> Grid:
    """Rebuild an immutable :class:`Grid` from the ``tiles`` table."""

    sql = (
        "SELECT global_x, global_y, plane, height, overlay_id, underlay_id, settings, "
        "is_walkable, blockN, blockE, blockS, blockW, debug_reason FROM tiles"
    )
    params: Tuple[int, ...] = ()
    if plane is not None:
        sql += " WHERE plane = ?"
        params = (plane,)
    return Grid(_grid_tile(row) for row in conn.execute(sql, params))


def iter_grid_rows(conn: SqlConnection) -> Iterator[Tuple[Any, ...]]:
    """Yield raw ``tiles`` rows ordered by ``(plane, x, y)``."""

    cursor = conn.execute(
        "SELECT * FROM tiles ORDER BY plane ASC, global_x ASC, global_y ASC"
    )
    for row in cursor:
        yield tuple(row)
