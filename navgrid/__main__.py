"""Command-line interface for navgrid.

Usage examples:
  python -m navgrid build --extracted extracted/ --output rs3_world.db
  python -m navgrid build --source-db world_source.db --output rs3_world.db --planes 0,1
  python -m navgrid path --db rs3_world.db --start "2967,3409,0" --goal "3167,3458,0" --json
  python -m navgrid areas --db rs3_world.db --plane 0 --out areas.json
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import FrozenSet, List, Optional

from .api import build_grid, find_path
from .areas import areas_to_json, walkable_polygons
from .builder import Grid
from .db import SqliteWorldSource, load_grid, open_connection, open_writable, write_grid, write_source
from .loader import load_extracted
from .options import DEFAULT_REGION, BuildOptions, SearchOptions
from .path import ChunkRect, RouteResult, Tile

LOGGER = logging.getLogger(__name__)

_LOG_LEVELS = ["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"]


def _parse_tile(value: str) -> Tile:
    try:
        parts = [int(p.strip()) for p in value.split(",")]
        if len(parts) != 3:
            raise ValueError
        return (parts[0], parts[1], parts[2])
    except ValueError as exc:
        raise argparse.ArgumentTypeError(
            f"Expected tile in form 'x,y,plane', got: {value!r}"
        ) from exc


def _parse_planes(value: str) -> FrozenSet[int]:
    try:
        return frozenset(int(p.strip()) for p in value.split(",") if p.strip())
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Expected comma-separated planes, got: {value!r}") from exc


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="navgrid",
        description="Collision grid builder and grid pathfinder",
    )
    sub = p.add_subparsers(dest="command", required=True)

    # build
    b = sub.add_parser("build", help="Build the collision grid into a tiles table")
    src = b.add_mutually_exclusive_group(required=True)
    src.add_argument("--extracted", type=str, help="Path to an extracted dump folder")
    src.add_argument("--source-db", type=str, help="Path to a SQLite source DB (tile_records/objects/object_locations)")
    b.add_argument("--output", required=True, help="SQLite DB to write the tiles table to")
    b.add_argument("--save-source", type=str, default=None, help="Also persist the loaded dump as a source DB")
    b.add_argument("--min-i", type=int, default=DEFAULT_REGION.min_i, help="Minimum chunk i")
    b.add_argument("--max-i", type=int, default=DEFAULT_REGION.max_i, help="Maximum chunk i")
    b.add_argument("--min-j", type=int, default=DEFAULT_REGION.min_j, help="Minimum chunk j")
    b.add_argument("--max-j", type=int, default=DEFAULT_REGION.max_j, help="Maximum chunk j")
    b.add_argument("--planes", type=_parse_planes, default=None, help="Comma-separated planes (default: all allowed)")

    # path
    q = sub.add_parser("path", help="Find a waypoint route over a built grid")
    q.add_argument("--db", required=True, help="SQLite DB holding a tiles table")
    q.add_argument("--start", type=_parse_tile, required=True, help="Start tile: x,y,plane")
    q.add_argument("--goal", type=_parse_tile, required=True, help="Goal tile: x,y,plane")
    q.add_argument("--max-expansions", type=int, default=None, help="Maximum node expansions")
    q.add_argument("--timeout-ms", type=int, default=None, help="Timeout in milliseconds")
    q.add_argument("--waypoint-interval", type=int, default=None, help="Straight steps between checkpoint waypoints")
    fmt = q.add_mutually_exclusive_group()
    fmt.add_argument("--json", action="store_true", help="Output result as JSON")
    fmt.add_argument("--java", action="store_true", help="Output waypoints as a Coordinate[] literal")
    q.add_argument("--out", "--output", dest="out_path", type=str, default=None, help="Write output to file instead of stdout")

    # areas
    a = sub.add_parser("areas", help="Dump merged walkable areas of one plane as JSON")
    a.add_argument("--db", required=True, help="SQLite DB holding a tiles table")
    a.add_argument("--plane", type=int, default=0, help="Plane to dump")
    a.add_argument("--out", "--output", dest="out_path", type=str, default=None, help="Write output to file instead of stdout")

    for parser in (b, q, a):
        parser.add_argument("--log-level", default="INFO", choices=_LOG_LEVELS, help="Logging level")

    return p


def _build_options_from_args(args: argparse.Namespace) -> BuildOptions:
    region = ChunkRect(min_i=args.min_i, max_i=args.max_i, min_j=args.min_j, max_j=args.max_j)
    if args.planes is None:
        return BuildOptions(region=region)
    return BuildOptions(region=region, planes=args.planes)


def _search_options_from_args(args: argparse.Namespace) -> SearchOptions:
    opts = SearchOptions()
    if args.max_expansions is not None:
        opts.max_expansions = args.max_expansions
    if args.timeout_ms is not None:
        opts.timeout_ms = args.timeout_ms
    if args.waypoint_interval is not None:
        if args.waypoint_interval < 1:
            raise ValueError("--waypoint-interval must be at least 1")
        opts.waypoint_interval = args.waypoint_interval
    return opts


def _format_human(result: RouteResult) -> str:
    waypoint_count = len(result.waypoints) if result.waypoints is not None else 0
    lines = [
        f"reason: {result.reason}",
        f"expanded: {result.expanded}",
        f"waypoints: {waypoint_count}",
        f"cost: {result.cost}",
    ]
    if result.waypoints is not None:
        lines.append("path:")
        for t in result.waypoints:
            lines.append(f"  - [{t[0]}, {t[1]}, {t[2]}]")
    return "\n".join(lines) + "\n"


def _format_java(result: RouteResult) -> str:
    waypoints = result.waypoints or []
    lines = ["Coordinate[] path = {"]
    for i, (x, y, plane) in enumerate(waypoints):
        trailing = "," if i < len(waypoints) - 1 else ""
        lines.append(f"    new Coordinate({x}, {y}, {plane}){trailing}")
    lines.append("};")
    return "\n".join(lines) + "\n"


def _emit(text: str, out_path: Optional[str]) -> None:
    if out_path:
        out_file = Path(out_path)
        out_file.parent.mkdir(parents=True, exist_ok=True)
        out_file.write_text(text, encoding="utf-8")
    else:
        print(text, end="")


def _load_grid_file(db_path: str, plane: Optional[int] = None) -> Grid:
    if not Path(db_path).is_file():
        raise ValueError(f"Database not found: {db_path!r}")
    conn = open_connection(db_path)
    try:
        return load_grid(conn, plane)
    finally:
        conn.close()


def _cmd_build(args: argparse.Namespace) -> int:
    options = _build_options_from_args(args)

    if args.extracted:
        source = load_extracted(args.extracted, options.region, options.planes)
        if args.save_source:
            conn = open_writable(args.save_source)
            try:
                write_source(conn, source)
            finally:
                conn.close()
        grid = build_grid(source, options)
    else:
        if not Path(args.source_db).is_file():
            raise ValueError(f"Source database not found: {args.source_db!r}")
        db_source = SqliteWorldSource.connect(args.source_db)
        try:
            grid = build_grid(db_source, options)
        finally:
            db_source.close()

    conn = open_writable(args.output)
    try:
        rows = write_grid(conn, grid)
    finally:
        conn.close()
    LOGGER.info("Wrote %d tiles to %s", rows, args.output)
    return 0


def _cmd_path(args: argparse.Namespace) -> int:
    options = _search_options_from_args(args)
    grid = _load_grid_file(args.db, args.start[2])
    result = find_path(grid, args.start, args.goal, options=options)

    if args.json:
        out_text = json.dumps(result.to_json_dict(), indent=2) + "\n"
    elif args.java:
        out_text = _format_java(result)
    else:
        out_text = _format_human(result)
    _emit(out_text, args.out_path)
    # Exit code 0 if a route was found or properly reported
    return 0


def _cmd_areas(args: argparse.Namespace) -> int:
    grid = _load_grid_file(args.db, args.plane)
    payload = areas_to_json(walkable_polygons(grid, args.plane), args.plane)
    _emit(json.dumps(payload, indent=2) + "\n", args.out_path)
    return 0


_COMMANDS = {
    "build": _cmd_build,
    "path": _cmd_path,
    "areas": _cmd_areas,
}


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level))

    try:
        return _COMMANDS[args.command](args)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
