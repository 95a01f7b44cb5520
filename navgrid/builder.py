"""Collision grid construction.

The builder runs two passes over a :class:`~navgrid.world.WorldSource`:

1. a placement pass that folds every object placement in the region
   into a :class:`~navgrid.rules.FlagMap` via the placement rules, and
2. a tile pass that combines each terrain record with its accumulated
   flags into an immutable :class:`Grid` entry.

Unknown object types and malformed records never abort a build; they
are skipped or defaulted and counted in :class:`BuildStats`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple

from .options import BuildOptions
from .path import Tile
from .rules import PLACEMENT_RULES, FlagMap, PlacementRule, RuleContext, TileFlags, apply_placement
from .world import TileRecord, WorldSource

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class GridTile:
    """Finalized walkability record for one coordinate."""

    x: int
    y: int
    plane: int
    height: int
    overlay_id: int
    underlay_id: int
    settings: int
    is_walkable: bool
    block_n: bool = False
    block_e: bool = False
    block_s: bool = False
    block_w: bool = False
    debug_reason: str = ""

    @property
    def coord(self) -> Tile:
        return (self.x, self.y, self.plane)

    def to_row(self) -> Tuple[int, int, int, int, int, int, int, bool, bool, bool, bool, bool, str]:
        """Return the tile in ``tiles`` table column order."""

        return (
            self.x,
            self.y,
            self.plane,
            self.height,
            self.overlay_id,
            self.underlay_id,
            self.settings,
            self.is_walkable,
            self.block_n,
            self.block_e,
            self.block_s,
            self.block_w,
            self.debug_reason,
        )


def _grid_order(tile: GridTile) -> Tuple[int, int, int]:
    return (tile.plane, tile.x, tile.y)


class Grid(Mapping[Tile, GridTile]):
    """Immutable snapshot of a built collision grid.

    Rebuilding produces a new snapshot; instances are never mutated, so
    any number of searches may read one concurrently.
    """

    def __init__(self, tiles: Iterable[GridTile] = ()) -> None:
        ordered = sorted(tiles, key=_grid_order)
        self._tiles: Mapping[Tile, GridTile] = MappingProxyType({t.coord: t for t in ordered})

    def __getitem__(self, key: Tile) -> GridTile:
        return self._tiles[key]

    def __iter__(self) -> Iterator[Tile]:
        return iter(self._tiles)

    def __len__(self) -> int:
        return len(self._tiles)

    def __repr__(self) -> str:
        return f"Grid(tiles={len(self._tiles)}, planes={self.planes()})"

    def is_walkable(self, x: int, y: int, plane: int) -> bool:
        """Return whether ``(x, y, plane)`` exists and is walkable."""

        tile = self._tiles.get((x, y, plane))
        return tile is not None and tile.is_walkable

    def rows(self) -> Iterator[GridTile]:
        """Yield tiles ordered by ``(plane, x, y)``."""

        return iter(self._tiles.values())

    def planes(self) -> List[int]:
        return sorted({coord[2] for coord in self._tiles})

    def walkable_tiles(self, plane: int) -> Iterator[Tuple[int, int]]:
        for (x, y, p), tile in self._tiles.items():
            if p == plane and tile.is_walkable:
                yield (x, y)


@dataclass(slots=True)
class BuildStats:
    """Counters describing a single build."""

    placements_seen: int = 0
    placements_out_of_region: int = 0
    missing_definitions: int = 0
    rule_counts: Dict[str, int] = field(default_factory=dict)
    tiles_materialized: int = 0
    tiles_walkable: int = 0
    orphan_flag_tiles: int = 0

    def to_json_dict(self) -> Dict[str, object]:
        return {
            "placements_seen": self.placements_seen,
            "placements_out_of_region": self.placements_out_of_region,
            "missing_definitions": self.missing_definitions,
            "rule_counts": dict(sorted(self.rule_counts.items())),
            "tiles_materialized": self.tiles_materialized,
            "tiles_walkable": self.tiles_walkable,
            "orphan_flag_tiles": self.orphan_flag_tiles,
        }


def finalize_tile(record: TileRecord, flags: Optional[TileFlags], options: BuildOptions) -> GridTile:
    """Combine a terrain record and its accumulated flags into a :class:`GridTile`."""

    if flags is not None and flags.force_walkable:
        walkable = True
    else:
        walkable = record.is_base_walkable(options.open_settings) and not (
            flags is not None and flags.is_enclosed()
        )

    return GridTile(
        x=record.x,
        y=record.y,
        plane=record.plane,
        height=record.height,
        overlay_id=record.overlay_id,
        underlay_id=record.underlay_id,
        settings=record.settings_code,
        is_walkable=walkable,
        block_n=flags.block_n if flags is not None else False,
        block_e=flags.block_e if flags is not None else False,
        block_s=flags.block_s if flags is not None else False,
        block_w=flags.block_w if flags is not None else False,
        debug_reason=flags.debug_reason if flags is not None else "",
    )


class CollisionBuilder:
    """Builds a :class:`Grid` from a world source for one region."""

    def __init__(
        self,
        source: WorldSource,
        options: Optional[BuildOptions] = None,
        rules: Sequence[PlacementRule] = PLACEMENT_RULES,
    ) -> None:
        self._source = source
        self._options = options or BuildOptions()
        self._rules = rules
        self.stats = BuildStats()

    @property
    def options(self) -> BuildOptions:
        return self._options

    def build(self) -> Grid:
        self.stats = BuildStats()
        flags = FlagMap()
        self.placement_pass(flags)
        return self.tile_pass(flags)

    def placement_pass(self, flags: FlagMap) -> FlagMap:
        opts = self._options
        for placement in self._source.placements_in_region(opts.region, opts.planes):
            self.stats.placements_seen += 1
            if not opts.region.contains(placement.chunk_i, placement.chunk_j) or placement.plane not in opts.planes:
                self.stats.placements_out_of_region += 1
                continue

            defn = self._source.object_definition(placement.object_id)
            if defn is None:
                self.stats.missing_definitions += 1
                LOGGER.debug(
                    "Skipping placement of unknown object %s at %s",
                    placement.object_id,
                    placement.origin,
                )
                continue

            ctx = RuleContext(placement, defn, opts.forced_walkable_ids)
            rule_name = apply_placement(ctx, flags, self._rules)
            if rule_name is not None:
                self.stats.rule_counts[rule_name] = self.stats.rule_counts.get(rule_name, 0) + 1
        return flags

    def tile_pass(self, flags: FlagMap) -> Grid:
        opts = self._options
        tiles: List[GridTile] = []
        seen = set()
        for record in self._source.tiles_in_region(opts.region, opts.planes):
            if not opts.region.contains_tile(record.x, record.y) or record.plane not in opts.planes:
                continue
            tile = finalize_tile(record, flags.get(record.coord), opts)
            tiles.append(tile)
            seen.add(tile.coord)
            if tile.is_walkable:
                self.stats.tiles_walkable += 1

        self.stats.tiles_materialized = len(tiles)
        self.stats.orphan_flag_tiles = sum(1 for coord in flags if coord not in seen)
        if self.stats.orphan_flag_tiles:
            LOGGER.debug("Discarded flags for %d coordinates without terrain", self.stats.orphan_flag_tiles)
        return Grid(tiles)
