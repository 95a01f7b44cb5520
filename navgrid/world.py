"""Source records and the read-only query interface consumed by the builder."""

from __future__ import annotations

from dataclasses import dataclass
from typing import AbstractSet, Dict, Iterable, Iterator, Optional, Protocol

from .objects import ObjectDefinition
from .options import OPEN_SETTINGS
from .path import ChunkRect, Tile, chunk_of, global_coord
from .spatial import ChunkIndex

DEFAULT_HEIGHT = 0
DEFAULT_OVERLAY_ID = -1
DEFAULT_UNDERLAY_ID = -1
DEFAULT_SETTINGS = 0
DEFAULT_PLACEMENT_TYPE = 10


@dataclass(frozen=True, slots=True)
class TileRecord:
    """Terrain attributes of a single tile."""

    x: int
    y: int
    plane: int
    height: int = DEFAULT_HEIGHT
    overlay_id: int = DEFAULT_OVERLAY_ID
    underlay_id: int = DEFAULT_UNDERLAY_ID
    settings: Optional[int] = None
    """Raw settings code; ``None`` when the source had none."""

    @property
    def coord(self) -> Tile:
        return (self.x, self.y, self.plane)

    @property
    def settings_code(self) -> int:
        return DEFAULT_SETTINGS if self.settings is None else self.settings

    def is_base_walkable(self, open_settings: AbstractSet[int] = OPEN_SETTINGS) -> bool:
        return self.settings is None or self.settings in open_settings


@dataclass(frozen=True, slots=True)
class ObjectPlacement:
    """One placed object as found in a chunk's location list."""

    plane: int
    chunk_i: int
    chunk_j: int
    local_x: int
    local_y: int
    object_id: int
    rotation: Optional[int] = 0
    type: int = DEFAULT_PLACEMENT_TYPE

    @property
    def origin(self) -> Tile:
        return (
            global_coord(self.chunk_i, self.local_x),
            global_coord(self.chunk_j, self.local_y),
            self.plane,
        )


class WorldSource(Protocol):
    """Read-only queries the collision builder needs from its data store."""

    def tile_at(self, tile: Tile) -> Optional[TileRecord]:
        """Return the terrain record at ``tile``, if any."""

    def object_definition(self, object_id: int) -> Optional[ObjectDefinition]:
        """Return the definition for ``object_id``, if any."""

    def placements_in_region(self, region: ChunkRect, planes: AbstractSet[int]) -> Iterable[ObjectPlacement]:
        """Yield placements whose chunk lies in ``region`` on one of ``planes``."""

    def tiles_in_region(self, region: ChunkRect, planes: AbstractSet[int]) -> Iterable[TileRecord]:
        """Yield terrain records inside ``region`` on one of ``planes``."""


class InMemoryWorldSource:
    """:class:`WorldSource` backed by dictionaries and chunk indexes."""

    def __init__(
        self,
        tiles: Iterable[TileRecord] = (),
        definitions: Iterable[ObjectDefinition] = (),
        placements: Iterable[ObjectPlacement] = (),
    ) -> None:
        self._tiles: Dict[Tile, TileRecord] = {}
        self._tile_index: ChunkIndex[Tile] = ChunkIndex()
        self._definitions: Dict[int, ObjectDefinition] = {}
        self._placements: ChunkIndex[ObjectPlacement] = ChunkIndex()
        for tile in tiles:
            self.add_tile(tile)
        for defn in definitions:
            self.add_definition(defn)
        for placement in placements:
            self.add_placement(placement)

    # -- mutation (loading only) ---------------------------------------
    def add_tile(self, tile: TileRecord) -> None:
        coord = tile.coord
        if coord not in self._tiles:
            i, _ = chunk_of(tile.x)
            j, _ = chunk_of(tile.y)
            self._tile_index.insert(i, j, coord)
        self._tiles[coord] = tile

    def add_definition(self, defn: ObjectDefinition) -> None:
        self._definitions[defn.object_id] = defn

    def add_placement(self, placement: ObjectPlacement) -> None:
        self._placements.insert(placement.chunk_i, placement.chunk_j, placement)

    # -- WorldSource ----------------------------------------------------
    def tile_at(self, tile: Tile) -> Optional[TileRecord]:
        return self._tiles.get(tile)

    def object_definition(self, object_id: int) -> Optional[ObjectDefinition]:
        return self._definitions.get(object_id)

    def placements_in_region(self, region: ChunkRect, planes: AbstractSet[int]) -> Iterator[ObjectPlacement]:
        for placement in self._placements.query(region):
            if placement.plane in planes:
                yield placement

    def tiles_in_region(self, region: ChunkRect, planes: AbstractSet[int]) -> Iterator[TileRecord]:
        for coord in self._tile_index.query(region):
            if coord[2] in planes:
                yield self._tiles[coord]

    # -- bulk access ----------------------------------------------------
    def iter_tiles(self) -> Iterator[TileRecord]:
        for coord in self._tile_index:
            yield self._tiles[coord]

    def iter_definitions(self) -> Iterator[ObjectDefinition]:
        return iter(self._definitions.values())

    def iter_placements(self) -> Iterator[ObjectPlacement]:
        return iter(self._placements)

    def counts(self) -> Dict[str, int]:
        return {
            "tiles": len(self._tiles),
            "definitions": len(self._definitions),
            "placements": len(self._placements),
        }
