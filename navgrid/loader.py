"""Load an extracted world dump into an :class:`InMemoryWorldSource`.

Expected layout under the dump root::

    location_configs/<any>.json   one object definition per file
    locations/<any>.json          JSON array of placements
    tiles/<i>_<j>.json            {"dim": [planes, 64, 64], "data": [...]}

Object config files may repeat keys; repeated values are merged into a
list instead of silently overwriting one another.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import AbstractSet, Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

from .objects import coerce_int, parse_definition
from .path import ALLOWED_PLANES, ChunkRect, global_coord
from .world import (
    DEFAULT_HEIGHT,
    DEFAULT_OVERLAY_ID,
    DEFAULT_PLACEMENT_TYPE,
    DEFAULT_UNDERLAY_ID,
    InMemoryWorldSource,
    ObjectPlacement,
    TileRecord,
)

LOGGER = logging.getLogger(__name__)

CONFIGS_DIR = "location_configs"
LOCATIONS_DIR = "locations"
TILES_DIR = "tiles"

_TILE_FILE_RE = re.compile(r"(-?\d+)_(-?\d+)")
_REQUIRED_PLACEMENT_KEYS = ("plane", "i", "j", "x", "y", "id")


def merge_duplicate_pairs(pairs: Sequence[Tuple[str, Any]]) -> Dict[str, Any]:
    """``object_pairs_hook`` that keeps every value of a repeated key."""

    result: Dict[str, Any] = {}
    for key, value in pairs:
        if key not in result:
            result[key] = value
            continue
        existing = result[key]
        merged = existing if isinstance(existing, list) else [existing]
        if isinstance(value, list):
            merged = merged + value
        else:
            merged = merged + [value]
        result[key] = merged
    return result


def read_json_allowing_duplicates(path: Union[str, Path]) -> Any:
    text = Path(path).read_text(encoding="utf-8")
    return json.loads(text, object_pairs_hook=merge_duplicate_pairs)


def _json_files(folder: Path) -> List[Path]:
    if not folder.is_dir():
        LOGGER.warning("Missing dump folder %s", folder)
        return []
    return sorted(p for p in folder.iterdir() if p.suffix == ".json")


@dataclass(slots=True)
class LoadStats:
    definitions: int = 0
    definitions_skipped: int = 0
    placements: int = 0
    placements_skipped: int = 0
    tiles: int = 0
    tile_files_skipped: int = 0


class ExtractedDumpLoader:
    """Reads a dump folder, optionally restricted to a region and planes."""

    def __init__(
        self,
        root: Union[str, Path],
        region: Optional[ChunkRect] = None,
        planes: AbstractSet[int] = ALLOWED_PLANES,
    ) -> None:
        self.root = Path(root)
        self.region = region
        self.planes = frozenset(planes)
        self.stats = LoadStats()

    def load(self, source: Optional[InMemoryWorldSource] = None) -> InMemoryWorldSource:
        source = source if source is not None else InMemoryWorldSource()
        self.stats = LoadStats()
        self.load_definitions(source)
        self.load_placements(source)
        self.load_tiles(source)
        LOGGER.info(
            "load_extracted: root=%s definitions=%d placements=%d tiles=%d skipped_definitions=%d skipped_placements=%d skipped_tile_files=%d",
            self.root,
            self.stats.definitions,
            self.stats.placements,
            self.stats.tiles,
            self.stats.definitions_skipped,
            self.stats.placements_skipped,
            self.stats.tile_files_skipped,
        )
        return source

    def _in_region(self, chunk_i: int, chunk_j: int) -> bool:
        return self.region is None or self.region.contains(chunk_i, chunk_j)

    # -- object configs -------------------------------------------------
    def load_definitions(self, source: InMemoryWorldSource) -> None:
        for path in _json_files(self.root / CONFIGS_DIR):
            try:
                raw = read_json_allowing_duplicates(path)
            except ValueError as exc:
                LOGGER.warning("Skipping unreadable object config %s: %s", path, exc)
                self.stats.definitions_skipped += 1
                continue
            defn = parse_definition(raw) if isinstance(raw, dict) else None
            if defn is None:
                LOGGER.warning("Skipping object config without numeric id: %s", path)
                self.stats.definitions_skipped += 1
                continue
            source.add_definition(defn)
            self.stats.definitions += 1

    # -- placements -----------------------------------------------------
    def load_placements(self, source: InMemoryWorldSource) -> None:
        for path in _json_files(self.root / LOCATIONS_DIR):
            try:
                records = json.loads(path.read_text(encoding="utf-8"))
            except ValueError as exc:
                LOGGER.warning("Skipping unreadable locations file %s: %s", path, exc)
                continue
            if not isinstance(records, list):
                LOGGER.warning("Skipping locations file %s: expected a JSON array", path)
                continue
            for record in records:
                placement = self._placement(record)
                if placement is None:
                    self.stats.placements_skipped += 1
                    continue
                if not self._in_region(placement.chunk_i, placement.chunk_j) or placement.plane not in self.planes:
                    continue
                source.add_placement(placement)
                self.stats.placements += 1

    def _placement(self, record: Any) -> Optional[ObjectPlacement]:
        if not isinstance(record, dict):
            return None
        values = {key: coerce_int(record.get(key)) for key in _REQUIRED_PLACEMENT_KEYS}
        missing = [key for key, value in values.items() if value is None]
        if missing:
            LOGGER.warning("Skipping placement missing %s: %r", missing, record)
            return None
        placement_type = coerce_int(record.get("type"))
        return ObjectPlacement(
            plane=values["plane"],
            chunk_i=values["i"],
            chunk_j=values["j"],
            local_x=values["x"],
            local_y=values["y"],
            object_id=values["id"],
            rotation=coerce_int(record.get("rotation")),
            type=placement_type if placement_type is not None else DEFAULT_PLACEMENT_TYPE,
        )

    # -- tiles ----------------------------------------------------------
    def load_tiles(self, source: InMemoryWorldSource) -> None:
        for path in _json_files(self.root / TILES_DIR):
            match = _TILE_FILE_RE.fullmatch(path.stem)
            if not match:
                LOGGER.warning("Skipping tile file with unexpected name: %s", path.name)
                self.stats.tile_files_skipped += 1
                continue
            chunk_i, chunk_j = int(match.group(1)), int(match.group(2))
            if not self._in_region(chunk_i, chunk_j):
                continue
            try:
                payload = json.loads(path.read_text(encoding="utf-8"))
            except ValueError as exc:
                LOGGER.warning("Skipping unreadable tile file %s: %s", path, exc)
                self.stats.tile_files_skipped += 1
                continue
            for record in iter_chunk_tiles(payload, chunk_i, chunk_j, self.planes):
                source.add_tile(record)
                self.stats.tiles += 1


def _tile_from_entry(entry: Any, x: int, y: int, plane: int) -> TileRecord:
    if not isinstance(entry, dict):
        entry = {}
    height = coerce_int(entry.get("height"))
    overlay = coerce_int(entry.get("overlay_id"))
    underlay = coerce_int(entry.get("underlay_id"))
    return TileRecord(
        x=x,
        y=y,
        plane=plane,
        height=DEFAULT_HEIGHT if height is None else height,
        overlay_id=DEFAULT_OVERLAY_ID if overlay is None else overlay,
        underlay_id=DEFAULT_UNDERLAY_ID if underlay is None else underlay,
        settings=coerce_int(entry.get("settings")),
    )


def iter_chunk_tiles(
    payload: Any,
    chunk_i: int,
    chunk_j: int,
    planes: AbstractSet[int] = ALLOWED_PLANES,
) -> Iterator[TileRecord]:
    """Yield the tile records of one chunk file.

    ``data`` is laid out plane-major, then x, then y. Entries beyond the
    end of ``data`` are treated as missing.
    """

    if not isinstance(payload, dict):
        return
    dim = payload.get("dim")
    data = payload.get("data")
    if not isinstance(dim, list) or len(dim) < 3 or not isinstance(data, list):
        LOGGER.warning("Malformed tile payload for chunk %s_%s", chunk_i, chunk_j)
        return
    n_planes, n_x, n_y = (coerce_int(d) or 0 for d in dim[:3])

    for plane in range(n_planes):
        if plane not in planes:
            continue
        for x in range(n_x):
            for y in range(n_y):
                index = (plane * n_x + x) * n_y + y
                if index >= len(data):
                    return
                yield _tile_from_entry(data[index], global_coord(chunk_i, x), global_coord(chunk_j, y), plane)


def load_extracted(
    root: Union[str, Path],
    region: Optional[ChunkRect] = None,
    planes: AbstractSet[int] = ALLOWED_PLANES,
) -> InMemoryWorldSource:
    """Read the dump under ``root`` into a new in-memory source."""

    return ExtractedDumpLoader(root, region, planes).load()
