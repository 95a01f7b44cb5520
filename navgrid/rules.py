"""Placement rules that fold object placements into per-tile blocking flags.

Rules are evaluated in a fixed order and the first rule whose predicate
matches is the only one applied to a placement. Effects only ever add
to the flag map: directional flags are OR-accumulated, ``force_walkable``
is never cleared and debug reasons are appended.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AbstractSet, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from .objects import ObjectDefinition
from .options import FORCED_WALKABLE_IDS
from .path import Tile
from .world import ObjectPlacement

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class TileFlags:
    """Mutable blocking state accumulated for one coordinate."""

    block_n: bool = False
    block_e: bool = False
    block_s: bool = False
    block_w: bool = False
    force_walkable: bool = False
    debug_reasons: List[str] = field(default_factory=list)

    def block(self, side: str) -> None:
        if side == "N":
            self.block_n = True
        elif side == "E":
            self.block_e = True
        elif side == "S":
            self.block_s = True
        elif side == "W":
            self.block_w = True
        else:
            raise ValueError(f"Unknown side: {side!r}")

    def is_enclosed(self) -> bool:
        """Return ``True`` when blocked on both sides of either axis."""

        return (self.block_n and self.block_s) or (self.block_e and self.block_w)

    @property
    def debug_reason(self) -> str:
        return "; ".join(self.debug_reasons)


class FlagMap:
    """Coordinate -> :class:`TileFlags` mapping owned by a single build."""

    def __init__(self) -> None:
        self._flags: Dict[Tile, TileFlags] = {}

    def __len__(self) -> int:
        return len(self._flags)

    def __contains__(self, tile: object) -> bool:
        return tile in self._flags

    def __iter__(self) -> Iterator[Tile]:
        return iter(self._flags)

    def get(self, tile: Tile) -> Optional[TileFlags]:
        return self._flags.get(tile)

    def touch(self, tile: Tile) -> TileFlags:
        """Return the flags for ``tile``, creating an empty entry if needed."""

        flags = self._flags.get(tile)
        if flags is None:
            flags = TileFlags()
            self._flags[tile] = flags
        return flags


@dataclass(frozen=True, slots=True)
class WallSide:
    side: str
    delta: Tuple[int, int]
    mirror: str


_NORTH = WallSide("N", (0, 1), "S")
_EAST = WallSide("E", (1, 0), "W")
_SOUTH = WallSide("S", (0, -1), "N")
_WEST = WallSide("W", (-1, 0), "E")

_SIDE_BY_ROTATION = {1: _NORTH, 2: _EAST, 3: _SOUTH}


def normalize_rotation(rotation: object) -> int:
    """Map a raw rotation onto 0-3; 4 and malformed values become 0 (West)."""

    if isinstance(rotation, int) and not isinstance(rotation, bool) and rotation in _SIDE_BY_ROTATION:
        return rotation
    return 0


def wall_side(rotation: object) -> WallSide:
    return _SIDE_BY_ROTATION.get(normalize_rotation(rotation), _WEST)


@dataclass(frozen=True, slots=True)
class RuleContext:
    """Everything a rule may look at for one placement."""

    placement: ObjectPlacement
    definition: ObjectDefinition
    forced_walkable_ids: AbstractSet[int] = FORCED_WALKABLE_IDS

    @property
    def origin(self) -> Tile:
        return self.placement.origin

    @property
    def object_id(self) -> int:
        return self.placement.object_id

    @property
    def rotation_label(self) -> int:
        rotation = self.placement.rotation
        if isinstance(rotation, int) and not isinstance(rotation, bool):
            return rotation
        return normalize_rotation(rotation)

    def footprint_cells(self) -> Iterator[Tile]:
        x, y, plane = self.origin
        width, length = self.definition.footprint
        for dx in range(width):
            for dy in range(length):
                yield (x + dx, y + dy, plane)


@dataclass(frozen=True, slots=True)
class PlacementRule:
    name: str
    matches: Callable[[RuleContext], bool]
    apply: Callable[[RuleContext, FlagMap], None]


# -- predicates -------------------------------------------------------------

def _is_forced_walkable_type(ctx: RuleContext) -> bool:
    return ctx.object_id in ctx.forced_walkable_ids


def _is_bridge_deck(ctx: RuleContext) -> bool:
    return ctx.definition.bridge_deck is True and ctx.definition.occludes is False


def _is_roof(ctx: RuleContext) -> bool:
    defn = ctx.definition
    return defn.occludes is True or (defn.overhead_threshold is not None and defn.overhead_threshold >= 1)


def _is_bridge_deck_alt(ctx: RuleContext) -> bool:
    return ctx.definition.bridge_deck_alt is True and ctx.definition.occludes is False


def _is_zero_sized(ctx: RuleContext) -> bool:
    return ctx.definition.is_zero_sized


def _always(_ctx: RuleContext) -> bool:
    return True


# -- effects ----------------------------------------------------------------

def _force_footprint(ctx: RuleContext, flags: FlagMap, reason: str) -> None:
    for cell in ctx.footprint_cells():
        entry = flags.touch(cell)
        entry.force_walkable = True
        entry.debug_reasons.append(reason)


def _apply_forced_walkable(ctx: RuleContext, flags: FlagMap) -> None:
    _force_footprint(ctx, flags, f"Override: Object {ctx.object_id} forced walkable")


def _apply_bridge_deck(ctx: RuleContext, flags: FlagMap) -> None:
    _force_footprint(ctx, flags, f"BridgeOverride: deck=true occludes=false object {ctx.object_id}")


def _apply_roof(ctx: RuleContext, flags: FlagMap) -> None:
    flags.touch(ctx.origin).debug_reasons.append(f"Roof: Object:{ctx.object_id}")


def _apply_bridge_deck_alt(ctx: RuleContext, flags: FlagMap) -> None:
    _force_footprint(ctx, flags, f"BridgeDeck: {ctx.object_id}")


def _block_with_mirror(ctx: RuleContext, flags: FlagMap, cell: Tile, reason: str) -> None:
    side = wall_side(ctx.placement.rotation)
    entry = flags.touch(cell)
    entry.debug_reasons.append(reason)
    entry.block(side.side)

    x, y, plane = cell
    neighbor = flags.touch((x + side.delta[0], y + side.delta[1], plane))
    neighbor.block(side.mirror)
    neighbor.debug_reasons.append(f"Neighbor {side.mirror} by object {ctx.object_id}")


def _apply_thin_wall(ctx: RuleContext, flags: FlagMap) -> None:
    reason = f"Object:{ctx.object_id} rotation:{ctx.rotation_label} dim0"
    _block_with_mirror(ctx, flags, ctx.origin, reason)


def _apply_footprint_wall(ctx: RuleContext, flags: FlagMap) -> None:
    width, length = ctx.definition.footprint
    reason = f"Object:{ctx.object_id} rotation:{ctx.rotation_label} dim:{width}x{length}"
    for cell in ctx.footprint_cells():
        _block_with_mirror(ctx, flags, cell, reason)


PLACEMENT_RULES: Sequence[PlacementRule] = (
    PlacementRule("forced-walkable", _is_forced_walkable_type, _apply_forced_walkable),
    PlacementRule("bridge-deck", _is_bridge_deck, _apply_bridge_deck),
    PlacementRule("roof", _is_roof, _apply_roof),
    PlacementRule("bridge-deck-alt", _is_bridge_deck_alt, _apply_bridge_deck_alt),
    PlacementRule("thin-wall", _is_zero_sized, _apply_thin_wall),
    PlacementRule("footprint-wall", _always, _apply_footprint_wall),
)


def select_rule(ctx: RuleContext, rules: Sequence[PlacementRule] = PLACEMENT_RULES) -> Optional[PlacementRule]:
    """Return the first rule whose predicate matches ``ctx``."""

    for rule in rules:
        if rule.matches(ctx):
            return rule
    return None


def apply_placement(
    ctx: RuleContext,
    flags: FlagMap,
    rules: Sequence[PlacementRule] = PLACEMENT_RULES,
) -> Optional[str]:
    """Apply the first matching rule to ``flags`` and return its name."""

    rule = select_rule(ctx, rules)
    if rule is None:
        LOGGER.debug("No rule matched object %s at %s", ctx.object_id, ctx.origin)
        return None
    rule.apply(ctx, flags)
    return rule.name
