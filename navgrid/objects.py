"""Object definition model and tolerant parsing of raw object configs."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

# Raw config keys for the recognized domain flags.
OCCLUDES_KEY = "occludes_2"
OVERHEAD_THRESHOLD_KEY = "unknown_186"
BRIDGE_DECK_KEY = "unknown_22"
BRIDGE_DECK_ALT_KEY = "unknown_21"
TRANSPARENT_KEY = "is_transparent"

BASE_KEYS = frozenset({"id", "name", "dim_x", "dim_y", "actions", "models", "models_present"})
FLAG_KEYS = frozenset(
    {OCCLUDES_KEY, OVERHEAD_THRESHOLD_KEY, BRIDGE_DECK_KEY, BRIDGE_DECK_ALT_KEY, TRANSPARENT_KEY}
)

DEFAULT_DIM = 1


@dataclass(frozen=True, slots=True)
class ObjectDefinition:
    """Static attributes of one object type.

    ``dim_x``/``dim_y`` hold the raw dimensions so that zero-sized wall
    objects stay recognizable; :attr:`footprint` is what placement
    rules iterate over.
    """

    object_id: int
    name: str = ""
    dim_x: int = DEFAULT_DIM
    dim_y: int = DEFAULT_DIM
    actions: Optional[Tuple[Optional[str], ...]] = None
    models_present: bool = False

    occludes: Optional[bool] = None
    """Whether the object occludes the tile beneath it (roofs, canopies)."""

    overhead_threshold: Optional[int] = None
    """Numeric overhead indicator; values >= 1 mark roofs."""

    bridge_deck: Optional[bool] = None
    """Primary bridge-deck indicator."""

    bridge_deck_alt: Optional[bool] = None
    """Secondary bridge-deck indicator."""

    transparent: Optional[bool] = None

    extras: Mapping[str, Any] = field(default_factory=dict)
    """Unclassified raw flags, kept verbatim."""

    @property
    def footprint(self) -> Tuple[int, int]:
        """Return ``(width, length)`` with non-positive values clamped to 1."""

        width = self.dim_x if self.dim_x > 0 else DEFAULT_DIM
        length = self.dim_y if self.dim_y > 0 else DEFAULT_DIM
        return width, length

    @property
    def is_zero_sized(self) -> bool:
        return self.dim_x == 0 and self.dim_y == 0

    def raw_flags(self) -> Dict[str, Any]:
        """Return every non-base flag under its raw config key."""

        flags: Dict[str, Any] = dict(self.extras)
        for key, value in (
            (OCCLUDES_KEY, self.occludes),
            (OVERHEAD_THRESHOLD_KEY, self.overhead_threshold),
            (BRIDGE_DECK_KEY, self.bridge_deck),
            (BRIDGE_DECK_ALT_KEY, self.bridge_deck_alt),
            (TRANSPARENT_KEY, self.transparent),
        ):
            if value is not None:
                flags[key] = value
        return flags


def _last(value: Any) -> Any:
    # Duplicate config keys are merged into lists; the last occurrence wins.
    if isinstance(value, list) and value and not isinstance(value[-1], (list, dict)):
        return value[-1]
    return value


def coerce_int(value: Any) -> Optional[int]:
    """Return ``value`` as an int, or ``None`` when it is not numeric."""

    value = _last(value)
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return None
    if isinstance(value, float):
        # NaN and infinities (json also yields inf for literals like 1e400).
        return int(value) if math.isfinite(value) else None
    return None


def coerce_bool(value: Any) -> Optional[bool]:
    """Return ``value`` as a bool, or ``None`` when it carries no truth value."""

    value = _last(value)
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1"):
            return True
        if lowered in ("false", "0"):
            return False
    return None


def _coerce_actions(value: Any) -> Optional[Tuple[Optional[str], ...]]:
    if not isinstance(value, list):
        return None
    return tuple(a if isinstance(a, str) or a is None else str(a) for a in value)


def parse_definition(raw: Mapping[str, Any]) -> Optional[ObjectDefinition]:
    """Build an :class:`ObjectDefinition` from a raw config mapping.

    Returns ``None`` when the record has no usable numeric ``id``.
    Missing or malformed dimensions fall back to 1.
    """

    object_id = coerce_int(raw.get("id"))
    if object_id is None:
        return None

    dim_x = coerce_int(raw.get("dim_x"))
    dim_y = coerce_int(raw.get("dim_y"))
    name = _last(raw.get("name"))

    extras = {k: v for k, v in raw.items() if k not in BASE_KEYS and k not in FLAG_KEYS}

    return ObjectDefinition(
        object_id=object_id,
        name=str(name) if name is not None else "",
        dim_x=DEFAULT_DIM if dim_x is None else dim_x,
        dim_y=DEFAULT_DIM if dim_y is None else dim_y,
        actions=_coerce_actions(raw.get("actions")),
        models_present="models" in raw or bool(raw.get("models_present")),
        occludes=coerce_bool(raw.get(OCCLUDES_KEY)),
        overhead_threshold=coerce_int(raw.get(OVERHEAD_THRESHOLD_KEY)),
        bridge_deck=coerce_bool(raw.get(BRIDGE_DECK_KEY)),
        bridge_deck_alt=coerce_bool(raw.get(BRIDGE_DECK_ALT_KEY)),
        transparent=coerce_bool(raw.get(TRANSPARENT_KEY)),
        extras=extras,
    )


def actions_list(defn: ObjectDefinition) -> List[Optional[str]]:
    return list(defn.actions) if defn.actions is not None else []
