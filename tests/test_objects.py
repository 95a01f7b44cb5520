"""Tests for object definition parsing."""

from navgrid.objects import ObjectDefinition, coerce_bool, coerce_int, parse_definition


def test_parse_definition_maps_recognized_flags():
    defn = parse_definition(
        {
            "id": 1234,
            "name": "Bridge",
            "dim_x": 2,
            "dim_y": 3,
            "actions": [None, "Cross"],
            "models": [1, 2],
            "occludes_2": False,
            "unknown_22": True,
            "unknown_186": 2,
            "is_transparent": "true",
            "unknown_99": [4, 5],
        }
    )

    assert defn is not None
    assert defn.object_id == 1234
    assert defn.footprint == (2, 3)
    assert defn.actions == (None, "Cross")
    assert defn.models_present is True
    assert defn.occludes is False
    assert defn.bridge_deck is True
    assert defn.bridge_deck_alt is None
    assert defn.overhead_threshold == 2
    assert defn.transparent is True
    assert defn.extras == {"unknown_99": [4, 5]}


def test_parse_definition_defaults_malformed_dims():
    defn = parse_definition({"id": 7, "dim_x": "wide"})

    assert defn.dim_x == 1 and defn.dim_y == 1
    assert defn.name == ""
    assert defn.actions is None
    assert defn.models_present is False


def test_parse_definition_without_id_is_rejected():
    assert parse_definition({"name": "nothing"}) is None
    assert parse_definition({"id": "abc"}) is None


def test_duplicate_values_take_the_last_scalar():
    defn = parse_definition({"id": [5, 6], "occludes_2": [True, False]})

    assert defn.object_id == 6
    assert defn.occludes is False


def test_footprint_clamps_but_raw_dims_survive():
    defn = ObjectDefinition(object_id=1, dim_x=0, dim_y=0)

    assert defn.footprint == (1, 1)
    assert defn.is_zero_sized
    assert not ObjectDefinition(object_id=2, dim_x=0, dim_y=-1).is_zero_sized


def test_raw_flags_round_trip_through_parse():
    defn = ObjectDefinition(object_id=9, occludes=True, overhead_threshold=3, extras={"unknown_1": "x"})
    reparsed = parse_definition({"id": 9, **defn.raw_flags()})

    assert reparsed.occludes is True
    assert reparsed.overhead_threshold == 3
    assert reparsed.extras == {"unknown_1": "x"}


def test_coercion_helpers():
    assert coerce_int("12") == 12
    assert coerce_int(3.9) == 3
    assert coerce_int(True) is None
    assert coerce_int(None) is None
    assert coerce_bool(0) is False
    assert coerce_bool("FALSE") is False
    assert coerce_bool("maybe") is None


def test_non_finite_numbers_fall_back_to_defaults():
    assert coerce_int(float("nan")) is None
    assert coerce_int(float("inf")) is None
    assert coerce_int("inf") is None
    assert coerce_int("-Infinity") is None
    assert coerce_int("1e400") is None
    assert coerce_int("1e3") == 1000

    defn = parse_definition({"id": 5, "dim_x": "inf", "dim_y": float("nan"), "unknown_186": "1e400"})
    assert defn.footprint == (1, 1)
    assert defn.overhead_threshold is None
    assert parse_definition({"id": float("inf")}) is None
