# Property tests: random sequences of mutations are replayed against both a BijectiveMap and a plain dict model, and
# the map has to agree with the model (and with itself in both directions) after every step.

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from bijective_map import BijectiveMap, InvariantViolation

EXAMPLES_PER_TEST = 200

small_ints = st.integers(min_value=0, max_value=6)
small_texts = st.sampled_from("abcdefg")

operations = st.lists(
    st.tuples(st.sampled_from(["set", "set_key", "insert", "remove_key", "remove_value"]), small_texts, small_ints),
    max_size=40,
)


def key_for(model: dict, value):
    for key, model_value in model.items():
        if model_value == value:
            return key
    return None


def expected_after(model: dict, op: str, key, value) -> dict | None:
    """Returns the model after the operation, or None if the operation has to be rejected."""
    owner = key_for(model, value)
    match op:
        case "set":
            if owner is not None and owner != key:
                return None
            out = dict(model)
            out[key] = value
            return out
        case "set_key":
            if key in model and model[key] != value:
                return None
            out = {k: v for k, v in model.items() if v != value}
            out[key] = value
            return out
        case "insert":
            if (owner is not None and owner != key) or (key in model and model[key] != value):
                return None
            out = dict(model)
            out[key] = value
            return out
        case "remove_key":
            return {k: v for k, v in model.items() if k != key}
        case "remove_value":
            return {k: v for k, v in model.items() if v != value}


def apply(bimap: BijectiveMap, op: str, key, value) -> None:
    match op:
        case "set":
            bimap[key] = value
        case "set_key":
            bimap.set_key(value, key)
        case "insert":
            bimap.insert(key, value)
        case "remove_key":
            bimap.set(key=key)
        case "remove_value":
            bimap.set(value=value)


def assert_bijective(bimap: BijectiveMap) -> None:
    assert len(bimap.keys()) == len(bimap.backward.keys())
    for key, value in bimap.items():
        assert bimap.get_key(value) == key
    for value, key in bimap.backward.items():
        assert bimap.get(key) == value


@settings(max_examples=EXAMPLES_PER_TEST)
@given(operations)
def test_matches_model_and_stays_bijective(ops):
    bimap: BijectiveMap[str, int] = BijectiveMap()
    model: dict[str, int] = {}
    for op, key, value in ops:
        expected = expected_after(model, op, key, value)
        if expected is None:
            with pytest.raises(InvariantViolation):
                apply(bimap, op, key, value)
        else:
            apply(bimap, op, key, value)
            model = expected
        assert bimap == model
        assert_bijective(bimap)


@settings(max_examples=EXAMPLES_PER_TEST)
@given(st.dictionaries(small_texts, small_ints))
def test_construction_succeeds_exactly_for_bijective_sources(source):
    if len(set(source.values())) == len(source):
        bimap = BijectiveMap(source)
        assert bimap == source
        assert_bijective(bimap)
    else:
        with pytest.raises(InvariantViolation):
            BijectiveMap(source)


@given(st.dictionaries(small_texts, small_ints), small_texts, small_ints)
def test_round_trip_and_deletion_symmetry(source, key, value):
    bimap = BijectiveMap({k: v for v, k in {v: k for k, v in source.items()}.items()})
    bimap.set(key=key)
    bimap.set(value=value)

    bimap[key] = value
    assert bimap.get(key) == value
    assert bimap.get_key(value) == key

    bimap.set(key=key)
    assert bimap.get(key) is None
    assert bimap.get_key(value) is None
    assert_bijective(bimap)


@given(st.dictionaries(small_texts, small_ints, min_size=1))
def test_idempotent_overwrite(source):
    bimap = BijectiveMap({k: v for v, k in {v: k for k, v in source.items()}.items()})
    before = bimap.copy()
    for key, value in list(bimap.items()):
        bimap[key] = value
    assert bimap == before
    assert len(bimap) == len(before)


@given(st.permutations([("a", 1), ("b", 2), ("c", 3), ("d", 4)]))
def test_equality_is_order_independent(pairs):
    assert BijectiveMap(pairs) == BijectiveMap.from_pairs(("a", 1), ("b", 2), ("c", 3), ("d", 4))
    assert BijectiveMap(pairs[1:]) != BijectiveMap(pairs)
