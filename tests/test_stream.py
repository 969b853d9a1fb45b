import pytest

from mtosim.stream import (
    MODULUS, SeededRandom, StreamState, between, choice, hash_seed, next_value, seed,
)


def test_same_seed_replays_same_sequence():
    a = SeededRandom("replay")
    b = SeededRandom("replay")
    assert [a.next() for _ in range(100)] == [b.next() for _ in range(100)]


def test_different_seeds_diverge():
    a = SeededRandom("alpha")
    b = SeededRandom("beta")
    assert [a.next() for _ in range(10)] != [b.next() for _ in range(10)]


def test_hash_matches_32_bit_rolling_hash():
    assert hash_seed("") == 0
    assert hash_seed("a") == 97
    assert hash_seed("ab") == 97 * 31 + 98
    # Overflows 32 bits and wraps negative before taking the magnitude
    assert 0 <= hash_seed("a much longer seed string") < 2 ** 31 + 1


def test_recurrence():
    u, state = next_value(StreamState(0))
    assert state.value == 49297
    assert u == pytest.approx(49297 / MODULUS)

    u, state = next_value(state)
    assert state.value == (49297 * 9301 + 49297) % MODULUS


def test_values_stay_in_unit_interval():
    rng = SeededRandom("bounds")
    for _ in range(5_000):
        assert 0.0 <= rng.next() < 1.0


def test_functional_api_leaves_input_state_untouched():
    start = seed("pure")
    v1, s1 = between(start, 10, 20)
    v2, _ = between(start, 10, 20)
    assert v1 == v2
    assert s1 != start
    assert 10 <= v1 < 20


def test_int_between_never_returns_upper_bound():
    rng = SeededRandom("ints")
    draws = {rng.int_between(2, 4) for _ in range(500)}
    assert draws == {2, 3}


def test_choice_covers_items_and_rejects_empty():
    rng = SeededRandom("pick")
    assert {rng.choice("abc") for _ in range(200)} == {"a", "b", "c"}
    with pytest.raises(IndexError):
        choice(seed("x"), [])


def test_empty_seed_is_non_deterministic_but_valid():
    state = seed("")
    assert isinstance(state, StreamState)
    assert state.value >= 0
    assert seed(None).value >= 0
