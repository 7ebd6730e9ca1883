from __future__ import annotations

import numpy as np
import pytest

from elementaryCA.config import (
    ControlState,
    ExplicitSeed,
    RandomSeed,
    ShareableState,
    apply_control_patch,
    clamp_int,
    default_seed_count,
    normalize_seed_indices,
    random_seed_indices,
    seed_spec_from,
)


def test_clamp_int_floors_then_clamps() -> None:
    assert clamp_int(12.9, 1, 300) == 12
    assert clamp_int(-5, 1, 300) == 1
    assert clamp_int(10_000, 1, 300) == 300
    assert clamp_int(float("nan"), 10, 5000) == 10
    assert clamp_int("40", 1, 300) == 40
    assert clamp_int(None, 1, 300) == 1


def test_normalize_seed_indices() -> None:
    assert normalize_seed_indices(10, [9, 3, 3.7, -1, 10, float("inf"), 0]) == (0, 3, 9)


def test_clamp_handles_integers_beyond_float_range() -> None:
    assert clamp_int(10**400, 1, 300) == 300
    assert clamp_int(-(10**400), 1, 300) == 1
    assert clamp_int(np.int64(42), 1, 300) == 42
    assert normalize_seed_indices(8, [10**400, 1]) == (1,)


def test_random_seed_indices_sorted_unique() -> None:
    rng = np.random.default_rng(4)
    seeds = random_seed_indices(50, 20, rng)
    assert len(seeds) == 20
    assert list(seeds) == sorted(set(seeds))
    assert all(0 <= i < 50 for i in seeds)


def test_random_seed_indices_clamps_count() -> None:
    rng = np.random.default_rng(0)
    assert random_seed_indices(5, 99, rng) == (0, 1, 2, 3, 4)
    assert random_seed_indices(5, -3, rng) == ()
    assert random_seed_indices(0, 3, rng) == ()


def test_random_seed_indices_reproducible() -> None:
    a = random_seed_indices(118, 59, np.random.default_rng(12))
    b = random_seed_indices(118, 59, np.random.default_rng(12))
    assert a == b


def test_default_seed_count_is_half_width() -> None:
    assert default_seed_count(118) == 59
    assert default_seed_count(1) == 0
    assert default_seed_count(7) == 3


def test_seed_spec_from_optional_list() -> None:
    assert seed_spec_from([4, 2], 9) == ExplicitSeed((4, 2))
    assert seed_spec_from([], 9) == RandomSeed(9)
    assert seed_spec_from(None, 3) == RandomSeed(3)


def test_shareable_state_clamped() -> None:
    state = ShareableState(rule_decimal=-4, total_items=5, generations=0, delay=1, seed_indices=(7, 1, 1))
    assert state.clamped() == ShareableState(0, 5, 1, 10, (1,))


def test_apply_control_patch_normalizes_against_new_width() -> None:
    prev = ControlState(rule_decimal=22, total_items=20, initial_ones=2, seed_indices=(3, 15))
    nxt = apply_control_patch(prev, {"total_items": 10})
    assert nxt.total_items == 10
    assert nxt.seed_indices == (3,)
    assert nxt.initial_ones == 1
    assert nxt.rule_decimal == 22


def test_apply_control_patch_clamps() -> None:
    nxt = apply_control_patch(ControlState(), {"generations": 1e9, "delay": 0, "rule_decimal": 300})
    assert (nxt.generations, nxt.delay, nxt.rule_decimal) == (500, 10, 255)


def test_apply_control_patch_rejects_unknown_field() -> None:
    with pytest.raises(ValueError):
        apply_control_patch(ControlState(), {"width": 3})
