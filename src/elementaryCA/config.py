"""Configuration bounds, clamping helpers and seed specifications."""

from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping, Optional, Tuple, Union

import numpy as np

RULE_MIN = 0
RULE_MAX = 255
TOTAL_ITEMS_MIN = 1
TOTAL_ITEMS_MAX = 300
GENERATIONS_MIN = 1
GENERATIONS_MAX = 500
DELAY_MIN = 10
DELAY_MAX = 5_000

DEFAULT_RULE = 22
DEFAULT_TOTAL_ITEMS = 118
DEFAULT_GENERATIONS = 100
DEFAULT_DELAY = 10


def _finite_floor(value: Any) -> Optional[int]:
    if isinstance(value, numbers.Integral):
        return int(value)
    try:
        v = float(value)
    except (TypeError, ValueError, OverflowError):
        return None
    if not math.isfinite(v):
        return None
    return int(math.floor(v))


def clamp_int(value: Any, lo: int, hi: int) -> int:
    """Floor ``value`` and clamp it into ``[lo, hi]``.

    Non-numeric and non-finite values collapse to ``lo``.

    Example:
        >>> clamp_int(999.7, 0, 255)
        255
        >>> clamp_int(float("nan"), 10, 5000)
        10
    """
    v = _finite_floor(value)
    if v is None:
        v = lo
    return max(lo, min(hi, v))


def normalize_seed_indices(total_items: int, indices: Iterable[Any]) -> Tuple[int, ...]:
    """Floor, range-filter, dedupe and sort seed indices for a row of ``total_items``."""
    out: set[int] = set()
    for idx in indices:
        i = _finite_floor(idx)
        if i is None or i < 0 or i >= total_items:
            continue
        out.add(i)
    return tuple(sorted(out))


def default_seed_count(total_items: int) -> int:
    return clamp_int(math.floor(total_items / 2), 0, total_items)


def random_seed_indices(
    total_items: int, count: int, rng: np.random.Generator
) -> Tuple[int, ...]:
    """Pick ``count`` distinct cells uniformly at random.

    All positions are shuffled (``Generator.permutation`` is a Fisher-Yates
    shuffle) and the first ``count`` are kept, sorted ascending so that
    equal draws compare equal downstream.

    Args:
        total_items: Row width.
        count: Number of seeds; clamped to ``[0, total_items]``.
        rng: NumPy random generator.

    Returns:
        Tuple of sorted unique indices.
    """
    total = max(0, int(total_items))
    n = clamp_int(count, 0, total)
    if n == 0:
        return ()
    picked = rng.permutation(total)[:n]
    return tuple(sorted(int(i) for i in picked))


@dataclass(frozen=True)
class ExplicitSeed:
    """Generation 0 has exactly these cells set."""

    indices: Tuple[int, ...] = ()


@dataclass(frozen=True)
class RandomSeed:
    """Generation 0 has ``count`` cells set, drawn fresh on every reseed."""

    count: int = 1


SeedSpec = Union[ExplicitSeed, RandomSeed]


def seed_spec_from(
    seed_indices: Optional[Iterable[Any]], initial_ones: int = 1
) -> SeedSpec:
    """Resolve the optional-list seed form: a non-empty list pins the seeds."""
    if seed_indices is not None:
        indices = tuple(seed_indices)
        if indices:
            return ExplicitSeed(indices)
    return RandomSeed(int(initial_ones))


@dataclass(frozen=True)
class ShareableState:
    """The configuration tuple that is shared via URL and starred."""

    rule_decimal: int = DEFAULT_RULE
    total_items: int = DEFAULT_TOTAL_ITEMS
    generations: int = DEFAULT_GENERATIONS
    delay: int = DEFAULT_DELAY
    seed_indices: Tuple[int, ...] = ()

    @classmethod
    def from_mapping(cls, cfg: Mapping[str, Any]) -> "ShareableState":
        """Build from snake_case or camelCase keys."""

        def pick(snake: str, camel: str, default: Any) -> Any:
            if snake in cfg:
                return cfg[snake]
            return cfg.get(camel, default)

        return cls(
            rule_decimal=pick("rule_decimal", "ruleDecimal", DEFAULT_RULE),
            total_items=pick("total_items", "totalItems", DEFAULT_TOTAL_ITEMS),
            generations=pick("generations", "generations", DEFAULT_GENERATIONS),
            delay=pick("delay", "delay", DEFAULT_DELAY),
            seed_indices=tuple(pick("seed_indices", "seedIndices", ()) or ()),
        )

    def clamped(self) -> "ShareableState":
        total = clamp_int(self.total_items, TOTAL_ITEMS_MIN, TOTAL_ITEMS_MAX)
        return ShareableState(
            rule_decimal=clamp_int(self.rule_decimal, RULE_MIN, RULE_MAX),
            total_items=total,
            generations=clamp_int(self.generations, GENERATIONS_MIN, GENERATIONS_MAX),
            delay=clamp_int(self.delay, DELAY_MIN, DELAY_MAX),
            seed_indices=normalize_seed_indices(total, self.seed_indices),
        )


@dataclass(frozen=True)
class ControlState:
    """User-editable controls, kept both as a draft and as the applied config."""

    rule_decimal: int = DEFAULT_RULE
    total_items: int = DEFAULT_TOTAL_ITEMS
    initial_ones: int = 0
    seed_indices: Tuple[int, ...] = field(default_factory=tuple)
    generations: int = DEFAULT_GENERATIONS
    delay: int = DEFAULT_DELAY

    def shareable(self) -> ShareableState:
        return ShareableState(
            rule_decimal=self.rule_decimal,
            total_items=self.total_items,
            generations=self.generations,
            delay=self.delay,
            seed_indices=self.seed_indices,
        )


_CONTROL_FIELDS = (
    "rule_decimal",
    "total_items",
    "initial_ones",
    "seed_indices",
    "generations",
    "delay",
)


def apply_control_patch(prev: ControlState, patch: Mapping[str, Any]) -> ControlState:
    """Merge ``patch`` into ``prev`` and clamp every field.

    ``initial_ones`` always ends up equal to the number of surviving seeds.
    """
    unknown = set(patch) - set(_CONTROL_FIELDS)
    if unknown:
        raise ValueError(f"Unknown control fields: {sorted(unknown)}")
    merged = replace(prev, **dict(patch))
    total = clamp_int(merged.total_items, TOTAL_ITEMS_MIN, TOTAL_ITEMS_MAX)
    seeds = normalize_seed_indices(total, merged.seed_indices or ())
    return ControlState(
        rule_decimal=clamp_int(merged.rule_decimal, RULE_MIN, RULE_MAX),
        total_items=total,
        initial_ones=clamp_int(len(seeds), 0, total),
        seed_indices=seeds,
        generations=clamp_int(merged.generations, GENERATIONS_MIN, GENERATIONS_MAX),
        delay=clamp_int(merged.delay, DELAY_MIN, DELAY_MAX),
    )


__all__ = [
    "ControlState",
    "ExplicitSeed",
    "RandomSeed",
    "SeedSpec",
    "ShareableState",
    "apply_control_patch",
    "clamp_int",
    "default_seed_count",
    "normalize_seed_indices",
    "random_seed_indices",
    "seed_spec_from",
]
