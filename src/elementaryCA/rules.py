"""Elementary cellular automaton rule codec."""

from __future__ import annotations

import numbers
from typing import List, NamedTuple, Tuple

import numpy as np

from .config import RULE_MAX, RULE_MIN, clamp_int


class InvalidRuleError(ValueError):
    """Raised when a rule number is not an integer in [0, 255]."""


def _strict_rule(rule: object) -> int:
    if isinstance(rule, bool):
        raise InvalidRuleError(f"Rule must be an integer in [0, 255]. Got: {rule!r}")
    if isinstance(rule, numbers.Integral):
        value = int(rule)
    elif isinstance(rule, float) and rule.is_integer():
        value = int(rule)
    else:
        raise InvalidRuleError(f"Rule must be an integer in [0, 255]. Got: {rule!r}")
    if not (RULE_MIN <= value <= RULE_MAX):
        raise InvalidRuleError(f"Rule must be an integer in [0, 255]. Got: {rule!r}")
    return value


def rule_to_binary_string(rule: object) -> str:
    """Return the 8-bit MSB-first binary form of ``rule``.

    Example:
        >>> rule_to_binary_string(22)
        '00010110'
    """
    return format(_strict_rule(rule), "08b")


def clamp_rule(rule: object) -> int:
    """Permissive rule coercion used by the simulation and config paths."""
    return clamp_int(rule, RULE_MIN, RULE_MAX)


def eca_rule_lkt(rule_number: int) -> np.ndarray:
    """Generate an ECA rule lookup table.

    Args:
        rule_number: Integer in [0, 255] specifying the rule.

    Returns:
        np.ndarray: Lookup table of shape (8,) with dtype int8, where entry
        ``k`` is the next state for neighbourhood ``k = L*4 + C*2 + R``.
    """
    rule = _strict_rule(rule_number)
    bits = [(rule >> i) & 1 for i in range(8)]
    return np.array(bits, dtype=np.int8)


class Neighborhood(NamedTuple):
    index: int
    left: int
    current: int
    right: int
    output: int


def rule_neighborhoods(rule: int) -> List[Neighborhood]:
    """Truth table rows in the conventional display order 111, 110, ..., 000."""
    value = clamp_rule(rule)
    rows = []
    for i in range(8):
        idx = 7 - i
        rows.append(
            Neighborhood(
                index=idx,
                left=(idx >> 2) & 1,
                current=(idx >> 1) & 1,
                right=idx & 1,
                output=(value >> idx) & 1,
            )
        )
    return rows


def rule_options() -> List[Tuple[int, str]]:
    return [(d, rule_to_binary_string(d)) for d in range(RULE_MIN, RULE_MAX + 1)]


def random_rule(rng: np.random.Generator) -> int:
    return int(rng.integers(RULE_MIN, RULE_MAX + 1))


__all__ = [
    "InvalidRuleError",
    "Neighborhood",
    "clamp_rule",
    "eca_rule_lkt",
    "random_rule",
    "rule_neighborhoods",
    "rule_options",
    "rule_to_binary_string",
]
