"""Elementary cellular automata stepping kernel."""

from __future__ import annotations

import numpy as np

BOUNDARIES = ("periodic", "fixed")


def check_boundary(boundary: str) -> str:
    if boundary not in BOUNDARIES:
        raise ValueError(f"Unknown boundary condition: {boundary}")
    return boundary


def eca_step(
    x: np.ndarray, rule: np.ndarray, boundary: str = "periodic", boundary_value: int = 0
) -> np.ndarray:
    """Advance one step of an elementary cellular automaton.

    Every cell reads the same prior row, so the update is synchronous.

    Args:
        x: Current binary state of shape (width,).
        rule: Lookup table from `eca_rule_lkt`.
        boundary: "periodic" wraps the row into a ring; "fixed" treats the
            cells beyond both ends as ``boundary_value``.
        boundary_value: Off-row neighbour value for the "fixed" boundary.

    Returns:
        np.ndarray: Next state of shape (width,) with dtype int8.
    """
    x = np.asarray(x, dtype=np.int8)
    check_boundary(boundary)
    if x.size == 0:
        return x.copy()

    if boundary == "periodic":
        left = np.roll(x, 1)
        right = np.roll(x, -1)
    else:
        edge = np.int8(1 if boundary_value else 0)
        left = np.concatenate(([edge], x[:-1])).astype(np.int8)
        right = np.concatenate((x[1:], [edge])).astype(np.int8)

    idx = (left << 2) | (x << 1) | right
    return rule[idx].astype(np.int8)


def eca_run(
    x0: np.ndarray,
    rule: np.ndarray,
    T: int,
    boundary: str = "periodic",
    boundary_value: int = 0,
) -> np.ndarray:
    """Simulate an elementary cellular automaton for T steps.

    Returns:
        np.ndarray: State history of shape (T + 1, width).
    """
    x = np.asarray(x0).astype(np.int8).copy()
    states = np.zeros((T + 1, x.size), dtype=np.int8)
    states[0] = x
    for t in range(1, T + 1):
        x = eca_step(x, rule, boundary, boundary_value)
        states[t] = x
    return states


def count_ones(x: np.ndarray) -> int:
    return int(np.count_nonzero(x))


__all__ = ["BOUNDARIES", "check_boundary", "count_ones", "eca_run", "eca_step"]
