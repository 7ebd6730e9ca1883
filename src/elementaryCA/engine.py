"""Clock-driven elementary cellular automaton with full generation history."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, List, Optional, Tuple

import numpy as np

from .config import (
    DEFAULT_DELAY,
    DEFAULT_GENERATIONS,
    DEFAULT_RULE,
    DEFAULT_TOTAL_ITEMS,
    DELAY_MAX,
    DELAY_MIN,
    GENERATIONS_MAX,
    GENERATIONS_MIN,
    TOTAL_ITEMS_MAX,
    ExplicitSeed,
    RandomSeed,
    SeedSpec,
    clamp_int,
    normalize_seed_indices,
    random_seed_indices,
    seed_spec_from,
)
from .eca import check_boundary, count_ones, eca_step
from .rules import clamp_rule, eca_rule_lkt, rule_to_binary_string
from .scheduling import AsyncioScheduler, Scheduler, TimerHandle

logger = logging.getLogger(__name__)

_SEED_FIELDS = ("total_items", "initial_ones", "seed_indices", "seed", "boundary", "boundary_value")
_CONFIG_FIELDS = _SEED_FIELDS + ("rule_decimal", "generations", "delay")


def _frozen_row(values: np.ndarray) -> np.ndarray:
    row = np.asarray(values, dtype=np.int8).copy()
    row.setflags(write=False)
    return row


@dataclass(frozen=True)
class AutomatonSnapshot:
    """Read-only view of the engine handed to observers and renderers.

    Attributes:
        blocks: Current row, shape ``(total_items,)``.
        history: Rows for generations ``0..generation`` inclusive.
        ones_history: Number of live cells per generation in ``history``.
        seed_indices: Cells set in generation 0.
    """

    rule_decimal: int
    rule_binary: str
    total_items: int
    generation: int
    generations: int
    delay: int
    is_running: bool
    blocks: np.ndarray
    history: Tuple[np.ndarray, ...]
    ones_history: Tuple[int, ...]
    seed_indices: Tuple[int, ...]

    @property
    def status(self) -> str:
        return "running" if self.is_running else "idle"

    def history_array(self) -> np.ndarray:
        """History stacked into shape ``(generation + 1, total_items)``."""
        return np.vstack(self.history) if self.history else np.zeros((0, self.total_items), np.int8)


@dataclass(frozen=True)
class _State:
    blocks: np.ndarray
    generation: int
    is_running: bool
    history: Tuple[np.ndarray, ...]
    ones_history: Tuple[int, ...]
    seed_indices: Tuple[int, ...]


class ElementaryAutomaton:
    """A ring of binary cells advanced by one ECA rule on a fixed-interval clock.

    The engine is Idle or Running. `start` reseeds generation 0 and starts
    the clock; every ``delay`` ms one generation is computed from the
    previous row and appended to the history; reaching ``generations``
    returns the engine to Idle with the last row kept. State is replaced
    as a whole on every change, so observers never see a row whose length
    disagrees with ``total_items``.

    Args:
        rule_decimal: Rule number, clamped to [0, 255].
        total_items: Row width, clamped to [0, 300].
        initial_ones: Random seed count used when no explicit seeds are given.
        seed_indices: Explicit seed cells; a non-empty list pins generation 0.
        seed: Seed specification; overrides ``seed_indices``/``initial_ones``.
        generations: Stopping bound for a run, clamped to [1, 500].
        delay: Tick interval in ms, clamped to [10, 5000].
        boundary: "periodic" (ring) or the legacy "fixed" mode.
        boundary_value: Off-row neighbour value for the "fixed" boundary.
        scheduler: Tick source; defaults to `AsyncioScheduler`.
        rng: Random generator for random seeding.
    """

    def __init__(
        self,
        rule_decimal: Any = DEFAULT_RULE,
        *,
        total_items: Any = DEFAULT_TOTAL_ITEMS,
        initial_ones: Any = 1,
        seed_indices: Optional[Iterable[Any]] = None,
        seed: Optional[SeedSpec] = None,
        generations: Any = DEFAULT_GENERATIONS,
        delay: Any = DEFAULT_DELAY,
        boundary: str = "periodic",
        boundary_value: int = 0,
        scheduler: Optional[Scheduler] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.rule_decimal = clamp_rule(rule_decimal)
        self._lkt = eca_rule_lkt(self.rule_decimal)
        self.total_items = clamp_int(total_items, 0, TOTAL_ITEMS_MAX)
        self.seed = seed if seed is not None else seed_spec_from(seed_indices, initial_ones)
        self.generations = clamp_int(generations, GENERATIONS_MIN, GENERATIONS_MAX)
        self.delay = clamp_int(delay, DELAY_MIN, DELAY_MAX)
        self.boundary = check_boundary(boundary)
        self.boundary_value = 1 if boundary_value else 0
        self._scheduler: Scheduler = scheduler if scheduler is not None else AsyncioScheduler()
        self._rng = rng if rng is not None else np.random.default_rng()
        self._timer: Optional[TimerHandle] = None
        self._listeners: List[Callable[[AutomatonSnapshot], None]] = []
        self._state = self._fresh_state(running=False)

    # ------------------------------------------------------------------
    # seeding

    def _seed_cells(self) -> Tuple[int, ...]:
        spec = self.seed
        if isinstance(spec, ExplicitSeed):
            return normalize_seed_indices(self.total_items, spec.indices)
        if isinstance(spec, RandomSeed):
            return random_seed_indices(self.total_items, spec.count, self._rng)
        raise ValueError(f"Unknown seed specification: {spec!r}")

    def _fresh_state(self, *, running: bool) -> _State:
        cells = self._seed_cells()
        row = np.zeros(self.total_items, dtype=np.int8)
        if cells:
            row[list(cells)] = 1
        row = _frozen_row(row)
        logger.debug("seeded %d/%d cells", len(cells), self.total_items)
        return _State(
            blocks=row,
            generation=0,
            is_running=running,
            history=(row,),
            ones_history=(count_ones(row),),
            seed_indices=cells,
        )

    # ------------------------------------------------------------------
    # observation

    @property
    def is_running(self) -> bool:
        return self._state.is_running

    @property
    def generation(self) -> int:
        return self._state.generation

    @property
    def rule_binary(self) -> str:
        return rule_to_binary_string(self.rule_decimal)

    def snapshot(self) -> AutomatonSnapshot:
        st = self._state
        return AutomatonSnapshot(
            rule_decimal=self.rule_decimal,
            rule_binary=self.rule_binary,
            total_items=self.total_items,
            generation=st.generation,
            generations=self.generations,
            delay=self.delay,
            is_running=st.is_running,
            blocks=st.blocks,
            history=st.history,
            ones_history=st.ones_history,
            seed_indices=st.seed_indices,
        )

    def subscribe(self, listener: Callable[[AutomatonSnapshot], None]) -> Callable[[], None]:
        """Register ``listener`` for snapshots after every change; returns an unsubscribe."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _commit(self, state: _State) -> None:
        self._state = state
        if not self._listeners:
            return
        snap = self.snapshot()
        for listener in list(self._listeners):
            listener(snap)

    # ------------------------------------------------------------------
    # clock

    def _arm(self) -> None:
        self._timer = self._scheduler.call_later(self.delay, self._tick)

    def _disarm(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _tick(self) -> None:
        self._timer = None
        if not self._state.is_running:
            return
        if self._state.generation >= self.generations:
            logger.info("run stopped at generation bound %d", self.generations)
            self._commit(replace(self._state, is_running=False))
            return
        state = self._next_state(self._state)
        if state.generation >= self.generations:
            state = replace(state, is_running=False)
            logger.info("run completed after %d generations", state.generation)
        else:
            self._arm()
        self._commit(state)

    def _next_state(self, prev: _State) -> _State:
        nxt = _frozen_row(eca_step(prev.blocks, self._lkt, self.boundary, self.boundary_value))
        keep = prev.generation + 1
        generation = prev.generation + 1
        logger.debug("generation %d: %d ones", generation, count_ones(nxt))
        return replace(
            prev,
            blocks=nxt,
            generation=generation,
            history=prev.history[:keep] + (nxt,),
            ones_history=prev.ones_history[:keep] + (count_ones(nxt),),
        )

    # ------------------------------------------------------------------
    # controls

    def start(self) -> None:
        """Reseed generation 0, clear the history and start the clock."""
        self._disarm()
        state = self._fresh_state(running=True)
        logger.info(
            "starting rule %d on %d cells for %d generations every %d ms",
            self.rule_decimal,
            self.total_items,
            self.generations,
            self.delay,
        )
        self._arm()
        self._commit(state)

    def stop(self) -> None:
        """Stop the clock, keeping the current generation and history."""
        if not self._state.is_running:
            return
        self._disarm()
        logger.info("stopped at generation %d", self._state.generation)
        self._commit(replace(self._state, is_running=False))

    def reset(self) -> None:
        """Stop, reseed generation 0 and clear the history."""
        self._disarm()
        self._commit(self._fresh_state(running=False))

    def step(self) -> bool:
        """Compute one generation now, if the bound allows.

        Returns:
            bool: Whether a generation was appended.
        """
        if self._state.generation >= self.generations:
            return False
        state = self._next_state(self._state)
        if state.is_running and state.generation >= self.generations:
            self._disarm()
            state = replace(state, is_running=False)
        self._commit(state)
        return True

    def configure(self, **patch: Any) -> None:
        """Apply a configuration patch.

        Width, seed or boundary changes stop the clock and swap in a freshly
        seeded generation 0 in one step. A rule change applies to later
        ticks, a delay change re-arms the pending tick and a generations
        change only moves the stopping bound.
        """
        unknown = set(patch) - set(_CONFIG_FIELDS)
        if unknown:
            raise ValueError(f"Unknown configuration fields: {sorted(unknown)}")

        reseed = False
        if "total_items" in patch:
            total = clamp_int(patch["total_items"], 0, TOTAL_ITEMS_MAX)
            reseed |= total != self.total_items
            self.total_items = total
        if "seed" in patch or "seed_indices" in patch or "initial_ones" in patch:
            if patch.get("seed") is not None:
                spec = patch["seed"]
            else:
                fallback = self.seed.count if isinstance(self.seed, RandomSeed) else 1
                spec = seed_spec_from(patch.get("seed_indices"), patch.get("initial_ones", fallback))
            reseed |= spec != self.seed
            self.seed = spec
        if "boundary" in patch:
            boundary = check_boundary(patch["boundary"])
            reseed |= boundary != self.boundary
            self.boundary = boundary
        if "boundary_value" in patch:
            value = 1 if patch["boundary_value"] else 0
            reseed |= value != self.boundary_value
            self.boundary_value = value

        if "rule_decimal" in patch:
            self.rule_decimal = clamp_rule(patch["rule_decimal"])
            self._lkt = eca_rule_lkt(self.rule_decimal)
        if "generations" in patch:
            self.generations = clamp_int(patch["generations"], GENERATIONS_MIN, GENERATIONS_MAX)
        if "delay" in patch:
            delay = clamp_int(patch["delay"], DELAY_MIN, DELAY_MAX)
            if delay != self.delay:
                self.delay = delay
                if self._timer is not None:
                    self._disarm()
                    self._arm()

        if reseed:
            logger.debug("configuration changed; reseeding")
            self._disarm()
            self._commit(self._fresh_state(running=False))

    async def play(self) -> AutomatonSnapshot:
        """Start a run and wait until it completes or is stopped.

        Needs a scheduler that runs on the current asyncio loop.
        """
        done: asyncio.Future = asyncio.get_running_loop().create_future()

        def on_change(snap: AutomatonSnapshot) -> None:
            if not snap.is_running and not done.done():
                done.set_result(snap)

        unsubscribe = self.subscribe(on_change)
        try:
            self.start()
            return await done
        finally:
            unsubscribe()


__all__ = ["AutomatonSnapshot", "ElementaryAutomaton"]
