"""Interactive session: draft/applied controls, URL sync, sharing and stars.

A session wires one `ElementaryAutomaton` to an address bar (`Location`)
and, optionally, a starred-configuration store. Every control change
stops and resets the engine, clamps the new configuration, and rewrites
the URL in place.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import urlsplit

import numpy as np

from .config import (
    DEFAULT_DELAY,
    DEFAULT_GENERATIONS,
    DEFAULT_TOTAL_ITEMS,
    GENERATIONS_MAX,
    GENERATIONS_MIN,
    DELAY_MAX,
    DELAY_MIN,
    RULE_MAX,
    RULE_MIN,
    TOTAL_ITEMS_MAX,
    TOTAL_ITEMS_MIN,
    ControlState,
    ShareableState,
    apply_control_patch,
    clamp_int,
    default_seed_count,
    normalize_seed_indices,
    random_seed_indices,
)
from .engine import AutomatonSnapshot, ElementaryAutomaton
from .rules import random_rule, rule_neighborhoods, rule_to_binary_string
from .scheduling import Scheduler
from .starred import StarredConfig, StarredConfigStore, parse_starred_to_state
from .storage import KeyValueStorage
from .url_state import build_shareable_search, parse_shareable_state_from_location, present_shareable_keys

logger = logging.getLogger(__name__)


@dataclass
class Location:
    """Mutable address bar: ``pathname + search + hash``."""

    pathname: str = "/"
    search: str = ""
    hash: str = ""

    @classmethod
    def from_url(cls, url: str) -> "Location":
        parts = urlsplit(url)
        return cls(
            pathname=parts.path or "/",
            search=f"?{parts.query}" if parts.query else "",
            hash=f"#{parts.fragment}" if parts.fragment else "",
        )

    @property
    def href(self) -> str:
        return f"{self.pathname}{self.search}{self.hash}"

    def replace_search(self, search: str) -> None:
        """Swap the query in place, like ``history.replaceState``."""
        self.search = search


class ShareStatus(enum.Enum):
    COPIED = "Link copied to clipboard"
    FAILED = "Copy failed"


@dataclass(frozen=True)
class ShareResult:
    status: ShareStatus
    text: str
    used_fallback: bool = False

    @property
    def ok(self) -> bool:
        return self.status is ShareStatus.COPIED


class AutomatonSession:
    """Controller tying the engine to the URL, the controls and the star list.

    Args:
        location: Address bar to read the initial configuration from and
            keep in sync.
        total_items, initial_ones, generations, delay: Defaults used where
            the URL carries no value. ``initial_ones`` defaults to half
            the width.
        storage: Optional key-value storage for starred configurations.
        scheduler: Tick source for the engine.
        rng: Random generator for seeds and random rules.
    """

    def __init__(
        self,
        location: Location,
        *,
        total_items: int = DEFAULT_TOTAL_ITEMS,
        initial_ones: Optional[int] = None,
        generations: int = DEFAULT_GENERATIONS,
        delay: int = DEFAULT_DELAY,
        storage: Optional[KeyValueStorage] = None,
        scheduler: Optional[Scheduler] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.location = location
        self._rng = rng if rng is not None else np.random.default_rng()
        present = present_shareable_keys(location)
        parsed = parse_shareable_state_from_location(location)

        total = clamp_int(
            parsed.total_items if "w" in present else total_items, TOTAL_ITEMS_MIN, TOTAL_ITEMS_MAX
        )
        if parsed.seed_indices:
            seeds = normalize_seed_indices(total, parsed.seed_indices)
        else:
            count = default_seed_count(total) if initial_ones is None else initial_ones
            seeds = random_seed_indices(total, clamp_int(count, 0, total), self._rng)

        self.draft = ControlState(
            rule_decimal=parsed.rule_decimal,
            total_items=total,
            initial_ones=len(seeds),
            seed_indices=seeds,
            generations=clamp_int(
                parsed.generations if "g" in present else generations, GENERATIONS_MIN, GENERATIONS_MAX
            ),
            delay=clamp_int(parsed.delay if "d" in present else delay, DELAY_MIN, DELAY_MAX),
        )
        self.applied = self.draft
        self.engine = ElementaryAutomaton(
            self.applied.rule_decimal,
            total_items=self.applied.total_items,
            initial_ones=self.applied.initial_ones,
            seed_indices=self.applied.seed_indices,
            generations=self.applied.generations,
            delay=self.applied.delay,
            scheduler=scheduler,
            rng=self._rng,
        )
        self.starred = StarredConfigStore(storage) if storage is not None else None
        self.sync_url()
        if present:
            logger.info("configuration found in URL; starting")
            self.engine.start()

    # ------------------------------------------------------------------
    # read side

    @property
    def shareable_state(self) -> ShareableState:
        return self.applied.shareable()

    @property
    def current_search(self) -> str:
        return build_shareable_search(self.shareable_state)

    @property
    def rule_binary(self) -> str:
        return rule_to_binary_string(self.applied.rule_decimal)

    def rule_details(self):
        return rule_neighborhoods(self.applied.rule_decimal)

    def snapshot(self) -> AutomatonSnapshot:
        return self.engine.snapshot()

    # ------------------------------------------------------------------
    # engine controls

    def start(self) -> None:
        self.engine.start()

    def stop(self) -> None:
        self.engine.stop()

    def reset(self) -> None:
        self.engine.reset()

    def toggle_run(self) -> None:
        if self.engine.is_running:
            self.engine.stop()
        else:
            self.engine.start()

    def sync_url(self) -> str:
        search = self.current_search
        self.location.replace_search(search)
        return search

    def _apply(self, patch: dict) -> None:
        self.engine.stop()
        self.engine.reset()
        self.draft = apply_control_patch(self.draft, patch)
        self.applied = apply_control_patch(self.applied, patch)
        a = self.applied
        self.engine.configure(
            rule_decimal=a.rule_decimal,
            total_items=a.total_items,
            seed_indices=a.seed_indices,
            initial_ones=a.initial_ones,
            generations=a.generations,
            delay=a.delay,
        )
        self.sync_url()

    def apply_controls_patch(self, **patch: Any) -> None:
        """Apply a control change; a new width without seeds draws fresh random seeds."""
        if "total_items" in patch and "seed_indices" not in patch and "initial_ones" not in patch:
            total = clamp_int(patch["total_items"], TOTAL_ITEMS_MIN, TOTAL_ITEMS_MAX)
            count = default_seed_count(total)
            patch = dict(
                patch,
                total_items=total,
                initial_ones=count,
                seed_indices=random_seed_indices(total, count, self._rng),
            )
        self._apply(patch)

    def set_initial_ones(self, count: Any) -> None:
        total = clamp_int(self.draft.total_items, TOTAL_ITEMS_MIN, TOTAL_ITEMS_MAX)
        seeds = random_seed_indices(total, clamp_int(count, 0, total), self._rng)
        self._apply({"total_items": total, "initial_ones": len(seeds), "seed_indices": seeds})

    def randomize_seeds(self) -> None:
        total = clamp_int(self.draft.total_items, TOTAL_ITEMS_MIN, TOTAL_ITEMS_MAX)
        count = clamp_int(self.draft.initial_ones, 0, total)
        seeds = random_seed_indices(total, count, self._rng)
        self._apply({"total_items": total, "initial_ones": len(seeds), "seed_indices": seeds})

    def change_rule(self, rule: Any) -> None:
        self._apply({"rule_decimal": clamp_int(rule, RULE_MIN, RULE_MAX)})

    def random_rule(self) -> int:
        """Switch to a uniformly random rule and start running it."""
        rule = random_rule(self._rng)
        self.change_rule(rule)
        self.engine.start()
        return rule

    # ------------------------------------------------------------------
    # sharing

    def share(
        self,
        copy: Callable[[str], None],
        fallback_copy: Optional[Callable[[str], bool]] = None,
    ) -> ShareResult:
        """Copy the current link; never raises.

        ``copy`` signals failure by raising. ``fallback_copy`` is tried
        next and reports success as a bool.
        """
        text = self.location.href
        try:
            copy(text)
            return ShareResult(ShareStatus.COPIED, text)
        except Exception as exc:
            logger.warning("clipboard copy failed: %s", exc)
        if fallback_copy is None:
            return ShareResult(ShareStatus.FAILED, text, used_fallback=False)
        try:
            ok = bool(fallback_copy(text))
        except Exception as exc:
            logger.warning("fallback copy failed: %s", exc)
            ok = False
        status = ShareStatus.COPIED if ok else ShareStatus.FAILED
        return ShareResult(status, text, used_fallback=True)

    # ------------------------------------------------------------------
    # stars

    def _store(self) -> StarredConfigStore:
        if self.starred is None:
            raise RuntimeError("session has no storage for starred configurations")
        return self.starred

    @property
    def is_starred(self) -> bool:
        return self.starred is not None and self.starred.is_starred(self.shareable_state)

    def toggle_star(self):
        return self._store().toggle(self.shareable_state)

    def apply_starred(self, entry: StarredConfig | str) -> None:
        """Load a starred configuration into the controls and start it."""
        search = entry if isinstance(entry, str) else entry.search
        parsed = parse_starred_to_state(search)
        patch: dict = {
            "rule_decimal": parsed.rule_decimal,
            "total_items": parsed.total_items,
            "generations": parsed.generations,
            "delay": parsed.delay,
        }
        if parsed.seed_indices is not None:
            patch["seed_indices"] = parsed.seed_indices
            patch["initial_ones"] = len(parsed.seed_indices)
        self.apply_controls_patch(**patch)
        self.engine.start()

    def close(self) -> None:
        self.engine.stop()
        if self.starred is not None:
            self.starred.close()


__all__ = ["AutomatonSession", "Location", "ShareResult", "ShareStatus"]
