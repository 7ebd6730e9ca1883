"""Starred (favourite) configurations persisted in key-value storage."""

from __future__ import annotations

import json
import logging
import math
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union

from .config import ShareableState
from .storage import KeyValueStorage
from .url_state import ParsedShareableState, build_shareable_search, parse_shareable_state_from_location

logger = logging.getLogger(__name__)

STORAGE_KEY = "rule22.starredConfigs.v1"
MAX_ITEMS = 50


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class StarredConfig:
    """One starred configuration; ``id`` and ``search`` are the canonical query string."""

    id: str
    search: str
    rule_decimal: float
    created_at: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "search": self.search,
            "ruleDecimal": self.rule_decimal,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, value: Any) -> Optional["StarredConfig"]:
        """Parse a stored entry, or return ``None`` if it is malformed."""
        if not isinstance(value, Mapping):
            return None
        id_, search = value.get("id"), value.get("search")
        rule, created = value.get("ruleDecimal"), value.get("createdAt")
        if not isinstance(id_, str) or not isinstance(search, str):
            return None
        for num in (rule, created):
            if isinstance(num, bool) or not isinstance(num, (int, float)):
                return None
            try:
                finite = math.isfinite(num)
            except OverflowError:
                finite = False
            if not finite:
                return None
        return cls(id=id_, search=search, rule_decimal=rule, created_at=created)


def normalize_search(search: str) -> str:
    if not search:
        return ""
    return search if search.startswith("?") else f"?{search}"


StateLike = Union[ShareableState, Mapping[str, Any]]


def _as_state(state: StateLike) -> ShareableState:
    return state if isinstance(state, ShareableState) else ShareableState.from_mapping(state)


def make_starred_from_state(state: StateLike, now: Optional[float] = None) -> StarredConfig:
    state = _as_state(state)
    search = build_shareable_search(state)
    return StarredConfig(
        id=search,
        search=search,
        rule_decimal=state.rule_decimal,
        created_at=now_ms() if now is None else now,
    )


def _newest_first(items: Sequence[StarredConfig]) -> List[StarredConfig]:
    return sorted(items, key=lambda i: i.created_at, reverse=True)


def load_starred_configs(storage: KeyValueStorage, key: str = STORAGE_KEY) -> List[StarredConfig]:
    """Read, validate and dedupe the persisted list, newest first.

    Malformed entries are dropped one by one; among duplicates the newest
    ``createdAt`` is kept.
    """
    raw = storage.get_item(key)
    if raw is None:
        return []
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError:
        logger.debug("starred list under %s is not valid JSON", key)
        return []
    if not isinstance(parsed, list):
        return []

    best: Dict[str, StarredConfig] = {}
    for value in parsed:
        item = StarredConfig.from_dict(value)
        if item is None:
            logger.debug("dropping malformed starred entry %r", value)
            continue
        search = normalize_search(item.search)
        if not search:
            continue
        item = replace(item, id=search, search=search)
        prev = best.get(search)
        if prev is None or item.created_at > prev.created_at:
            best[search] = item
    return _newest_first(list(best.values()))[:MAX_ITEMS]


def save_starred_configs(
    storage: KeyValueStorage, items: Sequence[StarredConfig], key: str = STORAGE_KEY
) -> None:
    trimmed = [i for i in items if i is not None and isinstance(i.id, str) and i.id][:MAX_ITEMS]
    storage.set_item(key, json.dumps([i.to_dict() for i in trimmed]))


def is_config_starred(items: Sequence[StarredConfig], search: str) -> bool:
    target = normalize_search(search)
    return any(i.id == target for i in items)


def add_config_star(items: Sequence[StarredConfig], starred: StarredConfig) -> List[StarredConfig]:
    target = normalize_search(starred.id)
    if not target:
        return list(items)
    without = [i for i in items if i.id != target]
    entry = replace(starred, id=target, search=normalize_search(starred.search))
    return _newest_first([entry] + without)[:MAX_ITEMS]


def remove_config_star(items: Sequence[StarredConfig], search: str) -> List[StarredConfig]:
    target = normalize_search(search)
    return [i for i in items if i.id != target]


def toggle_config_star(
    items: Sequence[StarredConfig], state: StateLike, now: Optional[float] = None
) -> List[StarredConfig]:
    starred = make_starred_from_state(state, now)
    if is_config_starred(items, starred.search):
        return remove_config_star(items, starred.search)
    return add_config_star(items, starred)


def parse_starred_to_state(search: str) -> ParsedShareableState:
    return parse_shareable_state_from_location(normalize_search(search))


class StarredConfigStore:
    """Starred list bound to one storage key, kept in sync with other views.

    Each mutation reloads the latest persisted list, applies the change and
    saves, so concurrent edits made through other stores are not lost.
    """

    def __init__(
        self,
        storage: KeyValueStorage,
        *,
        key: str = STORAGE_KEY,
        clock: Callable[[], float] = now_ms,
    ):
        self._storage = storage
        self.key = key
        self._clock = clock
        self._items = load_starred_configs(storage, key)
        self._unsubscribe = storage.subscribe(self._on_storage)

    def _on_storage(self, key: str) -> None:
        if key == self.key:
            self._items = load_starred_configs(self._storage, self.key)

    @property
    def items(self) -> List[StarredConfig]:
        self._storage.poll()
        return list(self._items)

    def reload(self) -> List[StarredConfig]:
        self._items = load_starred_configs(self._storage, self.key)
        return list(self._items)

    def _mutate(self, fn: Callable[[List[StarredConfig]], List[StarredConfig]]) -> List[StarredConfig]:
        latest = self.reload()
        nxt = fn(latest)
        save_starred_configs(self._storage, nxt, self.key)
        self._items = nxt[:MAX_ITEMS]
        return list(self._items)

    def is_starred(self, state: StateLike) -> bool:
        return is_config_starred(self.items, build_shareable_search(_as_state(state)))

    def add(self, state: StateLike) -> List[StarredConfig]:
        entry = make_starred_from_state(state, self._clock())
        return self._mutate(lambda items: add_config_star(items, entry))

    def remove(self, search: str) -> List[StarredConfig]:
        return self._mutate(lambda items: remove_config_star(items, search))

    def toggle(self, state: StateLike) -> List[StarredConfig]:
        now = self._clock()
        return self._mutate(lambda items: toggle_config_star(items, state, now))

    def clear(self) -> List[StarredConfig]:
        return self._mutate(lambda items: [])

    def close(self) -> None:
        self._unsubscribe()


__all__ = [
    "MAX_ITEMS",
    "STORAGE_KEY",
    "StarredConfig",
    "StarredConfigStore",
    "add_config_star",
    "is_config_starred",
    "load_starred_configs",
    "make_starred_from_state",
    "normalize_search",
    "parse_starred_to_state",
    "remove_config_star",
    "save_starred_configs",
    "toggle_config_star",
]
