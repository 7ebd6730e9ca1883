"""Shareable URL encoding of an automaton configuration.

Seeds are packed into a bitset (MSB first within each byte) and written as
unpadded base64url, so a 300-cell row never needs more than 51 characters
no matter how many cells are set.
"""

from __future__ import annotations

import base64
import binascii
import math
import re
from dataclasses import dataclass
from typing import Any, FrozenSet, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qs, urlencode

from .config import (
    DEFAULT_DELAY,
    DEFAULT_GENERATIONS,
    DEFAULT_RULE,
    DEFAULT_TOTAL_ITEMS,
    DELAY_MAX,
    DELAY_MIN,
    GENERATIONS_MAX,
    GENERATIONS_MIN,
    RULE_MAX,
    RULE_MIN,
    TOTAL_ITEMS_MAX,
    TOTAL_ITEMS_MIN,
    ShareableState,
    clamp_int,
    normalize_seed_indices,
)

SHAREABLE_KEYS = ("r", "w", "g", "d", "s")
_DECIMAL = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64url_decode(s: str) -> Optional[bytes]:
    b64 = s.replace("-", "+").replace("_", "/")
    b64 += "=" * ((4 - len(b64) % 4) % 4)
    try:
        return base64.b64decode(b64, validate=True)
    except (binascii.Error, ValueError):
        return None


def encode_seed_bitset(total_items: Any, seed_indices: Iterable[Any]) -> str:
    """Pack seed positions into an unpadded base64url bitset.

    Args:
        total_items: Row width; clamped to [1, 300].
        seed_indices: Cells set in generation 0. Duplicates and indices
            outside the row are ignored.

    Returns:
        str: base64url text of ``ceil(total_items / 8)`` bytes.
    """
    total = clamp_int(total_items, TOTAL_ITEMS_MIN, TOTAL_ITEMS_MAX)
    buf = bytearray(math.ceil(total / 8))
    for idx in normalize_seed_indices(total, seed_indices):
        buf[idx // 8] |= 1 << (7 - idx % 8)
    return _b64url_encode(bytes(buf))


def decode_seed_bitset(total_items: Any, encoded: str) -> Optional[List[int]]:
    """Unpack a bitset written by `encode_seed_bitset`.

    Returns ``None`` when ``encoded`` is not valid base64; the caller should
    then fall back to random seeding. Missing trailing bytes read as zero.
    """
    total = clamp_int(total_items, TOTAL_ITEMS_MIN, TOTAL_ITEMS_MAX)
    data = _b64url_decode(encoded)
    if data is None:
        return None
    out = []
    for idx in range(total):
        byte = data[idx // 8] if idx // 8 < len(data) else 0
        if (byte >> (7 - idx % 8)) & 1:
            out.append(idx)
    return out


def build_shareable_search(state: Union[ShareableState, Mapping[str, Any]]) -> str:
    """Serialise a configuration into a ``?r=..&w=..&g=..&d=..&s=..`` query.

    Every numeric field is clamped; the seed bitset is always present.
    """
    if not isinstance(state, ShareableState):
        state = ShareableState.from_mapping(state)
    params = [
        ("r", str(clamp_int(state.rule_decimal, RULE_MIN, RULE_MAX))),
        ("w", str(clamp_int(state.total_items, TOTAL_ITEMS_MIN, TOTAL_ITEMS_MAX))),
        ("g", str(clamp_int(state.generations, GENERATIONS_MIN, GENERATIONS_MAX))),
        ("d", str(clamp_int(state.delay, DELAY_MIN, DELAY_MAX))),
        ("s", encode_seed_bitset(state.total_items, state.seed_indices)),
    ]
    s = urlencode(params)
    return f"?{s}" if s else ""


@dataclass(frozen=True)
class ParsedShareableState:
    """Configuration read from a URL.

    ``seed_indices`` is ``None`` when the URL carries no usable seed, which
    is distinct from an explicit empty seed ``()``.
    """

    rule_decimal: int
    total_items: int
    generations: int
    delay: int
    seed_indices: Optional[Tuple[int, ...]] = None


def _search_of(location: Any) -> str:
    if isinstance(location, str):
        return location
    return str(getattr(location, "search", "") or "")


def _query_params(search: str) -> dict:
    return parse_qs(search.lstrip("?"), keep_blank_values=True)


def _parse_int_param(params: Mapping[str, List[str]], key: str, fallback: int) -> int:
    values = params.get(key)
    if not values:
        return fallback
    raw = values[0].strip()
    if raw == "":
        return 0
    if not _DECIMAL.match(raw):
        return fallback
    try:
        n = float(raw)
    except ValueError:
        return fallback
    return math.floor(n) if math.isfinite(n) else fallback


def parse_shareable_state_from_location(location: Any) -> ParsedShareableState:
    """Read a configuration from a location-like object or a search string.

    Absent parameters take the defaults (r=22, w=118, g=100, d=10); every
    value is clamped. ``s`` is decoded against the resolved width.
    """
    params = _query_params(_search_of(location))
    total_items = clamp_int(
        _parse_int_param(params, "w", DEFAULT_TOTAL_ITEMS), TOTAL_ITEMS_MIN, TOTAL_ITEMS_MAX
    )
    seed_indices = None
    encoded = params.get("s")
    if encoded:
        decoded = decode_seed_bitset(total_items, encoded[0])
        if decoded is not None:
            seed_indices = tuple(decoded)
    return ParsedShareableState(
        rule_decimal=clamp_int(_parse_int_param(params, "r", DEFAULT_RULE), RULE_MIN, RULE_MAX),
        total_items=total_items,
        generations=clamp_int(
            _parse_int_param(params, "g", DEFAULT_GENERATIONS), GENERATIONS_MIN, GENERATIONS_MAX
        ),
        delay=clamp_int(_parse_int_param(params, "d", DEFAULT_DELAY), DELAY_MIN, DELAY_MAX),
        seed_indices=seed_indices,
    )


def present_shareable_keys(location: Any) -> FrozenSet[str]:
    params = _query_params(_search_of(location))
    return frozenset(k for k in SHAREABLE_KEYS if k in params)


def has_shareable_params(location: Any) -> bool:
    """True if any recognised configuration key is present."""
    return bool(present_shareable_keys(location))


__all__ = [
    "ParsedShareableState",
    "SHAREABLE_KEYS",
    "build_shareable_search",
    "decode_seed_bitset",
    "encode_seed_bitset",
    "has_shareable_params",
    "parse_shareable_state_from_location",
    "present_shareable_keys",
]
