from __future__ import annotations

import numpy as np

from elementaryCA.config import ShareableState
from elementaryCA.url_state import (
    build_shareable_search,
    decode_seed_bitset,
    encode_seed_bitset,
    has_shareable_params,
    parse_shareable_state_from_location,
)


class _Loc:
    def __init__(self, search: str) -> None:
        self.search = search


def test_bitset_packs_msb_first() -> None:
    # idx 0 -> 0x80, idx 7 -> 0x01, idx 8 -> second byte 0x80
    assert encode_seed_bitset(16, [0, 7, 8]) == "gYA"
    assert decode_seed_bitset(16, "gYA") == [0, 7, 8]


def test_bitset_length_tracks_width() -> None:
    assert encode_seed_bitset(8, []) == "AA"
    assert encode_seed_bitset(9, []) == "AAA"
    encoded = encode_seed_bitset(300, list(range(300)))
    assert len(encoded) == 51
    assert "=" not in encoded


def test_bitset_drops_duplicates_and_out_of_range() -> None:
    assert encode_seed_bitset(10, [3, 3, -1, 10, 99]) == encode_seed_bitset(10, [3])


def test_bitset_uses_url_safe_alphabet() -> None:
    # 0xFB 0xFF encodes to "+/8" in standard base64.
    encoded = encode_seed_bitset(16, [0, 1, 2, 3, 4, 6, 7, 8, 9, 10, 11, 12, 13, 14, 15])
    assert encoded == "-_8"
    assert decode_seed_bitset(16, encoded) == [0, 1, 2, 3, 4, 6, 7, 8, 9, 10, 11, 12, 13, 14, 15]


def test_bitset_round_trip_random_subsets() -> None:
    rng = np.random.default_rng(1)
    for total in (1, 5, 8, 63, 118, 299, 300):
        for _ in range(20):
            k = int(rng.integers(0, total + 1))
            subset = rng.choice(total, size=k, replace=False).tolist()
            assert decode_seed_bitset(total, encode_seed_bitset(total, subset)) == sorted(subset)


def test_decode_invalid_returns_none() -> None:
    assert decode_seed_bitset(16, "a") is None
    assert decode_seed_bitset(16, "!!!") is None
    assert decode_seed_bitset(16, "ab=d") is None


def test_decode_short_payload_reads_zeros() -> None:
    assert decode_seed_bitset(24, "gA") == [0]


def test_build_clamps_every_field() -> None:
    search = build_shareable_search(
        {"ruleDecimal": 999, "totalItems": 0, "generations": 99999, "delay": 1, "seedIndices": []}
    )
    assert search == "?r=255&w=1&g=500&d=10&s=AA"


def test_build_clamps_integers_beyond_float_range() -> None:
    search = build_shareable_search(
        {
            "ruleDecimal": 10**400,
            "totalItems": 10**400,
            "generations": 5,
            "delay": 10,
            "seedIndices": [1],
        }
    )
    assert search.startswith("?r=255&w=300&")
    assert encode_seed_bitset(8, [10**400, 1]) == encode_seed_bitset(8, [1]) == "QA"


def test_build_from_dataclass() -> None:
    state = ShareableState(rule_decimal=30, total_items=8, generations=5, delay=100, seed_indices=(0,))
    assert build_shareable_search(state) == "?r=30&w=8&g=5&d=100&s=gA"


def test_parse_defaults_without_seed() -> None:
    parsed = parse_shareable_state_from_location(_Loc(""))
    assert (parsed.rule_decimal, parsed.total_items, parsed.generations, parsed.delay) == (
        22,
        118,
        100,
        10,
    )
    assert parsed.seed_indices is None


def test_parse_clamps_and_decodes_seed() -> None:
    parsed = parse_shareable_state_from_location("?r=300&w=16&g=0&d=9999999&s=gYA")
    assert parsed.rule_decimal == 255
    assert parsed.total_items == 16
    assert parsed.generations == 1
    assert parsed.delay == 5000
    assert parsed.seed_indices == (0, 7, 8)


def test_parse_bad_seed_is_omitted_not_empty() -> None:
    assert parse_shareable_state_from_location("?w=16&s=%%%").seed_indices is None
    assert parse_shareable_state_from_location("?w=16&s=AAA").seed_indices == ()


def test_parse_non_numeric_uses_default() -> None:
    parsed = parse_shareable_state_from_location("?r=abc&w=12.9&g=inf")
    assert parsed.rule_decimal == 22
    assert parsed.total_items == 12
    assert parsed.generations == 100


def test_parse_rejects_non_decimal_numerals() -> None:
    for raw in ("1_000", "0x10", "1e", "--3", "12abc"):
        assert parse_shareable_state_from_location("?w=" + raw).total_items == 118
    parsed = parse_shareable_state_from_location("?w=%2B40&g=.5e2&d=1" + "0" * 400)
    assert parsed.total_items == 40
    assert parsed.generations == 50
    assert parsed.delay == 10


def test_parse_then_build_is_stable() -> None:
    search = "?r=110&w=40&g=50&d=20&s=" + encode_seed_bitset(40, [1, 2, 39])
    parsed = parse_shareable_state_from_location(search)
    rebuilt = build_shareable_search(
        ShareableState(
            rule_decimal=parsed.rule_decimal,
            total_items=parsed.total_items,
            generations=parsed.generations,
            delay=parsed.delay,
            seed_indices=parsed.seed_indices,
        )
    )
    assert rebuilt == search


def test_has_shareable_params() -> None:
    assert not has_shareable_params("")
    assert not has_shareable_params("?foo=1")
    assert has_shareable_params("?d=50")
    assert has_shareable_params(_Loc("?s="))
