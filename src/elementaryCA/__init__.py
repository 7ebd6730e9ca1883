from .engine import AutomatonSnapshot, ElementaryAutomaton
from .rules import InvalidRuleError, rule_to_binary_string
from .session import AutomatonSession, Location
from .starred import StarredConfig, StarredConfigStore
from .storage import JsonFileStorage, MemoryStorage
from .url_state import (
    build_shareable_search,
    decode_seed_bitset,
    encode_seed_bitset,
    parse_shareable_state_from_location,
)

__all__ = [
    "AutomatonSession",
    "AutomatonSnapshot",
    "ElementaryAutomaton",
    "InvalidRuleError",
    "JsonFileStorage",
    "Location",
    "MemoryStorage",
    "StarredConfig",
    "StarredConfigStore",
    "build_shareable_search",
    "decode_seed_bitset",
    "encode_seed_bitset",
    "parse_shareable_state_from_location",
    "rule_to_binary_string",
]
