"""
Tally Ledger — Hash Chain
===========================
Makes the ledger tamper-evident.

Formula:
    entry_hash = SHA256(canonical_json(entry content) + previous_hash)

Rules:
- Canonical JSON: sorted keys, compact separators, ASCII only
- No salt, no randomness: same input, same hash
- The first entry links to GENESIS_HASH
"""

import hashlib
import json
from typing import Any


GENESIS_HASH = "GENESIS"


def canonical_serialize(payload: Any) -> str:
    """Deterministic JSON; non-JSON types fall back to str()."""
    return json.dumps(
        payload,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=True,
        default=str,
    )


def compute_entry_hash(content: Any, previous_hash: str) -> str:
    """64-character lowercase hex SHA-256 digest."""
    hash_input = canonical_serialize(content) + previous_hash
    return hashlib.sha256(hash_input.encode("utf-8")).hexdigest()
