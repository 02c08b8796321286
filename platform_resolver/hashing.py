"""Deterministic content hashing for generated modules.

The hash must be stable across runs and machines: it names directories under
the generated-modules folder, and the host bundler caches by file path.
"""

from __future__ import annotations

import struct
import threading


def fast_hash(contents: str) -> int:
    """32-bit signed string hash (``h = h * 31 + unit``) over UTF-16 code units.

    Matches the hash used to name existing generated module folders, so a
    given stub keeps the same directory after an upgrade.
    """
    data = contents.encode("utf-16-le", "surrogatepass")
    value = 0
    for (unit,) in struct.iter_unpack("<H", data):
        value = (value * 31 + unit) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return value


class HashCache:
    """Memoizes fast_hash by content string.

    Owned by a single registry; no eviction, the key set is bounded by the
    number of distinct generated stubs.
    """

    def __init__(self) -> None:
        self._hashes: dict[str, int] = {}
        self._lock = threading.Lock()

    def get(self, contents: str) -> int:
        with self._lock:
            cached = self._hashes.get(contents)
        if cached is not None:
            return cached
        value = fast_hash(contents)
        with self._lock:
            return self._hashes.setdefault(contents, value)

    def __len__(self) -> int:
        return len(self._hashes)
