"""
Seed-keyed deterministic random streams.

Goals:
- Every "random" choice in a derived system comes from a stream keyed by a
  string tag (e.g. ``"isle-of-marrow:42"``), so identical inputs give
  identical outputs across processes and machines.

Non-goals:
- Cryptographic security
- Statistical quality beyond what weather rolls need
"""

import zlib
from typing import Callable

_LCG_A = 1664525
_LCG_C = 1013904223
_LCG_M = 2 ** 32


def _derive_seed(tag: str) -> int:
    # Stable hashing (never Python's built-in hash(), which is randomized per process).
    return zlib.crc32(tag.encode("utf-8")) & 0xFFFFFFFF


def seeded_stream(tag: str) -> Callable[[], float]:
    """Return a generator function yielding floats in [0, 1) for ``tag``."""
    state = _derive_seed(tag) + 1

    def next_value() -> float:
        nonlocal state
        state = (state * _LCG_A + _LCG_C) % _LCG_M
        return state / _LCG_M

    return next_value
