"""Deterministic integer hash (32-bit xxHash of a single word)."""
from __future__ import annotations

PRIME32_1 = 2654435761
PRIME32_2 = 2246822519
PRIME32_3 = 3266489917
PRIME32_4 = 668265263
PRIME32_5 = 374761393

_MASK32 = 0xFFFFFFFF
_SCALE01 = 1.0 / 4294967296.0  # 2 ** 32, keeps value01 strictly below 1


def _rotl32(x: int, r: int) -> int:
    return ((x << r) | (x >> (32 - r))) & _MASK32


def xxhash32(data: int, seed: int) -> int:
    """xxHash32 of one 4-byte little-endian word. Negative ints wrap to uint32."""
    h32 = (seed + PRIME32_5 + 4) & _MASK32
    h32 = (h32 + (data & _MASK32) * PRIME32_3) & _MASK32
    h32 = (_rotl32(h32, 17) * PRIME32_4) & _MASK32
    h32 ^= h32 >> 15
    h32 = (h32 * PRIME32_2) & _MASK32
    h32 ^= h32 >> 13
    h32 = (h32 * PRIME32_3) & _MASK32
    h32 ^= h32 >> 16
    return h32


class XXHash:
    """
    Stateless hash source bound to a seed.

    Consecutive inputs give uncorrelated outputs, so callers needing several
    random quantities for the same key offset the key by small integers.
    """

    def __init__(self, seed: int):
        self.seed = seed & _MASK32

    def get_hash(self, data: int) -> int:
        return xxhash32(data, self.seed)

    def value01(self, data: int) -> float:
        return self.get_hash(data) * _SCALE01

    def range(self, lo: float, hi: float, data: int) -> float:
        return lo + self.value01(data) * (hi - lo)

    def range_int(self, lo: int, hi: int, data: int) -> int:
        """Integer in [lo, hi)."""
        if hi <= lo:
            return lo
        return lo + self.get_hash(data) % (hi - lo)

    def sign(self, data: int) -> float:
        return 1.0 if self.value01(data) > 0.5 else -1.0

    def __repr__(self) -> str:
        return f"XXHash(seed={self.seed})"
