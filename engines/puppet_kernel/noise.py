"""
Layered noise field.

Every consumer reads its own channel. A channel is a set of fixed offsets
into a shared 1D fractal Perlin signal, so stepping the field once per tick
advances all channels together while keeping them uncorrelated.
"""
from __future__ import annotations

import math
from typing import List

from engines.puppet_kernel.hashing import XXHash
from engines.puppet_kernel.vector_math import Quaternion, Vector3, quat_euler

_PERMUTATION = [
    151, 160, 137, 91, 90, 15, 131, 13, 201, 95, 96, 53, 194, 233, 7, 225,
    140, 36, 103, 30, 69, 142, 8, 99, 37, 240, 21, 10, 23, 190, 6, 148,
    247, 120, 234, 75, 0, 26, 197, 62, 94, 252, 219, 203, 117, 35, 11, 32,
    57, 177, 33, 88, 237, 149, 56, 87, 174, 20, 125, 136, 171, 168, 68, 175,
    74, 165, 71, 134, 139, 48, 27, 166, 77, 146, 158, 231, 83, 111, 229, 122,
    60, 211, 133, 230, 220, 105, 92, 41, 55, 46, 245, 40, 244, 102, 143, 54,
    65, 25, 63, 161, 1, 216, 80, 73, 209, 76, 132, 187, 208, 89, 18, 169,
    200, 196, 135, 130, 116, 188, 159, 86, 164, 100, 109, 198, 173, 186, 3, 64,
    52, 217, 226, 250, 124, 123, 5, 202, 38, 147, 118, 126, 255, 82, 85, 212,
    207, 206, 59, 227, 47, 16, 58, 17, 182, 189, 28, 42, 223, 183, 170, 213,
    119, 248, 152, 2, 44, 154, 163, 70, 221, 153, 101, 155, 167, 43, 172, 9,
    129, 22, 39, 253, 19, 98, 108, 110, 79, 113, 224, 232, 178, 185, 112, 104,
    218, 246, 97, 228, 251, 34, 242, 193, 238, 210, 144, 12, 191, 179, 162, 241,
    81, 51, 145, 235, 249, 14, 239, 107, 49, 192, 214, 31, 181, 199, 106, 157,
    184, 84, 204, 176, 115, 121, 50, 45, 127, 4, 150, 254, 138, 236, 205, 93,
    222, 114, 67, 29, 24, 72, 243, 141, 128, 195, 78, 66, 215, 61, 156, 180,
]
_PERM: List[int] = _PERMUTATION + _PERMUTATION[:1]

# Scales two octaves of fBm to roughly [-1, 1]; samples are clamped to it
FBM_NORM = 1.0 / 0.75

# Seed salts for the second and third axis hashes
_AXIS2_SALT = 0x1327495A
_AXIS3_SALT = 0x3CBE84F2

# Channel offsets are spread over this window of the 1D signal
_OFFSET_RANGE = 100.0


def _fade(t: float) -> float:
    return t * t * t * (t * (t * 6 - 15) + 10)


def _grad(h: int, x: float) -> float:
    return x if (h & 1) == 0 else -x


def perlin(x: float) -> float:
    """1D gradient noise, zero at integer lattice points, roughly [-1, 1]."""
    fx = math.floor(x)
    xi = int(fx) & 0xFF
    x -= fx
    u = _fade(x)
    a = _grad(_PERM[xi], x)
    b = _grad(_PERM[xi + 1], x - 1)
    return (a + u * (b - a)) * 2


def fbm(x: float, octaves: int) -> float:
    f = 0.0
    w = 0.5
    for _ in range(octaves):
        f += w * perlin(x)
        x *= 2.0
        w *= 0.5
    return f


class NoiseField:
    """Seeded, continuously advancing noise shared by many channels."""

    def __init__(self, seed: int, frequency: float, fractal_level: int = 2):
        self._hash1 = XXHash(seed)
        self._hash2 = XXHash(seed ^ _AXIS2_SALT)
        self._hash3 = XXHash(seed ^ _AXIS3_SALT)
        self.frequency = frequency
        self.fractal_level = fractal_level
        self._time = 0.0

    @property
    def frequency(self) -> float:
        return self._frequency

    @frequency.setter
    def frequency(self, value: float) -> None:
        self._frequency = max(0.0, float(value))

    @property
    def fractal_level(self) -> int:
        return self._fractal_level

    @fractal_level.setter
    def fractal_level(self, value: int) -> None:
        self._fractal_level = max(1, int(value))

    @property
    def time(self) -> float:
        return self._time

    def step(self, elapsed: float) -> None:
        """Advance all channels; call once per tick before any query."""
        if elapsed > 0:
            self._time += self._frequency * elapsed

    def _sample(self, offset: float) -> float:
        # Deeper octave stacks overshoot the two-octave scale
        v = fbm(self._time + offset, self._fractal_level) * FBM_NORM
        return max(-1.0, min(1.0, v))

    def _offsets(self, channel: int):
        return (
            self._hash1.range(-_OFFSET_RANGE, _OFFSET_RANGE, channel),
            self._hash2.range(-_OFFSET_RANGE, _OFFSET_RANGE, channel),
            self._hash3.range(-_OFFSET_RANGE, _OFFSET_RANGE, channel),
        )

    def value(self, channel: int) -> float:
        return self._sample(self._hash1.range(-_OFFSET_RANGE, _OFFSET_RANGE, channel))

    def value01(self, channel: int) -> float:
        return self.value(channel) * 0.5 + 0.5

    def vector(self, channel: int) -> Vector3:
        o1, o2, o3 = self._offsets(channel)
        return (self._sample(o1), self._sample(o2), self._sample(o3))

    def rotation(self, channel: int, rx: float, ry: float = None, rz: float = None) -> Quaternion:
        """
        Euler rotation driven by the channel's vector noise. With a single
        angle every axis shares the same bound (degrees).
        """
        if ry is None:
            ry = rx
        if rz is None:
            rz = rx
        nx, ny, nz = self.vector(channel)
        return quat_euler(nx * rx, ny * ry, nz * rz)
