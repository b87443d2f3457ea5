"""
Stepping State Machine.

A single phase value drives the whole gait. The integer part counts steps,
the fractional part is the progress of the current step. On even steps the
left foot is the pivot and the right foot swings around it; on odd steps the
roles swap. Feet only move in storage when a step boundary is crossed.
"""
from __future__ import annotations

import logging
import math
from typing import List, Tuple

from engines.puppet_kernel.hashing import XXHash
from engines.puppet_kernel.schemas import DancerConfig
from engines.puppet_kernel.vector_math import (
    RIGHT, UP, Quaternion, Vector3,
    quat_angle_axis, quat_rotate_vector, smoothstep,
    vec_add, vec_len, vec_mul, vec_norm, vec_sub, with_y,
)

logger = logging.getLogger(__name__)

LEFT_FOOT = 0
RIGHT_FOOT = 1

# Keys per step are spaced so per-step offsets (+0, +1) never collide
STEP_SEED_STRIDE = 100


class SteppingStateMachine:
    """Owns the phase counter and the two stored foot positions."""

    def __init__(
        self,
        config: DancerConfig,
        hash_source: XXHash,
        origin: Vector3 = (0.0, 0.0, 0.0),
        right_axis: Vector3 = RIGHT,
    ):
        self._config = config
        self._hash = hash_source
        self._phase = 0.0

        origin = with_y(tuple(origin), 0.0)
        axis = vec_norm(with_y(tuple(right_axis), 0.0))
        if vec_len(axis) < 1e-6:
            axis = RIGHT
        half = vec_mul(axis, config.stride / 2)
        self._feet: List[Vector3] = [vec_sub(origin, half), vec_add(origin, half)]
        # Last usable left->right direction, for coincident feet
        self._last_dir: Vector3 = axis
        self.relocations = 0

    # --- Derived state ---

    @property
    def phase(self) -> float:
        return self._phase

    @property
    def step_index(self) -> int:
        return math.floor(self._phase)

    @property
    def step_progress(self) -> float:
        return self._phase - math.floor(self._phase)

    @property
    def pivot_is_left(self) -> bool:
        return pivot_is_left(self.step_index)

    @property
    def feet(self) -> Tuple[Vector3, Vector3]:
        """Stored (ground plane) foot positions, left then right."""
        return self._feet[0], self._feet[1]

    def step_seed(self, step_index: int) -> int:
        return step_index * STEP_SEED_STRIDE

    def step_sign(self, step_index: int) -> float:
        """+1 for a left turn, -1 for a right turn."""
        return self._hash.sign(self.step_seed(step_index))

    def step_angle(self, step_index: int) -> float:
        """Signed pivot rotation of a whole step, degrees."""
        magnitude = self._hash.range(0.5, 1.0, self.step_seed(step_index) + 1)
        return magnitude * self._config.step_angle * self.step_sign(step_index)

    def step_rotation_full(self, step_index: int) -> Quaternion:
        return quat_angle_axis(self.step_angle(step_index), UP)

    def step_rotation(self) -> Quaternion:
        """Pivot rotation reached at the current progress."""
        return quat_angle_axis(self.step_angle(self.step_index) * self.step_progress, UP)

    # --- Mutation ---

    def advance(self, elapsed: float) -> int:
        """
        Move the phase forward. Every crossed step boundary relocates the
        foot that is about to start swinging, using the departing step's
        turn, so one long tick lands the feet where many short ticks would.
        Hosts that relocate only once per tick diverge when a tick spans
        several boundaries. Returns the relocation count.
        """
        if elapsed <= 0:
            return 0
        delta = self._config.step_frequency * elapsed
        first = self.step_index
        last = math.floor(self._phase + delta)

        for departing in range(first, last):
            self._relocate(departing)

        self._phase += delta
        return last - first

    def _relocate(self, departing: int) -> None:
        left, right = self._feet
        direction = vec_norm(vec_sub(right, left))
        if vec_len(direction) < 1e-6:
            direction = self._last_dir

        span = quat_rotate_vector(
            self.step_rotation_full(departing),
            vec_mul(direction, self._config.stride),
        )
        if pivot_is_left(departing):
            self._feet[RIGHT_FOOT] = vec_add(left, span)
        else:
            self._feet[LEFT_FOOT] = vec_sub(right, span)
        self._last_dir = vec_norm(span)
        self.relocations += 1
        logger.debug(
            "Step %d ended: relocated %s foot to %s",
            departing, "right" if pivot_is_left(departing) else "left",
            self._feet[RIGHT_FOOT if pivot_is_left(departing) else LEFT_FOOT],
        )

    # --- Queries ---

    def foot_target(self, index: int, bias: float = 0.0) -> Vector3:
        """Foot position for this instant, including the ground bias."""
        this_foot = self._feet[index]
        that_foot = self._feet[(index + 1) & 1]
        lift = vec_mul(UP, bias)

        if self.pivot_is_left ^ (index == RIGHT_FOOT):
            return vec_add(this_foot, lift)

        rp = quat_rotate_vector(self.step_rotation(), vec_sub(this_foot, that_foot))
        up = step_arc(self.step_progress) * self._config.step_height
        return vec_add(vec_add(that_foot, rp), vec_add(vec_mul(UP, up), lift))


def pivot_is_left(step_index: int) -> bool:
    return (step_index & 1) == 0


def step_arc(progress: float) -> float:
    """Normalised swing height: 0 at both ends, 1 at mid step."""
    return math.sin(smoothstep(progress) * math.pi)
