"""
Pose Synthesizer.

Derives body, spine, hand and head targets from the stepping state and the
noise field. Nothing here advances time; every query can be repeated within
a tick and returns the same answer.
"""
from __future__ import annotations

import logging
import math
from typing import Tuple

from engines.puppet_kernel.noise import NoiseField
from engines.puppet_kernel.schemas import DancerConfig
from engines.puppet_kernel.stepping import LEFT_FOOT, RIGHT_FOOT, SteppingStateMachine
from engines.puppet_kernel.vector_math import (
    FORWARD, UP, Matrix4, Quaternion, Vector3,
    mat4_transform_point, quat_angle_axis, quat_look_rotation, quat_mul,
    quat_rotate_vector, vec_add, vec_len, vec_lerp, vec_mul, vec_sub, with_y,
)

logger = logging.getLogger(__name__)

# Noise channels, one per consumer
CH_BODY_POSITION = 0
CH_BODY_ROTATION = 1
CH_HAND_LEFT = 2
CH_HAND_RIGHT = 3
CH_HEAD = 5
CH_TWIST = 6

LEFT_HAND = 0
RIGHT_HAND = 1

# Hip frame yaw relative to the left->right foot axis
BASE_HEADING_DEG = -90.0


class PoseSynthesizer:
    def __init__(self, config: DancerConfig, stepping: SteppingStateMachine, noise: NoiseField):
        self._config = config
        self._stepping = stepping
        self._noise = noise
        self._heading: Quaternion = quat_look_rotation(
            with_y(vec_sub(stepping.feet[RIGHT_FOOT], stepping.feet[LEFT_FOOT]), 0.0)
        )

    # --- Feet ---

    def foot_target(self, index: int, bias: float = 0.0) -> Vector3:
        return self._stepping.foot_target(index, bias)

    # --- Body ---

    def body_position(self, bias: float = 0.0) -> Vector3:
        """Hip position: centred over the support foot, bobbing twice per step."""
        progress = self._stepping.step_progress
        # Keep the centre of mass over the pivot foot
        theta = (progress + (0 if self._stepping.pivot_is_left else 1)) * math.pi
        right = (1 - math.sin(theta)) / 2
        pos = vec_lerp(self.foot_target(LEFT_FOOT, bias), self.foot_target(RIGHT_FOOT, bias), right)

        cfg = self._config
        y = cfg.body_height + math.cos(progress * math.pi * 4) * cfg.step_height / 2
        y += self._noise.value(CH_BODY_POSITION) * cfg.body_position_noise
        return with_y(pos, y)

    def body_rotation(self, bias: float = 0.0) -> Quaternion:
        """Hip rotation facing across the foot axis, plus rotational noise."""
        right = with_y(vec_sub(self.foot_target(RIGHT_FOOT, bias), self.foot_target(LEFT_FOOT, bias)), 0.0)
        if vec_len(right) < 1e-6:
            logger.warning("Feet coincide; keeping previous body heading")
        else:
            self._heading = quat_look_rotation(right)

        rot = quat_mul(quat_angle_axis(BASE_HEADING_DEG, UP), self._heading)
        return quat_mul(rot, self._noise.rotation(CH_BODY_ROTATION, self._config.body_rotation_noise))

    def spine_twist(self) -> Quaternion:
        """Cosmetic sway shared by the spine, chest and upper chest."""
        cfg = self._config
        rx, ry, rz = cfg.twist_noise
        tilt = quat_angle_axis(cfg.twist_tilt, FORWARD)
        return quat_mul(tilt, self._noise.rotation(CH_TWIST, rx, ry, rz))

    # --- Upper body ---

    def hand_target(
        self,
        index: int,
        body_position: Vector3,
        body_rotation: Quaternion,
        chest: Tuple[Matrix4, Matrix4],
    ) -> Vector3:
        """
        Hand reach target. The rest offset follows the body, gets jittered,
        then is clamped in chest space so the hands stay in front of the
        chest and on their own side of it.
        """
        cfg = self._config
        is_left = index == LEFT_HAND
        chest_matrix, chest_matrix_inv = chest

        x, y, z = cfg.hand_position
        if is_left:
            x = -x
        pos = vec_add(quat_rotate_vector(body_rotation, (x, y, z)), body_position)

        channel = CH_HAND_LEFT if is_left else CH_HAND_RIGHT
        pos = vec_add(pos, vec_mul(self._noise.vector(channel), cfg.hand_position_noise))

        lx, ly, lz = mat4_transform_point(chest_matrix_inv, pos)
        ly = max(ly, cfg.hand_clamp_min_y)
        lz = max(lz, cfg.hand_clamp_side_z) if is_left else min(lz, -cfg.hand_clamp_side_z)
        return mat4_transform_point(chest_matrix, (lx, ly, lz))

    def look_at_target(self, body_position: Vector3, body_rotation: Quaternion) -> Vector3:
        """Point the head aims at, a fixed distance ahead of the body."""
        cfg = self._config
        nx, ny, _ = vec_mul(self._noise.vector(CH_HEAD), cfg.head_move)
        aim = (nx, ny, cfg.look_at_distance)
        return vec_add(body_position, quat_rotate_vector(body_rotation, aim))
