"""Pose synthesizer tests: body, hands, head and twist."""
import math

import pytest

from engines.puppet_kernel.hashing import XXHash
from engines.puppet_kernel.noise import NoiseField
from engines.puppet_kernel.pose import LEFT_HAND, RIGHT_HAND, PoseSynthesizer
from engines.puppet_kernel.schemas import DancerConfig
from engines.puppet_kernel.stepping import LEFT_FOOT, RIGHT_FOOT, SteppingStateMachine
from engines.puppet_kernel.vector_math import (
    FORWARD, IDENTITY, UP,
    mat4_identity, mat4_inverse_rigid, mat4_transform_point, mat4_trs,
    quat_angle_axis, quat_angle_between, quat_euler, quat_rotate_vector,
)


def build(**overrides):
    config = DancerConfig(**overrides)
    stepping = SteppingStateMachine(config, XXHash(config.random_seed))
    noise = NoiseField(config.random_seed, config.noise_frequency, config.noise_octaves)
    return config, stepping, noise, PoseSynthesizer(config, stepping, noise)


def advance(stepping, noise, dt):
    noise.step(dt)
    stepping.advance(dt)


def close(a, b, tol=1e-6):
    return all(abs(x - y) <= tol for x, y in zip(a, b))


def chest_frame(position=(0.0, 1.2, 0.0), yaw=35.0, pitch=10.0):
    m = mat4_trs(position, quat_euler(pitch, yaw, 0.0))
    return m, mat4_inverse_rigid(m)


class TestBodyPosition:

    def test_centred_and_raised_at_step_start(self):
        config, stepping, noise, pose = build(body_position_noise=0.0)
        pos = pose.body_position()
        assert pos[0] == pytest.approx(0.0)
        assert pos[2] == pytest.approx(0.0)
        assert pos[1] == pytest.approx(config.body_height + config.step_height / 2)

    def test_leans_over_pivot_mid_step(self):
        config, stepping, noise, pose = build(body_position_noise=0.0, step_frequency=1.0)
        advance(stepping, noise, 0.5)
        pos = pose.body_position()
        # Pivot is the left foot; the hip sits right above it
        assert close((pos[0], pos[2]), (stepping.feet[LEFT_FOOT][0], stepping.feet[LEFT_FOOT][2]))

    def test_double_bob_per_step(self):
        config, stepping, noise, pose = build(body_position_noise=0.0, step_frequency=1.0)
        advance(stepping, noise, 0.25)
        low = pose.body_position()[1]
        advance(stepping, noise, 0.25)
        high = pose.body_position()[1]
        assert low == pytest.approx(config.body_height - config.step_height / 2)
        assert high == pytest.approx(config.body_height + config.step_height / 2)

    @pytest.mark.parametrize("octaves", [2, 8])
    def test_body_noise_bounded(self, octaves):
        config, stepping, noise, pose = build(noise_octaves=octaves, noise_frequency=4.0)
        for _ in range(2000):
            advance(stepping, noise, 1 / 30)
            y = pose.body_position()[1]
            base = config.body_height + math.cos(stepping.step_progress * math.pi * 4) * config.step_height / 2
            assert abs(y - base) <= config.body_position_noise + 1e-9


class TestBodyRotation:

    def test_faces_forward_across_feet(self):
        _, _, _, pose = build(body_rotation_noise=0.0)
        facing = quat_rotate_vector(pose.body_rotation(), FORWARD)
        assert close(facing, (0.0, 0.0, 1.0))

    def test_rotation_noise_bounded(self):
        """Noise perturbs the heading by at most three axis amplitudes."""
        _, stepping, noise, pose = build(body_rotation_noise=30.0)
        _, calm_stepping, calm_noise, calm = build(body_rotation_noise=0.0)
        for _ in range(100):
            advance(stepping, noise, 1 / 30)
            advance(calm_stepping, calm_noise, 1 / 30)
            noisy = pose.body_rotation()
            assert all(math.isfinite(c) for c in noisy)
            assert quat_angle_between(noisy, calm.body_rotation()) <= 90.0 + 1e-6
        assert stepping.step_index >= 1

    def test_coincident_feet_keep_previous_heading(self):
        _, stepping, _, pose = build(body_rotation_noise=0.0)
        before = pose.body_rotation()
        stepping._feet[RIGHT_FOOT] = stepping._feet[LEFT_FOOT]
        after = pose.body_rotation()
        assert all(math.isfinite(c) for c in after)
        assert after == pytest.approx(before)


class TestHands:

    @pytest.mark.parametrize("seed", [1, 123, 2024])
    def test_clamped_in_chest_space(self, seed):
        config, stepping, noise, pose = build(random_seed=seed, hand_position_noise=1.5)
        chest = chest_frame()
        body_pos = (0.1, 0.9, -0.2)
        body_rot = quat_angle_axis(20.0, UP)
        for _ in range(240):
            advance(stepping, noise, 1 / 30)
            for index in (LEFT_HAND, RIGHT_HAND):
                world = pose.hand_target(index, body_pos, body_rot, chest)
                lx, ly, lz = mat4_transform_point(chest[1], world)
                assert ly >= config.hand_clamp_min_y - 1e-9
                if index == LEFT_HAND:
                    assert lz >= config.hand_clamp_side_z - 1e-9
                else:
                    assert lz <= -config.hand_clamp_side_z + 1e-9

    def test_rest_offset_mirrored(self):
        _, _, _, pose = build(hand_position_noise=0.0, hand_position=[0.3, 0.5, 0.4], hand_clamp_min_y=0.0, hand_clamp_side_z=0.0)
        identity = (mat4_identity(), mat4_identity())
        left = pose.hand_target(LEFT_HAND, (0.0, 0.0, 0.0), IDENTITY, identity)
        right = pose.hand_target(RIGHT_HAND, (0.0, 0.0, 0.0), IDENTITY, identity)
        assert close(right, (0.3, 0.5, 0.0))  # right hand z clamped to <= 0
        assert close(left, (-0.3, 0.5, 0.4))

    def test_hand_follows_body_transform(self):
        _, _, _, pose = build(hand_position_noise=0.0, hand_clamp_min_y=0.0, hand_clamp_side_z=0.0)
        # Chest sits at the hip so the rest pose needs no clamping
        chest_matrix = mat4_trs((1.0, 2.0, 3.0), IDENTITY)
        chest = (chest_matrix, mat4_inverse_rigid(chest_matrix))
        rot = quat_angle_axis(90.0, UP)
        right = pose.hand_target(RIGHT_HAND, (1.0, 2.0, 3.0), rot, chest)
        expected = quat_rotate_vector(rot, (0.3, 0.3, -0.2))
        assert close(right, (1.0 + expected[0], 2.0 + expected[1], 3.0 + expected[2]))


class TestHeadAndTwist:

    def test_look_at_fixed_distance_ahead(self):
        _, _, _, pose = build(head_move=0.0)
        target = pose.look_at_target((0.0, 1.0, 0.0), quat_angle_axis(90.0, UP))
        assert close(target, (2.0, 1.0, 0.0))

    def test_look_at_wanders_within_head_move(self):
        config, stepping, noise, pose = build(head_move=3.0)
        for _ in range(200):
            advance(stepping, noise, 1 / 30)
            x, y, z = pose.look_at_target((0.0, 0.0, 0.0), IDENTITY)
            assert z == pytest.approx(config.look_at_distance)
            assert abs(x) <= 3.0 + 1e-9 and abs(y) <= 3.0 + 1e-9

    def test_twist_without_noise_is_pure_tilt(self):
        _, _, _, pose = build(twist_noise=[0.0, 0.0, 0.0])
        assert pose.spine_twist() == pytest.approx(quat_angle_axis(-8.0, FORWARD))

    def test_twist_ignores_stepping(self):
        _, stepping, noise, pose = build()
        noise.step(0.4)
        before = pose.spine_twist()
        stepping.advance(3.3)
        assert pose.spine_twist() == before


def test_queries_idempotent_within_tick():
    _, stepping, noise, pose = build()
    advance(stepping, noise, 0.61)
    chest = chest_frame()
    first = (
        pose.body_position(0.05), pose.body_rotation(0.05),
        pose.hand_target(LEFT_HAND, (0.0, 1.0, 0.0), IDENTITY, chest),
        pose.look_at_target((0.0, 1.0, 0.0), IDENTITY),
    )
    second = (
        pose.body_position(0.05), pose.body_rotation(0.05),
        pose.hand_target(LEFT_HAND, (0.0, 1.0, 0.0), IDENTITY, chest),
        pose.look_at_target((0.0, 1.0, 0.0), IDENTITY),
    )
    assert first == second
