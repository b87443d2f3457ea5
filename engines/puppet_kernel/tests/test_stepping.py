"""Stepping state machine tests."""
import math

import pytest

from engines.puppet_kernel.hashing import XXHash
from engines.puppet_kernel.schemas import DancerConfig
from engines.puppet_kernel.stepping import (
    LEFT_FOOT, RIGHT_FOOT, SteppingStateMachine, pivot_is_left, step_arc,
)
from engines.puppet_kernel.vector_math import quat_rotate_vector, vec_len, vec_mul, vec_norm, vec_sub


def make_machine(**overrides):
    config = DancerConfig(**overrides)
    return SteppingStateMachine(config, XXHash(config.random_seed))


def close(a, b, tol=1e-6):
    return all(abs(x - y) <= tol for x, y in zip(a, b))


def test_initial_feet_straddle_origin():
    machine = make_machine(stride=0.4)
    left, right = machine.feet
    assert close(left, (-0.2, 0.0, 0.0))
    assert close(right, (0.2, 0.0, 0.0))


def test_initial_feet_follow_spawn_transform():
    config = DancerConfig(stride=0.4)
    machine = SteppingStateMachine(config, XXHash(1), origin=(1.0, 5.0, 2.0), right_axis=(0.0, 0.0, 2.0))
    left, right = machine.feet
    assert close(left, (1.0, 0.0, 1.8))
    assert close(right, (1.0, 0.0, 2.2))


def test_phase_is_monotonic():
    machine = make_machine()
    last = machine.phase
    for dt in [0.0, 1 / 60, 0.2, -0.5, 0.0, 1.3, -1e-3, 1 / 30]:
        machine.advance(dt)
        assert machine.phase >= last
        last = machine.phase


def test_parity_alternates():
    assert pivot_is_left(0)
    assert not pivot_is_left(1)
    assert pivot_is_left(2)
    assert not pivot_is_left(-1)


def test_first_boundary_relocates_once():
    """seed=123, 2 steps/s, 1/60 s ticks: crossing into step 1 relocates once."""
    machine = make_machine(random_seed=123, step_frequency=2.0, stride=0.4)
    relocations = 0
    ticks = 0
    while machine.step_index < 1:
        relocations += machine.advance(1 / 60)
        ticks += 1
        assert ticks <= 32
    assert relocations == 1
    assert machine.relocations == 1

    left, right = machine.feet
    assert vec_len(vec_sub(right, left)) == pytest.approx(0.4, abs=1e-9)


def test_relocation_keeps_pivot_fixed():
    machine = make_machine(step_frequency=1.0)
    left_before, _ = machine.feet
    machine.advance(1.01)  # step 0 ends, left was the pivot
    left_after, _ = machine.feet
    assert left_after == left_before


def test_large_delta_relocates_every_boundary():
    machine = make_machine(step_frequency=1.0, stride=0.5)
    assert machine.advance(3.5) == 3
    assert machine.relocations == 3
    assert machine.step_index == 3
    left, right = machine.feet
    assert vec_len(vec_sub(right, left)) == pytest.approx(0.5, abs=1e-9)


def test_coincident_feet_reuse_last_stride_direction():
    machine = make_machine(step_frequency=1.0, stride=0.4)
    machine.advance(2.5)
    left, right = machine.feet
    last_dir = vec_norm(vec_sub(right, left))

    machine._feet[RIGHT_FOOT] = left  # collapse onto the pivot
    assert machine.advance(0.51) == 1

    new_left, new_right = machine.feet
    assert new_left == left
    assert all(math.isfinite(c) for c in new_right)
    assert vec_len(vec_sub(new_right, new_left)) == pytest.approx(0.4, abs=1e-9)
    expected = quat_rotate_vector(machine.step_rotation_full(2), vec_mul(last_dir, 0.4))
    assert close(vec_sub(new_right, new_left), expected)


def test_stored_feet_stay_on_ground():
    machine = make_machine()
    for _ in range(400):
        machine.advance(1 / 60)
        assert all(f[1] == 0.0 for f in machine.feet)


def test_step_turn_is_stable():
    a = make_machine(random_seed=7)
    b = make_machine(random_seed=7)
    b.advance(12.3)
    for n in range(50):
        assert a.step_angle(n) == b.step_angle(n)
        assert a.step_sign(n) in (-1.0, 1.0)
        magnitude = abs(a.step_angle(n))
        assert 45.0 <= magnitude <= 90.0


class TestFootTargets:

    def test_pivot_foot_returns_stored_plus_bias(self):
        machine = make_machine(step_frequency=1.0)
        machine.advance(0.3)
        left, _ = machine.feet
        assert close(machine.foot_target(LEFT_FOOT, bias=0.08), (left[0], 0.08, left[2]))

    def test_swing_foot_starts_at_stored_position(self):
        machine = make_machine(step_frequency=1.0)
        machine.advance(1.0 + 1e-9)
        left, _ = machine.feet
        assert close(machine.foot_target(LEFT_FOOT), left, tol=1e-6)

    def test_swing_foot_lifts_mid_step(self):
        machine = make_machine(step_frequency=1.0, step_height=0.3)
        machine.advance(0.5)
        assert machine.foot_target(RIGHT_FOOT)[1] == pytest.approx(0.3)

    @pytest.mark.parametrize("seed", [1, 123, 999])
    def test_no_jump_across_step_boundary(self, seed):
        machine = make_machine(random_seed=seed, step_frequency=1.0)
        for _ in range(4):
            target = machine.step_index + 1
            machine.advance(target - machine.phase - 1e-7)
            before = [machine.foot_target(i) for i in (LEFT_FOOT, RIGHT_FOOT)]
            machine.advance(2e-7)
            assert machine.step_index == target
            after = [machine.foot_target(i) for i in (LEFT_FOOT, RIGHT_FOOT)]
            for b, a in zip(before, after):
                assert close(b, a, tol=1e-5)

    def test_queries_are_idempotent(self):
        machine = make_machine()
        machine.advance(0.77)
        first = [machine.foot_target(i, 0.05) for i in (0, 1)]
        second = [machine.foot_target(i, 0.05) for i in (0, 1)]
        assert first == second


def test_arc_non_negative_and_zero_at_ends():
    assert step_arc(0.0) == 0.0
    assert step_arc(1.0) == pytest.approx(0.0, abs=1e-12)
    for i in range(1001):
        assert step_arc(i / 1000) >= 0.0
    assert step_arc(0.5) == pytest.approx(1.0)


def test_zero_frequency_never_steps():
    machine = make_machine(step_frequency=0.0)
    machine.advance(100.0)
    assert machine.phase == 0.0
    assert machine.relocations == 0
    assert not math.isnan(machine.foot_target(RIGHT_FOOT)[0])
