"""Puppet Kernel Service: per-tick orchestration and the dancer registry."""
from __future__ import annotations

import logging
import math
import uuid
from typing import Dict, Iterable, List, Optional, Tuple

from engines.puppet_kernel.collaborators import (
    BoneQuery, IKSolver, InMemoryIKSolver, StaticBoneQuery, identity_frame,
)
from engines.puppet_kernel.config import default_dancer_config
from engines.puppet_kernel.hashing import XXHash
from engines.puppet_kernel.noise import NoiseField
from engines.puppet_kernel.pose import LEFT_HAND, RIGHT_HAND, PoseSynthesizer
from engines.puppet_kernel.schemas import (
    AgentPuppetInstruction, BodyTransform, BoneFrame, DancerConfig, DancerHandle,
    IKGoal, IKTarget, LookAtTarget, PuppetOpCode, SpineBone, TargetBundle,
)
from engines.puppet_kernel.stepping import LEFT_FOOT, RIGHT_FOOT, SteppingStateMachine
from engines.puppet_kernel.vector_math import (
    RIGHT, Matrix4, Vector3, is_finite_vec, mat4,
)

logger = logging.getLogger(__name__)

# Keeps noise channel keys apart from step keys of the same seed
NOISE_SEED_SALT = 0x5BD1E995

FULL_WEIGHT = 1.0


class PuppetInstructionError(ValueError):
    """Raised when an instruction carries unusable parameters."""


class TickOrchestrator:
    """
    Drives one character. Each tick: set the noise frequency, step the noise,
    advance the gait, snapshot the chest frame, then build and emit targets.
    """

    def __init__(
        self,
        config: DancerConfig,
        bone_query: Optional[BoneQuery] = None,
        solver: Optional[IKSolver] = None,
        origin: Vector3 = (0.0, 0.0, 0.0),
        right_axis: Vector3 = RIGHT,
    ):
        self.config = config
        self.bone_query = bone_query or StaticBoneQuery()
        self.solver = solver or InMemoryIKSolver()

        self.hash = XXHash(config.random_seed)
        self.noise = NoiseField(
            config.random_seed ^ NOISE_SEED_SALT,
            config.noise_frequency,
            config.noise_octaves,
        )
        self.stepping = SteppingStateMachine(config, self.hash, origin, right_axis)
        self.pose = PoseSynthesizer(config, self.stepping, self.noise)

        # Valid for the current tick only
        self._chest: Optional[Tuple[Matrix4, Matrix4]] = None
        self._foot_bias = 0.0

    # --- Phase 1: advance ---

    def advance(self, delta_time: float) -> int:
        """Advance noise and gait. Returns the number of foot relocations."""
        if delta_time < 0:
            logger.warning("Negative delta_time %.6f clamped to 0", delta_time)
            delta_time = 0.0
        self._chest = None

        self.noise.frequency = self.config.noise_frequency
        self.noise.step(delta_time)
        return self.stepping.advance(delta_time)

    def snapshot(self, bone_query: Optional[BoneQuery] = None) -> None:
        """Capture the chest frame and foot bias for this tick."""
        query = bone_query or self.bone_query
        frame = query.reference_frame()
        self._chest = (mat4(frame.matrix), mat4(frame.matrix_inv))
        self._foot_bias = float(query.foot_bottom_height())

    # --- Phase 2: query ---

    def query(
        self,
        body: Optional[BodyTransform] = None,
        frame: Optional[BoneFrame] = None,
        foot_bias: Optional[float] = None,
    ) -> TargetBundle:
        """Build the target bundle from the current state. Does not mutate the gait."""
        body = body or BodyTransform()
        body_pos = tuple(float(c) for c in body.position)
        body_rot = tuple(float(c) for c in body.rotation)

        if frame is not None:
            chest = (mat4(frame.matrix), mat4(frame.matrix_inv))
        elif self._chest is not None:
            chest = self._chest
        else:
            fallback = identity_frame()
            chest = (mat4(fallback.matrix), mat4(fallback.matrix_inv))
        bias = self._foot_bias if foot_bias is None else float(foot_bias)

        pose = self.pose
        twist = list(pose.spine_twist())
        return TargetBundle(
            step_index=self.stepping.step_index,
            step_progress=self.stepping.step_progress,
            feet=[
                IKTarget(goal=IKGoal.LEFT_FOOT, position=list(pose.foot_target(LEFT_FOOT, bias)), weight=FULL_WEIGHT),
                IKTarget(goal=IKGoal.RIGHT_FOOT, position=list(pose.foot_target(RIGHT_FOOT, bias)), weight=FULL_WEIGHT),
            ],
            body_position=list(pose.body_position(bias)),
            body_rotation=list(pose.body_rotation(bias)),
            spine_rotations={
                SpineBone.SPINE: list(twist),
                SpineBone.CHEST: list(twist),
                SpineBone.UPPER_CHEST: list(twist),
            },
            hands=[
                IKTarget(goal=IKGoal.LEFT_HAND, position=list(pose.hand_target(LEFT_HAND, body_pos, body_rot, chest)), weight=FULL_WEIGHT),
                IKTarget(goal=IKGoal.RIGHT_HAND, position=list(pose.hand_target(RIGHT_HAND, body_pos, body_rot, chest)), weight=FULL_WEIGHT),
            ],
            look_at=LookAtTarget(position=list(pose.look_at_target(body_pos, body_rot)), weight=FULL_WEIGHT),
        )

    # --- Full tick ---

    def tick(self, delta_time: float) -> TargetBundle:
        self.advance(delta_time)
        self.snapshot()
        bundle = self.query(body=self.solver.body_transform())
        self.solver.apply_targets(bundle)
        return bundle


def run_ticks(orchestrator: TickOrchestrator, deltas: Iterable[float]) -> List[TargetBundle]:
    """Headless host loop: one full tick per delta."""
    return [orchestrator.tick(dt) for dt in deltas]


# ===== Input validation =====

def _check_vector(name: str, value, size: int) -> Optional[str]:
    if not isinstance(value, (list, tuple)) or len(value) != size:
        return f"{name} must have {size} components"
    try:
        if not is_finite_vec(value):
            return f"{name} contains NaN/Inf: {value}"
    except (TypeError, ValueError):
        return f"{name} must be numeric: {value}"
    return None


def _check_matrix(name: str, value) -> Optional[str]:
    if not isinstance(value, (list, tuple)) or len(value) != 4:
        return f"{name} must be 4x4"
    for row in value:
        error = _check_vector(name, row, 4)
        if error:
            return error
    return None


def validate_tick_input(
    delta_time,
    body_position=None,
    body_rotation=None,
    chest_matrix=None,
    chest_matrix_inv=None,
    foot_bottom_height=None,
) -> Optional[str]:
    """
    Validate per-tick inputs coming from a host.

    Returns:
        Error message if invalid, None if valid
    """
    if isinstance(delta_time, bool) or not isinstance(delta_time, (int, float)):
        return "delta_time must be a number"
    if not math.isfinite(delta_time):
        return f"delta_time must be finite: {delta_time}"
    if delta_time < 0:
        return f"delta_time must be non-negative: {delta_time}"

    if body_position is not None:
        error = _check_vector("body_position", body_position, 3)
        if error:
            return error
    if body_rotation is not None:
        error = _check_vector("body_rotation", body_rotation, 4)
        if error:
            return error
        if sum(float(c) * float(c) for c in body_rotation) < 1e-12:
            return "body_rotation must be a non-zero quaternion"

    if (chest_matrix is None) != (chest_matrix_inv is None):
        return "chest_matrix and chest_matrix_inv must be supplied together"
    if chest_matrix is not None:
        error = _check_matrix("chest_matrix", chest_matrix) or _check_matrix("chest_matrix_inv", chest_matrix_inv)
        if error:
            return error

    if foot_bottom_height is not None:
        if isinstance(foot_bottom_height, bool) or not isinstance(foot_bottom_height, (int, float)):
            return "foot_bottom_height must be a number"
        if not math.isfinite(foot_bottom_height):
            return f"foot_bottom_height must be finite: {foot_bottom_height}"
    return None


# ===== Dancer registry =====

class _DancerSlot:
    def __init__(self, handle: DancerHandle, bones: StaticBoneQuery, solver: InMemoryIKSolver):
        self.handle = handle
        self.bones = bones
        self.solver = solver
        self.orchestrator = TickOrchestrator(
            handle.config,
            bone_query=bones,
            solver=solver,
            origin=tuple(handle.origin),
            right_axis=tuple(handle.right_axis),
        )


class PuppetService:
    """In-memory registry of dancers; one independent kernel per character."""

    def __init__(self):
        self._dancers: Dict[str, _DancerSlot] = {} # id -> slot

    def execute_instruction(self, instruction: AgentPuppetInstruction) -> Optional[object]:
        """
        Executes a puppet instruction.
        """
        op = instruction.op_code.upper()
        params = instruction.params
        target_id = instruction.target_dancer_id

        if op == PuppetOpCode.SPAWN.value:
            return self.spawn(
                config=params.get("config") or {},
                origin=params.get("origin", [0.0, 0.0, 0.0]),
                right_axis=params.get("right_axis", [1.0, 0.0, 0.0]),
            )

        if target_id and target_id in self._dancers:
            if op == PuppetOpCode.TICK.value:
                return self.tick(
                    target_id,
                    delta_time=params.get("delta_time", 0.0),
                    body_position=params.get("body_position"),
                    body_rotation=params.get("body_rotation"),
                    chest_matrix=params.get("chest_matrix"),
                    chest_matrix_inv=params.get("chest_matrix_inv"),
                    foot_bottom_height=params.get("foot_bottom_height"),
                )
            if op == PuppetOpCode.DESPAWN.value:
                return self.despawn(target_id)

        return None

    def spawn(self, config: Dict = None, origin=(0.0, 0.0, 0.0), right_axis=(1.0, 0.0, 0.0)) -> DancerHandle:
        error = _check_vector("origin", origin, 3) or _check_vector("right_axis", right_axis, 3)
        if error:
            raise PuppetInstructionError(error)

        dancer_config = config if isinstance(config, DancerConfig) else default_dancer_config(**(config or {}))
        handle = DancerHandle(
            id=str(uuid.uuid4()),
            config=dancer_config,
            origin=[float(c) for c in origin],
            right_axis=[float(c) for c in right_axis],
        )
        self._dancers[handle.id] = _DancerSlot(
            handle, StaticBoneQuery(), InMemoryIKSolver(keep_history=False)
        )
        logger.debug("Spawned dancer %s (seed=%d)", handle.id, dancer_config.random_seed)
        return handle

    def tick(
        self,
        dancer_id: str,
        delta_time: float = 0.0,
        body_position=None,
        body_rotation=None,
        chest_matrix=None,
        chest_matrix_inv=None,
        foot_bottom_height=None,
    ) -> Optional[TargetBundle]:
        slot = self._dancers.get(dancer_id)
        if slot is None:
            return None

        error = validate_tick_input(
            delta_time, body_position, body_rotation,
            chest_matrix, chest_matrix_inv, foot_bottom_height,
        )
        if error:
            raise PuppetInstructionError(error)

        if chest_matrix is not None:
            slot.bones.frame = BoneFrame(matrix=chest_matrix, matrix_inv=chest_matrix_inv)
        if foot_bottom_height is not None:
            slot.bones.foot_height = float(foot_bottom_height)
        if body_position is not None or body_rotation is not None:
            current = slot.solver.body_transform()
            slot.solver.set_body_transform(BodyTransform(
                position=list(body_position) if body_position is not None else current.position,
                rotation=list(body_rotation) if body_rotation is not None else current.rotation,
            ))
        return slot.orchestrator.tick(float(delta_time))

    def despawn(self, dancer_id: str) -> Optional[DancerHandle]:
        slot = self._dancers.pop(dancer_id, None)
        return slot.handle if slot else None

    def get_dancer(self, dancer_id: str) -> Optional[TickOrchestrator]:
        slot = self._dancers.get(dancer_id)
        return slot.orchestrator if slot else None

    def list_dancers(self) -> List[DancerHandle]:
        return [slot.handle for slot in self._dancers.values()]
