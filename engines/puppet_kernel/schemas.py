"""Puppet Kernel Schemas (procedural dancer targets)."""
from __future__ import annotations
from enum import Enum
from typing import List, Dict, Optional, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# --- Construction-time configuration ---

class DancerConfig(BaseModel):
    """Immutable tuning for one procedurally animated character."""
    model_config = ConfigDict(frozen=True)

    # Stepping
    step_frequency: float = Field(2.0, ge=0.0) # steps per second
    stride: float = Field(0.4, gt=0.0) # distance between the feet
    step_height: float = Field(0.3, ge=0.0)
    step_angle: float = Field(90.0, ge=0.0, le=180.0) # max turn per step, degrees

    # Body
    body_height: float = 0.9
    body_position_noise: float = Field(0.1, ge=0.0)
    body_rotation_noise: float = Field(30.0, ge=0.0) # degrees

    # Hands (offset of the right hand, mirrored in X for the left one)
    hand_position: List[float] = [0.3, 0.3, -0.2]
    hand_position_noise: float = Field(0.3, ge=0.0)
    hand_clamp_min_y: float = 0.2 # chest-local minimum height
    hand_clamp_side_z: float = Field(0.2, ge=0.0) # chest-local side margin

    # Head
    head_move: float = Field(3.0, ge=0.0)
    look_at_distance: float = Field(2.0, gt=0.0)

    # Upper body twist (degrees)
    twist_tilt: float = -8.0
    twist_noise: List[float] = [30.0, 20.0, 20.0]

    # Noise
    noise_frequency: float = Field(1.1, ge=0.0)
    noise_octaves: int = Field(2, ge=1, le=8)
    random_seed: int = 123

    @field_validator("hand_position", "twist_noise")
    @classmethod
    def _three_components(cls, v: List[float]) -> List[float]:
        if len(v) != 3:
            raise ValueError("expected [x, y, z]")
        return [float(c) for c in v]

    @model_validator(mode="after")
    def _twist_noise_non_negative(self):
        if any(c < 0 for c in self.twist_noise):
            raise ValueError("twist_noise amplitudes must be non-negative")
        return self

# --- Collaborator inputs ---

class BoneFrame(BaseModel):
    """Local-to-world matrix of a bone and its inverse (row-major 4x4)."""
    matrix: List[List[float]]
    matrix_inv: List[List[float]]

    @field_validator("matrix", "matrix_inv")
    @classmethod
    def _four_by_four(cls, v: List[List[float]]) -> List[List[float]]:
        if len(v) != 4 or any(len(row) != 4 for row in v):
            raise ValueError("bone matrices must be 4x4")
        return v

class BodyTransform(BaseModel):
    """Body (hip) placement reported by the solver."""
    position: List[float] = [0.0, 0.0, 0.0] # [x, y, z]
    rotation: List[float] = [0.0, 0.0, 0.0, 1.0] # Quaternion [x, y, z, w]

# --- Per-tick output ---

class IKGoal(str, Enum):
    LEFT_FOOT = "left_foot"
    RIGHT_FOOT = "right_foot"
    LEFT_HAND = "left_hand"
    RIGHT_HAND = "right_hand"

class SpineBone(str, Enum):
    SPINE = "spine"
    CHEST = "chest"
    UPPER_CHEST = "upper_chest"

class IKTarget(BaseModel):
    """A position goal for one effector."""
    goal: IKGoal
    position: List[float] # [x, y, z]
    weight: float = 1.0

class LookAtTarget(BaseModel):
    position: List[float]
    weight: float = 1.0

class TargetBundle(BaseModel):
    """Everything the skeletal solver needs for one tick."""
    step_index: int
    step_progress: float
    feet: List[IKTarget]
    body_position: List[float]
    body_rotation: List[float] # Quaternion [x, y, z, w]
    spine_rotations: Dict[SpineBone, List[float]] = Field(default_factory=dict) # bone -> local rotation
    hands: List[IKTarget]
    look_at: LookAtTarget

    def target(self, goal: IKGoal) -> Optional[IKTarget]:
        for t in self.feet + self.hands:
            if t.goal == goal:
                return t
        return None

# --- Service surface ---

class DancerHandle(BaseModel):
    """A spawned dancer instance."""
    id: str
    config: DancerConfig
    origin: List[float] = [0.0, 0.0, 0.0]
    right_axis: List[float] = [1.0, 0.0, 0.0]

class PuppetOpCode(str, Enum):
    SPAWN = "SPAWN" # Create a dancer instance
    TICK = "TICK" # Advance and emit targets
    DESPAWN = "DESPAWN" # Drop a dancer instance

class AgentPuppetInstruction(BaseModel):
    """Atomic token for the Puppet Kernel."""
    op_code: str # SPAWN, TICK, DESPAWN
    params: Dict[str, Any] = Field(default_factory=dict)
    target_dancer_id: Optional[str] = None
