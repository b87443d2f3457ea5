"""External collaborators of the puppet kernel (skeleton queries and the IK solver)."""
from __future__ import annotations

from typing import List, Optional, Protocol

from engines.puppet_kernel.schemas import BodyTransform, BoneFrame, TargetBundle
from engines.puppet_kernel.vector_math import mat4_identity


class BoneQuery(Protocol):
    """Read-only access to the animated skeleton."""

    def reference_frame(self) -> BoneFrame:
        """Chest bone local-to-world / world-to-local pair for this tick."""
        ...

    def foot_bottom_height(self) -> float:
        """Height of the foot joint above the sole."""
        ...


class IKSolver(Protocol):
    """Resolves targets into joint rotations."""

    def body_transform(self) -> BodyTransform:
        """Body placement produced by the previous solve."""
        ...

    def apply_targets(self, bundle: TargetBundle) -> None: ...


def identity_frame() -> BoneFrame:
    m = [list(row) for row in mat4_identity()]
    return BoneFrame(matrix=m, matrix_inv=[list(row) for row in m])


class StaticBoneQuery:
    """Bone query that always reports the same frame. Used headless and in tests."""

    def __init__(self, frame: Optional[BoneFrame] = None, foot_height: float = 0.0):
        self.frame = frame or identity_frame()
        self.foot_height = foot_height

    def reference_frame(self) -> BoneFrame:
        return self.frame

    def foot_bottom_height(self) -> float:
        return self.foot_height


class InMemoryIKSolver:
    """
    Records every bundle it receives and feeds the emitted body placement back
    as the next tick's body transform, the way an engine-side solver would.
    """

    def __init__(self, body: Optional[BodyTransform] = None, keep_history: bool = True):
        self._body = body or BodyTransform()
        self.keep_history = keep_history
        self.history: List[TargetBundle] = []

    def body_transform(self) -> BodyTransform:
        return self._body

    def set_body_transform(self, body: BodyTransform) -> None:
        self._body = body

    def apply_targets(self, bundle: TargetBundle) -> None:
        if self.keep_history:
            self.history.append(bundle)
        self._body = BodyTransform(
            position=list(bundle.body_position),
            rotation=list(bundle.body_rotation),
        )

    @property
    def last(self) -> Optional[TargetBundle]:
        return self.history[-1] if self.history else None
