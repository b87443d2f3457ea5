"""
Tuple-based vector, quaternion and matrix helpers for the puppet kernel.
Y is up, Z is forward, X is right.
"""
import math
from typing import List, Sequence, Tuple

# Plain tuples keep the per-tick math dependency free.
Vector3 = Tuple[float, float, float]
Quaternion = Tuple[float, float, float, float]
Matrix4 = Tuple[Tuple[float, float, float, float], ...]

UP: Vector3 = (0.0, 1.0, 0.0)
FORWARD: Vector3 = (0.0, 0.0, 1.0)
RIGHT: Vector3 = (1.0, 0.0, 0.0)
IDENTITY: Quaternion = (0.0, 0.0, 0.0, 1.0)

def vec_sub(a: Vector3, b: Vector3) -> Vector3:
    return (a[0]-b[0], a[1]-b[1], a[2]-b[2])

def vec_add(a: Vector3, b: Vector3) -> Vector3:
    return (a[0]+b[0], a[1]+b[1], a[2]+b[2])

def vec_mul(a: Vector3, s: float) -> Vector3:
    return (a[0]*s, a[1]*s, a[2]*s)

def vec_dot(a: Vector3, b: Vector3) -> float:
    return a[0]*b[0] + a[1]*b[1] + a[2]*b[2]

def vec_cross(a: Vector3, b: Vector3) -> Vector3:
    return (
        a[1]*b[2] - a[2]*b[1],
        a[2]*b[0] - a[0]*b[2],
        a[0]*b[1] - a[1]*b[0]
    )

def vec_len(v: Vector3) -> float:
    return math.sqrt(vec_dot(v, v))

def vec_norm(v: Vector3) -> Vector3:
    l = vec_len(v)
    if l < 1e-6: return (0.0, 0.0, 0.0)
    return vec_mul(v, 1.0/l)

def vec_lerp(a: Vector3, b: Vector3, t: float) -> Vector3:
    """Linear interpolation with t clamped to [0, 1]."""
    t = max(0.0, min(1.0, t))
    return (
        a[0] + (b[0]-a[0])*t,
        a[1] + (b[1]-a[1])*t,
        a[2] + (b[2]-a[2])*t,
    )

def with_y(v: Vector3, y: float) -> Vector3:
    return (v[0], y, v[2])

def smoothstep(x: float) -> float:
    """Cubic ease, zero slope at both ends."""
    return x * x * (3 - 2 * x)

def quat_from_axis_angle(axis: Vector3, angle: float) -> Quaternion:
    """Standard Quat construction (angle in radians)."""
    half = angle * 0.5
    s = math.sin(half)
    return (axis[0]*s, axis[1]*s, axis[2]*s, math.cos(half))

def quat_angle_axis(degrees: float, axis: Vector3) -> Quaternion:
    """Degrees variant; axis is normalised first."""
    return quat_from_axis_angle(vec_norm(axis), math.radians(degrees))

def quat_mul(q1: Quaternion, q2: Quaternion) -> Quaternion:
    """Hamilton Product."""
    x1, y1, z1, w1 = q1
    x2, y2, z2, w2 = q2
    return (
        w1*x2 + x1*w2 + y1*z2 - z1*y2,
        w1*y2 - x1*z2 + y1*w2 + z1*x2,
        w1*z2 + x1*y2 - y1*x2 + z1*w2,
        w1*w2 - x1*x2 - y1*y2 - z1*z2
    )

def quat_rotate_vector(q: Quaternion, v: Vector3) -> Vector3:
    # Rotate vector v by quaternion q: q * v * q_conj (treat v as quaternion [v,0])
    x, y, z, w = q
    # q * v
    vx =  w * v[0] + y * v[2] - z * v[1]
    vy =  w * v[1] + z * v[0] - x * v[2]
    vz =  w * v[2] + x * v[1] - y * v[0]
    vw = -x * v[0] - y * v[1] - z * v[2]
    # (q*v) * q_conj
    cx = vw * (-x) + vx * w + vy * (-z) - vz * (-y)
    cy = vw * (-y) + vy * w + vz * (-x) - vx * (-z)
    cz = vw * (-z) + vz * w + vx * (-y) - vy * (-x)
    return (cx, cy, cz)

def quat_euler(x_deg: float, y_deg: float, z_deg: float) -> Quaternion:
    """
    Euler angles in degrees, applied Z first, then X, then Y
    (the usual game-engine convention for a Y-up world).
    """
    qx = quat_angle_axis(x_deg, RIGHT)
    qy = quat_angle_axis(y_deg, UP)
    qz = quat_angle_axis(z_deg, FORWARD)
    return quat_mul(quat_mul(qy, qx), qz)

def quat_look_rotation(forward: Vector3, up: Vector3 = UP) -> Quaternion:
    """
    Rotation that maps +Z onto `forward` and keeps +Y as close to `up` as possible.
    A zero forward vector yields the identity.
    """
    z = vec_norm(forward)
    if vec_len(z) < 1e-6:
        return IDENTITY
    x = vec_norm(vec_cross(up, z))
    if vec_len(x) < 1e-6:
        # forward is parallel to up; fall back to a rotation that only tilts
        return _quat_from_to(FORWARD, z)
    y = vec_cross(z, x)

    # Rotation matrix columns are x, y, z
    m00, m01, m02 = x[0], y[0], z[0]
    m10, m11, m12 = x[1], y[1], z[1]
    m20, m21, m22 = x[2], y[2], z[2]

    trace = m00 + m11 + m22
    if trace > 0.0:
        s = math.sqrt(trace + 1.0) * 2
        return ((m21 - m12) / s, (m02 - m20) / s, (m10 - m01) / s, 0.25 * s)
    if m00 > m11 and m00 > m22:
        s = math.sqrt(1.0 + m00 - m11 - m22) * 2
        return (0.25 * s, (m01 + m10) / s, (m02 + m20) / s, (m21 - m12) / s)
    if m11 > m22:
        s = math.sqrt(1.0 + m11 - m00 - m22) * 2
        return ((m01 + m10) / s, 0.25 * s, (m12 + m21) / s, (m02 - m20) / s)
    s = math.sqrt(1.0 + m22 - m00 - m11) * 2
    return ((m02 + m20) / s, (m12 + m21) / s, 0.25 * s, (m10 - m01) / s)

def _quat_from_to(a: Vector3, b: Vector3) -> Quaternion:
    axis = vec_cross(a, b)
    if vec_len(axis) < 1e-6:
        if vec_dot(a, b) > 0:
            return IDENTITY
        return quat_from_axis_angle(UP, math.pi)
    angle = math.acos(max(-1.0, min(1.0, vec_dot(vec_norm(a), vec_norm(b)))))
    return quat_from_axis_angle(vec_norm(axis), angle)

def quat_angle_between(a: Quaternion, b: Quaternion) -> float:
    """Angle in degrees between two rotations."""
    d = abs(a[0]*b[0] + a[1]*b[1] + a[2]*b[2] + a[3]*b[3])
    return math.degrees(2.0 * math.acos(min(1.0, d)))

def mat4(rows: Sequence[Sequence[float]]) -> Matrix4:
    """Coerce a nested 4x4 sequence (row-major) into a tuple matrix."""
    if len(rows) != 4 or any(len(r) != 4 for r in rows):
        raise ValueError("matrix must be 4x4")
    return tuple(tuple(float(c) for c in r) for r in rows)

def mat4_identity() -> Matrix4:
    return tuple(tuple(1.0 if i == j else 0.0 for j in range(4)) for i in range(4))

def mat4_trs(position: Vector3, rotation: Quaternion, scale: Vector3 = (1.0, 1.0, 1.0)) -> Matrix4:
    """Translate * Rotate * Scale, row-major, column-vector convention."""
    cx = vec_mul(quat_rotate_vector(rotation, RIGHT), scale[0])
    cy = vec_mul(quat_rotate_vector(rotation, UP), scale[1])
    cz = vec_mul(quat_rotate_vector(rotation, FORWARD), scale[2])
    return (
        (cx[0], cy[0], cz[0], position[0]),
        (cx[1], cy[1], cz[1], position[1]),
        (cx[2], cy[2], cz[2], position[2]),
        (0.0, 0.0, 0.0, 1.0),
    )

def mat4_inverse_rigid(m: Matrix4) -> Matrix4:
    """
    Inverse of an affine matrix whose 3x3 part is rotation * scale.
    Works for non-uniform scale as long as the axes stay orthogonal.
    """
    cols = [(m[0][i], m[1][i], m[2][i]) for i in range(3)]
    inv_rows: List[Vector3] = []
    for c in cols:
        sq = vec_dot(c, c)
        if sq < 1e-12:
            raise ValueError("matrix is singular")
        inv_rows.append(vec_mul(c, 1.0 / sq))
    t = (m[0][3], m[1][3], m[2][3])
    return (
        (inv_rows[0][0], inv_rows[0][1], inv_rows[0][2], -vec_dot(inv_rows[0], t)),
        (inv_rows[1][0], inv_rows[1][1], inv_rows[1][2], -vec_dot(inv_rows[1], t)),
        (inv_rows[2][0], inv_rows[2][1], inv_rows[2][2], -vec_dot(inv_rows[2], t)),
        (0.0, 0.0, 0.0, 1.0),
    )

def mat4_transform_point(m: Matrix4, p: Vector3) -> Vector3:
    """Affine point transform (w = 1)."""
    return (
        m[0][0]*p[0] + m[0][1]*p[1] + m[0][2]*p[2] + m[0][3],
        m[1][0]*p[0] + m[1][1]*p[1] + m[1][2]*p[2] + m[1][3],
        m[2][0]*p[0] + m[2][1]*p[1] + m[2][2]*p[2] + m[2][3],
    )

def is_finite_vec(v: Sequence[float]) -> bool:
    return all(math.isfinite(float(c)) for c in v)
