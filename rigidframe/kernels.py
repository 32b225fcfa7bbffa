# kernels.py
"""
Numba kernels shared by the quaternion, transform and geometry modules.

Quaternions are 4-element arrays stored w-first: [w, x, y, z].
All kernels are written out element by element; none of them call BLAS or
LAPACK, so they accept non-contiguous and read-only arrays and mixed
float32/float64 arguments.
"""

import logging
import math
import numpy as np
from numpy import ndarray
from typing import Tuple
from numba import njit

from numba.core.errors import NumbaPerformanceWarning
import warnings
warnings.filterwarnings("ignore", category=NumbaPerformanceWarning)

logger = logging.getLogger(__name__)


#########
# Quaternion kernels
#

@njit(cache=True)
def quaternion_to_rotation(quaternion: ndarray) -> ndarray:
    """
    Convert a unit quaternion [w, x, y, z] to a 3x3 rotation matrix.

    The quaternion is assumed to have unit norm; no normalization is done here.
    """
    w, x, y, z = quaternion[0], quaternion[1], quaternion[2], quaternion[3]

    # precompute products
    xx = x*x
    yy = y*y
    zz = z*z
    xy = x*y
    xz = x*z
    yz = y*z
    wx = w*x
    wy = w*y
    wz = w*z

    R = np.empty((3, 3), dtype=quaternion.dtype)
    R[0, 0] = 1 - 2*(yy + zz)
    R[0, 1] = 2*(xy - wz)
    R[0, 2] = 2*(xz + wy)

    R[1, 0] = 2*(xy + wz)
    R[1, 1] = 1 - 2*(xx + zz)
    R[1, 2] = 2*(yz - wx)

    R[2, 0] = 2*(xz - wy)
    R[2, 1] = 2*(yz + wx)
    R[2, 2] = 1 - 2*(xx + yy)
    return R


@njit(cache=True)
def rotation_to_quaternion(rotation: ndarray) -> ndarray:
    """
    Convert a 3x3 rotation matrix to a unit quaternion [w, x, y, z].

    When the trace is positive the w component is the largest one and is
    recovered first. Otherwise the largest diagonal element picks which of
    x, y, z is recovered first, so the divisor is never close to zero.
    The result is renormalized to absorb drift in the input matrix.
    """
    # unpack to locals (avoids repeated indexing)
    a00, a01, a02 = rotation[0, 0], rotation[0, 1], rotation[0, 2]
    a10, a11, a12 = rotation[1, 0], rotation[1, 1], rotation[1, 2]
    a20, a21, a22 = rotation[2, 0], rotation[2, 1], rotation[2, 2]

    tr = a00 + a11 + a22

    if tr > 0.0:
        S = math.sqrt(tr + 1.0) * 2.0
        qw = 0.25 * S
        qx = (a21 - a12) / S
        qy = (a02 - a20) / S
        qz = (a10 - a01) / S
    else:
        # pick largest diagonal element
        if a00 > a11 and a00 > a22:
            S = math.sqrt(1.0 + a00 - a11 - a22) * 2.0
            qw = (a21 - a12) / S
            qx = 0.25 * S
            qy = (a01 + a10) / S
            qz = (a02 + a20) / S
        elif a11 > a22:
            S = math.sqrt(1.0 + a11 - a00 - a22) * 2.0
            qw = (a02 - a20) / S
            qx = (a01 + a10) / S
            qy = 0.25 * S
            qz = (a12 + a21) / S
        else:
            S = math.sqrt(1.0 + a22 - a00 - a11) * 2.0
            qw = (a10 - a01) / S
            qx = (a02 + a20) / S
            qy = (a12 + a21) / S
            qz = 0.25 * S

    norm = math.sqrt(qw*qw + qx*qx + qy*qy + qz*qz)

    out = np.empty(4, dtype=rotation.dtype)
    out[0] = qw / norm
    out[1] = qx / norm
    out[2] = qy / norm
    out[3] = qz / norm
    return out


@njit(cache=True)
def axis_angle_to_quaternion(axis: ndarray, angle: float) -> ndarray:
    """
    Quaternion [w, x, y, z] for a rotation of `angle` radians about `axis`.

    The axis is normalized first. A zero axis gives the identity rotation.
    """
    ax, ay, az = axis[0], axis[1], axis[2]
    out = np.empty(4, dtype=axis.dtype)

    n2 = ax*ax + ay*ay + az*az
    if n2 == 0.0:
        out[0] = 1.0
        out[1] = 0.0
        out[2] = 0.0
        out[3] = 0.0
        return out

    inv_n = 1.0 / math.sqrt(n2)
    half = 0.5 * angle
    s = math.sin(half) * inv_n
    out[0] = math.cos(half)
    out[1] = ax * s
    out[2] = ay * s
    out[3] = az * s
    return out


@njit(cache=True)
def quaternion_to_axis_angle(quaternion: ndarray) -> Tuple[ndarray, float]:
    """
    Axis and angle (radians) of a unit quaternion [w, x, y, z].

    The angle is 2*acos(w) and lies in [0, 2*pi]. When the vector part is zero
    the rotation is the identity and the axis (1, 0, 0) is returned.
    """
    w, x, y, z = quaternion[0], quaternion[1], quaternion[2], quaternion[3]
    axis = np.empty(3, dtype=quaternion.dtype)

    n2 = x*x + y*y + z*z
    if n2 > 0.0:
        # clamp against drift outside acos' domain
        if w > 1.0:
            w = 1.0
        elif w < -1.0:
            w = -1.0
        angle = 2.0 * math.acos(w)
        inv_n = 1.0 / math.sqrt(n2)
        axis[0] = x * inv_n
        axis[1] = y * inv_n
        axis[2] = z * inv_n
    else:
        angle = 0.0
        axis[0] = 1.0
        axis[1] = 0.0
        axis[2] = 0.0
    return axis, angle


@njit(cache=True)
def quaternion_multiply(a: ndarray, b: ndarray) -> ndarray:
    """
    Hamilton product a * b.

    Rotating by the result is the same as rotating by `b` first, then by `a`:
    R(a * b) = R(a) @ R(b).
    """
    a0, a1, a2, a3 = a[0], a[1], a[2], a[3]
    b0, b1, b2, b3 = b[0], b[1], b[2], b[3]

    out = np.empty(4, dtype=a.dtype)
    out[0] = a0*b0 - a1*b1 - a2*b2 - a3*b3
    out[1] = a0*b1 + a1*b0 + a2*b3 - a3*b2
    out[2] = a0*b2 - a1*b3 + a2*b0 + a3*b1
    out[3] = a0*b3 + a1*b2 - a2*b1 + a3*b0
    return out


@njit(cache=True)
def quaternion_conjugate(quaternion: ndarray) -> ndarray:
    out = np.empty(4, dtype=quaternion.dtype)
    out[0] = quaternion[0]
    out[1] = -quaternion[1]
    out[2] = -quaternion[2]
    out[3] = -quaternion[3]
    return out


@njit(cache=True)
def quaternion_rotate(quaternion: ndarray, v: ndarray) -> ndarray:
    """
    Rotate a 3-vector by a unit quaternion.

    Closed form of the sandwich product q v q*:
        t  = 2 (q_vec x v)
        v' = v + w t + q_vec x t
    """
    w, x, y, z = quaternion[0], quaternion[1], quaternion[2], quaternion[3]
    vx, vy, vz = v[0], v[1], v[2]

    tx = 2.0 * (y*vz - z*vy)
    ty = 2.0 * (z*vx - x*vz)
    tz = 2.0 * (x*vy - y*vx)

    out = np.empty(3, dtype=v.dtype)
    out[0] = vx + w*tx + (y*tz - z*ty)
    out[1] = vy + w*ty + (z*tx - x*tz)
    out[2] = vz + w*tz + (x*ty - y*tx)
    return out


@njit(cache=True)
def quaternion_rotate_many(quaternion: ndarray, points: ndarray) -> ndarray:
    """Rotate every row of an (N, 3) array by a unit quaternion."""
    w, x, y, z = quaternion[0], quaternion[1], quaternion[2], quaternion[3]
    n = points.shape[0]
    out = np.empty((n, 3), dtype=points.dtype)
    for i in range(n):
        vx, vy, vz = points[i, 0], points[i, 1], points[i, 2]
        tx = 2.0 * (y*vz - z*vy)
        ty = 2.0 * (z*vx - x*vz)
        tz = 2.0 * (x*vy - y*vx)
        out[i, 0] = vx + w*tx + (y*tz - z*ty)
        out[i, 1] = vy + w*ty + (z*tx - x*tz)
        out[i, 2] = vz + w*tz + (x*ty - y*tx)
    return out


#########
# Vector and frame kernels
#

@njit(cache=True)
def normalize(v: ndarray) -> Tuple[ndarray, bool]:
    """
    Unit vector along `v` and a success flag.

    A zero vector is returned unchanged (as a copy) with the flag set to False.
    """
    sq = v[0]*v[0] + v[1]*v[1] + v[2]*v[2]
    out = np.empty(3, dtype=v.dtype)
    if sq > 0.0:
        inv = 1.0 / math.sqrt(sq)
        out[0] = v[0] * inv
        out[1] = v[1] * inv
        out[2] = v[2] * inv
        return out, True
    out[0] = v[0]
    out[1] = v[1]
    out[2] = v[2]
    return out, False


@njit(cache=True)
def triple_product(a: ndarray, b: ndarray, c: ndarray) -> float:
    """a . (b x c)"""
    return (a[0] * (b[1]*c[2] - b[2]*c[1])
            + a[1] * (b[2]*c[0] - b[0]*c[2])
            + a[2] * (b[0]*c[1] - b[1]*c[0]))


@njit(cache=True)
def coordinate_system(w: ndarray) -> Tuple[ndarray, ndarray]:
    """
    Complete the unit vector `w` to a right-handed orthonormal frame (w, u, v).

    The branch on |w.x| >= |w.y| keeps the denominator at least 1/sqrt(2)
    for unit `w`.
    """
    w0, w1, w2 = w[0], w[1], w[2]
    u = np.empty(3, dtype=w.dtype)
    v = np.empty(3, dtype=w.dtype)

    if abs(w0) >= abs(w1):
        # u = (-z, 0, x) / |(-z, 0, x)|
        inv_length = 1.0 / math.sqrt(w0*w0 + w2*w2)
        u[0] = -w2 * inv_length
        u[1] = 0.0
        u[2] = w0 * inv_length
        # v = w x u
        v[0] = w1 * u[2]
        v[1] = w2 * u[0] - w0 * u[2]
        v[2] = -w1 * u[0]
    else:
        # u = (0, z, -y) / |(0, z, -y)|
        inv_length = 1.0 / math.sqrt(w1*w1 + w2*w2)
        u[0] = 0.0
        u[1] = w2 * inv_length
        u[2] = -w1 * inv_length
        v[0] = w1 * u[2] - w2 * u[1]
        v[1] = -w0 * u[2]
        v[2] = w0 * u[1]
    return u, v


@njit(cache=True)
def coordinate_system_axes(axis: ndarray) -> None:
    """
    Fill columns 1 and 2 of `axis` in place from its column 0.

    Same construction as `coordinate_system`, column-wise.
    """
    x, y, z = axis[0, 0], axis[1, 0], axis[2, 0]

    if abs(x) >= abs(y):
        inv_length = 1.0 / math.sqrt(x*x + z*z)
        axis[0, 1] = -z * inv_length
        axis[1, 1] = 0.0
        axis[2, 1] = x * inv_length

        axis[0, 2] = y * axis[2, 1]
        axis[1, 2] = z * axis[0, 1] - x * axis[2, 1]
        axis[2, 2] = -y * axis[0, 1]
    else:
        inv_length = 1.0 / math.sqrt(y*y + z*z)
        axis[0, 1] = 0.0
        axis[1, 1] = z * inv_length
        axis[2, 1] = -y * inv_length

        axis[0, 2] = y * axis[2, 1] - z * axis[1, 1]
        axis[1, 2] = -x * axis[2, 1]
        axis[2, 2] = x * axis[1, 1]


@njit(cache=True)
def hat(vec: ndarray) -> ndarray:
    """Skew-symmetric matrix H with H @ x == vec x x."""
    H = np.zeros((3, 3), dtype=vec.dtype)
    H[0, 1] = -vec[2]
    H[0, 2] = vec[1]
    H[1, 0] = vec[2]
    H[1, 2] = -vec[0]
    H[2, 0] = -vec[1]
    H[2, 1] = vec[0]
    return H


#########
# Matrix kernels
#

@njit(cache=True)
def relative_transform(R1: ndarray, t1: ndarray, R2: ndarray, t2: ndarray) -> Tuple[ndarray, ndarray]:
    """
    R = R1^T R2,  t = R1^T (t2 - t1)

    Maps coordinates local to frame 2 into coordinates local to frame 1.
    """
    R = np.empty((3, 3), dtype=R1.dtype)
    for i in range(3):
        for j in range(3):
            R[i, j] = R1[0, i]*R2[0, j] + R1[1, i]*R2[1, j] + R1[2, i]*R2[2, j]

    d0 = t2[0] - t1[0]
    d1 = t2[1] - t1[1]
    d2 = t2[2] - t1[2]
    t = np.empty(3, dtype=R1.dtype)
    for i in range(3):
        t[i] = R1[0, i]*d0 + R1[1, i]*d1 + R1[2, i]*d2
    return R, t


@njit(cache=True)
def det3(M: ndarray) -> float:
    """Determinant of a 3 x 3."""
    return (
        M[0, 0] * (M[1, 1] * M[2, 2] - M[1, 2] * M[2, 1])
        - M[0, 1] * (M[1, 0] * M[2, 2] - M[1, 2] * M[2, 0])
        + M[0, 2] * (M[1, 0] * M[2, 1] - M[1, 1] * M[2, 0])
    )


@njit(cache=True)
def is_rotation(M: ndarray, tol: float) -> bool:
    """
    True if M has unit, mutually orthogonal columns and det(M) = +1,
    all within the absolute tolerance `tol`.
    """
    # --- 1.  column norms --------------------------------------------------
    for j in range(3):
        n = M[0, j]*M[0, j] + M[1, j]*M[1, j] + M[2, j]*M[2, j]
        if not abs(n - 1.0) <= tol:
            return False

    # --- 2.  cross-column orthogonality -----------------------------------
    d01 = M[0, 0]*M[0, 1] + M[1, 0]*M[1, 1] + M[2, 0]*M[2, 1]
    d02 = M[0, 0]*M[0, 2] + M[1, 0]*M[1, 2] + M[2, 0]*M[2, 2]
    d12 = M[0, 1]*M[0, 2] + M[1, 1]*M[1, 2] + M[2, 1]*M[2, 2]
    if not (abs(d01) <= tol and abs(d02) <= tol and abs(d12) <= tol):
        return False

    # --- 3.  determinant +1 ? --------------------------------------------
    return abs(det3(M) - 1.0) <= tol


@njit(cache=True)
def homogeneous_matrix(rotation: ndarray, translation: ndarray) -> ndarray:
    """4x4 homogeneous matrix [[R, t], [0, 1]]."""
    m = np.zeros((4, 4), dtype=rotation.dtype)
    for i in range(3):
        for j in range(3):
            m[i, j] = rotation[i, j]
        m[i, 3] = translation[i]
    m[3, 3] = 1.0
    return m


def warmup(dtypes=(np.float32, np.float64)) -> None:
    """
    Compile every kernel for the given precisions ahead of first use.

    Numba compiles lazily; call this at application start-up to move the
    compile cost out of the first geometric query.
    """
    for dtype in dtypes:
        logger.debug("Compiling rigidframe kernels for %s", np.dtype(dtype).name)
        q = np.array([1.0, 0.0, 0.0, 0.0], dtype=dtype)
        v = np.array([1.0, 0.0, 0.0], dtype=dtype)
        R = np.eye(3, dtype=dtype)

        quaternion_to_rotation(q)
        rotation_to_quaternion(R)
        axis_angle_to_quaternion(v, 0.0)
        quaternion_to_axis_angle(q)
        quaternion_multiply(q, q)
        quaternion_conjugate(q)
        quaternion_rotate(q, v)
        quaternion_rotate_many(q, R)
        normalize(v)
        triple_product(v, v, v)
        coordinate_system(v)
        coordinate_system_axes(R.copy())
        hat(v)
        relative_transform(R, v, R, v)
        is_rotation(R, 1e-9)
        homogeneous_matrix(R, v)
    logger.debug("rigidframe kernels ready")
