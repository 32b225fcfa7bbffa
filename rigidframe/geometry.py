# geometry.py
"""
Free functions on 3-vectors and 3x3 matrices: normalization, frames,
the hat operator, symmetric eigendecomposition and relative transforms.
"""

import logging
from typing import NamedTuple, Optional, Tuple
import numpy as np
from numpy import ndarray
from numpy import concatenate as np_concatenate
from numpy import isfinite as np_isfinite
from numpy.linalg import eigh as np_eigh
from numpy.linalg import LinAlgError

from rigidframe import kernels
from rigidframe.config import SUPPORTED_DTYPES, as_float_array, default_tolerance
from rigidframe.errors import NotSymmetricError, ShapeError
from rigidframe.transform import RigidTransform

logger = logging.getLogger(__name__)


class EigenDecomposition(NamedTuple):
    """
    Result of `symmetric_eigendecompose`.

    Attributes:
        eigenvalues: length-3 array in ascending order, or None on failure.
        eigenvectors: 3x3 array whose columns are the unit eigenvectors, or None on failure.
        success: False when the decomposition could not be computed.
    """
    eigenvalues: Optional[ndarray]
    eigenvectors: Optional[ndarray]
    success: bool


def normalize(v) -> Tuple[ndarray, bool]:
    """
    Normalize a 3-vector.

    Args:
        v: length-3 array-like.

    Returns:
        (unit vector, True) if |v|^2 > 0, otherwise (copy of v, False).
        A zero vector is signalled through the flag, never by raising.
    """
    return kernels.normalize(as_float_array(v, (3,), "v"))


def triple_product(x, y, z) -> float:
    """
    Scalar triple product x . (y x z).

    This is the signed volume of the parallelepiped spanned by the three
    vectors; its sign tells the orientation of (x, y, z).
    """
    return float(kernels.triple_product(
        as_float_array(x, (3,), "x"),
        as_float_array(y, (3,), "y"),
        as_float_array(z, (3,), "z"),
    ))


def generate_coordinate_system(w) -> Tuple[ndarray, ndarray]:
    """
    Complete a unit vector to an orthonormal frame.

    Args:
        w: unit length-3 vector.

    Returns:
        (u, v) with |u| = |v| = 1, u, v and w mutually orthogonal and
        (w, u, v) right-handed, so u x v = w.
    """
    return kernels.coordinate_system(as_float_array(w, (3,), "w"))


def generate_coordinate_system_axes(axis: ndarray) -> ndarray:
    """
    In-place, column based variant of `generate_coordinate_system`.

    Column 0 of `axis` must already hold a unit vector; the caller is expected
    to have arranged the axes so that column 0 is the one closest to z. This
    is not checked. Columns 1 and 2 are overwritten.

    Args:
        axis: writable 3x3 float32 or float64 ndarray.

    Returns:
        The same array, for chaining.
    """
    if not isinstance(axis, ndarray) or axis.shape != (3, 3):
        raise ShapeError("axis must be a 3x3 ndarray")
    if axis.dtype not in SUPPORTED_DTYPES:
        raise TypeError(f"axis must be float32 or float64, got {axis.dtype}")
    kernels.coordinate_system_axes(axis)
    return axis


def hat(vec) -> ndarray:
    """
    Skew-symmetric ("hat") matrix of a 3-vector.

    Returns:
        H such that H @ x == np.cross(vec, x) for every x.
    """
    return kernels.hat(as_float_array(vec, (3,), "vec"))


def is_symmetric(matrix, tol: Optional[float] = None) -> bool:
    """True if `matrix` equals its transpose within `tol`."""
    m = as_float_array(matrix, (3, 3), "matrix")
    if tol is None:
        tol = default_tolerance(m.dtype)
    return bool(np.all(np.abs(m - m.T) <= tol))


def is_rotation_matrix(matrix, tol: Optional[float] = None) -> bool:
    """True if `matrix` is orthonormal with determinant +1 within `tol`."""
    m = as_float_array(matrix, (3, 3), "matrix")
    if tol is None:
        tol = default_tolerance(m.dtype)
    return bool(kernels.is_rotation(m, tol))


def symmetric_eigendecompose(
    matrix,
    check_symmetric: bool = False,
    tol: Optional[float] = None,
) -> EigenDecomposition:
    """
    Eigenvalues and eigenvectors of a symmetric 3x3 matrix.

    Symmetry is the caller's contract: only the lower triangle is read unless
    `check_symmetric` is set.

    Args:
        matrix: 3x3 array-like.
        check_symmetric: raise NotSymmetricError for non-symmetric input.
        tol: tolerance for the symmetry check.

    Returns:
        EigenDecomposition(eigenvalues, eigenvectors, success). On numerical
        failure `success` is False, both arrays are None and a warning is
        logged.

    Raises:
        NotSymmetricError: only when `check_symmetric` is True.
    """
    m = as_float_array(matrix, (3, 3), "matrix")
    if check_symmetric and not is_symmetric(m, tol):
        raise NotSymmetricError("matrix is not symmetric")

    if not np_isfinite(m).all():
        logger.warning("Failed to compute eigendecomposition: matrix has non-finite entries")
        return EigenDecomposition(None, None, False)

    try:
        eigenvalues, eigenvectors = np_eigh(m)
    except LinAlgError as exc:
        logger.warning("Failed to compute eigendecomposition: %s", exc)
        return EigenDecomposition(None, None, False)
    return EigenDecomposition(eigenvalues, eigenvectors, True)


def combine(v1, v2) -> ndarray:
    """
    Concatenate two vectors into one of length len(v1) + len(v2).

    Raises:
        ShapeError: if either argument is not one-dimensional.
    """
    a = as_float_array(v1, name="v1")
    b = as_float_array(v2, name="v2")
    if a.ndim != 1 or b.ndim != 1:
        raise ShapeError(
            f"combine expects two vectors, got shapes {a.shape} and {b.shape}")
    return np_concatenate((a, b))


def relative_transform(*args) -> Tuple[ndarray, ndarray]:
    """
    Rotation and translation of frame 2 expressed in frame 1.

    Two call forms:

        relative_transform(R1, t1, R2, t2)
        relative_transform(T1, T2)          # two RigidTransforms

    Computes R = R1^T R2 and t = R1^T (t2 - t1), so that composing frame 1
    with (R, t) gives frame 2. Orthonormality of R1 and R2 is not checked.

    Returns:
        (R, t) as a 3x3 matrix and a length-3 vector.

    Raises:
        ShapeError: if a matrix is not 3x3 or a vector is not length 3.
        TypeError: for any other argument list.
    """
    if len(args) == 2:
        tf1, tf2 = args
        if not isinstance(tf1, RigidTransform) or not isinstance(tf2, RigidTransform):
            raise TypeError(
                "relative_transform(T1, T2) expects two RigidTransform instances")
        return kernels.relative_transform(
            tf1.rotation, tf1.translation, tf2.rotation, tf2.translation)

    if len(args) == 4:
        R1, t1, R2, t2 = args
        return kernels.relative_transform(
            as_float_array(R1, (3, 3), "R1"),
            as_float_array(t1, (3,), "t1"),
            as_float_array(R2, (3, 3), "R2"),
            as_float_array(t2, (3,), "t2"),
        )

    raise TypeError(
        f"relative_transform takes 2 or 4 positional arguments, got {len(args)}")


def relative_rigid_transform(tf1: RigidTransform, tf2: RigidTransform) -> RigidTransform:
    """
    Relative transform of `tf2` with respect to `tf1`, as a RigidTransform.

    The result X satisfies tf1 * X == tf2 (up to rounding).
    """
    return tf1.inverse_times(tf2)
