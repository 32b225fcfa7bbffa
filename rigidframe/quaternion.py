# quaternion.py

from numbers import Real
from typing import Iterator, Optional, Tuple, Union
import numpy as np
from numpy import ndarray
from numpy import array as np_array
from numpy import allclose as np_allclose
from numpy import array_equal as np_array_equal
from numpy import column_stack as np_column_stack

from rigidframe.config import as_float_array, default_tolerance, resolve_dtype, result_dtype
from rigidframe.errors import DegenerateQuaternionError, NotRotationError, ShapeError
from rigidframe.kernels import (
    axis_angle_to_quaternion,
    is_rotation,
    quaternion_conjugate,
    quaternion_multiply,
    quaternion_rotate,
    quaternion_rotate_many,
    quaternion_to_axis_angle,
    quaternion_to_rotation,
    rotation_to_quaternion,
)


class Quaternion:
    """
    A quaternion w + xi + yj + zk used to represent 3D rotations.

    Only unit quaternions represent rotations. The named constructors
    (`from_rotation`, `from_axes`, `from_axis_angle`) always return unit
    quaternions for valid input; the generic arithmetic operators do not
    renormalize, so sums and scaled quaternions may leave the unit sphere.
    Use `normalized()` to bring them back.

    Components are stored w-first in a length-4 float32 or float64 array.
    """
    __slots__ = ('_data',)

    def __init__(self, w: float = 1.0, x: float = 0.0, y: float = 0.0, z: float = 0.0, dtype=None):
        self._data = np_array([w, x, y, z], dtype=resolve_dtype(dtype))

    @classmethod
    def identity(cls, dtype=None) -> "Quaternion":
        """The identity rotation (1, 0, 0, 0)."""
        return cls(1.0, 0.0, 0.0, 0.0, dtype=dtype)

    @classmethod
    def from_unsafe(cls, data: ndarray) -> "Quaternion":
        """Wrap a length-4 w-first float array without copying or checking it."""
        instance = object.__new__(cls)
        instance._data = data
        return instance

    @classmethod
    def from_array(cls, quaternion, w_last: bool = False) -> "Quaternion":
        """
        Create a Quaternion from a 4-element array.

        Args:
            quaternion: [w, x, y, z], or [x, y, z, w] if `w_last` is True.
            w_last: component order of the input.
        """
        q = as_float_array(quaternion, (4,), "quaternion")
        if w_last:
            data = np_array([q[3], q[0], q[1], q[2]], dtype=q.dtype)
        else:
            data = q.copy()
        return cls.from_unsafe(data)

    @classmethod
    def from_rotation(cls, rotation, check: bool = False, tol: Optional[float] = None) -> "Quaternion":
        """
        Create a unit Quaternion from a 3x3 rotation matrix.

        Args:
            rotation: 3x3 rotation matrix.
            check: if True, raise NotRotationError when `rotation` is not
                orthonormal with det +1.
            tol: tolerance for the check.
        """
        R = as_float_array(rotation, (3, 3), "rotation")
        if check:
            if tol is None:
                tol = default_tolerance(R.dtype)
            if not is_rotation(R, tol):
                raise NotRotationError("rotation is not an orthonormal matrix with det +1")
        return cls.from_unsafe(rotation_to_quaternion(R))

    @classmethod
    def from_axes(cls, axis0, axis1, axis2, check: bool = False) -> "Quaternion":
        """
        Create a Quaternion from three orthonormal axes.

        The axes are the columns of the rotation matrix: the result maps the
        world x, y, z axes onto `axis0`, `axis1`, `axis2`.
        """
        R = np_column_stack((
            as_float_array(axis0, (3,), "axis0"),
            as_float_array(axis1, (3,), "axis1"),
            as_float_array(axis2, (3,), "axis2"),
        ))
        return cls.from_rotation(R, check=check)

    @classmethod
    def from_axis_angle(cls, axis, angle: float) -> "Quaternion":
        """
        Create a Quaternion rotating by `angle` radians about `axis`.

        The axis does not need to be unit length. A zero axis gives the
        identity.
        """
        return cls.from_unsafe(axis_angle_to_quaternion(as_float_array(axis, (3,), "axis"), float(angle)))

    #########
    # Component access
    #

    @property
    def w(self) -> float:
        return float(self._data[0])

    @w.setter
    def w(self, value: float):
        self._data[0] = value

    @property
    def x(self) -> float:
        return float(self._data[1])

    @x.setter
    def x(self, value: float):
        self._data[1] = value

    @property
    def y(self) -> float:
        return float(self._data[2])

    @y.setter
    def y(self, value: float):
        self._data[2] = value

    @property
    def z(self) -> float:
        return float(self._data[3])

    @z.setter
    def z(self, value: float):
        self._data[3] = value

    @property
    def vector(self) -> ndarray:
        """The vector part (x, y, z) as a new array."""
        return self._data[1:].copy()

    @property
    def dtype(self) -> np.dtype:
        return self._data.dtype

    def as_array(self, w_last: bool = False) -> ndarray:
        """
        Components as a new length-4 array.

        Args:
            w_last: if True return [x, y, z, w], otherwise [w, x, y, z].
        """
        if w_last:
            return np_array([self._data[1], self._data[2], self._data[3], self._data[0]], dtype=self._data.dtype)
        return self._data.copy()

    #########
    # Conversions
    #

    def to_rotation(self) -> ndarray:
        """3x3 rotation matrix of this (unit) quaternion."""
        return quaternion_to_rotation(self._data)

    def to_axes(self) -> Tuple[ndarray, ndarray, ndarray]:
        """The three columns of the rotation matrix."""
        R = quaternion_to_rotation(self._data)
        return R[:, 0].copy(), R[:, 1].copy(), R[:, 2].copy()

    def to_axis_angle(self) -> Tuple[ndarray, float]:
        """
        Rotation axis (unit vector) and angle in radians, angle in [0, 2*pi].

        The identity returns the axis (1, 0, 0) with angle 0.
        """
        axis, angle = quaternion_to_axis_angle(self._data)
        return axis, float(angle)

    #########
    # Algebra
    #

    def dot(self, other: "Quaternion") -> float:
        return float(self._data @ other._data)

    def squared_norm(self) -> float:
        return float(self._data @ self._data)

    def norm(self) -> float:
        return float(np.sqrt(self.squared_norm()))

    def normalized(self) -> "Quaternion":
        """
        Unit quaternion pointing the same way.

        Raises:
            DegenerateQuaternionError: for the zero quaternion.
        """
        n = self.norm()
        if n == 0.0:
            raise DegenerateQuaternionError("cannot normalize a zero quaternion")
        return self.from_unsafe(self._data / n)

    def conjugate(self) -> "Quaternion":
        """New quaternion with the vector part negated."""
        return self.from_unsafe(quaternion_conjugate(self._data))

    def conj(self) -> "Quaternion":
        """Conjugate in place. Returns self."""
        self._data[1:] = -self._data[1:]
        return self

    def inverse(self) -> "Quaternion":
        """
        Multiplicative inverse conj(q) / |q|^2.

        Correct for any non-zero quaternion, not only unit ones.

        Raises:
            DegenerateQuaternionError: for the zero quaternion.
        """
        n2 = self.squared_norm()
        if n2 == 0.0:
            raise DegenerateQuaternionError("the zero quaternion has no inverse")
        return self.from_unsafe(quaternion_conjugate(self._data) / n2)

    def invert(self) -> "Quaternion":
        """Invert in place. Returns self."""
        self._data = self.inverse()._data
        return self

    def rotate(self, v) -> ndarray:
        """
        Rotate a vector, or every row of an (N, 3) array, by this quaternion.

        Equivalent to q * (0, v) * conj(q) for a unit quaternion, computed in
        closed form.
        """
        v = as_float_array(v, name="v")
        dtype = result_dtype(self._data, v)
        q = self._data.astype(dtype, copy=False)
        v = v.astype(dtype, copy=False)
        if v.shape == (3,):
            return quaternion_rotate(q, v)
        if v.ndim == 2 and v.shape[1] == 3:
            return quaternion_rotate_many(q, v)
        raise ShapeError(f"v must have shape (3,) or (N, 3), got {v.shape}")

    def is_identity(self) -> bool:
        """
        True only if the components are exactly (1, 0, 0, 0).

        This is an exact test: rounding drift, or the equivalent rotation
        (-1, 0, 0, 0), make it return False. See `is_identity_rotation`.
        """
        d = self._data
        return bool(d[0] == 1 and d[1] == 0 and d[2] == 0 and d[3] == 0)

    def is_identity_rotation(self, tol: Optional[float] = None) -> bool:
        """
        True if this quaternion represents the identity rotation within `tol`.

        Both (1, 0, 0, 0) and (-1, 0, 0, 0) count as the identity.
        """
        if tol is None:
            tol = default_tolerance(self._data.dtype)
        d = self._data
        return bool(abs(abs(d[0]) - 1.0) <= tol and np.all(np.abs(d[1:]) <= tol))

    def allclose(self, other: "Quaternion", tol: Optional[float] = None, double_cover: bool = True) -> bool:
        """
        Component-wise comparison within `tol`.

        Args:
            other: quaternion to compare with.
            tol: absolute tolerance, defaults to the precision's tolerance.
            double_cover: if True, q and -q compare equal since they are the
                same rotation.
        """
        if tol is None:
            tol = default_tolerance(self._data.dtype)
        if np_allclose(self._data, other._data, rtol=0.0, atol=tol):
            return True
        return bool(double_cover and np_allclose(self._data, -other._data, rtol=0.0, atol=tol))

    def copy(self) -> "Quaternion":
        return self.from_unsafe(self._data.copy())

    def _promoted(self, other: "Quaternion") -> Tuple[ndarray, ndarray]:
        dtype = result_dtype(self._data, other._data)
        return self._data.astype(dtype, copy=False), other._data.astype(dtype, copy=False)

    #########
    # Dunder methods
    #

    def __add__(self, other: "Quaternion") -> "Quaternion":
        if not isinstance(other, Quaternion):
            return NotImplemented
        return self.from_unsafe(self._data + other._data)

    def __iadd__(self, other: "Quaternion") -> "Quaternion":
        if not isinstance(other, Quaternion):
            return NotImplemented
        self._data = self._data + other._data
        return self

    def __sub__(self, other: "Quaternion") -> "Quaternion":
        if not isinstance(other, Quaternion):
            return NotImplemented
        return self.from_unsafe(self._data - other._data)

    def __isub__(self, other: "Quaternion") -> "Quaternion":
        if not isinstance(other, Quaternion):
            return NotImplemented
        self._data = self._data - other._data
        return self

    def __mul__(self, other: Union["Quaternion", float]) -> "Quaternion":
        """
        Hamilton product with another Quaternion, or scaling by a real number.

        (q1 * q2).to_rotation() == q1.to_rotation() @ q2.to_rotation(), i.e.
        q2 is applied first.
        """
        if isinstance(other, Quaternion):
            return self.from_unsafe(quaternion_multiply(*self._promoted(other)))
        if isinstance(other, Real):
            return self.from_unsafe(self._data * other)
        return NotImplemented

    def __rmul__(self, other: float) -> "Quaternion":
        if isinstance(other, Real):
            return self.from_unsafe(self._data * other)
        return NotImplemented

    def __imul__(self, other: Union["Quaternion", float]) -> "Quaternion":
        if isinstance(other, Quaternion):
            self._data = quaternion_multiply(*self._promoted(other))
            return self
        if isinstance(other, Real):
            self._data = self._data * other
            return self
        return NotImplemented

    def __neg__(self) -> "Quaternion":
        return self.from_unsafe(-self._data)

    def __iter__(self) -> Iterator[float]:
        """Iterate over (w, x, y, z)."""
        return iter(self._data.tolist())

    def __repr__(self) -> str:
        w, x, y, z = self._data.tolist()
        return f"{self.__class__.__name__}(w={w!r}, x={x!r}, y={y!r}, z={z!r})"

    def __str__(self) -> str:
        return self.__repr__()

    def __eq__(self, other: object) -> bool:
        """Exact component equality. Use `allclose` for tolerant comparison."""
        if self is other:
            return True
        if not isinstance(other, Quaternion):
            return NotImplemented
        return bool(np_array_equal(self._data, other._data))

    def __ne__(self, other: object) -> bool:
        result = self.__eq__(other)
        if result is NotImplemented:
            return result
        return not result

    def __hash__(self) -> int:
        return hash((self.__class__, tuple(self._data.tolist())))

    def __copy__(self) -> "Quaternion":
        return self.copy()

    def __deepcopy__(self, memo) -> "Quaternion":
        # components are numeric, so shallow vs deep is effectively the same here
        return self.copy()

    def __reduce__(self):
        """
        Pickle support: reduces to (class, (w, x, y, z, dtype))
        """
        w, x, y, z = self._data.tolist()
        return (self.__class__, (w, x, y, z, self._data.dtype))
