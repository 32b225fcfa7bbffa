# transform.py

from typing import Optional, Union
import numpy as np
from numpy import ndarray
from numpy import any as np_any
from numpy import array_equal as np_array_equal
from numpy import array2string as np_array2string
from numpy import eye as np_eye
from numpy import zeros as np_zeros

from rigidframe.config import as_float_array, default_tolerance, result_dtype
from rigidframe.errors import DegenerateQuaternionError, NotRotationError
from rigidframe.kernels import (
    homogeneous_matrix,
    is_rotation,
    quaternion_conjugate,
    quaternion_rotate,
    quaternion_to_rotation,
    rotation_to_quaternion,
)
from rigidframe.quaternion import Quaternion


def _read_only(matrix: ndarray) -> ndarray:
    matrix.flags.writeable = False
    return matrix


def _unit_quaternion(quaternion: Union[Quaternion, ndarray], dtype) -> Quaternion:
    """
    Copy of `quaternion` in `dtype`, renormalized if it drifted off the unit sphere.

    Quaternions that are already unit within the precision's tolerance are
    kept bit for bit.
    """
    if isinstance(quaternion, Quaternion):
        data = quaternion._data.astype(dtype, copy=True)
    else:
        data = as_float_array(quaternion, (4,), "quaternion", dtype=dtype).copy()

    n2 = float(data @ data)
    if n2 == 0.0:
        raise DegenerateQuaternionError("a zero quaternion does not represent a rotation")
    if abs(n2 - 1.0) > default_tolerance(dtype):
        data = data / np.sqrt(n2)
    return Quaternion.from_unsafe(data)


def _checked_rotation(rotation, dtype, tol: Optional[float] = None) -> ndarray:
    """
    `rotation` as a 3x3 array in `dtype`, checked to be a proper rotation.

    With tol=None the check runs at the looser of the input's precision and
    `dtype`, so a float32 matrix promoted to float64 keeps its float32
    tolerance.
    """
    if tol is None:
        source = np.asarray(rotation)
        tol = max(default_tolerance(source.dtype), default_tolerance(dtype))
    R = as_float_array(rotation, (3, 3), "rotation", dtype=dtype)
    if not is_rotation(R, tol):
        raise NotRotationError("rotation is not an orthonormal matrix with det +1")
    return R


class RigidTransform:
    """
    A rigid transform in 3D space: a rotation followed by a translation.

    Applying the transform to a point p gives R p + t. The rotation is stored
    as a unit quaternion, which is the single source of truth. The 3x3 matrix
    form is a cache: it is either absent (stale) or equal to the matrix of
    the current quaternion.

    - setting the rotation from a matrix fills the cache and re-derives the
      quaternion from that matrix;
    - setting it from a quaternion, composing in place and inverting in place
      drop the cache;
    - reading `rotation` while the cache is absent computes and stores it.

    Instances are not thread-safe. Reading `rotation` may write the cache, so
    an instance shared between threads must be guarded by the caller.
    """
    __slots__ = ('_quaternion', '_translation', '_rotation')

    def __init__(
        self,
        rotation: Union[None, ndarray, Quaternion] = None,
        translation: Union[None, ndarray] = None,
        dtype=None,
    ):
        """
        Args:
            rotation: a 3x3 rotation matrix or a Quaternion. Defaults to the identity.
            translation: a length-3 vector. Defaults to zero.
            dtype: float32 or float64. Inferred from the inputs when omitted.

        Raises:
            ShapeError: wrong input shapes.
            NotRotationError: `rotation` is a matrix but not a proper rotation.
            DegenerateQuaternionError: `rotation` is the zero quaternion.
        """
        if dtype is None:
            dtype = result_dtype(rotation, translation)

        if translation is None:
            self._translation = np_zeros(3, dtype=dtype)
        else:
            self._translation = as_float_array(translation, (3,), "translation", dtype=dtype).copy()

        if rotation is None:
            self._quaternion = Quaternion.identity(dtype=dtype)
            self._rotation = _read_only(np_eye(3, dtype=dtype))
        elif isinstance(rotation, Quaternion):
            self._quaternion = _unit_quaternion(rotation, dtype)
            self._rotation = None
        else:
            R = _checked_rotation(rotation, dtype).copy()
            self._quaternion = Quaternion.from_unsafe(rotation_to_quaternion(R))
            self._rotation = _read_only(R)

    @classmethod
    def identity(cls, dtype=None) -> "RigidTransform":
        """
        Create an identity RigidTransform.

        Returns:
            A RigidTransform with identity rotation (cached) and zero translation.
        """
        return cls(dtype=dtype)

    @classmethod
    def from_unsafe(
        cls,
        quaternion: Quaternion,
        translation: ndarray,
        rotation: Optional[ndarray] = None,
    ) -> "RigidTransform":
        """
        Create a RigidTransform without copying or validating the inputs.

        Useful for performance when the quaternion is known to be unit and
        the translation is a length-3 float array. If `rotation` is given it
        must equal quaternion.to_rotation(); it is used as the cache. The
        translation array is stored as is, so later writes to it through
        the caller's reference show up in the transform.
        """
        instance = object.__new__(cls)
        instance._quaternion = quaternion
        instance._translation = translation
        instance._rotation = None if rotation is None else _read_only(rotation)
        return instance

    @classmethod
    def from_rotation(cls, rotation: ndarray, dtype=None) -> "RigidTransform":
        """Create a RigidTransform from a 3x3 rotation matrix and zero translation."""
        return cls(rotation=as_float_array(rotation, (3, 3), "rotation"), dtype=dtype)

    @classmethod
    def from_quaternion(cls, quaternion: Union[Quaternion, ndarray], dtype=None) -> "RigidTransform":
        """
        Create a RigidTransform from a quaternion and zero translation.

        Args:
            quaternion: a Quaternion, or a [w, x, y, z] array.
        """
        if not isinstance(quaternion, Quaternion):
            quaternion = Quaternion.from_array(quaternion)
        return cls(rotation=quaternion, dtype=dtype)

    @classmethod
    def from_translation(cls, translation: ndarray, dtype=None) -> "RigidTransform":
        """Create a pure translation."""
        return cls(translation=translation, dtype=dtype)

    @classmethod
    def from_rotation_translation(cls, rotation: ndarray, translation: ndarray, dtype=None) -> "RigidTransform":
        """Create a RigidTransform from a 3x3 rotation matrix and a translation."""
        return cls(rotation=as_float_array(rotation, (3, 3), "rotation"), translation=translation, dtype=dtype)

    @classmethod
    def from_quaternion_translation(cls, quaternion: Union[Quaternion, ndarray], translation: ndarray, dtype=None) -> "RigidTransform":
        """Create a RigidTransform from a quaternion and a translation."""
        if not isinstance(quaternion, Quaternion):
            quaternion = Quaternion.from_array(quaternion)
        return cls(rotation=quaternion, translation=translation, dtype=dtype)

    @classmethod
    def from_matrix(cls, matrix: ndarray, tol: Optional[float] = None) -> "RigidTransform":
        """
        Create a RigidTransform from a 4x4 homogeneous matrix.

        Raises:
            ShapeError: if `matrix` is not 4x4.
            NotRotationError: if the upper-left block is not a rotation or the
                bottom row is not [0, 0, 0, 1].
        """
        m = as_float_array(matrix, (4, 4), "matrix")
        if tol is None:
            tol = default_tolerance(m.dtype)
        bottom = m[3, :] - np.array([0.0, 0.0, 0.0, 1.0])
        if not np.all(np.abs(bottom) <= tol):
            raise NotRotationError("bottom row of a rigid transform matrix must be [0, 0, 0, 1]")
        R = _checked_rotation(m[:3, :3], m.dtype, tol).copy()
        return cls.from_unsafe(
            Quaternion.from_unsafe(rotation_to_quaternion(R)),
            m[:3, 3].copy(),
            R,
        )

    #########
    # Getters and setters
    #

    @property
    def dtype(self) -> np.dtype:
        return self._translation.dtype

    @property
    def translation(self) -> ndarray:
        """
        Get the translation vector of the transform.

        Returns:
            The translation vector as a read-only length-3 view. Use the
            setters to change it.
        """
        return _read_only(self._translation.view())

    @translation.setter
    def translation(self, value: ndarray):
        self._translation = as_float_array(value, (3,), "translation", dtype=self.dtype).copy()

    @property
    def rotation(self) -> ndarray:
        """
        Get the 3x3 rotation matrix, computing it from the quaternion if needed.

        The returned array is read-only and is the cached object itself, so
        repeated reads return the same array until the rotation changes.
        """
        if self._rotation is None:
            self._rotation = _read_only(quaternion_to_rotation(self._quaternion._data))
        return self._rotation

    @rotation.setter
    def rotation(self, value: ndarray):
        self.set_rotation(value)

    @property
    def quaternion(self) -> Quaternion:
        """
        Get the rotation as a unit Quaternion.

        Returns a copy; mutate the transform through its setters.
        """
        return self._quaternion.copy()

    @quaternion.setter
    def quaternion(self, value: Union[Quaternion, ndarray]):
        self.set_quaternion(value)

    @property
    def rotation_is_cached(self) -> bool:
        """True while the matrix form of the rotation is up to date."""
        return self._rotation is not None

    def set_rotation(self, rotation: ndarray) -> "RigidTransform":
        """
        Set the rotation from a 3x3 matrix. The matrix becomes the cache and
        the quaternion is re-derived from it.

        Raises:
            NotRotationError: if `rotation` is not a proper rotation.
        """
        R = _checked_rotation(rotation, self.dtype).copy()
        self._quaternion = Quaternion.from_unsafe(rotation_to_quaternion(R))
        self._rotation = _read_only(R)
        return self

    def set_quaternion(self, quaternion: Union[Quaternion, ndarray]) -> "RigidTransform":
        """
        Set the rotation from a quaternion ([w, x, y, z] if given as an array).
        The matrix cache is dropped.
        """
        self._quaternion = _unit_quaternion(quaternion, self.dtype)
        self._rotation = None
        return self

    def set_translation(self, translation: ndarray) -> "RigidTransform":
        self.translation = translation
        return self

    def set_transform(self, rotation: Union[ndarray, Quaternion], translation: ndarray) -> "RigidTransform":
        """Set rotation (matrix or quaternion) and translation together."""
        t = as_float_array(translation, (3,), "translation", dtype=self.dtype).copy()
        if isinstance(rotation, Quaternion):
            self.set_quaternion(rotation)
        else:
            self.set_rotation(rotation)
        self._translation = t
        return self

    def set_identity(self) -> "RigidTransform":
        """Reset to the identity. The identity matrix is cached."""
        dtype = self.dtype
        self._quaternion = Quaternion.identity(dtype=dtype)
        self._translation = np_zeros(3, dtype=dtype)
        self._rotation = _read_only(np_eye(3, dtype=dtype))
        return self

    #########
    # Applying the transform
    #

    def apply(self, point: ndarray) -> ndarray:
        """
        Transform a point, or each row of an (N, 3) array of points.

        Returns:
            R p + t
        """
        return self._quaternion.rotate(point) + self._translation

    def transform_point(self, point: ndarray) -> ndarray:
        """Alias of `apply`."""
        return self.apply(point)

    def transform_vector(self, vector: ndarray) -> ndarray:
        """Rotate a direction vector; the translation is ignored."""
        return self._quaternion.rotate(vector)

    #########
    # Group operations
    #

    def compose(self, other: "RigidTransform") -> "RigidTransform":
        """
        self ∘ other: apply `other` first, then `self`.

        compose(a, b).apply(p) == a.apply(b.apply(p))
        """
        if not isinstance(other, RigidTransform):
            raise TypeError(f"cannot compose RigidTransform with {type(other).__name__}")
        translation = self._quaternion.rotate(other._translation) + self._translation
        quaternion = _unit_quaternion(self._quaternion * other._quaternion, translation.dtype)
        return self.__class__.from_unsafe(quaternion, translation)

    def compose_inplace(self, other: "RigidTransform") -> "RigidTransform":
        """In-place `compose`. The matrix cache is dropped. Returns self."""
        composed = self.compose(other)
        self._quaternion = composed._quaternion
        self._translation = composed._translation
        self._rotation = None
        return self

    def inverted(self) -> "RigidTransform":
        """
        Inverse transform, as a new object.

        q' = conj(q), t' = q'.rotate(-t). The rotation is unit, so the
        conjugate is its inverse.
        """
        q_inv = quaternion_conjugate(self._quaternion._data)
        translation = quaternion_rotate(q_inv, -self._translation)
        return self.__class__.from_unsafe(Quaternion.from_unsafe(q_inv), translation)

    def invert(self) -> "RigidTransform":
        """Invert in place. The matrix cache is dropped. Returns self."""
        inv = self.inverted()
        self._quaternion = inv._quaternion
        self._translation = inv._translation
        self._rotation = None
        return self

    def inverse_times(self, other: "RigidTransform") -> "RigidTransform":
        """
        self^-1 ∘ other, computed without touching self.

        This is `other` expressed in the frame of `self`.
        """
        if not isinstance(other, RigidTransform):
            raise TypeError(f"cannot compose RigidTransform with {type(other).__name__}")
        q_inv = self._quaternion.conjugate()
        translation = q_inv.rotate(other._translation - self._translation)
        quaternion = _unit_quaternion(q_inv * other._quaternion, translation.dtype)
        return self.__class__.from_unsafe(quaternion, translation)

    def is_identity(self) -> bool:
        """
        Exact identity test: the quaternion is exactly (1, 0, 0, 0) and the
        translation exactly zero. See `is_identity_transform` for a tolerant
        version.
        """
        return self._quaternion.is_identity() and not np_any(self._translation)

    def is_identity_transform(self, tol: Optional[float] = None) -> bool:
        """True if this transform moves no point by more than rounding noise."""
        if tol is None:
            tol = default_tolerance(self.dtype)
        return self._quaternion.is_identity_rotation(tol) and bool(np.all(np.abs(self._translation) <= tol))

    def to_matrix(self) -> ndarray:
        """4x4 homogeneous matrix [[R, t], [0, 1]]."""
        return homogeneous_matrix(self.rotation, self._translation)

    def copy(self) -> "RigidTransform":
        """
        Create a copy of this RigidTransform.

        The cache state is carried over.
        """
        return self.__class__.from_unsafe(
            self._quaternion.copy(),
            self._translation.copy(),
            None if self._rotation is None else self._rotation.copy(),
        )

    #########
    # Dunder methods
    #

    def __mul__(self, other: "RigidTransform") -> "RigidTransform":
        if not isinstance(other, RigidTransform):
            return NotImplemented
        return self.compose(other)

    def __imul__(self, other: "RigidTransform") -> "RigidTransform":
        if not isinstance(other, RigidTransform):
            return NotImplemented
        return self.compose_inplace(other)

    def __matmul__(self, other: Union["RigidTransform", ndarray]) -> Union["RigidTransform", ndarray]:
        """
        `a @ b` composes two transforms like `a * b`; `a @ p` applies the
        transform to a point or an (N, 3) array of points.
        """
        if isinstance(other, RigidTransform):
            return self.compose(other)
        if isinstance(other, ndarray):
            return self.apply(other)
        return NotImplemented

    def __eq__(self, other: object) -> bool:
        """
        True if `other` is the same class with exactly equal quaternion and
        translation.
        """
        if self is other:
            return True
        if not isinstance(other, RigidTransform) or self.__class__ is not other.__class__:
            return False
        return self._quaternion == other._quaternion and bool(np_array_equal(self._translation, other._translation))

    def __ne__(self, other: object) -> bool:
        return not self.__eq__(other)

    def __hash__(self) -> int:
        return hash((self.__class__, tuple(self._quaternion._data.tolist()), tuple(self._translation.tolist())))

    def __repr__(self) -> str:
        cls = self.__class__.__name__
        t = np_array2string(self._translation, precision=6, separator=', ')
        return f"{cls}(quaternion={self._quaternion!r}, translation={t})"

    def __str__(self) -> str:
        return self.__repr__()

    def __copy__(self) -> "RigidTransform":
        return self.copy()

    def __deepcopy__(self, memo) -> "RigidTransform":
        # arrays are numeric, so shallow vs deep is effectively the same here
        return self.copy()

    def __reduce__(self):
        """
        Pickle support: reduces to (class, (quaternion, translation))
        """
        return (self.__class__, (self._quaternion.copy(), self._translation.copy()))


def inverse(tf: RigidTransform) -> RigidTransform:
    """Free-function form of `RigidTransform.inverted`."""
    return tf.inverted()
