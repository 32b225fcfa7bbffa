"""Custom exception types for rigidframe."""


class RigidFrameError(Exception):
    """Base exception for all rigidframe errors."""

    pass


class ShapeError(RigidFrameError, ValueError):
    """An array argument does not have the required shape."""

    pass


class NotRotationError(RigidFrameError, ValueError):
    """A matrix is not a proper rotation (orthonormal, det = +1)."""

    pass


class NotSymmetricError(RigidFrameError, ValueError):
    """A matrix expected to be symmetric is not."""

    pass


class DegenerateQuaternionError(RigidFrameError, ValueError):
    """A zero-norm quaternion was used where a rotation is required."""

    pass


__all__ = [
    "RigidFrameError",
    "ShapeError",
    "NotRotationError",
    "NotSymmetricError",
    "DegenerateQuaternionError",
]
