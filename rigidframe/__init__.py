"""
rigidframe: unit quaternions, rigid transforms and the small geometric helpers
(orthonormal frames, hat operator, symmetric eigendecomposition, relative
transforms) that collision and spatial-query code is built on.

Heavy lifting is done in numba-compiled kernels on plain numpy arrays.
"""

import logging

__version__ = version = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

# exposing the public API of the package
from rigidframe.errors import (
    RigidFrameError,
    ShapeError,
    NotRotationError,
    NotSymmetricError,
    DegenerateQuaternionError,
)
from rigidframe.quaternion import Quaternion
from rigidframe.transform import RigidTransform, inverse
from rigidframe.geometry import (
    EigenDecomposition,
    normalize,
    triple_product,
    generate_coordinate_system,
    generate_coordinate_system_axes,
    hat,
    is_rotation_matrix,
    is_symmetric,
    symmetric_eigendecompose,
    combine,
    relative_transform,
    relative_rigid_transform,
)

__all__ = [
    "RigidFrameError",
    "ShapeError",
    "NotRotationError",
    "NotSymmetricError",
    "DegenerateQuaternionError",
    "Quaternion",
    "RigidTransform",
    "inverse",
    "EigenDecomposition",
    "normalize",
    "triple_product",
    "generate_coordinate_system",
    "generate_coordinate_system_axes",
    "hat",
    "is_rotation_matrix",
    "is_symmetric",
    "symmetric_eigendecompose",
    "combine",
    "relative_transform",
    "relative_rigid_transform",
]
