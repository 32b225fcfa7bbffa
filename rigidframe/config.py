# config.py
"""
Precision and tolerance policy.

Every public function accepts float32 or float64 input and keeps it in that
precision. Anything else (integer arrays, lists, tuples) is promoted to
DEFAULT_DTYPE before it reaches the numba kernels.
"""

from typing import Optional, Tuple, Union
import numpy as np
from numpy import asarray as np_asarray
from numpy import float32 as np_float32
from numpy import float64 as np_float64
from rigidframe.errors import ShapeError

DEFAULT_DTYPE = np.dtype(np_float64)
SUPPORTED_DTYPES = (np.dtype(np_float32), np.dtype(np_float64))

# absolute tolerances for the "is it a rotation / is it the identity" checks
_TOLERANCES = {
    np.dtype(np_float32): 1e-5,
    np.dtype(np_float64): 1e-9,
}


def resolve_dtype(dtype=None) -> np.dtype:
    """
    Pick the working precision for a value.

    Args:
        dtype: a numpy dtype, a type, or None.

    Returns:
        The dtype itself if it is float32 or float64, otherwise DEFAULT_DTYPE.
    """
    if dtype is None:
        return DEFAULT_DTYPE
    dtype = np.dtype(dtype)
    if dtype in SUPPORTED_DTYPES:
        return dtype
    return DEFAULT_DTYPE


def default_tolerance(dtype=None) -> float:
    """Absolute tolerance used when a check is called with tol=None."""
    return _TOLERANCES[resolve_dtype(dtype)]


def as_float_array(
    value,
    shape: Optional[Tuple[int, ...]] = None,
    name: str = "value",
    dtype=None,
) -> np.ndarray:
    """
    Convert `value` to a floating point ndarray and check its shape.

    Args:
        value: array-like input.
        shape: required shape, or None to skip the check.
        name: argument name used in the error message.
        dtype: force this precision instead of inferring it from `value`.

    Returns:
        An ndarray in float32 or float64. No copy is made when `value`
        already is an ndarray of the right dtype.

    Raises:
        ShapeError: if `shape` is given and does not match.
    """
    arr = np_asarray(value)
    target = resolve_dtype(arr.dtype if dtype is None else dtype)
    if arr.dtype != target:
        arr = arr.astype(target)
    if shape is not None and arr.shape != shape:
        raise ShapeError(f"{name} must have shape {shape}, got {arr.shape}")
    return arr


def result_dtype(*values: Union[np.ndarray, np.dtype, None]) -> np.dtype:
    """Promote the working precision of several values (None entries are skipped)."""
    dtypes = []
    for value in values:
        if value is None:
            continue
        dt = value.dtype if hasattr(value, "dtype") else np_asarray(value).dtype
        dtypes.append(resolve_dtype(dt))
    if not dtypes:
        return DEFAULT_DTYPE
    return np.result_type(*dtypes)
