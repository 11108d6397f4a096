"""
Angle wrapping shared by every stage of the filter.

All yaw and bearing residuals go through :func:`normalize_angle` before they
are squared, multiplied or fed to a trigonometric function. The interval is
(-π, π] so that +π is kept and -π maps onto it.
"""

from typing import Union

import numpy as np

ArrayLike = Union[float, np.ndarray]


def normalize_angle(angle: ArrayLike) -> ArrayLike:
    """
    Wrap an angle (or array of angles) into (-π, π].

    Args:
        angle: Scalar or array in radians

    Returns:
        Wrapped angle with the same shape as the input
    """
    wrapped = np.pi - np.mod(np.pi - np.asarray(angle, dtype=float), 2.0 * np.pi)
    if np.ndim(wrapped) == 0:
        return float(wrapped)
    return wrapped


def angle_difference(a: ArrayLike, b: ArrayLike) -> ArrayLike:
    """Return ``normalize_angle(a - b)``."""
    return normalize_angle(np.asarray(a, dtype=float) - np.asarray(b, dtype=float))
