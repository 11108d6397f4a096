"""
CTRV process model and the prediction half of the unscented transform.

Motion Model (constant turn rate and velocity):
    For each augmented sigma point [px, py, v, ψ, ψ̇, ν_a, ν_ψ̈] and Δt:

    if |ψ̇| > ε:
        px' = px + v/ψ̇ · (sin(ψ + ψ̇Δt) - sin ψ)
        py' = py + v/ψ̇ · (cos ψ - cos(ψ + ψ̇Δt))
    else:
        px' = px + v·cos ψ·Δt
        py' = py + v·sin ψ·Δt

    v'  = v
    ψ'  = ψ + ψ̇Δt
    ψ̇'  = ψ̇

    plus the process-noise contribution

        [½Δt²·cos ψ·ν_a,  ½Δt²·sin ψ·ν_a,  Δt·ν_a,  ½Δt²·ν_ψ̈,  Δt·ν_ψ̈]

The noise rows are consumed here; predicted sigma points are 5-dimensional.
"""

import logging
from typing import Tuple

import numpy as np

from .angles import normalize_angle
from .config import N_AUG, N_X, YAW_INDEX
from .sigma_points import weighted_mean_and_covariance

logger = logging.getLogger(__name__)


def predict_sigma_points(Xsig_aug: np.ndarray, dt: float,
                         yaw_rate_epsilon: float = 1e-3) -> np.ndarray:
    """
    Propagate augmented sigma points through the CTRV model.

    Args:
        Xsig_aug: Augmented sigma points, shape (7, 2·n_aug + 1)
        dt: Elapsed time in seconds
        yaw_rate_epsilon: Threshold below which straight-line motion is used

    Returns:
        Predicted sigma points, shape (5, 2·n_aug + 1), heading normalized

    Raises:
        ValueError: If dt is negative or the sigma matrix has the wrong shape
    """
    if dt < 0:
        raise ValueError(f"Time step must be non-negative, got {dt}")
    if Xsig_aug.shape[0] != N_AUG:
        raise ValueError(f"Augmented sigma points must have {N_AUG} rows, got {Xsig_aug.shape[0]}")

    px, py, v, yaw, yawd, nu_a, nu_yawdd = Xsig_aug

    px_p = px.copy()
    py_p = py.copy()

    turning = np.abs(yawd) > yaw_rate_epsilon
    straight = ~turning

    # Closed-form turning solution
    v_t = v[turning]
    yaw_t = yaw[turning]
    yawd_t = yawd[turning]
    px_p[turning] += v_t / yawd_t * (np.sin(yaw_t + yawd_t * dt) - np.sin(yaw_t))
    py_p[turning] += v_t / yawd_t * (np.cos(yaw_t) - np.cos(yaw_t + yawd_t * dt))

    # Straight-line limit
    px_p[straight] += v[straight] * np.cos(yaw[straight]) * dt
    py_p[straight] += v[straight] * np.sin(yaw[straight]) * dt

    half_dt2 = 0.5 * dt * dt
    px_p += half_dt2 * np.cos(yaw) * nu_a
    py_p += half_dt2 * np.sin(yaw) * nu_a
    v_p = v + dt * nu_a
    yaw_p = normalize_angle(yaw + yawd * dt + half_dt2 * nu_yawdd)
    yawd_p = yawd + dt * nu_yawdd

    return np.vstack([px_p, py_p, v_p, yaw_p, yawd_p])


def ctrv_transition(x: np.ndarray, dt: float, yaw_rate_epsilon: float = 1e-3) -> np.ndarray:
    """
    Noise-free CTRV step for a single 5-element state.

    Args:
        x: State [px, py, v, ψ, ψ̇]
        dt: Elapsed time in seconds
        yaw_rate_epsilon: Threshold below which straight-line motion is used

    Returns:
        State after dt
    """
    x = np.asarray(x, dtype=float)
    if x.shape != (N_X,):
        raise ValueError(f"State must have {N_X} elements, got {x.size}")

    augmented = np.concatenate([x, np.zeros(N_AUG - N_X)])[:, np.newaxis]
    return predict_sigma_points(augmented, dt, yaw_rate_epsilon)[:, 0]


def predict_mean_and_covariance(Xsig_pred: np.ndarray,
                                weights: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Predicted state mean and covariance from propagated sigma points.

    The heading residual of every column is normalized before squaring;
    without this a distribution straddling ±π produces a covariance of order
    (2π)² instead of its true spread.

    Args:
        Xsig_pred: Predicted sigma points, shape (5, 2·n_aug + 1)
        weights: Sigma point weights

    Returns:
        Tuple of (x_pred (5,), P_pred (5, 5))
    """
    if Xsig_pred.shape[0] != N_X:
        raise ValueError(f"Predicted sigma points must have {N_X} rows, got {Xsig_pred.shape[0]}")

    x_pred, P_pred, _ = weighted_mean_and_covariance(Xsig_pred, weights, angle_index=YAW_INDEX)
    return x_pred, P_pred
