"""
Measurement models for the two supported sensors.

Both models reuse the predicted state sigma points rather than drawing new
ones.

Lidar (position sensor):
    z = [px, py]ᵀ

Radar (range/bearing/range-rate sensor):
    ρ  = √(px² + py²)
    φ  = atan2(py, px)
    ρ̇  = (px·v·cos ψ + py·v·sin ψ) / ρ

    For ρ below the range epsilon the bearing is still the (defined) atan2
    value but ρ̇ is computed with ρ clamped to epsilon and the sigma point is
    reported as degenerate.

Predicted measurement covariance:
    S = Σ wᵢ (Zᵢ - ẑ)(Zᵢ - ẑ)ᵀ + R
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .config import BEARING_INDEX, N_X
from .sigma_points import weighted_mean_and_covariance

logger = logging.getLogger(__name__)


@dataclass
class MeasurementPrediction:
    """
    Predicted measurement distribution for one update.

    Attributes:
        Zsig: Measurement sigma points, shape (n_z, 2·n_aug + 1)
        z_pred: Predicted measurement mean (n_z,)
        S: Innovation covariance (n_z, n_z), including sensor noise
        residuals: Normalized Zsig - z_pred, shape (n_z, 2·n_aug + 1)
        angle_index: Row of Zsig that holds an angle, or None
        degenerate: Number of sigma points that hit the zero-range guard
    """
    Zsig: np.ndarray
    z_pred: np.ndarray
    S: np.ndarray
    residuals: np.ndarray
    angle_index: Optional[int] = None
    degenerate: int = 0


def lidar_model(Xsig_pred: np.ndarray) -> np.ndarray:
    """Project state sigma points onto the position components."""
    _check_state_sigma_points(Xsig_pred)
    return Xsig_pred[0:2, :].copy()


def radar_model(Xsig_pred: np.ndarray, range_epsilon: float = 1e-4):
    """
    Transform state sigma points into radar measurement space.

    Args:
        Xsig_pred: State sigma points, shape (5, k)
        range_epsilon: Smallest range used as a divisor

    Returns:
        Tuple of (Zsig (3, k), degenerate mask (k,))
    """
    _check_state_sigma_points(Xsig_pred)

    px, py, v, yaw = Xsig_pred[0], Xsig_pred[1], Xsig_pred[2], Xsig_pred[3]

    rho = np.hypot(px, py)
    degenerate = rho < range_epsilon
    safe_rho = np.where(degenerate, range_epsilon, rho)

    phi = np.arctan2(py, px)
    rho_dot = (px * v * np.cos(yaw) + py * v * np.sin(yaw)) / safe_rho

    return np.vstack([rho, phi, rho_dot]), degenerate


def predict_lidar_measurement(Xsig_pred: np.ndarray, weights: np.ndarray,
                              R: np.ndarray) -> MeasurementPrediction:
    """
    Predict the lidar measurement distribution.

    Args:
        Xsig_pred: Predicted state sigma points, shape (5, 2·n_aug + 1)
        weights: Sigma point weights
        R: 2x2 measurement noise covariance

    Returns:
        MeasurementPrediction for a 2-D position measurement
    """
    Zsig = lidar_model(Xsig_pred)
    z_pred, S, residuals = weighted_mean_and_covariance(Zsig, weights)
    return MeasurementPrediction(Zsig=Zsig, z_pred=z_pred, S=S + R, residuals=residuals)


def predict_radar_measurement(Xsig_pred: np.ndarray, weights: np.ndarray, R: np.ndarray,
                              range_epsilon: float = 1e-4) -> MeasurementPrediction:
    """
    Predict the radar measurement distribution.

    Args:
        Xsig_pred: Predicted state sigma points, shape (5, 2·n_aug + 1)
        weights: Sigma point weights
        R: 3x3 measurement noise covariance
        range_epsilon: Smallest range used as a divisor

    Returns:
        MeasurementPrediction for a (ρ, φ, ρ̇) measurement
    """
    Zsig, degenerate = radar_model(Xsig_pred, range_epsilon)
    degenerate_count = int(np.count_nonzero(degenerate))
    if degenerate_count:
        logger.warning(f"{degenerate_count} sigma point(s) within {range_epsilon:g} m of the radar, "
                       f"range-rate computed with clamped range")

    z_pred, S, residuals = weighted_mean_and_covariance(Zsig, weights, angle_index=BEARING_INDEX)
    return MeasurementPrediction(Zsig=Zsig, z_pred=z_pred, S=S + R, residuals=residuals,
                                 angle_index=BEARING_INDEX, degenerate=degenerate_count)


def _check_state_sigma_points(Xsig_pred: np.ndarray) -> None:
    if Xsig_pred.ndim != 2 or Xsig_pred.shape[0] != N_X:
        raise ValueError(f"State sigma points must have shape ({N_X}, k), got {Xsig_pred.shape}")
