"""
Accuracy and consistency metrics for filter evaluation.

RMSE:
    Computed over the Cartesian vector [px, py, vx, vy] so that estimates
    can be compared against ground truth that carries velocity components.

NIS Consistency:
    For a consistent filter the normalized innovation squared
    ε = νᵀ S⁻¹ ν follows a χ² distribution with n_z degrees of freedom
    (2 for lidar, 3 for radar). Roughly (1 - confidence) of the values
    should exceed the χ² bound at that confidence.
"""

from typing import Sequence

import numpy as np
from scipy import stats

from ..sensors.packet import SensorType


def state_to_cartesian(state: np.ndarray) -> np.ndarray:
    """
    Convert a CTRV state [px, py, v, ψ, ψ̇] to [px, py, vx, vy].

    Args:
        state: 5-element state or (N, 5) array of states

    Returns:
        4-element vector or (N, 4) array
    """
    state = np.asarray(state, dtype=float)
    single = state.ndim == 1
    states = np.atleast_2d(state)

    px, py, v, yaw = states[:, 0], states[:, 1], states[:, 2], states[:, 3]
    cartesian = np.column_stack([px, py, v * np.cos(yaw), v * np.sin(yaw)])
    return cartesian[0] if single else cartesian


def calculate_rmse(estimations: Sequence[np.ndarray],
                   ground_truth: Sequence[np.ndarray]) -> np.ndarray:
    """
    Root mean squared error per component.

    Args:
        estimations: Sequence of estimated vectors
        ground_truth: Sequence of true vectors of the same size

    Returns:
        RMSE vector

    Raises:
        ValueError: If inputs are empty or their sizes differ
    """
    if len(estimations) == 0 or len(estimations) != len(ground_truth):
        raise ValueError(f"Invalid estimation or ground truth data: "
                         f"{len(estimations)} estimations, {len(ground_truth)} ground truth")

    estimations = np.asarray(estimations, dtype=float)
    ground_truth = np.asarray(ground_truth, dtype=float)
    if estimations.shape != ground_truth.shape:
        raise ValueError(f"Shape mismatch: {estimations.shape} vs {ground_truth.shape}")

    residuals = estimations - ground_truth
    return np.sqrt(np.mean(residuals ** 2, axis=0))


def nis_threshold(sensor_type: SensorType, confidence: float = 0.95) -> float:
    """
    χ² bound on NIS for a sensor at the given confidence.

    Args:
        sensor_type: Sensor whose measurement dimension sets the degrees of freedom
        confidence: Probability mass below the bound, in (0, 1)

    Returns:
        NIS threshold (5.991 for lidar, 7.815 for radar at 95%)
    """
    if not 0.0 < confidence < 1.0:
        raise ValueError(f"Confidence must be in (0, 1), got {confidence}")
    return float(stats.chi2.ppf(confidence, df=sensor_type.measurement_size))


def nis_exceedance_rate(nis_values: Sequence[float], sensor_type: SensorType,
                        confidence: float = 0.95) -> float:
    """
    Fraction of NIS values above the χ² bound.

    Args:
        nis_values: NIS history of one sensor
        sensor_type: Sensor that produced the history
        confidence: Confidence level of the bound

    Returns:
        Fraction in [0, 1], 0.0 for an empty history
    """
    values = np.asarray(nis_values, dtype=float)
    if values.size == 0:
        return 0.0
    return float(np.mean(values > nis_threshold(sensor_type, confidence)))
