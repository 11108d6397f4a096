"""
Augmented sigma point generation for the unscented transform.

Mathematical Foundation:
    The augmented state appends the two process-noise accelerations to the
    CTRV state so that noise passes through the same nonlinear motion model:

        x_aug = [x; 0; 0] ∈ ℝ⁷
        P_aug = blockdiag(P, diag(σ_a², σ_ψ̈²))

    With A the lower Cholesky factor of (λ + n_aug)·P_aug, the 2·n_aug + 1
    sigma points are

        X₀     = x_aug
        Xᵢ     = x_aug + Aᵢ          i = 1..n_aug
        Xᵢ₊ₙ   = x_aug - Aᵢ

    and carry the weights

        w₀ = λ / (λ + n_aug),   wᵢ = 1 / (2(λ + n_aug))

    Because P_aug is block diagonal, its Cholesky factor is the block
    diagonal of chol(P) and diag(σ_a, σ_ψ̈). Factorizing the blocks
    separately keeps the square root defined when a process-noise standard
    deviation is zero.

References:
    - Julier & Uhlmann, "A New Extension of the Kalman Filter to
      Nonlinear Systems," 1997
    - Wan & van der Merwe, "The Unscented Kalman Filter for Nonlinear
      Estimation," 2000
"""

import logging
from typing import Optional

import numpy as np
import scipy.linalg

from .angles import angle_difference, normalize_angle
from .config import N_AUG, N_X
from .errors import NumericalInstabilityError
from .state import symmetrize

logger = logging.getLogger(__name__)


def default_spreading(n_aug: int = N_AUG) -> float:
    """Conventional spreading parameter λ = 3 - n_aug."""
    return float(3 - n_aug)


def compute_weights(n_aug: int = N_AUG, lambda_: Optional[float] = None) -> np.ndarray:
    """
    Compute the 2·n_aug + 1 sigma point weights.

    Args:
        n_aug: Augmented state dimension
        lambda_: Spreading parameter, 3 - n_aug if None

    Returns:
        Weight vector summing to 1

    Raises:
        ValueError: If λ + n_aug is not positive
    """
    if lambda_ is None:
        lambda_ = default_spreading(n_aug)

    denominator = lambda_ + n_aug
    if denominator <= 0:
        raise ValueError(f"lambda + n_aug must be positive, got {denominator}")

    weights = np.full(2 * n_aug + 1, 0.5 / denominator)
    weights[0] = lambda_ / denominator
    return weights


def augmented_sigma_points(x: np.ndarray, P: np.ndarray, std_a: float,
                           std_yawdd: float, lambda_: Optional[float] = None) -> np.ndarray:
    """
    Generate augmented sigma points from the current estimate.

    Args:
        x: State mean (5,)
        P: State covariance (5, 5)
        std_a: Longitudinal acceleration noise standard deviation
        std_yawdd: Yaw acceleration noise standard deviation
        lambda_: Spreading parameter, 3 - n_aug if None

    Returns:
        Sigma point matrix of shape (7, 15)

    Raises:
        NumericalInstabilityError: If P is not positive definite
    """
    if lambda_ is None:
        lambda_ = default_spreading(N_AUG)

    x = np.asarray(x, dtype=float)
    P = np.asarray(P, dtype=float)
    if x.shape != (N_X,) or P.shape != (N_X, N_X):
        raise ValueError(f"Expected state ({N_X},) and covariance ({N_X}, {N_X}), "
                         f"got {x.shape} and {P.shape}")

    x_aug = np.concatenate([x, np.zeros(N_AUG - N_X)])

    try:
        state_root = scipy.linalg.cholesky(P, lower=True)
    except np.linalg.LinAlgError as exc:
        raise NumericalInstabilityError(
            f"State covariance is not positive definite: {exc}") from exc

    noise_root = np.diag([std_a, std_yawdd])
    A = np.sqrt(lambda_ + N_AUG) * scipy.linalg.block_diag(state_root, noise_root)

    if not np.all(np.isfinite(A)):
        raise NumericalInstabilityError("Matrix square root contains non-finite values")

    Xsig_aug = np.empty((N_AUG, 2 * N_AUG + 1))
    Xsig_aug[:, 0] = x_aug
    Xsig_aug[:, 1:N_AUG + 1] = x_aug[:, np.newaxis] + A
    Xsig_aug[:, N_AUG + 1:] = x_aug[:, np.newaxis] - A

    logger.debug(f"Generated {Xsig_aug.shape[1]} augmented sigma points, lambda={lambda_}")
    return Xsig_aug


def weighted_mean_and_covariance(sigma_points: np.ndarray, weights: np.ndarray,
                                 angle_index: Optional[int] = None):
    """
    Recombine sigma points into a mean and covariance.

    The angular row (if any) is averaged as residuals about the central sigma
    point, so points straddling ±π do not cancel each other out, and every
    angular residual is normalized before the outer products are formed.

    Args:
        sigma_points: Matrix of shape (n, 2·n_aug + 1)
        weights: Weight vector of length 2·n_aug + 1
        angle_index: Row holding an angle, or None

    Returns:
        Tuple of (mean (n,), covariance (n, n), residuals (n, 2·n_aug + 1))
    """
    if sigma_points.shape[1] != weights.shape[0]:
        raise ValueError(f"Sigma point count {sigma_points.shape[1]} does not match "
                         f"weight count {weights.shape[0]}")

    mean = sigma_points @ weights
    if angle_index is not None:
        reference = sigma_points[angle_index, 0]
        offsets = angle_difference(sigma_points[angle_index], reference)
        mean[angle_index] = normalize_angle(reference + offsets @ weights)

    residuals = sigma_points - mean[:, np.newaxis]
    if angle_index is not None:
        residuals[angle_index] = normalize_angle(residuals[angle_index])

    covariance = (residuals * weights) @ residuals.T
    return mean, symmetrize(covariance), residuals
