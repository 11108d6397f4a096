"""
CTRV state vector and covariance containers.

State Vector Definition:
    x = [px, py, v, ψ, ψ̇]ᵀ ∈ ℝ⁵

Where:
    - [px, py]: Position in the sensor frame (m)
    - v: Speed magnitude along the heading (m/s)
    - ψ: Heading (yaw) angle, held in (-π, π] (rad)
    - ψ̇: Heading rate (rad/s)

Covariance Properties:
    - Symmetry: P = Pᵀ, enforced on every write
    - Positive semi-definiteness is expected from the filter equations and
      checked (not repaired) before sigma point generation
"""

from typing import Optional, Union

import numpy as np

from .angles import normalize_angle
from .config import N_X, YAW_INDEX


class StateVector:
    """
    Five-dimensional CTRV state.

    The heading is normalized whenever the state is written so that callers
    never observe an angle outside (-π, π].
    """

    def __init__(self, initial_state: Optional[np.ndarray] = None):
        """
        Initialize state vector with optional initial conditions.

        Args:
            initial_state: Optional 5-element array, zero state if None

        Raises:
            ValueError: If initial_state has incorrect dimensions or non-finite values
        """
        self._x = np.zeros(N_X)
        if initial_state is not None:
            self.update_from_array(initial_state)

    @staticmethod
    def _validate_state_values(state: np.ndarray) -> None:
        if state.shape != (N_X,):
            raise ValueError(f"State vector must have {N_X} elements, got {state.size}")
        if not np.all(np.isfinite(state)):
            raise ValueError("State vector contains NaN or infinite values")

    @property
    def position(self) -> np.ndarray:
        """Position [px, py] in meters."""
        return self._x[0:2].copy()

    @property
    def speed(self) -> float:
        """Speed magnitude in m/s."""
        return float(self._x[2])

    @property
    def yaw(self) -> float:
        """Heading in radians, (-π, π]."""
        return float(self._x[YAW_INDEX])

    @property
    def yaw_rate(self) -> float:
        """Heading rate in rad/s."""
        return float(self._x[4])

    @property
    def velocity(self) -> np.ndarray:
        """Cartesian velocity [vx, vy] in m/s."""
        return np.array([self.speed * np.cos(self.yaw), self.speed * np.sin(self.yaw)])

    @classmethod
    def from_array(cls, state_array: np.ndarray) -> 'StateVector':
        """Create StateVector from a 5-element array."""
        return cls(state_array)

    def to_array(self) -> np.ndarray:
        """Return a copy of the state as a 5-element array."""
        return self._x.copy()

    def update_from_array(self, state_array: np.ndarray) -> None:
        """
        Overwrite the state from an array, normalizing the heading.

        Raises:
            ValueError: If array has incorrect size or invalid values
        """
        state_array = np.asarray(state_array, dtype=float).reshape(-1)
        self._validate_state_values(state_array)

        self._x = state_array.copy()
        self._x[YAW_INDEX] = normalize_angle(self._x[YAW_INDEX])

    def __str__(self) -> str:
        return (f"StateVector(pos=[{self._x[0]:.3f}, {self._x[1]:.3f}], v={self._x[2]:.3f}, "
                f"yaw={np.degrees(self._x[3]):.1f}°, yaw_rate={np.degrees(self._x[4]):.1f}°/s)")


class CovarianceMatrix:
    """
    State covariance P with symmetry enforcement and conditioning queries.

    Floating-point drift in ``P - K S Kᵀ`` slowly breaks symmetry, so every
    assignment averages the matrix with its transpose.
    """

    def __init__(self, initial_matrix: Optional[np.ndarray] = None, size: int = N_X):
        """
        Args:
            initial_matrix: Optional initial covariance, identity if None
            size: Dimension of the state space

        Raises:
            ValueError: If size is non-positive or the matrix shape is wrong
        """
        if size <= 0:
            raise ValueError(f"Matrix size must be positive, got {size}")

        self.size = size
        self._matrix = np.eye(size)
        if initial_matrix is not None:
            self.matrix = initial_matrix

    @property
    def matrix(self) -> np.ndarray:
        """Get copy of covariance matrix."""
        return self._matrix.copy()

    @matrix.setter
    def matrix(self, value: np.ndarray) -> None:
        """Set covariance matrix, symmetrizing it."""
        value = np.asarray(value, dtype=float)
        if value.shape != (self.size, self.size):
            raise ValueError(f"Matrix shape must be ({self.size}, {self.size}), got {value.shape}")
        if not np.all(np.isfinite(value)):
            raise ValueError("Covariance matrix contains NaN or infinite values")
        self._matrix = symmetrize(value)

    def is_symmetric(self, atol: float = 1e-9) -> bool:
        """Check P = Pᵀ within tolerance."""
        return bool(np.allclose(self._matrix, self._matrix.T, atol=atol))

    def is_positive_definite(self) -> bool:
        """
        Check positive definiteness with a Cholesky attempt.

        Returns:
            True if the factorization succeeds
        """
        try:
            np.linalg.cholesky(self._matrix)
        except np.linalg.LinAlgError:
            return False
        return True

    def get_condition_number(self) -> float:
        """
        Compute condition number κ(P) = λ_max / λ_min.

        Returns:
            Condition number, inf if it cannot be computed
        """
        try:
            return float(np.linalg.cond(self._matrix))
        except np.linalg.LinAlgError:
            return float('inf')

    def get_uncertainty(self, state_indices: Union[slice, np.ndarray, list]) -> np.ndarray:
        """
        Extract standard deviations for the given state components.

        Args:
            state_indices: Indices or slice for state components

        Returns:
            Standard deviations for specified states
        """
        if isinstance(state_indices, slice):
            start, stop = state_indices.start or 0, state_indices.stop or self.size
            indices = np.arange(start, stop)
        else:
            indices = np.asarray(state_indices)

        return np.sqrt(np.clip(np.diag(self._matrix)[indices], 0.0, None))

    def get_correlation_matrix(self) -> np.ndarray:
        """
        Compute correlation matrix ρᵢⱼ = σᵢⱼ / (σᵢ σⱼ).

        Returns:
            Correlation matrix with values in [-1, 1]
        """
        std_devs = np.sqrt(np.clip(np.diag(self._matrix), 1e-300, None))
        correlation = self._matrix / np.outer(std_devs, std_devs)

        correlation = np.clip(correlation, -1.0, 1.0)
        np.fill_diagonal(correlation, 1.0)

        return correlation

    def trace(self) -> float:
        return float(np.trace(self._matrix))


def symmetrize(matrix: np.ndarray) -> np.ndarray:
    """Return (M + Mᵀ) / 2."""
    return (matrix + matrix.T) * 0.5

