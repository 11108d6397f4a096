"""
Filter configuration.

Both dataclasses are frozen: a filter reads its configuration once at
construction and never changes it afterwards.

Noise Model:
    Process noise is expressed as two zero-mean accelerations that enter the
    augmented state:

    ν_a     ~ N(0, std_a²)       longitudinal acceleration [m/s²]
    ν_yawdd ~ N(0, std_yawdd²)   yaw acceleration [rad/s²]

    Measurement noise is additive and diagonal per sensor:

    R_laser = diag(std_laspx², std_laspy²)
    R_radar = diag(std_radr², std_radphi², std_radrd²)
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

import numpy as np

# State dimension [px, py, v, yaw, yaw_rate]
N_X = 5

# Augmented dimension: state plus the two process-noise accelerations
N_AUG = 7

# Index of the heading in the state vector
YAW_INDEX = 3

# Index of the bearing in a radar measurement [rho, phi, rho_dot]
BEARING_INDEX = 1


@dataclass(frozen=True)
class NoiseParameters:
    """
    Standard deviations of process and measurement noise.

    Attributes:
        std_a: Longitudinal acceleration noise [m/s²]
        std_yawdd: Yaw acceleration noise [rad/s²]
        std_laspx: Lidar x position noise [m]
        std_laspy: Lidar y position noise [m]
        std_radr: Radar range noise [m]
        std_radphi: Radar bearing noise [rad]
        std_radrd: Radar range-rate noise [m/s]
    """
    std_a: float = 2.0
    std_yawdd: float = 0.6
    std_laspx: float = 0.15
    std_laspy: float = 0.15
    std_radr: float = 0.3
    std_radphi: float = 0.03
    std_radrd: float = 0.3

    def __post_init__(self):
        """Validate noise parameters."""
        # Process noise may be zero (noise-free motion), sensor noise may not
        for name in ("std_a", "std_yawdd"):
            value = getattr(self, name)
            if value < 0 or not np.isfinite(value):
                raise ValueError(f"{name} must be non-negative and finite, got {value}")

        for name in ("std_laspx", "std_laspy", "std_radr", "std_radphi", "std_radrd"):
            value = getattr(self, name)
            if value <= 0 or not np.isfinite(value):
                raise ValueError(f"{name} must be positive and finite, got {value}")

    def lidar_covariance(self) -> np.ndarray:
        """2x2 lidar measurement noise covariance."""
        return np.diag([self.std_laspx ** 2, self.std_laspy ** 2])

    def radar_covariance(self) -> np.ndarray:
        """3x3 radar measurement noise covariance."""
        return np.diag([self.std_radr ** 2, self.std_radphi ** 2, self.std_radrd ** 2])


@dataclass(frozen=True)
class FilterConfiguration:
    """
    Complete configuration for an :class:`UnscentedKalmanFilter`.

    Attributes:
        use_laser: Process lidar packets; when False they are ignored entirely
        use_radar: Process radar packets; when False they are ignored entirely
        noise: Process and measurement noise standard deviations
        lambda_: Sigma point spreading parameter, defaults to 3 - n_aug
        initial_covariance_diagonal: Diagonal of P after initialization
        timestamp_scale: Seconds per timestamp tick (1e-6 for microseconds)
        yaw_rate_epsilon: Below this |yaw_rate| the straight-line motion is used
        range_epsilon: Smallest range used as a divisor in the radar model
        max_condition_number: Largest accepted condition number of S
    """
    use_laser: bool = True
    use_radar: bool = True
    noise: NoiseParameters = field(default_factory=NoiseParameters)
    lambda_: Optional[float] = None
    initial_covariance_diagonal: Tuple[float, ...] = (1.0, 1.0, 10.0, 10.0, 1.0)
    timestamp_scale: float = 1e-6
    yaw_rate_epsilon: float = 1e-3
    range_epsilon: float = 1e-4
    max_condition_number: float = 1e12

    def __post_init__(self):
        """Validate configuration parameters."""
        if len(self.initial_covariance_diagonal) != N_X:
            raise ValueError(
                f"Initial covariance diagonal must have {N_X} elements, "
                f"got {len(self.initial_covariance_diagonal)}")
        if any(value <= 0 for value in self.initial_covariance_diagonal):
            raise ValueError("Initial covariance diagonal must be strictly positive")

        if self.spreading <= -N_AUG:
            raise ValueError(f"lambda + n_aug must be positive, got lambda={self.spreading}")

        if self.timestamp_scale <= 0:
            raise ValueError(f"Timestamp scale must be positive, got {self.timestamp_scale}")
        if self.yaw_rate_epsilon <= 0 or self.range_epsilon <= 0:
            raise ValueError("Epsilon thresholds must be positive")
        if self.max_condition_number <= 1:
            raise ValueError(f"Max condition number must exceed 1, got {self.max_condition_number}")

    @property
    def spreading(self) -> float:
        """Effective spreading parameter λ."""
        return float(3 - N_AUG) if self.lambda_ is None else float(self.lambda_)

    def initial_covariance(self) -> np.ndarray:
        """Covariance assigned on initialization."""
        return np.diag(np.asarray(self.initial_covariance_diagonal, dtype=float))
