"""
Ground-truth CTRV trajectory generation.

The true object follows the same CTRV kinematics the filter assumes, with a
turn rate that varies sinusoidally and optional random longitudinal and yaw
accelerations applied between samples:

    ψ̇(t) = ψ̇₀ + A·sin(2πt / T)
    x(t + Δt) = f_CTRV(x(t), Δt)
    v   += a·Δt,        a   ~ N(0, σ_a²)
    ψ̇   += ψ̈·Δt,        ψ̈   ~ N(0, σ_ψ̈²)

Author: Scientific Computing Team
License: MIT
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np

from ..fusion.angles import normalize_angle
from ..fusion.motion import ctrv_transition

logger = logging.getLogger(__name__)


@dataclass
class TrajectoryParameters:
    """Physical parameters for trajectory generation with validation."""

    initial_position: Tuple[float, float] = (0.6, 0.6)   # Start position [m]
    speed: float = 5.0                # Initial speed [m/s]
    heading: float = 0.0              # Initial heading [rad]
    base_yaw_rate: float = 0.0        # Mean turn rate [rad/s]
    yaw_rate_amplitude: float = 0.55  # Sinusoidal turn rate amplitude [rad/s]
    yaw_rate_period: float = 12.0     # Turn rate oscillation period [s]
    accel_std: float = 0.0            # Random longitudinal acceleration [m/s²]
    yaw_accel_std: float = 0.0        # Random yaw acceleration [rad/s²]

    def __post_init__(self):
        """Validate trajectory parameters against physical constraints."""
        if self.speed < 0:
            raise ValueError(f"Speed must be non-negative, got {self.speed}")
        if self.yaw_rate_period <= 0:
            raise ValueError(f"Yaw rate period must be positive, got {self.yaw_rate_period}")
        if self.accel_std < 0 or self.yaw_accel_std < 0:
            raise ValueError("Acceleration noise must be non-negative")


class CTRVTrajectory:
    """
    Samples a ground-truth CTRV trajectory at fixed intervals.

    Attributes:
        params (TrajectoryParameters): Physical trajectory parameters
    """

    def __init__(self, params: Optional[TrajectoryParameters] = None,
                 rng: Optional[np.random.Generator] = None):
        """
        Args:
            params: Trajectory generation parameters. If None, uses defaults.
            rng: Random generator for the acceleration noise
        """
        self.params = params if params is not None else TrajectoryParameters()
        self._rng = rng if rng is not None else np.random.default_rng()

    def initial_state(self) -> np.ndarray:
        p = self.params
        return np.array([p.initial_position[0], p.initial_position[1], p.speed,
                         normalize_angle(p.heading), p.base_yaw_rate])

    def yaw_rate_at(self, t: float) -> float:
        """Commanded turn rate at time t (seconds)."""
        p = self.params
        return p.base_yaw_rate + p.yaw_rate_amplitude * np.sin(2 * np.pi * t / p.yaw_rate_period)

    def sample(self, duration: float, dt: float) -> Tuple[np.ndarray, np.ndarray]:
        """
        Integrate the trajectory.

        Args:
            duration: Total time in seconds
            dt: Sample interval in seconds

        Returns:
            Tuple of (times (N,), states (N, 5))

        Raises:
            ValueError: If duration or dt is not positive
        """
        if duration <= 0 or dt <= 0:
            raise ValueError(f"Duration and dt must be positive, got {duration} and {dt}")

        p = self.params
        times = np.arange(0.0, duration + 0.5 * dt, dt)
        states = np.empty((times.size, 5))

        state = self.initial_state()
        state[4] = self.yaw_rate_at(0.0)
        states[0] = state

        for k in range(1, times.size):
            state = ctrv_transition(state, dt)
            state[2] = max(0.0, state[2] + self._rng.normal(0.0, p.accel_std) * dt)
            state[4] = self.yaw_rate_at(times[k]) + self._rng.normal(0.0, p.yaw_accel_std) * dt
            states[k] = state

        logger.debug(f"Sampled {times.size} trajectory points over {duration:.1f}s")
        return times, states
