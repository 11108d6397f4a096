"""
Simulated lidar with Gaussian position noise and packet dropouts.

Lidar Measurement Model:
    z_lidar = [px, py]ᵀ + n,   n ~ N(0, diag(σx², σy²))
"""

from typing import Optional

import numpy as np

from .health import SensorHealth
from .packet import MeasurementPackage


class LidarSensor:
    """
    Position-only sensor producing lidar packets from true CTRV states.

    Attributes:
        std_px: Standard deviation of x noise (meters)
        std_py: Standard deviation of y noise (meters)
        dropout_prob: Probability that a packet is not delivered
        health: SensorHealth tracking deliveries and drops
    """

    def __init__(self, std_px: float = 0.15, std_py: float = 0.15, dropout_prob: float = 0.0,
                 rng: Optional[np.random.Generator] = None):
        """
        Args:
            std_px: Standard deviation of x noise (meters)
            std_py: Standard deviation of y noise (meters)
            dropout_prob: Probability of a dropped packet per call
            rng: Random generator, a fresh default generator if None
        """
        if std_px < 0 or std_py < 0:
            raise ValueError("Lidar noise standard deviations must be non-negative")
        if not 0 <= dropout_prob <= 1:
            raise ValueError("Dropout probability must be between 0 and 1")

        self.std_px = std_px
        self.std_py = std_py
        self.dropout_prob = dropout_prob
        self.health = SensorHealth()
        self._rng = rng if rng is not None else np.random.default_rng()

    def get_measurement(self, true_state: np.ndarray, timestamp: int) -> Optional[MeasurementPackage]:
        """
        Generate a lidar packet for the given true state.

        Args:
            true_state: True CTRV state [px, py, v, ψ, ψ̇]
            timestamp: Packet timestamp

        Returns:
            MeasurementPackage, or None if the packet was dropped
        """
        true_state = np.asarray(true_state, dtype=float)
        if true_state.size < 2:
            raise ValueError("Lidar requires a state with at least a 2D position")

        if self._rng.random() < self.dropout_prob:
            self.health.record_drop()
            return None

        noise = self._rng.normal(0.0, 1.0, 2) * np.array([self.std_px, self.std_py])
        px, py = true_state[0:2] + noise

        self.health.record_delivery(timestamp)
        return MeasurementPackage.laser(px, py, timestamp)
