"""
Simulated radar with Gaussian polar noise and packet dropouts.

Radar Measurement Model:
    ρ  = √(px² + py²)                      + n_ρ
    φ  = atan2(py, px)                     + n_φ   (wrapped to (-π, π])
    ρ̇  = (px·v·cos ψ + py·v·sin ψ) / ρ     + n_ρ̇

    The reported range is clipped at zero. When the object sits on the
    radar (ρ = 0) the range-rate is the speed itself.
"""

from typing import Optional

import numpy as np

from ..fusion.angles import normalize_angle
from .health import SensorHealth
from .packet import MeasurementPackage


class RadarSensor:
    """
    Range/bearing/range-rate sensor producing radar packets from true CTRV states.

    Attributes:
        std_rho: Range noise (meters)
        std_phi: Bearing noise (radians)
        std_rho_dot: Range-rate noise (m/s)
        dropout_prob: Probability that a packet is not delivered
        health: SensorHealth tracking deliveries and drops
    """

    def __init__(self, std_rho: float = 0.3, std_phi: float = 0.03, std_rho_dot: float = 0.3,
                 dropout_prob: float = 0.0, rng: Optional[np.random.Generator] = None):
        if min(std_rho, std_phi, std_rho_dot) < 0:
            raise ValueError("Radar noise standard deviations must be non-negative")
        if not 0 <= dropout_prob <= 1:
            raise ValueError("Dropout probability must be between 0 and 1")

        self.std_rho = std_rho
        self.std_phi = std_phi
        self.std_rho_dot = std_rho_dot
        self.dropout_prob = dropout_prob
        self.health = SensorHealth()
        self._rng = rng if rng is not None else np.random.default_rng()

    @staticmethod
    def polar_from_state(true_state: np.ndarray) -> np.ndarray:
        """
        Noise-free radar measurement of a CTRV state.

        Args:
            true_state: CTRV state [px, py, v, ψ, ψ̇]

        Returns:
            Array [ρ, φ, ρ̇]
        """
        px, py, v, yaw = np.asarray(true_state, dtype=float)[0:4]
        rho = np.hypot(px, py)
        phi = np.arctan2(py, px)
        if rho > 0:
            rho_dot = (px * v * np.cos(yaw) + py * v * np.sin(yaw)) / rho
        else:
            rho_dot = v
        return np.array([rho, phi, rho_dot])

    def get_measurement(self, true_state: np.ndarray, timestamp: int) -> Optional[MeasurementPackage]:
        """
        Generate a radar packet for the given true state.

        Args:
            true_state: True CTRV state [px, py, v, ψ, ψ̇]
            timestamp: Packet timestamp

        Returns:
            MeasurementPackage, or None if the packet was dropped
        """
        if self._rng.random() < self.dropout_prob:
            self.health.record_drop()
            return None

        rho, phi, rho_dot = self.polar_from_state(true_state)
        rho = max(0.0, rho + self._rng.normal(0.0, self.std_rho))
        phi = normalize_angle(phi + self._rng.normal(0.0, self.std_phi))
        rho_dot = rho_dot + self._rng.normal(0.0, self.std_rho_dot)

        self.health.record_delivery(timestamp)
        return MeasurementPackage.radar(rho, phi, rho_dot, timestamp)
