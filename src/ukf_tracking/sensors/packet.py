"""
Measurement packets delivered to the filter.

Packet Layout:
    LASER: raw_measurements = [px, py]           (m, m)
    RADAR: raw_measurements = [ρ, φ, ρ̇]         (m, rad, m/s)

Timestamps are integers in a unit that is consistent across a run
(microseconds by default, see ``FilterConfiguration.timestamp_scale``).
"""

from dataclasses import dataclass
from enum import Enum

import numpy as np


class SensorType(Enum):
    """Enumeration of supported sensor types."""
    LASER = "laser"
    RADAR = "radar"

    @property
    def measurement_size(self) -> int:
        """Number of raw values a packet of this type carries."""
        return 2 if self is SensorType.LASER else 3


@dataclass(frozen=True)
class MeasurementPackage:
    """
    A single timestamped sensor reading.

    Attributes:
        sensor_type: Which sensor produced the reading
        raw_measurements: Measurement vector matching sensor_type
        timestamp: Integer timestamp

    Raises:
        ValueError: If the vector length does not match the sensor type or
            contains non-finite values
    """
    sensor_type: SensorType
    raw_measurements: np.ndarray
    timestamp: int

    def __post_init__(self):
        if not isinstance(self.sensor_type, SensorType):
            raise ValueError(f"Unknown sensor type: {self.sensor_type!r}")

        values = np.array(self.raw_measurements, dtype=float).reshape(-1)
        expected = self.sensor_type.measurement_size
        if values.size != expected:
            raise ValueError(f"{self.sensor_type.value} measurement must have {expected} "
                             f"elements, got {values.size}")
        if not np.all(np.isfinite(values)):
            raise ValueError("Measurement contains NaN or infinite values")

        values.setflags(write=False)
        object.__setattr__(self, "raw_measurements", values)
        object.__setattr__(self, "timestamp", int(self.timestamp))

    @classmethod
    def laser(cls, px: float, py: float, timestamp: int) -> 'MeasurementPackage':
        """Build a lidar packet."""
        return cls(SensorType.LASER, np.array([px, py]), timestamp)

    @classmethod
    def radar(cls, rho: float, phi: float, rho_dot: float, timestamp: int) -> 'MeasurementPackage':
        """Build a radar packet."""
        return cls(SensorType.RADAR, np.array([rho, phi, rho_dot]), timestamp)

