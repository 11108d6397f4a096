"""
Sensor modules for ukf tracking.

This module contains the measurement packet type consumed by the filter and
simulated lidar and radar sensors with realistic noise and dropout models.
"""

from .packet import MeasurementPackage, SensorType
from .health import SensorHealth
from .lidar import LidarSensor
from .radar import RadarSensor

__all__ = [
    "MeasurementPackage",
    "SensorType",
    "SensorHealth",
    "LidarSensor",
    "RadarSensor"
]
