"""
UKF Tracking: CTRV object tracking with lidar and radar fusion

A scientific Python package for estimating the 2-D position, speed, heading
and turn rate of a moving object from intermittent lidar and radar
measurements using an Unscented Kalman Filter.

This package implements:
- Augmented sigma point generation and CTRV propagation
- Lidar (linear) and radar (nonlinear) measurement updates
- NIS consistency and RMSE accuracy metrics
- Simulated sensors and ground-truth scenarios for evaluation
"""

from .sensors.packet import MeasurementPackage, SensorType
from .sensors.lidar import LidarSensor
from .sensors.radar import RadarSensor
from .fusion.config import FilterConfiguration, NoiseParameters
from .fusion.ukf import UnscentedKalmanFilter, UpdateOutcome, UpdateResult
from .simulation.trajectory import CTRVTrajectory, TrajectoryParameters

# Optional visualization import (graceful failure if not available)
try:
    from .visualization.plotter import TrackingPlotter
    _has_visualization = True
except ImportError:
    TrackingPlotter = None
    _has_visualization = False

__version__ = "1.0.0"
__author__ = "UKF Tracking Team"

__all__ = [
    "MeasurementPackage",
    "SensorType",
    "LidarSensor",
    "RadarSensor",
    "FilterConfiguration",
    "NoiseParameters",
    "UnscentedKalmanFilter",
    "UpdateOutcome",
    "UpdateResult",
    "CTRVTrajectory",
    "TrajectoryParameters"
]

# Add visualization to __all__ only if available
if _has_visualization:
    __all__.append("TrackingPlotter")
