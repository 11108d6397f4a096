"""
Tracking scenarios: simulated sensor streams and a runner that feeds them
through a filter.

Packets alternate between lidar and radar, one every ``packet_interval``
seconds, which gives each sensor half the packet rate.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from ..fusion.metrics import calculate_rmse, nis_exceedance_rate, state_to_cartesian
from ..fusion.ukf import UnscentedKalmanFilter, UpdateOutcome
from ..sensors.lidar import LidarSensor
from ..sensors.packet import MeasurementPackage, SensorType
from ..sensors.radar import RadarSensor
from .trajectory import CTRVTrajectory

logger = logging.getLogger(__name__)

MICROSECONDS = 1_000_000


@dataclass
class ScenarioStep:
    """One delivered packet and the true state at its timestamp."""
    package: MeasurementPackage
    ground_truth: np.ndarray


@dataclass
class TrackingRun:
    """
    Collected results of running a filter over a scenario.

    Attributes:
        timestamps: Timestamps of processed packets
        estimates: Filter state after each packet, (N, 5)
        ground_truth: True state at each packet, (N, 5)
        outcomes: Outcome of each packet
        nis: NIS history per sensor
    """
    timestamps: np.ndarray
    estimates: np.ndarray
    ground_truth: np.ndarray
    outcomes: List[UpdateOutcome]
    nis: Dict[SensorType, List[float]] = field(default_factory=dict)

    def rmse(self, skip: int = 0) -> np.ndarray:
        """RMSE of [px, py, vx, vy] ignoring the first ``skip`` packets."""
        return calculate_rmse(state_to_cartesian(self.estimates[skip:]),
                              state_to_cartesian(self.ground_truth[skip:]))

    def nis_exceedance(self, sensor_type: SensorType, confidence: float = 0.95) -> float:
        return nis_exceedance_rate(self.nis.get(sensor_type, []), sensor_type, confidence)

    def outcome_counts(self) -> Dict[str, int]:
        counts = {outcome.value: 0 for outcome in UpdateOutcome}
        for outcome in self.outcomes:
            counts[outcome.value] += 1
        return counts


def generate_scenario(trajectory: CTRVTrajectory, duration: float = 25.0,
                      packet_interval: float = 0.05,
                      lidar: Optional[LidarSensor] = None,
                      radar: Optional[RadarSensor] = None,
                      start_timestamp: int = 0) -> List[ScenarioStep]:
    """
    Produce an alternating lidar/radar packet stream along a trajectory.

    Args:
        trajectory: Ground-truth generator
        duration: Scenario length in seconds
        packet_interval: Time between consecutive packets in seconds
        lidar: Lidar sensor, or None to omit lidar packets
        radar: Radar sensor, or None to omit radar packets
        start_timestamp: Timestamp of the first sample in microseconds

    Returns:
        List of ScenarioStep in timestamp order (dropped packets omitted)
    """
    if lidar is None and radar is None:
        raise ValueError("At least one sensor is required")

    times, states = trajectory.sample(duration, packet_interval)

    steps = []
    for k, (t, state) in enumerate(zip(times, states)):
        timestamp = start_timestamp + int(round(t * MICROSECONDS))
        sensor = lidar if k % 2 == 0 else radar
        if sensor is None:
            sensor = radar if lidar is None else lidar

        package = sensor.get_measurement(state, timestamp)
        if package is not None:
            steps.append(ScenarioStep(package=package, ground_truth=state.copy()))

    logger.info(f"Generated scenario with {len(steps)} packets over {duration:.1f}s")
    return steps


def run_filter(ukf: UnscentedKalmanFilter, steps: List[ScenarioStep]) -> TrackingRun:
    """
    Feed every packet of a scenario through the filter.

    Args:
        ukf: Filter instance, normally freshly constructed
        steps: Scenario produced by generate_scenario

    Returns:
        TrackingRun with one row per processed packet
    """
    timestamps = []
    estimates = []
    ground_truth = []
    outcomes = []

    for step in steps:
        result = ukf.process_measurement(step.package)
        if not ukf.is_initialized:
            continue

        timestamps.append(step.package.timestamp)
        estimates.append(ukf.x)
        ground_truth.append(step.ground_truth)
        outcomes.append(result.outcome)

    return TrackingRun(
        timestamps=np.asarray(timestamps),
        estimates=np.asarray(estimates).reshape(-1, 5),
        ground_truth=np.asarray(ground_truth).reshape(-1, 5),
        outcomes=outcomes,
        nis={sensor: ukf.nis_history(sensor) for sensor in SensorType}
    )
