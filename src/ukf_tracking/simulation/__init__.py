"""
Simulation components for ukf tracking.

This module contains ground-truth CTRV trajectory generation and scenario
tools that stream simulated lidar and radar packets through a filter.

Components:
    - CTRVTrajectory: Ground-truth CTRV motion with a varying turn rate
    - generate_scenario: Alternating lidar/radar packet stream
    - run_filter: Feeds a scenario through a filter and collects results
"""

from .trajectory import CTRVTrajectory, TrajectoryParameters
from .scenario import ScenarioStep, TrackingRun, generate_scenario, run_filter

__all__ = [
    "CTRVTrajectory",
    "TrajectoryParameters",
    "ScenarioStep",
    "TrackingRun",
    "generate_scenario",
    "run_filter"
]
