"""
Visualization components for ukf tracking.

This module provides trajectory, error and NIS plots of tracking runs.
"""

from .plotter import TrackingPlotter

__all__ = [
    "TrackingPlotter"
]
