"""
Tracking result visualization.

Classes:
    TrackingPlotter: Trajectory, error and NIS plots for a TrackingRun

Author: Automated Code Generation System
License: MIT
"""

import logging
from typing import Optional, Tuple

import numpy as np
import matplotlib.pyplot as plt

from ..fusion.metrics import nis_threshold
from ..sensors.packet import SensorType
from ..simulation.scenario import TrackingRun

logger = logging.getLogger(__name__)


class TrackingPlotter:
    """
    Four-panel summary of a tracking run.

    Panels:
        - Estimated vs true trajectory in the x/y plane
        - Position error over time
        - Speed and heading against ground truth
        - NIS per sensor with the 95% χ² bounds

    Attributes:
        figure (matplotlib.figure.Figure): Current figure handle
    """

    def __init__(self, figure_size: Tuple[int, int] = (14, 10)):
        """
        Args:
            figure_size: Matplotlib figure size in inches (width, height)
        """
        self.figure_size = figure_size
        self.figure = None

        plt.rcParams.update({
            'font.size': 11,
            'axes.titlesize': 13,
            'axes.labelsize': 11,
            'legend.fontsize': 9
        })

    def plot_run(self, run: TrackingRun, title: str = "UKF Tracking",
                 save_path: Optional[str] = None, show: bool = True):
        """
        Render a tracking run.

        Args:
            run: Results from run_filter
            title: Figure title
            save_path: Optional file path to save the figure to
            show: Call plt.show() after drawing

        Returns:
            The matplotlib figure

        Raises:
            ValueError: If the run holds no estimates
        """
        if run.estimates.shape[0] == 0:
            raise ValueError("Tracking run contains no estimates")

        times = (run.timestamps - run.timestamps[0]) * 1e-6
        estimates = run.estimates
        truth = run.ground_truth

        self.figure, axes = plt.subplots(2, 2, figsize=self.figure_size)
        self.figure.suptitle(title)

        ax = axes[0, 0]
        ax.plot(truth[:, 0], truth[:, 1], 'g-', linewidth=2, label='Ground Truth', alpha=0.8)
        ax.plot(estimates[:, 0], estimates[:, 1], 'r--', linewidth=1.5, label='UKF Estimate')
        ax.set_xlabel('X (m)')
        ax.set_ylabel('Y (m)')
        ax.set_title('Trajectory')
        ax.axis('equal')
        ax.legend()
        ax.grid(True)

        ax = axes[0, 1]
        errors = np.linalg.norm(estimates[:, 0:2] - truth[:, 0:2], axis=1)
        ax.plot(times, errors, 'b-', linewidth=1)
        ax.set_xlabel('Time (s)')
        ax.set_ylabel('Position Error (m)')
        ax.set_title('Position Error Over Time')
        ax.grid(True)

        ax = axes[1, 0]
        ax.plot(times, truth[:, 2], 'g-', label='True speed')
        ax.plot(times, estimates[:, 2], 'r--', label='Estimated speed')
        ax.plot(times, truth[:, 3], 'g:', label='True heading')
        ax.plot(times, estimates[:, 3], 'm:', label='Estimated heading')
        ax.set_xlabel('Time (s)')
        ax.set_ylabel('m/s | rad')
        ax.set_title('Speed and Heading')
        ax.legend()
        ax.grid(True)

        ax = axes[1, 1]
        colors = {SensorType.LASER: 'tab:blue', SensorType.RADAR: 'tab:orange'}
        for sensor_type, values in run.nis.items():
            if not values:
                continue
            ax.plot(values, color=colors[sensor_type], linewidth=1, label=f'{sensor_type.value} NIS')
            ax.axhline(nis_threshold(sensor_type), color=colors[sensor_type], linestyle='--',
                       label=f'{sensor_type.value} 95% bound')
        ax.set_xlabel('Update')
        ax.set_ylabel('NIS')
        ax.set_title('Normalized Innovation Squared')
        ax.legend()
        ax.grid(True)

        self.figure.tight_layout()

        if save_path is not None:
            self.figure.savefig(save_path, dpi=120)
            logger.info(f"Saved tracking plot to {save_path}")
        if show:
            plt.show()

        return self.figure
