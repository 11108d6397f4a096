#!/usr/bin/env python3
"""
CTRV Tracking Demo with Lidar and Radar Fusion

Simulates an object turning along a CTRV trajectory, streams alternating
lidar and radar packets through the Unscented Kalman Filter, and reports
RMSE and NIS consistency.

Run with: ukf-tracking --duration 25 --no-viz
"""

import argparse
import logging

import numpy as np

from .fusion.config import FilterConfiguration, NoiseParameters
from .fusion.ukf import UnscentedKalmanFilter
from .sensors.lidar import LidarSensor
from .sensors.packet import SensorType
from .sensors.radar import RadarSensor
from .simulation.scenario import generate_scenario, run_filter
from .simulation.trajectory import CTRVTrajectory, TrajectoryParameters

logger = logging.getLogger(__name__)


def run_demo(duration=25.0, seed=None, noise=None, use_laser=True, use_radar=True,
             dropout_prob=0.0, visualize=True, save_path=None):
    """Run the tracking simulation and print a summary"""

    print("=== CTRV Tracking with Lidar/Radar Fusion ===")
    print(f"Duration: {duration} seconds | laser: {use_laser} | radar: {use_radar}")
    print()

    rng = np.random.default_rng(seed)
    noise = noise or NoiseParameters()

    trajectory = CTRVTrajectory(TrajectoryParameters(accel_std=0.5, yaw_accel_std=0.1), rng=rng)
    lidar = LidarSensor(0.15, 0.15, dropout_prob=dropout_prob, rng=rng)
    radar = RadarSensor(0.3, 0.03, 0.3, dropout_prob=dropout_prob, rng=rng)

    steps = generate_scenario(trajectory, duration=duration, lidar=lidar, radar=radar)

    configuration = FilterConfiguration(use_laser=use_laser, use_radar=use_radar, noise=noise)
    ukf = UnscentedKalmanFilter(configuration)

    run = run_filter(ukf, steps)

    print("=== RESULTS ===")
    rmse = run.rmse()
    print(f"RMSE px: {rmse[0]:.4f}  py: {rmse[1]:.4f}  vx: {rmse[2]:.4f}  vy: {rmse[3]:.4f}")

    for sensor_type in SensorType:
        history = run.nis.get(sensor_type, [])
        if history:
            print(f"{sensor_type.value:>5} NIS: mean {np.mean(history):.2f}, "
                  f"{run.nis_exceedance(sensor_type) * 100:.1f}% above 95% bound "
                  f"({len(history)} updates)")

    print(f"Outcomes: {run.outcome_counts()}")
    print(f"Lidar availability: {lidar.health.get_availability() * 100:.1f}% | "
          f"Radar availability: {radar.health.get_availability() * 100:.1f}%")

    if visualize or save_path:
        from .visualization.plotter import TrackingPlotter

        TrackingPlotter().plot_run(run, save_path=save_path, show=visualize)

    return run


def main(argv=None):
    """Main entry point"""
    parser = argparse.ArgumentParser(description='CTRV Unscented Kalman Filter tracking demo')
    parser.add_argument('--duration', type=float, default=25.0,
                        help='Simulation duration in seconds (default: 25)')
    parser.add_argument('--seed', type=int, default=None,
                        help='Random seed for reproducible runs')
    parser.add_argument('--std-a', type=float, default=2.0,
                        help='Longitudinal acceleration noise std (m/s^2)')
    parser.add_argument('--std-yawdd', type=float, default=0.6,
                        help='Yaw acceleration noise std (rad/s^2)')
    parser.add_argument('--no-laser', action='store_true',
                        help='Ignore lidar packets')
    parser.add_argument('--no-radar', action='store_true',
                        help='Ignore radar packets')
    parser.add_argument('--dropout', type=float, default=0.0,
                        help='Packet dropout probability for both sensors')
    parser.add_argument('--no-viz', action='store_true',
                        help='Disable plotting')
    parser.add_argument('--save-plot', type=str, default=None,
                        help='Save the summary plot to this file')
    parser.add_argument('--log-level', default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: INFO)')

    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level),
                        format='%(asctime)s %(name)s %(levelname)s: %(message)s')

    if args.no_laser and args.no_radar:
        parser.error("At least one sensor must stay enabled")

    try:
        run_demo(
            duration=args.duration,
            seed=args.seed,
            noise=NoiseParameters(std_a=args.std_a, std_yawdd=args.std_yawdd),
            use_laser=not args.no_laser,
            use_radar=not args.no_radar,
            dropout_prob=args.dropout,
            visualize=not args.no_viz,
            save_path=args.save_plot
        )
    except Exception as e:
        logger.error(f"Simulation error: {e}")
        raise


if __name__ == "__main__":
    main()
