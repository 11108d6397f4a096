"""
Sensor fusion algorithms for ukf tracking.

This module implements the Unscented Kalman Filter and its stages for
combining lidar and radar measurements into a CTRV state estimate.
"""

from .angles import normalize_angle
from .config import FilterConfiguration, NoiseParameters
from .errors import FilterError, NumericalInstabilityError, SingularInnovationError
from .metrics import calculate_rmse, nis_exceedance_rate, nis_threshold, state_to_cartesian
from .state import CovarianceMatrix, StateVector
from .ukf import FilterDiagnostics, FilterState, UnscentedKalmanFilter, UpdateOutcome, UpdateResult

__all__ = [
    "UnscentedKalmanFilter",
    "FilterConfiguration",
    "NoiseParameters",
    "StateVector",
    "CovarianceMatrix",
    "UpdateResult",
    "UpdateOutcome",
    "FilterState",
    "FilterDiagnostics",
    "FilterError",
    "NumericalInstabilityError",
    "SingularInnovationError",
    "normalize_angle",
    "calculate_rmse",
    "nis_threshold",
    "nis_exceedance_rate",
    "state_to_cartesian"
]
