"""
Unscented Kalman Filter for CTRV object tracking with lidar and radar fusion.

This module ties the unscented-transform stages together into a recursive
estimator that accepts timestamped measurement packets one at a time.

UKF Recursion:
    Prediction:
        X_aug = σ(x̂(k-1), P(k-1), Q)               augmented sigma points
        X(k|k-1) = f(X_aug, Δt)                     CTRV propagation
        x̂(k|k-1) = Σ wᵢ Xᵢ
        P(k|k-1) = Σ wᵢ (Xᵢ - x̂)(Xᵢ - x̂)ᵀ

    Update:
        Z = h(X(k|k-1))                             sensor model
        ẑ = Σ wᵢ Zᵢ,  S = Σ wᵢ (Zᵢ - ẑ)(Zᵢ - ẑ)ᵀ + R
        T = Σ wᵢ (Xᵢ - x̂)(Zᵢ - ẑ)ᵀ
        K = T S⁻¹
        x̂(k|k) = x̂(k|k-1) + K (z - ẑ)
        P(k|k) = P(k|k-1) - K S Kᵀ

    Every heading and bearing residual is normalized to (-π, π].

Failure Handling:
    A cycle is computed on copies and committed only when both halves
    succeed. A non-positive-definite covariance or a singular innovation
    covariance leaves the previous estimate (and time reference) untouched
    and is reported through :class:`UpdateResult`.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import scipy.linalg

from ..sensors.packet import MeasurementPackage, SensorType
from .angles import normalize_angle
from .config import N_AUG, N_X, YAW_INDEX, FilterConfiguration
from .errors import FilterError, NumericalInstabilityError, SingularInnovationError
from .measurement import MeasurementPrediction, predict_lidar_measurement, predict_radar_measurement
from .motion import predict_mean_and_covariance, predict_sigma_points
from .sigma_points import augmented_sigma_points, compute_weights
from .state import CovarianceMatrix, StateVector, symmetrize

logger = logging.getLogger(__name__)


class FilterState(Enum):
    """Lifecycle of the estimator."""
    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    TRACKING = "tracking"
    DEGRADED = "degraded"


class UpdateOutcome(Enum):
    """Result of handing one packet (or one explicit step) to the filter."""
    INITIALIZED = "initialized"
    UPDATED = "updated"
    PREDICTED = "predicted"
    SKIPPED_DISABLED = "skipped_disabled"
    PREDICTION_FAILED = "prediction_failed"
    UPDATE_FAILED = "update_failed"


@dataclass
class UpdateResult:
    """
    Outcome of a filter step.

    Attributes:
        outcome: What happened to the estimate
        sensor_type: Sensor of the packet, None for a bare prediction
        nis: Normalized innovation squared of a successful correction
        degenerate: Number of zero-range guards triggered in this step
        message: Human readable reason for a skipped or failed step
    """
    outcome: UpdateOutcome
    sensor_type: Optional[SensorType] = None
    nis: Optional[float] = None
    degenerate: int = 0
    message: str = ""

    @property
    def accepted(self) -> bool:
        """True if the estimate was changed by this step."""
        return self.outcome in (UpdateOutcome.INITIALIZED, UpdateOutcome.UPDATED,
                                UpdateOutcome.PREDICTED)


@dataclass
class FilterDiagnostics:
    """Container for filter diagnostic information."""
    condition_number: float
    last_nis: Optional[float]
    last_outcome: Optional[UpdateOutcome]
    prediction_count: int
    update_count: int
    skipped_count: int
    failure_count: int
    filter_state: FilterState


@dataclass
class _Prediction:
    x: np.ndarray
    P: np.ndarray
    Xsig_pred: np.ndarray


def correct_state(prediction: _Prediction, measurement: MeasurementPrediction,
                  z: np.ndarray, weights: np.ndarray,
                  max_condition_number: float = 1e12) -> Tuple[np.ndarray, np.ndarray, float]:
    """
    Kalman correction of a predicted state against one measurement.

    Args:
        prediction: Predicted state mean, covariance and sigma points
        measurement: Predicted measurement distribution built from the same sigma points
        z: Raw measurement vector
        weights: Sigma point weights
        max_condition_number: Largest accepted condition number of S

    Returns:
        Tuple of (corrected state, corrected covariance, NIS)

    Raises:
        SingularInnovationError: If S is singular or too ill-conditioned
    """
    S = measurement.S
    condition = np.linalg.cond(S)
    if not np.isfinite(condition) or condition > max_condition_number:
        raise SingularInnovationError(f"Innovation covariance condition number {condition:.3e} "
                                      f"exceeds {max_condition_number:.1e}")

    X_res = prediction.Xsig_pred - prediction.x[:, np.newaxis]
    X_res[YAW_INDEX] = normalize_angle(X_res[YAW_INDEX])

    Tc = (X_res * weights) @ measurement.residuals.T

    innovation = np.asarray(z, dtype=float) - measurement.z_pred
    if measurement.angle_index is not None:
        innovation[measurement.angle_index] = normalize_angle(innovation[measurement.angle_index])

    try:
        # K = Tc S⁻¹  <=>  Kᵀ = S⁻¹ Tcᵀ since S is symmetric
        K = scipy.linalg.solve(S, Tc.T, assume_a='sym').T
        nis = float(innovation @ scipy.linalg.solve(S, innovation, assume_a='sym'))
    except np.linalg.LinAlgError as exc:
        raise SingularInnovationError(f"Innovation covariance is singular: {exc}") from exc

    x = prediction.x + K @ innovation
    x[YAW_INDEX] = normalize_angle(x[YAW_INDEX])

    P = symmetrize(prediction.P - K @ S @ K.T)

    return x, P, nis


class UnscentedKalmanFilter:
    """
    Unscented Kalman Filter over the CTRV state [px, py, v, ψ, ψ̇].

    Key Features:
        - Lidar (position) and radar (range/bearing/range-rate) updates
        - Augmented sigma points carrying acceleration and yaw-acceleration noise
        - Atomic predict+correct cycles with explicit failure outcomes
        - NIS history per sensor for consistency checks

    Each instance owns its own state; independent filters can run side by
    side. Calls must be serialized by the caller.

    Attributes:
        configuration: Immutable filter configuration
        state: Current state estimate
        covariance: Current state covariance
        weights: Sigma point weights
        is_initialized: False until the first accepted packet
        time_us: Timestamp of the current estimate, None before initialization
    """

    def __init__(self, configuration: Optional[FilterConfiguration] = None):
        """
        Initialize an uninitialized filter.

        Args:
            configuration: Filter configuration, defaults if None
        """
        self.configuration = configuration or FilterConfiguration()

        self.weights = compute_weights(N_AUG, self.configuration.spreading)
        self.state = StateVector()
        self.covariance = CovarianceMatrix(self.configuration.initial_covariance())
        self.is_initialized = False
        self.time_us: Optional[int] = None

        self._Xsig_pred = np.zeros((N_X, 2 * N_AUG + 1))
        self._fresh_prediction: Optional[_Prediction] = None
        self._nis_history: Dict[SensorType, List[float]] = {sensor: [] for sensor in SensorType}

        self._filter_state = FilterState.UNINITIALIZED
        self._last_outcome: Optional[UpdateOutcome] = None
        self._last_nis: Optional[float] = None
        self._prediction_count = 0
        self._update_count = 0
        self._skipped_count = 0
        self._failure_count = 0

        logger.info(f"Unscented Kalman Filter created (lambda={self.configuration.spreading}, "
                    f"laser={self.configuration.use_laser}, radar={self.configuration.use_radar})")

    @property
    def x(self) -> np.ndarray:
        """Copy of the state vector."""
        return self.state.to_array()

    @property
    def P(self) -> np.ndarray:
        """Copy of the state covariance."""
        return self.covariance.matrix

    @property
    def predicted_sigma_points(self) -> np.ndarray:
        """Sigma points of the most recent committed prediction."""
        return self._Xsig_pred.copy()

    @property
    def filter_state(self) -> FilterState:
        """Current lifecycle state of the estimator."""
        return self._filter_state

    def nis_history(self, sensor_type: SensorType) -> List[float]:
        """NIS values of all successful corrections from one sensor."""
        return list(self._nis_history[sensor_type])

    def sensor_enabled(self, sensor_type: SensorType) -> bool:
        """True if packets from this sensor are processed."""
        if sensor_type is SensorType.LASER:
            return self.configuration.use_laser
        return self.configuration.use_radar

    def process_measurement(self, package: MeasurementPackage) -> UpdateResult:
        """
        Process the latest measurement from either sensor.

        The first accepted packet initializes the filter. Every later packet
        triggers a prediction to its timestamp followed by the matching
        update. Packets from a disabled sensor are ignored entirely.

        Args:
            package: Validated measurement packet

        Returns:
            UpdateResult describing what happened

        Raises:
            ValueError: If package is not a MeasurementPackage or is older
                than the current estimate
        """
        if not isinstance(package, MeasurementPackage):
            raise ValueError(f"Expected MeasurementPackage, got {type(package).__name__}")

        sensor_type = package.sensor_type
        if not self.sensor_enabled(sensor_type):
            self._skipped_count += 1
            logger.debug(f"Ignoring {sensor_type.value} packet at t={package.timestamp}, sensor disabled")
            return self._finish(UpdateResult(UpdateOutcome.SKIPPED_DISABLED, sensor_type,
                                             message=f"{sensor_type.value} disabled"))

        if not self.is_initialized:
            return self._finish(self._initialize(package))

        delta = package.timestamp - self.time_us
        if delta < 0:
            raise ValueError(f"Out-of-order packet: timestamp {package.timestamp} precedes "
                             f"current estimate at {self.time_us}")
        dt = delta * self.configuration.timestamp_scale

        try:
            prediction = self._compute_prediction(dt)
        except NumericalInstabilityError as exc:
            return self._finish(self._failure(UpdateOutcome.PREDICTION_FAILED, sensor_type, exc))

        try:
            x, P, measurement, nis = self._compute_correction(prediction, package.raw_measurements,
                                                               sensor_type)
        except SingularInnovationError as exc:
            return self._finish(self._failure(UpdateOutcome.UPDATE_FAILED, sensor_type, exc))

        self._prediction_count += 1
        self._commit_correction(prediction, x, P, sensor_type, nis)
        self.time_us = package.timestamp

        logger.debug(f"{sensor_type.value} cycle committed: dt={dt:.4f}s, NIS={nis:.3f}")
        return self._finish(UpdateResult(UpdateOutcome.UPDATED, sensor_type, nis=nis,
                                         degenerate=measurement.degenerate))

    def predict(self, dt: float) -> UpdateResult:
        """
        Predict the state dt seconds ahead and commit the prediction.

        The time reference advances with the prediction so a following
        packet only predicts the remaining interval.

        Args:
            dt: Time step in seconds

        Returns:
            PREDICTED or PREDICTION_FAILED result

        Raises:
            RuntimeError: If the filter has not been initialized
            ValueError: If dt is negative or not a whole number of timestamp ticks
        """
        if not self.is_initialized:
            raise RuntimeError("Filter must be initialized before prediction")
        if dt < 0:
            raise ValueError(f"Time step must be non-negative, got {dt}")

        ticks = dt / self.configuration.timestamp_scale
        whole_ticks = int(round(ticks))
        # The time reference is an integer timestamp and must stay in step with the state
        if abs(ticks - whole_ticks) > 1e-6 * max(1.0, abs(ticks)):
            raise ValueError(f"Time step {dt} is not a whole number of timestamp ticks "
                             f"(scale {self.configuration.timestamp_scale})")

        try:
            prediction = self._compute_prediction(dt)
        except NumericalInstabilityError as exc:
            return self._finish(self._failure(UpdateOutcome.PREDICTION_FAILED, None, exc))

        self.state.update_from_array(prediction.x)
        self.covariance.matrix = prediction.P
        self._Xsig_pred = prediction.Xsig_pred
        self._fresh_prediction = prediction
        self._prediction_count += 1
        self.time_us += whole_ticks

        logger.debug(f"Prediction step completed, dt={dt:.4f}s")
        return self._finish(UpdateResult(UpdateOutcome.PREDICTED))

    def update_lidar(self, z: np.ndarray) -> UpdateResult:
        """Correct the current estimate with a lidar position [px, py]."""
        return self._update(np.asarray(z, dtype=float), SensorType.LASER)

    def update_radar(self, z: np.ndarray) -> UpdateResult:
        """Correct the current estimate with a radar measurement [ρ, φ, ρ̇]."""
        return self._update(np.asarray(z, dtype=float), SensorType.RADAR)

    def _update(self, z: np.ndarray, sensor_type: SensorType) -> UpdateResult:
        if not self.is_initialized:
            raise RuntimeError("Filter must be initialized before an update")
        if z.shape != (sensor_type.measurement_size,):
            raise ValueError(f"{sensor_type.value} measurement must have "
                             f"{sensor_type.measurement_size} elements, got {z.size}")

        try:
            # Sigma points from the last explicit prediction, otherwise drawn
            # around the current estimate with a zero-length step
            prediction = self._fresh_prediction or self._compute_prediction(0.0)
            x, P, measurement, nis = self._compute_correction(prediction, z, sensor_type)
        except NumericalInstabilityError as exc:
            return self._finish(self._failure(UpdateOutcome.PREDICTION_FAILED, sensor_type, exc))
        except SingularInnovationError as exc:
            return self._finish(self._failure(UpdateOutcome.UPDATE_FAILED, sensor_type, exc))

        self._commit_correction(prediction, x, P, sensor_type, nis)
        return self._finish(UpdateResult(UpdateOutcome.UPDATED, sensor_type, nis=nis,
                                         degenerate=measurement.degenerate))

    def _initialize(self, package: MeasurementPackage) -> UpdateResult:
        """Set the first state estimate from a single packet."""
        config = self.configuration
        values = package.raw_measurements
        degenerate = 0

        if package.sensor_type is SensorType.LASER:
            px, py = values
        else:
            rho, phi = values[0], values[1]
            if rho < config.range_epsilon:
                degenerate = 1
                logger.warning(f"Radar initialization range {rho:g} below {config.range_epsilon:g}, "
                               f"clamping")
                rho = config.range_epsilon
            px, py = rho * np.cos(phi), rho * np.sin(phi)

        self.state.update_from_array(np.array([px, py, 0.0, 0.0, 0.0]))
        self.covariance.matrix = config.initial_covariance()
        self._Xsig_pred = np.zeros((N_X, 2 * N_AUG + 1))
        self._fresh_prediction = None
        self.time_us = package.timestamp
        self.is_initialized = True
        self._filter_state = FilterState.INITIALIZED

        logger.info(f"Filter initialized from {package.sensor_type.value} at t={package.timestamp}: "
                    f"{self.state}")
        return UpdateResult(UpdateOutcome.INITIALIZED, package.sensor_type, degenerate=degenerate)

    def _compute_prediction(self, dt: float) -> _Prediction:
        """Run augmentation, propagation and aggregation without committing."""
        config = self.configuration
        Xsig_aug = augmented_sigma_points(self.state.to_array(), self.covariance.matrix,
                                          config.noise.std_a, config.noise.std_yawdd,
                                          config.spreading)
        Xsig_pred = predict_sigma_points(Xsig_aug, dt, config.yaw_rate_epsilon)
        x_pred, P_pred = predict_mean_and_covariance(Xsig_pred, self.weights)

        if not (np.all(np.isfinite(x_pred)) and np.all(np.isfinite(P_pred))):
            raise NumericalInstabilityError("Prediction produced non-finite values")

        return _Prediction(x=x_pred, P=P_pred, Xsig_pred=Xsig_pred)

    def _compute_correction(self, prediction: _Prediction, z: np.ndarray, sensor_type: SensorType):
        """Measurement prediction and Kalman correction without committing."""
        config = self.configuration
        if sensor_type is SensorType.LASER:
            measurement = predict_lidar_measurement(prediction.Xsig_pred, self.weights,
                                                    config.noise.lidar_covariance())
        else:
            measurement = predict_radar_measurement(prediction.Xsig_pred, self.weights,
                                                    config.noise.radar_covariance(),
                                                    config.range_epsilon)

        x, P, nis = correct_state(prediction, measurement, z, self.weights,
                                  config.max_condition_number)
        if not (np.all(np.isfinite(x)) and np.all(np.isfinite(P))):
            raise SingularInnovationError("Correction produced non-finite values")

        return x, P, measurement, nis

    def _commit_correction(self, prediction: _Prediction, x: np.ndarray, P: np.ndarray,
                           sensor_type: SensorType, nis: float) -> None:
        self.state.update_from_array(x)
        self.covariance.matrix = P
        self._Xsig_pred = prediction.Xsig_pred
        self._fresh_prediction = None
        self._nis_history[sensor_type].append(nis)
        self._last_nis = nis
        self._update_count += 1
        self._filter_state = FilterState.TRACKING

    def _failure(self, outcome: UpdateOutcome, sensor_type: Optional[SensorType],
                 exc: FilterError) -> UpdateResult:
        self._failure_count += 1
        self._filter_state = FilterState.DEGRADED
        self._fresh_prediction = None
        label = sensor_type.value if sensor_type is not None else "prediction"
        logger.warning(f"{label} step skipped ({outcome.value}), prior estimate retained: {exc}")
        return UpdateResult(outcome, sensor_type, message=str(exc))

    def _finish(self, result: UpdateResult) -> UpdateResult:
        self._last_outcome = result.outcome
        return result

    def get_diagnostics(self) -> FilterDiagnostics:
        """
        Generate filter diagnostics.

        Returns:
            FilterDiagnostics object with current filter status
        """
        return FilterDiagnostics(
            condition_number=self.covariance.get_condition_number(),
            last_nis=self._last_nis,
            last_outcome=self._last_outcome,
            prediction_count=self._prediction_count,
            update_count=self._update_count,
            skipped_count=self._skipped_count,
            failure_count=self._failure_count,
            filter_state=self._filter_state
        )

    def get_state_dict(self) -> Dict[str, Any]:
        """
        Get state and diagnostic information as a plain dictionary.

        Returns:
            Dictionary containing state, uncertainty and counters
        """
        return {
            'initialized': self.is_initialized,
            'timestamp': self.time_us,
            'position': self.state.position.tolist(),
            'speed': self.state.speed,
            'yaw': self.state.yaw,
            'yaw_rate': self.state.yaw_rate,
            'uncertainty': self.covariance.get_uncertainty(slice(0, N_X)).tolist(),
            'covariance_trace': self.covariance.trace(),
            'condition_number': self.covariance.get_condition_number(),
            'filter_state': self._filter_state.value,
            'prediction_count': self._prediction_count,
            'update_count': self._update_count,
            'skipped_count': self._skipped_count,
            'failure_count': self._failure_count,
            'last_nis': self._last_nis,
        }

    def reset(self) -> None:
        """Return the filter to the uninitialized state, keeping its configuration."""
        self.state = StateVector()
        self.covariance = CovarianceMatrix(self.configuration.initial_covariance())
        self.is_initialized = False
        self.time_us = None
        self._Xsig_pred = np.zeros((N_X, 2 * N_AUG + 1))
        self._fresh_prediction = None
        for history in self._nis_history.values():
            history.clear()

        self._filter_state = FilterState.UNINITIALIZED
        self._last_outcome = None
        self._last_nis = None
        self._prediction_count = 0
        self._update_count = 0
        self._skipped_count = 0
        self._failure_count = 0

        logger.info("Unscented Kalman Filter reset")
