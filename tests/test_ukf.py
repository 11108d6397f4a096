import pytest
import numpy as np
import sys
import os

# Add the src directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from ukf_tracking.fusion import (
    CovarianceMatrix, FilterConfiguration, FilterState, NoiseParameters,
    NumericalInstabilityError, SingularInnovationError, StateVector,
    UnscentedKalmanFilter, UpdateOutcome, normalize_angle
)
from ukf_tracking.fusion.angles import angle_difference
from ukf_tracking.fusion.measurement import (
    MeasurementPrediction, lidar_model, predict_lidar_measurement,
    predict_radar_measurement, radar_model
)
from ukf_tracking.fusion.motion import ctrv_transition, predict_mean_and_covariance, predict_sigma_points
from ukf_tracking.fusion.sigma_points import augmented_sigma_points, compute_weights
from ukf_tracking.fusion.ukf import _Prediction, correct_state
from ukf_tracking.sensors import LidarSensor, MeasurementPackage, RadarSensor, SensorType
from ukf_tracking.simulation import CTRVTrajectory, TrajectoryParameters, generate_scenario, run_filter


# Reference estimate used by several sigma point tests
REFERENCE_X = np.array([5.7441, 1.3800, 2.2049, 0.5015, 0.3528])
REFERENCE_P = np.array([
    [0.0043, -0.0013, 0.0030, -0.0022, -0.0020],
    [-0.0013, 0.0077, 0.0011, 0.0071, 0.0060],
    [0.0030, 0.0011, 0.0054, 0.0007, 0.0008],
    [-0.0022, 0.0071, 0.0007, 0.0098, 0.0100],
    [-0.0020, 0.0060, 0.0008, 0.0100, 0.0123],
])


def laser(px, py, t):
    return MeasurementPackage.laser(px, py, t)


class TestAngleNormalization:
    """Test the shared angle wrapping utility"""

    def test_boundaries(self):
        """Test +π is kept and -π maps onto +π"""
        assert normalize_angle(np.pi) == pytest.approx(np.pi)
        assert normalize_angle(-np.pi) == pytest.approx(np.pi)
        assert normalize_angle(0.0) == pytest.approx(0.0)

    def test_wraps_multiple_turns(self):
        """Test angles several turns away are wrapped"""
        angles = np.array([2 * np.pi, -2 * np.pi, 7.0, 1.5 * np.pi, -1.5 * np.pi])
        expected = np.array([0.0, 0.0, 7.0 - 2 * np.pi, -0.5 * np.pi, 0.5 * np.pi])

        np.testing.assert_allclose(normalize_angle(angles), expected, atol=1e-12)

    def test_range(self):
        """Test every output lies in (-π, π]"""
        angles = np.linspace(-50.0, 50.0, 2001)
        wrapped = normalize_angle(angles)

        assert np.all(wrapped > -np.pi)
        assert np.all(wrapped <= np.pi)
        np.testing.assert_allclose(np.sin(wrapped), np.sin(angles), atol=1e-9)
        np.testing.assert_allclose(np.cos(wrapped), np.cos(angles), atol=1e-9)

    def test_angle_difference_across_wrap(self):
        """Test difference of angles on either side of ±π is small"""
        assert angle_difference(-3.1, 3.1) == pytest.approx(2 * np.pi - 6.2)


class TestStateVector:
    """Test 5D CTRV state vector [px, py, v, yaw, yaw_rate]"""

    def test_state_vector_initialization(self):
        """Test state vector initializes to zero"""
        state = StateVector()

        assert state.to_array().shape == (5,)
        np.testing.assert_allclose(state.to_array(), np.zeros(5))

    def test_state_vector_properties(self):
        """Test named accessors"""
        state = StateVector(np.array([1.0, 2.0, 3.0, 0.5, 0.1]))

        np.testing.assert_allclose(state.position, [1.0, 2.0])
        assert state.speed == pytest.approx(3.0)
        assert state.yaw == pytest.approx(0.5)
        assert state.yaw_rate == pytest.approx(0.1)
        np.testing.assert_allclose(state.velocity, [3.0 * np.cos(0.5), 3.0 * np.sin(0.5)])

    def test_yaw_normalized_on_update(self):
        """Test heading is wrapped whenever the state is written"""
        state = StateVector()
        state.update_from_array(np.array([0.0, 0.0, 1.0, 4.0, 0.0]))

        assert state.yaw == pytest.approx(4.0 - 2 * np.pi)
        assert StateVector.from_array(np.array([0.0, 0.0, 1.0, -4.0, 0.0])).yaw == \
            pytest.approx(2 * np.pi - 4.0)

    def test_invalid_state_rejected(self):
        """Test wrong sizes and non-finite values are rejected"""
        with pytest.raises(ValueError):
            StateVector(np.zeros(4))
        with pytest.raises(ValueError):
            StateVector(np.array([0.0, np.nan, 0.0, 0.0, 0.0]))


class TestCovarianceMatrix:
    """Test covariance matrix handling and properties"""

    def test_covariance_symmetrized_on_assignment(self):
        """Test asymmetric input is averaged with its transpose"""
        cov = CovarianceMatrix()
        matrix = np.eye(5)
        matrix[0, 1] = 0.2
        matrix[1, 0] = 0.0

        cov.matrix = matrix

        assert cov.is_symmetric()
        assert cov.matrix[0, 1] == pytest.approx(0.1)

    def test_positive_definiteness_check(self):
        """Test Cholesky-based positive definiteness query"""
        cov = CovarianceMatrix(np.diag([1.0, 2.0, 3.0, 4.0, 5.0]))
        assert cov.is_positive_definite()

        cov.matrix = np.diag([1.0, 1.0, -1.0, 1.0, 1.0])
        assert not cov.is_positive_definite()

    def test_uncertainty_and_condition_number(self):
        """Test standard deviations and conditioning"""
        cov = CovarianceMatrix(np.diag([4.0, 9.0, 1.0, 1.0, 1.0]))

        np.testing.assert_allclose(cov.get_uncertainty(slice(0, 2)), [2.0, 3.0])
        assert cov.get_condition_number() == pytest.approx(9.0)

    def test_correlation_matrix(self):
        """Test correlation matrix has unit diagonal and bounded entries"""
        cov = CovarianceMatrix(REFERENCE_P)
        correlation = cov.get_correlation_matrix()

        np.testing.assert_allclose(np.diag(correlation), np.ones(5))
        assert np.all(np.abs(correlation) <= 1.0)

    def test_wrong_shape_rejected(self):
        cov = CovarianceMatrix()
        with pytest.raises(ValueError):
            cov.matrix = np.eye(4)


class TestSigmaPoints:
    """Test weights and augmented sigma point generation"""

    @pytest.mark.parametrize("n_aug", [1, 3, 5, 7, 10])
    def test_weights_sum_to_one(self, n_aug):
        """Test weights sum to 1 for the default spreading parameter"""
        weights = compute_weights(n_aug)

        assert weights.shape == (2 * n_aug + 1,)
        assert np.sum(weights) == pytest.approx(1.0)

    def test_weights_values(self):
        """Test center and side weights for n_aug = 7, lambda = -4"""
        weights = compute_weights(7, -4.0)

        assert weights[0] == pytest.approx(-4.0 / 3.0)
        np.testing.assert_allclose(weights[1:], np.full(14, 1.0 / 6.0))

    def test_weights_reject_non_positive_spread(self):
        with pytest.raises(ValueError):
            compute_weights(7, -7.0)

    def test_sigma_point_layout(self):
        """Test shape, center column and symmetric spread"""
        Xsig_aug = augmented_sigma_points(REFERENCE_X, REFERENCE_P, 0.2, 0.2)

        assert Xsig_aug.shape == (7, 15)
        np.testing.assert_allclose(Xsig_aug[:, 0], np.concatenate([REFERENCE_X, [0.0, 0.0]]))

        center = Xsig_aug[:, [0]]
        np.testing.assert_allclose(Xsig_aug[:, 1:8] - center, -(Xsig_aug[:, 8:15] - center),
                                   atol=1e-12)

    def test_sigma_point_reference_values(self):
        """Test known sigma point coordinates"""
        Xsig_aug = augmented_sigma_points(REFERENCE_X, REFERENCE_P, 0.2, 0.2)

        # px shifted by sqrt(3 * 0.0043) in the first column
        assert Xsig_aug[0, 1] == pytest.approx(5.85768, abs=1e-4)
        # Acceleration noise column
        assert Xsig_aug[5, 6] == pytest.approx(0.34641, abs=1e-4)
        assert Xsig_aug[5, 13] == pytest.approx(-0.34641, abs=1e-4)

    def test_sigma_points_reproduce_distribution(self):
        """Test weighted sample mean and covariance recover the augmented distribution"""
        Xsig_aug = augmented_sigma_points(REFERENCE_X, REFERENCE_P, 0.2, 0.3)
        weights = compute_weights(7)

        mean = Xsig_aug @ weights
        residuals = Xsig_aug - mean[:, np.newaxis]
        covariance = (residuals * weights) @ residuals.T

        expected_P = np.zeros((7, 7))
        expected_P[:5, :5] = REFERENCE_P
        expected_P[5, 5] = 0.2 ** 2
        expected_P[6, 6] = 0.3 ** 2

        np.testing.assert_allclose(mean, np.concatenate([REFERENCE_X, [0.0, 0.0]]), atol=1e-12)
        np.testing.assert_allclose(covariance, expected_P, atol=1e-12)

    def test_zero_process_noise_supported(self):
        """Test zero noise standard deviations do not break the square root"""
        Xsig_aug = augmented_sigma_points(REFERENCE_X, REFERENCE_P, 0.0, 0.0)

        np.testing.assert_allclose(Xsig_aug[5:7], np.zeros((2, 15)))

    def test_non_positive_definite_covariance_raises(self):
        """Test decomposition failure is reported as numerical instability"""
        P = np.diag([1.0, 1.0, -1.0, 1.0, 1.0])

        with pytest.raises(NumericalInstabilityError):
            augmented_sigma_points(np.zeros(5), P, 0.5, 0.5)


class TestMotionModel:
    """Test CTRV sigma point propagation"""

    def test_straight_line_motion(self):
        """Test zero yaw rate moves along the heading"""
        x = ctrv_transition(np.array([0.0, 0.0, 2.0, 0.0, 0.0]), 1.0)

        np.testing.assert_allclose(x, [2.0, 0.0, 2.0, 0.0, 0.0], atol=1e-12)

    def test_turning_motion(self):
        """Test closed-form quarter turn"""
        x = ctrv_transition(np.array([0.0, 0.0, 1.0, 0.0, np.pi / 2]), 1.0)

        np.testing.assert_allclose(x[0:2], [2.0 / np.pi, 2.0 / np.pi], atol=1e-12)
        assert x[3] == pytest.approx(np.pi / 2)
        assert x[4] == pytest.approx(np.pi / 2)

    def test_small_yaw_rate_continuity(self):
        """Test straight-line limit agrees with the turning solution near the threshold"""
        below = ctrv_transition(np.array([1.0, 1.0, 5.0, 0.3, 1e-4]), 0.1)
        above = ctrv_transition(np.array([1.0, 1.0, 5.0, 0.3, 2e-3]), 0.1)

        np.testing.assert_allclose(below[0:2], above[0:2], atol=1e-3)

    def test_heading_wraps(self):
        """Test propagated heading stays normalized"""
        x = ctrv_transition(np.array([0.0, 0.0, 1.0, 3.1, 1.0]), 0.1)

        assert -np.pi < x[3] <= np.pi
        assert x[3] == pytest.approx(normalize_angle(3.2))

    def test_process_noise_terms(self):
        """Test acceleration noise enters position, speed and heading"""
        Xsig_aug = np.array([[0.0], [0.0], [0.0], [0.0], [0.0], [1.0], [2.0]])

        Xsig_pred = predict_sigma_points(Xsig_aug, 0.1)

        np.testing.assert_allclose(Xsig_pred[:, 0], [0.005, 0.0, 0.1, 0.01, 0.2], atol=1e-12)

    def test_output_drops_noise_dimensions(self):
        Xsig_aug = augmented_sigma_points(REFERENCE_X, REFERENCE_P, 0.2, 0.2)

        assert predict_sigma_points(Xsig_aug, 0.1).shape == (5, 15)

    def test_negative_dt_rejected(self):
        with pytest.raises(ValueError):
            ctrv_transition(np.zeros(5), -0.1)


class TestMeanCovarianceAggregation:
    """Test recombination of predicted sigma points"""

    def test_zero_step_reproduces_estimate(self):
        """Test a zero-length prediction returns the input mean and covariance"""
        weights = compute_weights(7)
        Xsig_aug = augmented_sigma_points(REFERENCE_X, REFERENCE_P, 0.2, 0.2)
        Xsig_pred = predict_sigma_points(Xsig_aug, 0.0)

        x_pred, P_pred = predict_mean_and_covariance(Xsig_pred, weights)

        np.testing.assert_allclose(x_pred, REFERENCE_X, atol=1e-12)
        np.testing.assert_allclose(P_pred, REFERENCE_P, atol=1e-12)

    def test_heading_residuals_across_wrap(self):
        """Test sigma points straddling ±π keep a small heading variance"""
        weights = compute_weights(7)
        offsets = np.concatenate([[0.0], np.full(7, 0.1), np.full(7, -0.1)])

        Xsig_pred = np.zeros((5, 15))
        Xsig_pred[2] = 1.0
        Xsig_pred[3] = normalize_angle(np.pi + offsets)

        x_pred, P_pred = predict_mean_and_covariance(Xsig_pred, weights)

        assert abs(angle_difference(x_pred[3], np.pi)) < 1e-12
        assert P_pred[3, 3] == pytest.approx(14 * 0.01 / 6.0)
        np.testing.assert_array_equal(P_pred, P_pred.T)


class TestMeasurementModels:
    """Test lidar and radar measurement prediction"""

    def test_lidar_projection(self):
        Xsig_pred = np.arange(75, dtype=float).reshape(5, 15)

        np.testing.assert_array_equal(lidar_model(Xsig_pred), Xsig_pred[0:2])

    def test_lidar_covariance_includes_noise(self):
        """Test identical sigma points give S equal to R"""
        weights = compute_weights(7)
        Xsig_pred = np.tile(np.array([[1.0], [2.0], [0.0], [0.0], [0.0]]), (1, 15))
        R = np.diag([0.0225, 0.0225])

        prediction = predict_lidar_measurement(Xsig_pred, weights, R)

        np.testing.assert_allclose(prediction.z_pred, [1.0, 2.0])
        np.testing.assert_allclose(prediction.S, R, atol=1e-12)
        assert prediction.angle_index is None

    def test_radar_round_trip(self):
        """Test radar model on an exact state matches the analytic polar conversion"""
        x = np.array([3.0, 4.0, 5.0, 0.5, 0.1])
        expected = RadarSensor.polar_from_state(x)
        weights = compute_weights(7)

        Xsig_aug = augmented_sigma_points(x, np.eye(5) * 1e-12, 0.0, 0.0)
        Xsig_pred = predict_sigma_points(Xsig_aug, 0.0)
        prediction = predict_radar_measurement(Xsig_pred, weights, np.diag([0.09, 0.0009, 0.09]))

        assert expected[0] == pytest.approx(5.0)
        assert expected[1] == pytest.approx(np.arctan2(4.0, 3.0))
        np.testing.assert_allclose(prediction.z_pred, expected, atol=1e-6)
        np.testing.assert_allclose(radar_model(x.reshape(5, 1))[0][:, 0], expected, atol=1e-12)

    def test_radar_zero_range_is_defined(self):
        """Test the zero-range guard produces finite, flagged output"""
        Zsig, degenerate = radar_model(np.zeros((5, 15)), range_epsilon=1e-4)

        assert np.all(np.isfinite(Zsig))
        assert np.all(degenerate)
        np.testing.assert_allclose(Zsig[2], np.zeros(15))

    def test_radar_zero_range_prediction_counts_degenerate_points(self):
        weights = compute_weights(7)
        Xsig_pred = np.zeros((5, 15))
        Xsig_pred[2] = 2.0

        prediction = predict_radar_measurement(Xsig_pred, weights, np.diag([0.09, 0.0009, 0.09]))

        assert prediction.degenerate == 15
        assert np.all(np.isfinite(prediction.S))

    def test_radar_bearing_across_wrap(self):
        """Test bearings either side of ±π keep a small bearing variance"""
        weights = compute_weights(7)
        Xsig_pred = np.zeros((5, 15))
        Xsig_pred[0] = -5.0
        Xsig_pred[1] = np.concatenate([[0.0], np.full(7, 0.05), np.full(7, -0.05)])

        prediction = predict_radar_measurement(Xsig_pred, weights, np.diag([0.09, 0.0009, 0.09]))

        assert abs(angle_difference(prediction.z_pred[1], np.pi)) < 1e-9
        assert prediction.S[1, 1] < 0.01
        assert np.all(np.abs(prediction.residuals[1]) < 0.02)


class TestStateCorrection:
    """Test the Kalman correction stage in isolation"""

    def test_singular_innovation_covariance_raises(self):
        """Test a singular S is reported instead of inverted"""
        Xsig_pred = np.zeros((5, 15))
        prediction = _Prediction(x=np.zeros(5), P=np.eye(5), Xsig_pred=Xsig_pred)
        measurement = MeasurementPrediction(Zsig=np.zeros((2, 15)), z_pred=np.zeros(2),
                                            S=np.zeros((2, 2)), residuals=np.zeros((2, 15)))

        with pytest.raises(SingularInnovationError):
            correct_state(prediction, measurement, np.array([1.0, 1.0]), compute_weights(7))

    def test_correction_moves_toward_measurement(self):
        """Test corrected position lies between prediction and measurement"""
        weights = compute_weights(7)
        x = np.array([0.0, 0.0, 1.0, 0.0, 0.0])
        P = np.eye(5)
        Xsig_pred = predict_sigma_points(augmented_sigma_points(x, P, 0.0, 0.0), 0.0)
        x_pred, P_pred = predict_mean_and_covariance(Xsig_pred, weights)
        measurement = predict_lidar_measurement(Xsig_pred, weights, np.eye(2))

        x_new, P_new, nis = correct_state(_Prediction(x_pred, P_pred, Xsig_pred), measurement,
                                          np.array([2.0, 0.0]), weights)

        # Equal prior and measurement variance: halfway
        assert x_new[0] == pytest.approx(1.0)
        assert P_new[0, 0] == pytest.approx(0.5)
        assert nis == pytest.approx(2.0)
        np.testing.assert_array_equal(P_new, P_new.T)


class TestUnscentedKalmanFilter:
    """Test the estimator lifecycle and failure handling"""

    def test_filter_starts_uninitialized(self):
        ukf = UnscentedKalmanFilter()

        assert not ukf.is_initialized
        assert ukf.time_us is None
        assert ukf.filter_state == FilterState.UNINITIALIZED
        assert np.sum(ukf.weights) == pytest.approx(1.0)

    def test_laser_initialization(self):
        """Test first lidar packet sets position and the configured covariance"""
        ukf = UnscentedKalmanFilter()

        result = ukf.process_measurement(laser(1.0, 1.0, 0))

        assert result.outcome == UpdateOutcome.INITIALIZED
        assert ukf.is_initialized
        assert ukf.time_us == 0
        np.testing.assert_allclose(ukf.x, [1.0, 1.0, 0.0, 0.0, 0.0])
        np.testing.assert_allclose(ukf.P, np.diag([1.0, 1.0, 10.0, 10.0, 1.0]))

    def test_radar_initialization(self):
        """Test first radar packet is converted from polar coordinates"""
        ukf = UnscentedKalmanFilter()

        ukf.process_measurement(MeasurementPackage.radar(2.0, np.pi / 2, 1.0, 0))

        np.testing.assert_allclose(ukf.x, [0.0, 2.0, 0.0, 0.0, 0.0], atol=1e-12)

    def test_radar_initialization_at_zero_range(self):
        """Test zero range initializes to a defined position"""
        ukf = UnscentedKalmanFilter()

        result = ukf.process_measurement(MeasurementPackage.radar(0.0, 0.3, 0.0, 0))

        assert result.outcome == UpdateOutcome.INITIALIZED
        assert result.degenerate == 1
        assert np.all(np.isfinite(ukf.x))
        assert np.linalg.norm(ukf.x[0:2]) == pytest.approx(ukf.configuration.range_epsilon)

    def test_malformed_input_rejected(self):
        ukf = UnscentedKalmanFilter()

        with pytest.raises(ValueError):
            ukf.process_measurement("L 1.0 1.0 0")
        with pytest.raises(ValueError):
            MeasurementPackage(SensorType.LASER, np.array([1.0, 2.0, 3.0]), 0)

    def test_out_of_order_packet_rejected(self):
        ukf = UnscentedKalmanFilter()
        ukf.process_measurement(laser(1.0, 1.0, 100000))

        with pytest.raises(ValueError):
            ukf.process_measurement(laser(1.0, 1.0, 50000))

    def test_predict_requires_initialization(self):
        with pytest.raises(RuntimeError):
            UnscentedKalmanFilter().predict(0.1)

    def test_prediction_then_lidar_correction(self):
        """Test init, noise-free prediction and a nearby lidar reading"""
        config = FilterConfiguration(noise=NoiseParameters(std_a=0.0, std_yawdd=0.0))
        ukf = UnscentedKalmanFilter(config)
        ukf.process_measurement(laser(1.0, 1.0, 0))

        result = ukf.predict(0.1)

        assert result.outcome == UpdateOutcome.PREDICTED
        assert ukf.time_us == 100000
        assert ukf.predicted_sigma_points.shape == (5, 15)
        np.testing.assert_allclose(ukf.x[0:2], [1.0, 1.0], atol=1e-9)
        np.testing.assert_array_equal(ukf.P, ukf.P.T)
        assert np.linalg.eigvalsh(ukf.P).min() >= -1e-9
        # Speed uncertainty leaks into position: 1 + 0.1² * 10
        assert ukf.P[0, 0] == pytest.approx(1.1)

        result = ukf.update_lidar(np.array([1.01, 0.99]))

        assert result.outcome == UpdateOutcome.UPDATED
        dx, dy = ukf.x[0:2] - 1.0
        assert 0.0 < dx < 0.01
        assert -0.01 < dy < 0.0
        assert result.nis is not None and result.nis >= 0.0
        np.testing.assert_array_equal(ukf.P, ukf.P.T)

    def test_process_measurement_cycle(self):
        """Test a second packet runs predict and update toward the innovation"""
        ukf = UnscentedKalmanFilter()
        ukf.process_measurement(laser(1.0, 1.0, 0))
        trace_before = np.trace(ukf.P[0:2, 0:2])

        result = ukf.process_measurement(laser(1.01, 0.99, 100000))

        assert result.outcome == UpdateOutcome.UPDATED
        assert result.accepted
        assert ukf.time_us == 100000
        dx, dy = ukf.x[0:2] - 1.0
        assert 0.0 < dx < 0.01
        assert -0.01 < dy < 0.0
        assert np.trace(ukf.P[0:2, 0:2]) < trace_before
        assert ukf.nis_history(SensorType.LASER) == [result.nis]

    def test_disabled_sensor_fully_skipped(self):
        """Test disabled sensor packets change neither state nor time reference"""
        ukf = UnscentedKalmanFilter(FilterConfiguration(use_radar=False))

        result = ukf.process_measurement(MeasurementPackage.radar(2.0, 0.1, 0.0, 0))
        assert result.outcome == UpdateOutcome.SKIPPED_DISABLED
        assert not ukf.is_initialized

        ukf.process_measurement(laser(1.0, 1.0, 0))
        x_before, P_before = ukf.x, ukf.P

        result = ukf.process_measurement(MeasurementPackage.radar(2.0, 0.1, 0.0, 50000))

        assert result.outcome == UpdateOutcome.SKIPPED_DISABLED
        assert not result.accepted
        assert ukf.time_us == 0
        np.testing.assert_array_equal(ukf.x, x_before)
        np.testing.assert_array_equal(ukf.P, P_before)
        assert ukf.get_diagnostics().skipped_count == 2

    def test_prediction_failure_retains_prior(self):
        """Test a non-positive-definite covariance leaves the estimate untouched"""
        ukf = UnscentedKalmanFilter()
        ukf.process_measurement(laser(1.0, 1.0, 0))
        ukf.covariance.matrix = -np.eye(5)
        x_before, P_before = ukf.x, ukf.P

        result = ukf.process_measurement(laser(1.2, 1.2, 50000))

        assert result.outcome == UpdateOutcome.PREDICTION_FAILED
        assert result.message
        assert ukf.time_us == 0
        np.testing.assert_array_equal(ukf.x, x_before)
        np.testing.assert_array_equal(ukf.P, P_before)

        diagnostics = ukf.get_diagnostics()
        assert diagnostics.failure_count == 1
        assert diagnostics.filter_state == FilterState.DEGRADED
        assert diagnostics.last_outcome == UpdateOutcome.PREDICTION_FAILED

    def test_ill_conditioned_innovation_retains_prior(self):
        """Test an innovation covariance above the condition limit skips the cycle"""
        config = FilterConfiguration(noise=NoiseParameters(std_laspx=0.15, std_laspy=3.0),
                                     max_condition_number=1.5)
        ukf = UnscentedKalmanFilter(config)
        ukf.process_measurement(laser(1.0, 1.0, 0))
        x_before, P_before = ukf.x, ukf.P

        result = ukf.process_measurement(laser(1.1, 1.1, 100000))

        assert result.outcome == UpdateOutcome.UPDATE_FAILED
        assert ukf.time_us == 0
        np.testing.assert_array_equal(ukf.x, x_before)
        np.testing.assert_array_equal(ukf.P, P_before)

    def test_failure_discards_explicit_prediction(self):
        """Test a failed cycle drops sigma points kept from an explicit predict"""
        config = FilterConfiguration(noise=NoiseParameters(std_laspx=0.15, std_laspy=3.0),
                                     max_condition_number=1.5)
        ukf = UnscentedKalmanFilter(config)
        ukf.process_measurement(laser(1.0, 1.0, 0))
        ukf.predict(0.05)
        assert ukf._fresh_prediction is not None

        result = ukf.process_measurement(laser(1.1, 1.1, 100000))

        assert result.outcome == UpdateOutcome.UPDATE_FAILED
        assert ukf._fresh_prediction is None
        assert ukf.time_us == 50000

    def test_explicit_prediction_keeps_time_reference_in_step(self):
        """Test predict advances the time reference by exactly the applied interval"""
        config = FilterConfiguration(noise=NoiseParameters(std_a=0.0, std_yawdd=0.0),
                                     initial_covariance_diagonal=(1e-12,) * 5,
                                     timestamp_scale=1.0)
        ukf = UnscentedKalmanFilter(config)
        ukf.process_measurement(laser(0.0, 0.0, 0))
        ukf.state.update_from_array(np.array([0.0, 0.0, 1.0, 0.0, 0.0]))

        with pytest.raises(ValueError):
            ukf.predict(0.4)
        assert ukf.time_us == 0
        np.testing.assert_allclose(ukf.x, [0.0, 0.0, 1.0, 0.0, 0.0])

        ukf.predict(2.0)

        assert ukf.time_us == 2
        assert ukf.x[0] == pytest.approx(ukf.time_us * config.timestamp_scale, abs=1e-5)

        ukf.process_measurement(laser(3.0, 0.0, 3))

        assert ukf.time_us == 3
        assert ukf.x[0] == pytest.approx(3.0, abs=1e-3)

    def test_radar_update_with_zero_range(self):
        """Test a zero-range radar reading does not fault"""
        ukf = UnscentedKalmanFilter()
        ukf.process_measurement(laser(0.5, 0.5, 0))

        result = ukf.process_measurement(MeasurementPackage.radar(0.0, 0.0, 0.0, 50000))

        assert result.accepted
        assert np.all(np.isfinite(ukf.x))
        assert np.all(np.isfinite(ukf.P))

    def test_update_without_explicit_prediction(self):
        """Test direct radar update uses sigma points drawn around the current estimate"""
        ukf = UnscentedKalmanFilter()
        ukf.process_measurement(laser(3.0, 4.0, 0))

        result = ukf.update_radar(np.array([6.0, np.arctan2(4.0, 3.0), 0.0]))

        assert result.outcome == UpdateOutcome.UPDATED
        assert np.linalg.norm(ukf.x[0:2]) > 5.0
        assert ukf.time_us == 0

    def test_independent_instances(self):
        """Test two filters share no state"""
        first = UnscentedKalmanFilter()
        second = UnscentedKalmanFilter()

        first.process_measurement(laser(1.0, 1.0, 0))
        second.process_measurement(laser(-5.0, 2.0, 0))
        first.process_measurement(laser(1.1, 1.0, 50000))

        np.testing.assert_allclose(second.x, [-5.0, 2.0, 0.0, 0.0, 0.0])
        assert second.nis_history(SensorType.LASER) == []

    def test_reset(self):
        ukf = UnscentedKalmanFilter()
        ukf.process_measurement(laser(1.0, 1.0, 0))
        ukf.process_measurement(laser(1.1, 1.0, 50000))

        ukf.reset()

        assert not ukf.is_initialized
        assert ukf.time_us is None
        assert ukf.get_diagnostics().update_count == 0
        assert ukf.nis_history(SensorType.LASER) == []

    def test_state_dict(self):
        ukf = UnscentedKalmanFilter()
        ukf.process_measurement(laser(1.0, 2.0, 0))

        state = ukf.get_state_dict()

        assert state['initialized']
        assert state['position'] == [1.0, 2.0]
        assert state['filter_state'] == 'initialized'
        assert len(state['uncertainty']) == 5


class TestUnscentedKalmanFilterIntegration:
    """Integration tests with simulated lidar and radar streams"""

    def test_stationary_object_speed_converges_to_zero(self):
        """Test repeated lidar readings of a fixed point drive the speed down"""
        ukf = UnscentedKalmanFilter()
        ukf.process_measurement(laser(2.0, 3.0, 0))
        ukf.state.update_from_array(np.array([2.0, 3.0, 3.0, 0.0, 0.0]))

        speeds = []
        for k in range(1, 201):
            ukf.process_measurement(laser(2.0, 3.0, k * 50000))
            speeds.append(abs(ukf.state.speed))

        assert ukf.get_diagnostics().failure_count == 0
        assert speeds[-1] < 0.25
        assert np.mean(speeds[-20:]) < np.mean(speeds[:20])
        np.testing.assert_allclose(ukf.x[0:2], [2.0, 3.0], atol=0.1)

    def test_covariance_symmetric_after_every_step(self):
        """Test P stays symmetric, finite and positive semi-definite throughout a fused run"""
        rng = np.random.default_rng(7)
        trajectory = CTRVTrajectory(TrajectoryParameters(), rng=rng)
        steps = generate_scenario(trajectory, duration=5.0, lidar=LidarSensor(rng=rng),
                                  radar=RadarSensor(rng=rng))
        ukf = UnscentedKalmanFilter()

        for step in steps:
            ukf.process_measurement(step.package)
            P = ukf.P
            np.testing.assert_array_equal(P, P.T)
            assert np.all(np.isfinite(P))
            assert np.linalg.eigvalsh(P).min() >= -1e-9
            assert -np.pi < ukf.state.yaw <= np.pi

    def test_heading_continuous_across_pi(self):
        """Test heading estimate follows a turn through ±π without jumps"""
        rng = np.random.default_rng(3)
        params = TrajectoryParameters(initial_position=(0.6, 0.6), speed=5.0, heading=1.5,
                                      base_yaw_rate=0.3, yaw_rate_amplitude=0.0)
        steps = generate_scenario(CTRVTrajectory(params, rng=rng), duration=10.0,
                                  lidar=LidarSensor(rng=rng), radar=RadarSensor(rng=rng))

        run = run_filter(UnscentedKalmanFilter(), steps)

        true_yaw = run.ground_truth[:, 3]
        assert np.any(true_yaw > 3.0) and np.any(true_yaw < -3.0)

        settled = (run.timestamps - run.timestamps[0]) > 3_000_000
        heading_error = angle_difference(run.estimates[settled, 3], true_yaw[settled])
        heading_steps = angle_difference(run.estimates[settled, 3][1:], run.estimates[settled, 3][:-1])

        assert np.max(np.abs(heading_error)) < 0.5
        assert np.max(np.abs(heading_steps)) < 0.5

    def test_fused_tracking_accuracy_and_consistency(self):
        """Test RMSE and NIS consistency on a turning trajectory"""
        rng = np.random.default_rng(42)
        steps = generate_scenario(CTRVTrajectory(rng=rng), duration=20.0,
                                  lidar=LidarSensor(rng=rng), radar=RadarSensor(rng=rng))

        run = run_filter(UnscentedKalmanFilter(), steps)
        rmse = run.rmse(skip=40)

        assert run.outcome_counts()['prediction_failed'] == 0
        assert run.outcome_counts()['update_failed'] == 0
        assert rmse[0] < 0.25 and rmse[1] < 0.25
        assert rmse[2] < 1.0 and rmse[3] < 1.0
        assert run.nis_exceedance(SensorType.LASER) < 0.25
        assert run.nis_exceedance(SensorType.RADAR) < 0.25


if __name__ == "__main__":
    pytest.main([__file__])
