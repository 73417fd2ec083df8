"""
===============================================================================
LUNAR GNC - Kalman Filter Test Suite
===============================================================================
Constant-velocity prediction, position-fix updates, the singular
innovation guard, and the chi-square innovation consistency check.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from lunar_gnc.navigation.kalman_filter import KalmanFilter
from lunar_gnc.navigation.sensor_noise import NoNoise, PositionNoise


@pytest.fixture
def kf():
    return KalmanFilter(np.zeros(6), initial_covariance=1000.0,
                        process_noise=0.1, measurement_noise=10.0)


class TestInitialization:

    def test_scalar_noise_becomes_identity(self, kf):
        assert_allclose(kf.P, 1000.0 * np.eye(6))
        assert_allclose(kf.Q, 0.1 * np.eye(6))
        assert_allclose(kf.R, 10.0 * np.eye(3))

    def test_observation_matrix_picks_position(self, kf):
        assert_allclose(kf.H[:, 0:3], np.eye(3))
        assert_allclose(kf.H[:, 3:6], np.zeros((3, 3)))

    def test_bad_state_length(self):
        with pytest.raises(ValueError):
            KalmanFilter(np.zeros(4))

    def test_bad_noise_shape(self):
        with pytest.raises(ValueError):
            KalmanFilter(np.zeros(6), measurement_noise=np.eye(2))

    def test_accessors_return_copies(self, kf):
        kf.estimated_position[0] = 5.0
        kf.state[0] = 5.0
        assert kf.x[0] == 0.0


class TestPredict:

    def test_constant_velocity(self):
        kf = KalmanFilter(np.array([0.0, 0.0, 0.0, 1.0, 2.0, 3.0]))
        kf.predict(2.0)
        assert_allclose(kf.estimated_position, [2.0, 4.0, 6.0])
        assert_allclose(kf.estimated_velocity, [1.0, 2.0, 3.0])

    def test_covariance_grows(self, kf):
        trace_before = np.trace(kf.P)
        kf.predict(1.0)
        assert np.trace(kf.P) > trace_before


class TestUpdate:

    def test_measurement_at_prediction_leaves_state(self):
        x0 = np.array([10.0, -20.0, 30.0, 1.0, 0.0, 0.0])
        kf = KalmanFilter(x0)
        trace_before = np.trace(kf.P)

        assert kf.update(x0[0:3]) is True
        assert_allclose(kf.state, x0)
        assert np.trace(kf.P) < trace_before

    def test_estimate_moves_toward_measurement(self, kf):
        kf.update(np.array([105.0, 0.0, 0.0]))
        assert 100.0 < kf.estimated_position[0] < 105.0
        assert_allclose(kf.estimated_position[1:], [0.0, 0.0])

    def test_predict_then_update_lands_between(self):
        kf = KalmanFilter(np.array([0.0, 0.0, 0.0, 100.0, 0.0, 0.0]))
        kf.predict(1.0)
        assert_allclose(kf.estimated_position, [100.0, 0.0, 0.0])

        assert kf.update(np.array([105.0, 0.0, 0.0])) is True
        assert 100.0 < kf.estimated_position[0] < 105.0
        assert_allclose(kf.estimated_position[1:], [0.0, 0.0], atol=1e-9)

    def test_singular_innovation_skips_update(self):
        kf = KalmanFilter(np.zeros(6), initial_covariance=0.0, measurement_noise=0.0)
        assert kf.update(np.array([1.0, 2.0, 3.0])) is False
        assert kf.skipped_updates == 1
        assert_allclose(kf.state, np.zeros(6))

    def test_bad_measurement_length(self, kf):
        with pytest.raises(ValueError):
            kf.update(np.zeros(2))

    def test_tracks_noisy_straight_line(self):
        truth_pos = np.array([7.0e6, 0.0, 0.0])
        truth_vel = np.array([0.0, 7500.0, 0.0])
        kf = KalmanFilter(np.concatenate([truth_pos, truth_vel]))
        noise = PositionNoise(100.0, seed=1)

        for _ in range(200):
            truth_pos = truth_pos + truth_vel
            kf.predict(1.0)
            kf.update(noise.corrupt(truth_pos))

        assert np.linalg.norm(kf.estimated_position - truth_pos) < 100.0
        assert np.linalg.norm(kf.estimated_velocity - truth_vel) < 20.0

    def test_noiseless_fix_converges(self, kf):
        target = np.array([500.0, -250.0, 125.0])
        for _ in range(20):
            kf.update(NoNoise().corrupt(target))
        assert_allclose(kf.estimated_position, target, rtol=1e-3)


class TestDiagnostics:

    def test_nis_before_update_is_nan(self, kf):
        assert np.isnan(kf.normalized_innovation_squared())
        assert kf.innovation_is_consistent()

    def test_small_innovation_is_consistent(self, kf):
        kf.update(np.array([1.0, 1.0, 1.0]))
        assert kf.normalized_innovation_squared() >= 0.0
        assert kf.innovation_is_consistent(0.95)

    def test_huge_innovation_is_flagged(self):
        kf = KalmanFilter(np.zeros(6), initial_covariance=1.0, measurement_noise=1.0)
        kf.update(np.array([1e4, 0.0, 0.0]))
        assert not kf.innovation_is_consistent(0.99)

    def test_confidence_validated(self, kf):
        with pytest.raises(ValueError):
            kf.innovation_is_consistent(1.5)

    def test_position_sigma_shrinks_after_update(self, kf):
        before = kf.position_sigma()
        kf.update(np.zeros(3))
        assert np.all(kf.position_sigma() < before)

    def test_covariance_asymmetry_small(self, kf):
        for _ in range(10):
            kf.predict(1.0)
            kf.update(np.zeros(3))
        assert kf.covariance_asymmetry() < 1e-6
