"""
===============================================================================
LUNAR GNC - Attitude Controller Test Suite
===============================================================================
Retargeting, PD torque law and quaternion propagation of the attitude
controller that keeps the engine axis on the thrust command.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from lunar_gnc.control.attitude_control import AttitudeController, BODY_FORWARD
from lunar_gnc.core.quaternion import Quaternion


@pytest.fixture
def controller():
    return AttitudeController(kp=2.0, kd=1.0)


class TestPointing:

    def test_starts_at_identity(self, controller):
        assert controller.orientation == Quaternion.identity()
        assert controller.target_orientation == Quaternion.identity()
        assert controller.pointing_error() == pytest.approx(0.0)

    def test_target_maps_body_forward_onto_direction(self, controller):
        direction = np.array([1.0, 2.0, -2.0])
        controller.point_towards(direction)
        assert_allclose(controller.target_orientation.rotate_vector(BODY_FORWARD),
                        direction / 3.0, atol=1e-12)

    def test_tiny_direction_keeps_target(self, controller):
        controller.point_towards([1.0, 0.0, 0.0])
        before = controller.target_orientation.copy()
        controller.point_towards([1e-9, 0.0, 0.0])
        assert controller.target_orientation == before

    def test_zero_thrust_keeps_target(self, controller):
        controller.point_towards(np.zeros(3))
        assert controller.target_orientation == Quaternion.identity()

    def test_reversed_direction_is_half_turn(self, controller):
        controller.point_towards([0.0, 0.0, -5.0])
        q = controller.target_orientation
        assert q.rotation_angle == pytest.approx(np.pi)
        assert_allclose(q.rotate_vector(BODY_FORWARD), [0.0, 0.0, -1.0], atol=1e-12)


class TestTorqueAndPropagation:

    def test_torque_nonzero_when_off_target(self, controller):
        controller.point_towards([1.0, 0.0, 0.0])
        torque = controller.compute_torque()
        assert np.linalg.norm(torque) > 0.0
        # Error is a +90 deg turn about +Y
        assert_allclose(torque, [0.0, 2.0 * np.pi / 2, 0.0], atol=1e-12)

    def test_torque_zero_on_target_at_rest(self, controller):
        assert_allclose(controller.compute_torque(), np.zeros(3))

    def test_rate_damping(self, controller):
        controller.angular_velocity = np.array([0.1, 0.0, 0.0])
        assert_allclose(controller.compute_torque(), [-0.1, 0.0, 0.0])

    def test_update_keeps_unit_norm(self, controller):
        controller.point_towards([0.3, -0.4, 0.5])
        for _ in range(500):
            controller.update(controller.compute_torque(), 100.0, 1.0)
            assert controller.orientation.is_unit(1e-9)

    def test_converges_to_target(self, controller):
        direction = np.array([1.0, 0.0, 0.0])
        controller.point_towards(direction)
        initial_error = controller.pointing_error()

        for _ in range(3000):
            controller.update(controller.compute_torque(), 100.0, 1.0)

        assert controller.pointing_error() < 0.05 * initial_error
        assert_allclose(controller.thrust_axis(), direction, atol=0.05)

    @pytest.mark.parametrize("inertia, dt", [(0.0, 1.0), (-5.0, 1.0), (100.0, 0.0)])
    def test_degenerate_update_ignored(self, controller, inertia, dt):
        controller.update(np.array([10.0, 0.0, 0.0]), inertia, dt)
        assert controller.orientation == Quaternion.identity()
        assert_allclose(controller.angular_velocity, np.zeros(3))

    def test_reset(self, controller):
        controller.point_towards([1.0, 0.0, 0.0])
        controller.update(controller.compute_torque(), 1.0, 1.0)
        controller.reset()
        assert controller.orientation == Quaternion.identity()
        assert controller.target_orientation == Quaternion.identity()
        assert_allclose(controller.angular_velocity, np.zeros(3))
