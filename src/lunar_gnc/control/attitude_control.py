"""
Attitude Control
================

Quaternion PD controller that turns the vehicle so the main engine axis
(body +Z) lies along the commanded thrust direction.

Control law:
  q_err = q_target (*) q_current^-1
  theta = rotation vector of q_err   (axis * angle, shortest path)
  tau   = kp * theta - kd * omega

Rigid-body propagation uses a scalar moment of inertia:
  omega <- omega + (tau / I) * dt
  q     <- exp(omega * dt) (*) q

Quaternion composition renormalizes, so the orientation stays on the unit
sphere after every update.

References:
  Wie, B. "Space Vehicle Dynamics and Control", 2nd ed., AIAA, 2008.
"""

import numpy as np

from lunar_gnc.core.quaternion import Quaternion
from lunar_gnc.core.constants import MIN_DIRECTION_NORM


# Body axis aligned with the engine thrust line
BODY_FORWARD = np.array([0.0, 0.0, 1.0])


class AttitudeController:
    """
    Proportional-derivative attitude controller with its own rigid-body
    state (orientation and angular velocity).

    Parameters
    ----------
    kp : float
        Proportional gain on the rotation-vector error (N*m/rad).
    kd : float
        Derivative gain on angular velocity (N*m*s/rad).

    Attributes
    ----------
    orientation : Quaternion
        Current body-to-inertial orientation, starts at identity.
    angular_velocity : np.ndarray (3,)
        Body rates in rad/s.
    target_orientation : Quaternion
        Orientation the controller is driving toward.
    """

    def __init__(self, kp=2.0, kd=1.0):
        self.kp = float(kp)
        self.kd = float(kd)
        self.orientation = Quaternion.identity()
        self.angular_velocity = np.zeros(3)
        self.target_orientation = Quaternion.identity()

    def point_towards(self, direction):
        """
        Retarget so that body +Z maps onto `direction`.

        A direction shorter than 1e-6 leaves the current target in place.
        An exactly reversed direction gives a 180 deg turn about body X.
        """
        direction = np.asarray(direction, dtype=np.float64)
        norm = np.linalg.norm(direction)
        if norm <= MIN_DIRECTION_NORM:
            return

        self.target_orientation = Quaternion.from_two_vectors(
            BODY_FORWARD, direction / norm)

    def compute_torque(self):
        """PD torque command (N*m) for the current error."""
        q_error = self.target_orientation * self.orientation.inverse()
        rot_vec = q_error.to_rotation_vector()
        return self.kp * rot_vec - self.kd * self.angular_velocity

    def update(self, torque, inertia, dt):
        """
        Integrate body rates and orientation over one step.

        Non-positive inertia or dt is ignored.
        """
        if inertia <= 0.0 or dt <= 0.0:
            return

        angular_accel = np.asarray(torque, dtype=np.float64) / inertia
        self.angular_velocity = self.angular_velocity + angular_accel * dt

        delta_q = Quaternion.from_rotation_vector(self.angular_velocity * dt)
        self.orientation = delta_q * self.orientation

    def pointing_error(self):
        """Angle between current and target orientation (rad)."""
        return self.orientation.angle_to(self.target_orientation)

    def thrust_axis(self):
        """Body +Z expressed in the inertial frame."""
        return self.orientation.rotate_vector(BODY_FORWARD)

    def reset(self):
        self.orientation = Quaternion.identity()
        self.angular_velocity = np.zeros(3)
        self.target_orientation = Quaternion.identity()
