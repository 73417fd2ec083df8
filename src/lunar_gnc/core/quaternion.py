"""
===============================================================================
LUNAR GNC - Quaternion Algebra
===============================================================================

Unit quaternions describe the vehicle orientation for the attitude
controller. Only the operations the controller needs are provided:
construction from axis-angle, rotation vectors and vector pairs, the
Hamilton product, inversion, vector rotation and the logarithmic map back
to a rotation vector.

Convention
----------
Scalar-first, Hamilton product:

    q = [q_w, q_x, q_y, q_z] = q_w + q_x*i + q_y*j + q_z*k

A quaternion q rotates a vector v as v' = q * v * q_conjugate. The product
q1 * q2 applies q2 first, then q1.

Every constructor call normalizes and flips the sign so that q_w >= 0.
Since q and -q describe the same rotation, this keeps extracted rotation
angles in [0, pi] and therefore makes the attitude error the short way
around.

References
----------
    [1] Markley & Crassidis, "Fundamentals of Spacecraft Attitude
        Determination and Control", Springer, 2014.
    [2] Diebel, "Representing Attitude: Euler Angles, Unit Quaternions, and
        Rotation Vectors", Stanford, 2006.

===============================================================================
"""

import numpy as np
from typing import Tuple, Union


class Quaternion:
    """
    Unit quaternion for 3D rotation representation.

    A rotation by angle theta about unit axis n is encoded as

        q = [cos(theta/2), sin(theta/2) * n]

    Attributes
    ----------
    w, x, y, z : float
        Scalar and vector components (read-only properties).

    Examples
    --------
    >>> q = Quaternion.from_axis_angle(np.array([0.0, 0.0, 1.0]), np.pi / 2)
    >>> q.rotate_vector(np.array([1.0, 0.0, 0.0]))
    array([0., 1., 0.])
    """

    _NORM_TOLERANCE = 1e-12
    _COMPARISON_TOLERANCE = 1e-9

    def __init__(self, w: float, x: float, y: float, z: float,
                 normalize: bool = True) -> None:
        """
        Parameters
        ----------
        w : float
            Scalar part.
        x, y, z : float
            Vector part.
        normalize : bool, optional
            Normalize to unit length (default). Only internal callers that
            already hold a unit quaternion pass False.
        """
        self._q = np.array([w, x, y, z], dtype=np.float64)

        if normalize:
            self._normalize_in_place()

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def w(self) -> float:
        return float(self._q[0])

    @property
    def x(self) -> float:
        return float(self._q[1])

    @property
    def y(self) -> float:
        return float(self._q[2])

    @property
    def z(self) -> float:
        return float(self._q[3])

    @property
    def vector(self) -> np.ndarray:
        """Vector (imaginary) part [x, y, z]."""
        return self._q[1:4].copy()

    @property
    def components(self) -> np.ndarray:
        """Copy of the full quaternion [w, x, y, z]."""
        return self._q.copy()

    @property
    def norm(self) -> float:
        return float(np.linalg.norm(self._q))

    @property
    def rotation_angle(self) -> float:
        """
        Rotation angle in radians, in [0, pi].

        Uses atan2 on the vector and scalar parts, which stays accurate for
        very small angles where arccos(w) loses precision.
        """
        return 2.0 * float(np.arctan2(np.linalg.norm(self._q[1:4]), abs(self._q[0])))

    @property
    def rotation_axis(self) -> np.ndarray:
        """
        Unit rotation axis. Returns [0, 0, 1] for the identity, where the
        axis is undefined.
        """
        axis = self._q[1:4]
        sin_half = np.linalg.norm(axis)
        if sin_half < self._NORM_TOLERANCE:
            return np.array([0.0, 0.0, 1.0])
        return np.sign(self._q[0] or 1.0) * axis / sin_half

    def _normalize_in_place(self) -> None:
        length = float(np.sqrt(np.dot(self._q, self._q)))
        if length < self._NORM_TOLERANCE:
            raise ValueError(f"Quaternion norm {length:.2e} is too small to normalize")

        # Hemisphere w >= 0; q and -q encode the same rotation
        sign = -1.0 if self._q[0] < 0.0 else 1.0
        self._q *= sign / length

    # =========================================================================
    # FACTORY METHODS
    # =========================================================================

    @staticmethod
    def identity() -> 'Quaternion':
        """The zero-rotation quaternion [1, 0, 0, 0]."""
        return Quaternion(1.0, 0.0, 0.0, 0.0, normalize=False)

    @staticmethod
    def from_axis_angle(axis: np.ndarray, angle: float) -> 'Quaternion':
        """
        Create a quaternion for a rotation of `angle` radians about `axis`.

        Parameters
        ----------
        axis : np.ndarray
            3-element rotation axis; normalized internally.
        angle : float
            Rotation angle in radians.

        Raises
        ------
        ValueError
            If the axis has near-zero magnitude.
        """
        n = np.asarray(axis, dtype=np.float64)
        length = np.linalg.norm(n)
        if length < 1e-12:
            raise ValueError(f"Rotation axis must be nonzero, got {n}")

        v = np.sin(0.5 * angle) * n / length
        return Quaternion(np.cos(0.5 * angle), v[0], v[1], v[2])

    @staticmethod
    def from_rotation_vector(rot_vec: np.ndarray) -> 'Quaternion':
        """
        Exponential map: rotation vector (axis * angle) to quaternion.

        A zero vector maps to the identity, which is what the attitude
        propagation needs when the vehicle is not rotating.
        """
        rot_vec = np.asarray(rot_vec, dtype=np.float64).reshape(3)
        theta = float(np.linalg.norm(rot_vec))
        if theta < 1e-12:
            return Quaternion.identity()
        return Quaternion.from_axis_angle(rot_vec, theta)

    @staticmethod
    def from_two_vectors(v_from: np.ndarray, v_to: np.ndarray) -> 'Quaternion':
        """
        Shortest rotation that maps direction `v_from` onto `v_to`.

        Parameters
        ----------
        v_from : np.ndarray
            Source direction (any nonzero length).
        v_to : np.ndarray
            Destination direction (any nonzero length).

        Returns
        -------
        Quaternion
            Rotation with q.rotate_vector(v_from_hat) == v_to_hat.

        Notes
        -----
        For anti-parallel inputs every axis perpendicular to v_from works;
        the one closest to the body X axis (or Y, if v_from is along X) is
        chosen so the result is deterministic.
        """
        a = np.asarray(v_from, dtype=np.float64)
        b = np.asarray(v_to, dtype=np.float64)
        a = a / np.linalg.norm(a)
        b = b / np.linalg.norm(b)

        dot = float(np.clip(np.dot(a, b), -1.0, 1.0))

        if dot > 1.0 - 1e-12:
            return Quaternion.identity()

        if dot < -1.0 + 1e-12:
            helper = np.array([1.0, 0.0, 0.0])
            if abs(a[0]) > 0.9:
                helper = np.array([0.0, 1.0, 0.0])
            axis = helper - np.dot(helper, a) * a
            return Quaternion.from_axis_angle(axis, np.pi)

        # Half-way construction: q = [1 + a.b, a x b], then normalize
        cross = np.cross(a, b)
        return Quaternion(1.0 + dot, cross[0], cross[1], cross[2])

    # =========================================================================
    # QUATERNION ARITHMETIC
    # =========================================================================

    def conjugate(self) -> 'Quaternion':
        """Conjugate [w, -x, -y, -z]; equals the inverse for unit quaternions."""
        return Quaternion(self.w, -self.x, -self.y, -self.z, normalize=False)

    def inverse(self) -> 'Quaternion':
        """
        Multiplicative inverse q^{-1} = q* / |q|^2.

        The w >= 0 convention is not applied, so the inverse of a unit
        quaternion is exactly its conjugate.
        """
        norm_sq = float(np.dot(self._q, self._q))
        return Quaternion(self.w / norm_sq, -self.x / norm_sq,
                          -self.y / norm_sq, -self.z / norm_sq,
                          normalize=False)

    def multiply(self, other: 'Quaternion') -> 'Quaternion':
        """
        Hamilton product self * other (rotate by `other`, then by `self`).

        The result is renormalized, so composing unit quaternions never
        drifts off the unit sphere.
        """
        w1, v1 = self._q[0], self._q[1:4]
        w2, v2 = other._q[0], other._q[1:4]

        w = w1 * w2 - np.dot(v1, v2)
        v = w1 * v2 + w2 * v1 + np.cross(v1, v2)

        return Quaternion(w, v[0], v[1], v[2])

    # =========================================================================
    # ROTATION OPERATIONS
    # =========================================================================

    def rotate_vector(self, v: np.ndarray) -> np.ndarray:
        """
        Rotate a 3-vector by this quaternion.

        Uses the Rodrigues form v' = v + w*t + u x t with t = 2 u x v,
        which avoids building the full triple product.
        """
        v = np.asarray(v, dtype=np.float64)
        u = self._q[1:4]

        t = 2.0 * np.cross(u, v)
        return v + self._q[0] * t + np.cross(u, t)

    def to_axis_angle(self) -> Tuple[np.ndarray, float]:
        """Return (unit axis, angle in [0, pi])."""
        return (self.rotation_axis, self.rotation_angle)

    def to_rotation_vector(self) -> np.ndarray:
        """Logarithmic map: quaternion to rotation vector (axis * angle)."""
        axis, angle = self.to_axis_angle()
        return angle * axis

    def angle_to(self, other: 'Quaternion') -> float:
        """
        Geodesic angle between two orientations, in [0, pi].

            angle = 2 * arccos(|q1 . q2|)
        """
        dot = np.clip(abs(np.dot(self._q, other._q)), 0.0, 1.0)
        return 2.0 * float(np.arccos(dot))

    # =========================================================================
    # OPERATOR OVERLOADS
    # =========================================================================

    def __mul__(self, other: Union['Quaternion', float, int]) -> 'Quaternion':
        if isinstance(other, Quaternion):
            return self.multiply(other)
        if isinstance(other, (int, float)):
            q = self._q * float(other)
            return Quaternion(q[0], q[1], q[2], q[3], normalize=False)
        return NotImplemented

    def __eq__(self, other: object) -> bool:
        """Rotation equality: q and -q compare equal."""
        if not isinstance(other, Quaternion):
            return NotImplemented
        return (np.allclose(self._q, other._q, atol=self._COMPARISON_TOLERANCE)
                or np.allclose(self._q, -other._q, atol=self._COMPARISON_TOLERANCE))

    def __hash__(self) -> int:
        return hash(tuple(np.round(self._q, 9)))

    def __repr__(self) -> str:
        return (f"Quaternion(w={self.w:.6f}, x={self.x:.6f}, "
                f"y={self.y:.6f}, z={self.z:.6f})")

    def is_unit(self, tolerance: float = 1e-8) -> bool:
        return abs(self.norm - 1.0) < tolerance

    def copy(self) -> 'Quaternion':
        return Quaternion(self.w, self.x, self.y, self.z, normalize=False)
