"""
===============================================================================
LUNAR GNC - Linear Kalman Filter for Translational Navigation
===============================================================================

Six-state constant-velocity Kalman filter driven by noisy position fixes.

State Vector (6 elements)
-------------------------
    x[0:3] = position [x, y, z]     (meters, inertial frame)
    x[3:6] = velocity [vx, vy, vz]  (m/s, inertial frame)

Process Model
-------------
Constant velocity over one step:

    F = | I   dt*I |        x <- F x
        | 0     I  |        P <- F P F^T + Q dt

Gravity and thrust are not modeled; the process noise Q absorbs them.

Measurement Model
-----------------
Only position is observed, H = [I(3) | 0(3)]:

    y = z - H x                      (innovation)
    S = H P H^T + R                  (innovation covariance)
    K = P H^T S^-1
    x <- x + K y
    P <- (I - K H) P

The short form of the covariance update is used and P is not forced back
to symmetry. Over a single mission the drift is small;
covariance_asymmetry() exposes it for monitoring.

If S cannot be inverted the measurement is dropped and the prediction is
kept.

Filter Consistency
------------------
For a well tuned filter the normalized innovation squared (NIS)

    NIS = y^T S^-1 y

follows a chi-square distribution with 3 degrees of freedom. The 95%
bound is about 7.81.

===============================================================================
"""

import logging
from typing import Optional, Union

import numpy as np
from scipy import stats

logger = logging.getLogger(__name__)

_STATE_DIM = 6
_MEAS_DIM = 3


def _as_noise_matrix(value: Union[float, np.ndarray], dim: int,
                     name: str) -> np.ndarray:
    """Scalar magnitude -> value * I(dim); matrices are shape-checked."""
    arr = np.asarray(value, dtype=np.float64)
    if arr.ndim == 0:
        return float(arr) * np.eye(dim)
    if arr.shape != (dim, dim):
        raise ValueError(
            f"{name} must be a scalar or {dim}x{dim} matrix, got {arr.shape}"
        )
    return arr.copy()


class KalmanFilter:
    """
    Constant-velocity Kalman filter estimating position and velocity.

    The filter never sees the true state; it only receives the initial
    guess and the stream of noisy position measurements.

    Parameters
    ----------
    initial_state : np.ndarray
        Initial estimate [x, y, z, vx, vy, vz].
    initial_covariance : float or np.ndarray
        Initial covariance P0, scalar magnitude or 6x6 (default 1000*I).
    process_noise : float or np.ndarray
        Process noise Q per second, scalar magnitude or 6x6 (default 0.1*I).
    measurement_noise : float or np.ndarray
        Position measurement noise R, scalar magnitude or 3x3 (default 10*I).

    Attributes
    ----------
    x : np.ndarray
        Current state estimate (6,).
    P : np.ndarray
        Current state covariance (6, 6).
    Q, R : np.ndarray
        Fixed noise matrices.
    """

    def __init__(self, initial_state: np.ndarray,
                 initial_covariance: Union[float, np.ndarray] = 1000.0,
                 process_noise: Union[float, np.ndarray] = 0.1,
                 measurement_noise: Union[float, np.ndarray] = 10.0):
        self.x = np.asarray(initial_state, dtype=np.float64).flatten().copy()
        if self.x.shape[0] != _STATE_DIM:
            raise ValueError(
                f"State vector must have {_STATE_DIM} elements, got {self.x.shape[0]}. "
                f"Expected [x, y, z, vx, vy, vz]."
            )

        self.P = _as_noise_matrix(initial_covariance, _STATE_DIM, "Initial covariance")
        self.Q = _as_noise_matrix(process_noise, _STATE_DIM, "Process noise")
        self.R = _as_noise_matrix(measurement_noise, _MEAS_DIM, "Measurement noise")

        # Observation matrix: position block only
        self.H = np.zeros((_MEAS_DIM, _STATE_DIM), dtype=np.float64)
        self.H[:, 0:3] = np.eye(_MEAS_DIM)

        self.last_innovation: Optional[np.ndarray] = None
        self.last_innovation_covariance: Optional[np.ndarray] = None
        self.skipped_updates = 0

    # =========================================================================
    # PREDICTION
    # =========================================================================

    def predict(self, dt: float) -> None:
        """
        Propagate the estimate `dt` seconds with constant velocity.

        Parameters
        ----------
        dt : float
            Time step in seconds.
        """
        F = np.eye(_STATE_DIM)
        F[0:3, 3:6] = dt * np.eye(3)

        self.x = F @ self.x
        self.P = F @ self.P @ F.T + self.Q * dt

    # =========================================================================
    # MEASUREMENT UPDATE
    # =========================================================================

    def update(self, measurement: np.ndarray) -> bool:
        """
        Correct the estimate with a position fix.

        Parameters
        ----------
        measurement : np.ndarray
            Measured position [x, y, z] in meters.

        Returns
        -------
        bool
            True if the update was applied, False if it was skipped because
            the innovation covariance could not be inverted.
        """
        z = np.asarray(measurement, dtype=np.float64).flatten()
        if z.shape[0] != _MEAS_DIM:
            raise ValueError(
                f"Position measurement must have {_MEAS_DIM} elements, got {z.shape[0]}"
            )

        innovation = z - self.H @ self.x
        S = self.H @ self.P @ self.H.T + self.R

        try:
            S_inv = np.linalg.inv(S)
        except np.linalg.LinAlgError:
            S_inv = None

        if S_inv is None or not np.all(np.isfinite(S_inv)):
            self.skipped_updates += 1
            logger.warning("Innovation covariance is singular; "
                           "measurement update skipped (%d so far)",
                           self.skipped_updates)
            return False

        K = self.P @ self.H.T @ S_inv

        self.x = self.x + K @ innovation
        self.P = (np.eye(_STATE_DIM) - K @ self.H) @ self.P

        self.last_innovation = innovation
        self.last_innovation_covariance = S
        return True

    # =========================================================================
    # STATE ACCESS
    # =========================================================================

    @property
    def estimated_position(self) -> np.ndarray:
        return self.x[0:3].copy()

    @property
    def estimated_velocity(self) -> np.ndarray:
        return self.x[3:6].copy()

    @property
    def state(self) -> np.ndarray:
        return self.x.copy()

    @property
    def covariance(self) -> np.ndarray:
        return self.P.copy()

    def position_sigma(self) -> np.ndarray:
        """1-sigma position uncertainty per axis (m)."""
        return np.sqrt(np.clip(np.diag(self.P)[0:3], 0.0, None))

    # =========================================================================
    # FILTER HEALTH DIAGNOSTICS
    # =========================================================================

    def normalized_innovation_squared(self) -> float:
        """
        NIS of the last applied update, y^T S^-1 y.

        Returns NaN before the first successful update.
        """
        if self.last_innovation is None:
            return float('nan')
        y = self.last_innovation
        return float(y @ np.linalg.solve(self.last_innovation_covariance, y))

    def innovation_is_consistent(self, confidence: float = 0.95) -> bool:
        """
        Chi-square test of the last innovation (3 degrees of freedom).

        Parameters
        ----------
        confidence : float
            Acceptance probability of the test, in (0, 1).

        Returns
        -------
        bool
            True if the NIS lies below the chi-square bound. Also True
            before any update has been applied.
        """
        if not 0.0 < confidence < 1.0:
            raise ValueError(f"Confidence must be in (0, 1), got {confidence}")

        nis = self.normalized_innovation_squared()
        if np.isnan(nis):
            return True
        threshold = stats.chi2.ppf(confidence, df=_MEAS_DIM)
        return bool(nis <= threshold)

    def covariance_asymmetry(self) -> float:
        """Frobenius norm of P - P^T."""
        return float(np.linalg.norm(self.P - self.P.T))
