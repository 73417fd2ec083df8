"""
===============================================================================
LUNAR GNC - Point-Mass Gravity, Thrust and Propellant Flow
===============================================================================

Force models used by the translational integrators. Everything here is a
pure function of its arguments; nothing is cached between calls.

Gravity Model
-------------
Each attracting body is a point mass. Its contribution at `point` is

    a_i = G * M_i / d_i^2 * r_hat_i

where r_hat_i is the unit vector from `point` toward body i and d_i the
separation. A body closer than MIN_GRAVITY_SEPARATION (1 m) contributes
nothing, so evaluating at a body center never divides by zero.

Propellant Flow
---------------
The rocket equation in rate form gives the mass flow for a thrust T:

    m_dot = T / (Isp * g0)

with g0 the standard gravity used to define Isp.

===============================================================================
"""

from dataclasses import dataclass
from typing import Iterable

import numpy as np

from lunar_gnc.core.constants import (
    GRAVITATIONAL_CONSTANT,
    STANDARD_GRAVITY,
    MIN_GRAVITY_SEPARATION,
)


@dataclass(frozen=True)
class GravitySource:
    """An attracting point mass fixed in the inertial frame."""
    position: np.ndarray
    mass: float

    def __post_init__(self):
        pos = np.asarray(self.position, dtype=np.float64).flatten()
        if pos.shape != (3,):
            raise ValueError(
                f"Gravity source position must have 3 elements, got {pos.shape}"
            )
        object.__setattr__(self, 'position', pos)
        object.__setattr__(self, 'mass', float(self.mass))


def gravity_acceleration(point: np.ndarray,
                         sources: Iterable[GravitySource]) -> np.ndarray:
    """
    Total gravitational acceleration at `point` from all sources.

    Parameters
    ----------
    point : np.ndarray
        Evaluation point [x, y, z] in meters (inertial frame).
    sources : iterable of GravitySource
        Attracting bodies.

    Returns
    -------
    np.ndarray
        Acceleration [ax, ay, az] in m/s^2.
    """
    point = np.asarray(point, dtype=np.float64)
    accel = np.zeros(3, dtype=np.float64)

    for source in sources:
        r = source.position - point
        distance = np.linalg.norm(r)
        if distance < MIN_GRAVITY_SEPARATION:
            continue
        accel += (GRAVITATIONAL_CONSTANT * source.mass / distance ** 2) * (r / distance)

    return accel


def gravitational_force(pos1: np.ndarray, mass1: float,
                        pos2: np.ndarray, mass2: float) -> np.ndarray:
    """
    Newtonian force on body 1 exerted by body 2 (N), pointing from 1 to 2.

    Returns the zero vector when the bodies are closer than 1 m.
    """
    r = np.asarray(pos2, dtype=np.float64) - np.asarray(pos1, dtype=np.float64)
    distance = np.linalg.norm(r)
    if distance < MIN_GRAVITY_SEPARATION:
        return np.zeros(3, dtype=np.float64)

    magnitude = GRAVITATIONAL_CONSTANT * mass1 * mass2 / distance ** 2
    return magnitude * (r / distance)


def thrust_acceleration(thrust: np.ndarray, mass: float) -> np.ndarray:
    """Acceleration produced by `thrust` (N) on a vehicle of `mass` (kg)."""
    thrust = np.asarray(thrust, dtype=np.float64)
    if mass <= 0.0:
        return np.zeros(3, dtype=np.float64)
    return thrust / mass


def propellant_mass_flow(thrust_magnitude: float, isp: float) -> float:
    """
    Propellant consumption rate in kg/s.

    Args:
        thrust_magnitude: Engine thrust (N)
        isp: Specific impulse (s); a non-positive value means no engine

    Returns:
        Mass flow rate, always >= 0
    """
    if isp <= 0.0:
        return 0.0
    return float(thrust_magnitude) / (isp * STANDARD_GRAVITY)
