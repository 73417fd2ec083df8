"""
===============================================================================
LUNAR GNC - Translational State Integrators
===============================================================================

Advances the true vehicle state (position, velocity, mass, time) under
point-mass gravity plus engine thrust, with continuous propellant depletion.

Two fixed-step methods are provided:

    euler_step  -- semi-implicit Euler with a constant acceleration over the
                   step (v first, then r using the updated v)
    rk4_step    -- classic 4th order Runge-Kutta. Gravity is evaluated at
                   the stage positions and the thrust term at the stage mass
                   (m, m - m_dot*dt/2, m - m_dot*dt/2, m - m_dot*dt).

Both clamp the mass at the dry-mass floor: the tanks can run empty, the
structure never burns.

StateIntegrator selects one method by name so the simulation can switch
between them from configuration.

===============================================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

import numpy as np

from lunar_gnc.dynamics.gravity import (
    GravitySource,
    gravity_acceleration,
    thrust_acceleration,
    propellant_mass_flow,
)

logger = logging.getLogger(__name__)


@dataclass
class KinematicState:
    """
    True translational state of the vehicle.

    Attributes
    ----------
    position : np.ndarray
        Position [x, y, z] in meters (inertial frame).
    velocity : np.ndarray
        Velocity [vx, vy, vz] in m/s.
    mass : float
        Current total mass in kg.
    time : float
        Elapsed mission time in seconds.
    """
    position: np.ndarray
    velocity: np.ndarray
    mass: float
    time: float = 0.0

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=np.float64).flatten().copy()
        self.velocity = np.asarray(self.velocity, dtype=np.float64).flatten().copy()
        if self.position.shape != (3,) or self.velocity.shape != (3,):
            raise ValueError(
                f"Position and velocity must have 3 elements, got "
                f"{self.position.shape} and {self.velocity.shape}"
            )
        self.mass = float(self.mass)
        self.time = float(self.time)

    @property
    def speed(self) -> float:
        return float(np.linalg.norm(self.velocity))

    def copy(self) -> 'KinematicState':
        return KinematicState(self.position, self.velocity, self.mass, self.time)


def _deplete(state: KinematicState, mass_flow: float, dt: float,
             dry_mass: float) -> None:
    state.mass -= mass_flow * dt
    if state.mass < dry_mass:
        state.mass = dry_mass
    state.time += dt


def euler_step(state: KinematicState, acceleration: np.ndarray,
               mass_flow: float, dt: float, dry_mass: float) -> None:
    """
    Advance `state` in place by one Euler step.

        v <- v + a*dt
        r <- r + v*dt + 0.5*a*dt^2     (v already updated)
        m <- max(m - m_dot*dt, dry_mass)
        t <- t + dt
    """
    acceleration = np.asarray(acceleration, dtype=np.float64)

    state.velocity = state.velocity + acceleration * dt
    state.position = state.position + state.velocity * dt + 0.5 * acceleration * dt * dt
    _deplete(state, mass_flow, dt, dry_mass)


def rk4_step(state: KinematicState, thrust: np.ndarray,
             sources: Sequence[GravitySource], isp: float, dt: float,
             dry_mass: float) -> None:
    """
    Advance `state` in place by one RK4 step.

    The thrust vector is held constant over the step; only the mass that
    divides it changes between stages.

    Parameters
    ----------
    state : KinematicState
        State to advance (mutated).
    thrust : np.ndarray
        Commanded thrust vector in N.
    sources : sequence of GravitySource
        Attracting bodies.
    isp : float
        Specific impulse in seconds.
    dt : float
        Step size in seconds.
    dry_mass : float
        Mass floor in kg.
    """
    thrust = np.asarray(thrust, dtype=np.float64)
    mass_flow = propellant_mass_flow(np.linalg.norm(thrust), isp)

    r0 = state.position
    v0 = state.velocity
    m0 = state.mass
    half = 0.5 * dt

    # k1 at the start of the step
    a1 = gravity_acceleration(r0, sources) + thrust_acceleration(thrust, m0)
    v1 = v0

    # k2, k3 at the midpoint
    r2 = r0 + v1 * half
    v2 = v0 + a1 * half
    a2 = gravity_acceleration(r2, sources) + thrust_acceleration(thrust, m0 - mass_flow * half)

    r3 = r0 + v2 * half
    v3 = v0 + a2 * half
    a3 = gravity_acceleration(r3, sources) + thrust_acceleration(thrust, m0 - mass_flow * half)

    # k4 at the end of the step
    r4 = r0 + v3 * dt
    v4 = v0 + a3 * dt
    a4 = gravity_acceleration(r4, sources) + thrust_acceleration(thrust, m0 - mass_flow * dt)

    state.position = r0 + (v1 + 2.0 * v2 + 2.0 * v3 + v4) * (dt / 6.0)
    state.velocity = v0 + (a1 + 2.0 * a2 + 2.0 * a3 + a4) * (dt / 6.0)
    _deplete(state, mass_flow, dt, dry_mass)


class StateIntegrator:
    """
    Fixed-step propagator for KinematicState.

    Parameters
    ----------
    isp : float
        Engine specific impulse in seconds.
    dry_mass : float
        Mass floor in kg.
    method : str
        "rk4" (default) or "euler".
    """

    METHODS = ("rk4", "euler")

    def __init__(self, isp: float, dry_mass: float, method: str = "rk4"):
        method = method.lower()
        if method not in self.METHODS:
            raise ValueError(
                f"Unknown integration method '{method}'. "
                f"Choose from {self.METHODS}"
            )
        self.isp = float(isp)
        self.dry_mass = float(dry_mass)
        self.method = method
        logger.debug("StateIntegrator: method=%s isp=%.1f s dry_mass=%.0f kg",
                     method, self.isp, self.dry_mass)

    def step(self, state: KinematicState, thrust: np.ndarray,
             sources: Iterable[GravitySource], dt: float) -> KinematicState:
        """Advance `state` in place by `dt` seconds and return it."""
        if dt <= 0.0:
            raise ValueError(f"Time step must be positive, got {dt}")

        sources = list(sources)
        thrust = np.asarray(thrust, dtype=np.float64)

        if self.method == "rk4":
            rk4_step(state, thrust, sources, self.isp, dt, self.dry_mass)
        else:
            accel = (gravity_acceleration(state.position, sources)
                     + thrust_acceleration(thrust, state.mass))
            mass_flow = propellant_mass_flow(np.linalg.norm(thrust), self.isp)
            euler_step(state, accel, mass_flow, dt, self.dry_mass)

        return state
