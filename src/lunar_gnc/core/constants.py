"""
===============================================================================
LUNAR GNC - Physical Constants and Mission Geometry
===============================================================================
Central repository for the constants shared by the dynamics, guidance and
simulation modules. SI units throughout (meters, seconds, kilograms).

The Earth-Moon geometry is deliberately simple: both bodies are fixed in the
inertial frame, Earth at the origin and the Moon on the +X axis at its mean
distance.
===============================================================================
"""

import numpy as np


# =============================================================================
# FUNDAMENTAL PHYSICAL CONSTANTS
# =============================================================================
GRAVITATIONAL_CONSTANT = 6.67430e-11   # m^3 / (kg * s^2)
STANDARD_GRAVITY = 9.80665             # m/s^2, used for Isp -> exhaust velocity

# =============================================================================
# EARTH PARAMETERS
# =============================================================================
EARTH_MASS = 5.972e24                  # kg
EARTH_RADIUS = 6.371e6                 # Mean radius (m)
EARTH_MU = GRAVITATIONAL_CONSTANT * EARTH_MASS

# =============================================================================
# MOON PARAMETERS
# =============================================================================
MOON_MASS = 7.342e22                   # kg
MOON_RADIUS = 1.737e6                  # Mean radius (m)
MOON_MU = GRAVITATIONAL_CONSTANT * MOON_MASS
EARTH_MOON_DISTANCE = 384_400_000.0    # Mean Earth-Moon distance (m)

# =============================================================================
# NUMERICAL GUARDS
# =============================================================================
MIN_GRAVITY_SEPARATION = 1.0           # m, closer bodies contribute nothing
MIN_DIRECTION_NORM = 1e-6              # below this a direction is undefined

# =============================================================================
# REFERENCE MISSION
# =============================================================================
PARKING_ORBIT_ALTITUDE = 400_000.0     # m, circular LEO before TLI
EARTH_COLLISION_ALTITUDE = -100.0      # m, below this the vehicle has impacted


def circular_velocity(mu: float, radius: float) -> float:
    """
    Circular orbital speed at a given radius.

    Args:
        mu: Gravitational parameter of the central body (m^3/s^2)
        radius: Orbit radius measured from the body center (m)

    Returns:
        Speed in m/s
    """
    if radius <= 0.0:
        raise ValueError(f"Orbit radius must be positive, got {radius}")
    return float(np.sqrt(mu / radius))


def earth_position() -> np.ndarray:
    """Inertial position of the Earth center (origin)."""
    return np.zeros(3, dtype=np.float64)


def moon_position() -> np.ndarray:
    """Inertial position of the Moon center (+X axis)."""
    return np.array([EARTH_MOON_DISTANCE, 0.0, 0.0], dtype=np.float64)
