"""
===============================================================================
LUNAR GNC - Position Sensor Noise
===============================================================================
Corrupts the true position before it reaches the Kalman filter.

The noise source is an explicit, seedable object handed to the simulation,
so two runs with the same seed see identical measurements. All randomness
comes from a numpy Generator owned by the instance.

Distributions:
    uniform  -- each axis offset drawn from [-a/2, a/2) where a is the
                amplitude (stddev argument of the flight software routine)
    gaussian -- each axis offset drawn from N(0, a)
===============================================================================
"""

from typing import Optional

import numpy as np


class PositionNoise:
    """
    Additive noise on 3-axis position fixes.

    Parameters
    ----------
    amplitude : float
        Noise scale in meters. Width of the uniform band, or the
        1-sigma value for the Gaussian model.
    distribution : str
        "uniform" (default) or "gaussian".
    seed : int, optional
        Seed for the internal generator. None draws fresh entropy.
    """

    DISTRIBUTIONS = ("uniform", "gaussian")

    def __init__(self, amplitude: float = 100.0, distribution: str = "uniform",
                 seed: Optional[int] = None):
        if amplitude < 0.0:
            raise ValueError(f"Noise amplitude must be >= 0, got {amplitude}")
        if distribution not in self.DISTRIBUTIONS:
            raise ValueError(
                f"Unknown noise distribution '{distribution}'. "
                f"Choose from {self.DISTRIBUTIONS}"
            )
        self.amplitude = float(amplitude)
        self.distribution = distribution
        self.seed = seed
        self.rng = np.random.default_rng(seed)

    def sample(self) -> np.ndarray:
        """Draw one 3-axis noise offset in meters."""
        if self.distribution == "gaussian":
            return self.rng.normal(0.0, self.amplitude, size=3)
        return self.rng.random(3) * self.amplitude - self.amplitude / 2.0

    def corrupt(self, true_position: np.ndarray) -> np.ndarray:
        """Return `true_position` plus one noise sample."""
        return np.asarray(true_position, dtype=np.float64) + self.sample()

    def reset(self):
        """Restart the random sequence from the original seed."""
        self.rng = np.random.default_rng(self.seed)


class NoNoise:
    """Noise source that passes positions through unchanged."""

    def sample(self) -> np.ndarray:
        return np.zeros(3, dtype=np.float64)

    def corrupt(self, true_position: np.ndarray) -> np.ndarray:
        return np.asarray(true_position, dtype=np.float64).copy()
