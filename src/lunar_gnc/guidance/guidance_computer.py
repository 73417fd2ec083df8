"""
===============================================================================
LUNAR GNC - Guidance Computer (Mission Phase State Machine)
===============================================================================
Selects the thrust vector for the current mission phase and advances the
phase on fixed numeric thresholds.

Mission profile (strictly forward, Landed is terminal):

    ASCENT -> TRANS_LUNAR_INJECTION -> LUNAR_ORBIT_INSERTION -> DESCENT -> LANDED

Transition guards (checked once per call, before the thrust law):

    ASCENT      Earth altitude > 185 km and speed >= 7700 m/s
    TLI         distance to Moon < 66,000 km
    LOI         Moon altitude < 200 km and speed < 1700 m/s
    DESCENT     Moon altitude < 10 m and speed < 3 m/s

Thrust laws:

    ASCENT      none (the reference mission starts in orbit)
    TLI         full thrust prograde until 10.8 km/s, then coast
    LOI         half thrust retrograde until 800 m/s, then coast
    DESCENT     80% thrust retrograde whenever speed exceeds the
                altitude-dependent target speed
    LANDED      none

The two burns are one-shot: once the cutoff speed is seen the burn is over
for the rest of that phase, even if gravity later changes the speed again.
Each phase owns a small state record; only the burn phases carry the
`burn_complete` latch. Records of finished phases are retained so the
completed burns can still be queried.

Every commanded thrust is parallel or anti-parallel to the current
velocity; with zero velocity there is no direction and no thrust.
===============================================================================
"""

import logging
from dataclasses import dataclass
from enum import IntEnum, auto
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from lunar_gnc.core.constants import EARTH_RADIUS, MOON_RADIUS

logger = logging.getLogger(__name__)


# =============================================================================
# MISSION PHASE ENUMERATION
# =============================================================================

class MissionPhase(IntEnum):
    """Mission phases in chronological order; the values define the ordering."""
    ASCENT = 0
    TRANS_LUNAR_INJECTION = auto()
    LUNAR_ORBIT_INSERTION = auto()
    DESCENT = auto()
    LANDED = auto()


# =============================================================================
# GUIDANCE THRESHOLDS
# =============================================================================

# Phase transitions
ORBIT_ALTITUDE_MIN = 185_000.0        # m above Earth, end of ascent
ORBIT_SPEED_MIN = 7_700.0             # m/s
LOI_START_DISTANCE = 66_000_000.0     # m from Moon center
DESCENT_ALTITUDE_MAX = 200_000.0      # m above Moon
DESCENT_SPEED_MAX = 1_700.0           # m/s
TOUCHDOWN_ALTITUDE = 10.0             # m above Moon
TOUCHDOWN_SPEED = 3.0                 # m/s

# Burn cutoffs and throttle settings
TLI_CUTOFF_SPEED = 10_800.0           # m/s
TLI_THROTTLE = 1.0
LOI_CUTOFF_SPEED = 800.0              # m/s
LOI_THROTTLE = 0.5
DESCENT_THROTTLE = 0.8

# Descent braking profile: (altitude floor m, target speed m/s), highest first
DESCENT_SPEED_PROFILE = (
    (50_000.0, 300.0),
    (5_000.0, 100.0),
    (500.0, 30.0),
)
TERMINAL_DESCENT_SPEED = 5.0


def descent_target_speed(moon_altitude: float) -> float:
    """Allowed speed (m/s) at a given altitude above the lunar surface."""
    for altitude_floor, target_speed in DESCENT_SPEED_PROFILE:
        if moon_altitude > altitude_floor:
            return target_speed
    return TERMINAL_DESCENT_SPEED


# =============================================================================
# PHASE-SCOPED STATE RECORDS
# =============================================================================

@dataclass
class AscentState:
    pass


@dataclass
class TransLunarInjectionState:
    burn_complete: bool = False


@dataclass
class LunarOrbitInsertionState:
    burn_complete: bool = False


@dataclass
class DescentState:
    pass


@dataclass
class LandedState:
    pass


PhaseState = Union[AscentState, TransLunarInjectionState,
                   LunarOrbitInsertionState, DescentState, LandedState]

_PHASE_STATE_TYPES = {
    MissionPhase.ASCENT: AscentState,
    MissionPhase.TRANS_LUNAR_INJECTION: TransLunarInjectionState,
    MissionPhase.LUNAR_ORBIT_INSERTION: LunarOrbitInsertionState,
    MissionPhase.DESCENT: DescentState,
    MissionPhase.LANDED: LandedState,
}


@dataclass
class GuidanceGeometry:
    """Scalars the guards and thrust laws are evaluated on."""
    speed: float
    earth_altitude: float
    moon_distance: float
    moon_altitude: float


# =============================================================================
# GUIDANCE COMPUTER
# =============================================================================

class GuidanceComputer:
    """
    Phase machine producing the commanded thrust vector.

    Attributes:
        target_position:  Landing site (inertial, m). Informational only;
                          guards and thrust laws depend on the Moon
                          position passed to compute_thrust.
        target_velocity:  Velocity at touchdown, always zero. Informational.
        max_thrust:       Engine thrust at full throttle (N).
        phase:            Current MissionPhase.
        phase_state:      State record owned by the current phase.
        transitions:      Ordered list of (from_phase, to_phase) pairs.
    """

    def __init__(self, target_position: np.ndarray, max_thrust: float,
                 initial_phase: MissionPhase = MissionPhase.TRANS_LUNAR_INJECTION) -> None:
        self.target_position = np.asarray(target_position, dtype=np.float64).flatten().copy()
        if self.target_position.shape != (3,):
            raise ValueError(
                f"Target position must have 3 elements, got {self.target_position.shape}"
            )
        if max_thrust < 0.0:
            raise ValueError(f"Max thrust must be >= 0, got {max_thrust}")

        self.target_velocity = np.zeros(3)
        self.max_thrust = float(max_thrust)
        self.phase = MissionPhase(initial_phase)
        self.phase_state: PhaseState = _PHASE_STATE_TYPES[self.phase]()
        self.transitions: List[Tuple[MissionPhase, MissionPhase]] = []

        # Records of phases already left behind
        self._retired: Dict[MissionPhase, PhaseState] = {}

        logger.info("GuidanceComputer initialized. Starting phase: %s",
                    self.phase.name)

    # -------------------------------------------------------------------------
    # Burn latches
    # -------------------------------------------------------------------------

    def _latched(self, phase: MissionPhase) -> bool:
        record = self.phase_state if phase == self.phase else self._retired.get(phase)
        return bool(getattr(record, 'burn_complete', False))

    @property
    def tli_complete(self) -> bool:
        return self._latched(MissionPhase.TRANS_LUNAR_INJECTION)

    @property
    def loi_complete(self) -> bool:
        return self._latched(MissionPhase.LUNAR_ORBIT_INSERTION)

    @property
    def is_landed(self) -> bool:
        return self.phase == MissionPhase.LANDED

    # -------------------------------------------------------------------------
    # Main interface
    # -------------------------------------------------------------------------

    def compute_thrust(self, position: np.ndarray, velocity: np.ndarray,
                       moon_position: np.ndarray,
                       earth_position: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Evaluate the phase guard, then return the thrust command (N).

        Args:
            position:        Vehicle position (inertial, m).
            velocity:        Vehicle velocity (inertial, m/s).
            moon_position:   Moon center (inertial, m).
            earth_position:  Earth center, origin if omitted.

        Returns:
            Thrust vector in N, colinear with `velocity` or zero.
        """
        position = np.asarray(position, dtype=np.float64)
        velocity = np.asarray(velocity, dtype=np.float64)
        moon_position = np.asarray(moon_position, dtype=np.float64)
        if earth_position is None:
            earth_position = np.zeros(3)
        earth_position = np.asarray(earth_position, dtype=np.float64)

        moon_distance = float(np.linalg.norm(moon_position - position))
        geometry = GuidanceGeometry(
            speed=float(np.linalg.norm(velocity)),
            earth_altitude=float(np.linalg.norm(position - earth_position)) - EARTH_RADIUS,
            moon_distance=moon_distance,
            moon_altitude=moon_distance - MOON_RADIUS,
        )

        self.update_phase(geometry)
        return self._thrust_law(geometry, velocity)

    def update_phase(self, geometry: GuidanceGeometry) -> MissionPhase:
        """Advance at most one phase if the current guard holds."""
        if self._guard_satisfied(geometry):
            self._advance(geometry)
        return self.phase

    # -------------------------------------------------------------------------
    # Transition logic
    # -------------------------------------------------------------------------

    def _guard_satisfied(self, g: GuidanceGeometry) -> bool:
        if self.phase == MissionPhase.ASCENT:
            return g.earth_altitude > ORBIT_ALTITUDE_MIN and g.speed >= ORBIT_SPEED_MIN
        if self.phase == MissionPhase.TRANS_LUNAR_INJECTION:
            return g.moon_distance < LOI_START_DISTANCE
        if self.phase == MissionPhase.LUNAR_ORBIT_INSERTION:
            return g.moon_altitude < DESCENT_ALTITUDE_MAX and g.speed < DESCENT_SPEED_MAX
        if self.phase == MissionPhase.DESCENT:
            return g.moon_altitude < TOUCHDOWN_ALTITUDE and g.speed < TOUCHDOWN_SPEED
        return False

    def _advance(self, g: GuidanceGeometry) -> None:
        old_phase = self.phase
        new_phase = MissionPhase(old_phase.value + 1)

        self._retired[old_phase] = self.phase_state
        self.phase = new_phase
        self.phase_state = _PHASE_STATE_TYPES[new_phase]()
        self.transitions.append((old_phase, new_phase))

        if new_phase == MissionPhase.LANDED:
            logger.info("Touchdown: %s -> %s (alt %.1f m, v %.1f m/s)",
                        old_phase.name, new_phase.name, g.moon_altitude, g.speed)
        else:
            logger.info("Phase transition: %s -> %s (Earth alt %.0f km, "
                        "Moon dist %.0f km, v %.0f m/s)",
                        old_phase.name, new_phase.name,
                        g.earth_altitude / 1000.0, g.moon_distance / 1000.0, g.speed)

    # -------------------------------------------------------------------------
    # Thrust laws
    # -------------------------------------------------------------------------

    def _thrust_law(self, g: GuidanceGeometry, velocity: np.ndarray) -> np.ndarray:
        if self.phase == MissionPhase.TRANS_LUNAR_INJECTION:
            throttle = self._tli_throttle(g.speed)
        elif self.phase == MissionPhase.LUNAR_ORBIT_INSERTION:
            throttle = self._loi_throttle(g.speed)
        elif self.phase == MissionPhase.DESCENT:
            throttle = -DESCENT_THROTTLE if g.speed > descent_target_speed(g.moon_altitude) else 0.0
        else:
            throttle = 0.0

        if throttle == 0.0 or g.speed == 0.0:
            return np.zeros(3)
        return (velocity / g.speed) * (throttle * self.max_thrust)

    def _tli_throttle(self, speed: float) -> float:
        state = self.phase_state
        if not state.burn_complete and speed < TLI_CUTOFF_SPEED:
            return TLI_THROTTLE
        if not state.burn_complete:
            state.burn_complete = True
            logger.info("TLI burn complete, coasting to the Moon (v %.0f m/s)", speed)
        return 0.0

    def _loi_throttle(self, speed: float) -> float:
        state = self.phase_state
        if not state.burn_complete and speed > LOI_CUTOFF_SPEED:
            return -LOI_THROTTLE
        if not state.burn_complete:
            state.burn_complete = True
            logger.info("LOI burn complete, captured in lunar orbit (v %.0f m/s)", speed)
        return 0.0

    # -------------------------------------------------------------------------
    # Summary and Display
    # -------------------------------------------------------------------------

    def get_status_summary(self) -> str:
        return (
            f"Guidance Phase: {self.phase.name}\n"
            f"  TLI complete: {self.tli_complete}\n"
            f"  LOI complete: {self.loi_complete}\n"
            f"  Transitions:  {len(self.transitions)}\n"
        )

    def __repr__(self) -> str:
        return f"GuidanceComputer(phase={self.phase.name}, max_thrust={self.max_thrust:.0f} N)"
