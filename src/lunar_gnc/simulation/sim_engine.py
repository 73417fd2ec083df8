"""
===============================================================================
LUNAR GNC - Mission Simulation Engine
===============================================================================
Time-stepped loop flying the vehicle from a circular parking orbit to the
lunar surface. Ties together guidance, attitude control, dynamics and
navigation, and records telemetry for post-run analysis.

Per tick (MissionSimulation.step):

    1. GUIDANCE   -- phase update and thrust command from the true state
    2. CONTROL    -- attitude controller turns toward the thrust direction
    3. DYNAMICS   -- integrate the true state under gravity and thrust
    4. NAVIGATION -- Kalman predict, then update with a noisy position fix

Around each tick the run loop (MissionSimulation.run) checks FDIR, Earth
impact, telemetry cadence, landing and propellant exhaustion, in the same
order as the flight software main loop.

Geometry:
    Earth at the origin, Moon fixed on +X at 384,400 km. The vehicle starts
    at (0, -r, 0) with circular speed along +X, so the TLI burn throws it
    toward the Moon. The landing target is the Earth-facing point of the
    lunar surface.
===============================================================================
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from lunar_gnc.core.constants import (
    EARTH_MASS,
    EARTH_MU,
    EARTH_RADIUS,
    MOON_MASS,
    MOON_RADIUS,
    EARTH_COLLISION_ALTITUDE,
    circular_velocity,
    earth_position,
    moon_position,
)
from lunar_gnc.dynamics.gravity import GravitySource
from lunar_gnc.dynamics.integrators import KinematicState, StateIntegrator
from lunar_gnc.navigation.kalman_filter import KalmanFilter
from lunar_gnc.navigation.sensor_noise import PositionNoise
from lunar_gnc.control.attitude_control import AttitudeController
from lunar_gnc.guidance.guidance_computer import GuidanceComputer, MissionPhase
from lunar_gnc.autonomy.fdir import FDIRManager
from lunar_gnc.database.telemetry_log import TelemetryLogger, SubsystemId
from lunar_gnc.simulation.sim_config import SimConfig

logger = logging.getLogger(__name__)

# Event codes for telemetry event packets
EVENT_PHASE_CHANGE = 1000
EVENT_MISSION_END = 2000


class MissionOutcome(Enum):
    LANDED = "landed"
    EARTH_COLLISION = "earth_collision"
    OUT_OF_FUEL = "out_of_fuel"
    SYSTEM_FAILURE = "system_failure"
    TIME_EXCEEDED = "time_exceeded"


@dataclass
class TickResult:
    """What happened during one call to MissionSimulation.step()."""
    phase: MissionPhase
    thrust: np.ndarray
    update_applied: bool


@dataclass
class SimResult:
    """
    Outcome of a complete run.

    Attributes
    ----------
    success : bool
        True only if the vehicle landed.
    outcome : MissionOutcome
        Why the run ended.
    final_state : KinematicState
        True state at the end of the run.
    mission_time : float
        Simulated time at the end of the run (s).
    fuel_used : float
        Propellant burned (kg).
    telemetry : TelemetryLogger
        Packets logged during the run.
    history : pd.DataFrame
        Time-indexed samples taken at the telemetry interval.
    """
    success: bool
    outcome: MissionOutcome
    final_state: KinematicState
    mission_time: float
    fuel_used: float
    telemetry: TelemetryLogger
    history: pd.DataFrame = field(default_factory=pd.DataFrame)
    final_phase: MissionPhase = MissionPhase.TRANS_LUNAR_INJECTION

    def summary(self) -> Dict[str, Any]:
        return {
            'success': self.success,
            'outcome': self.outcome.value,
            'final_phase': self.final_phase.name,
            'mission_time_s': self.mission_time,
            'fuel_used_kg': self.fuel_used,
            'final_mass_kg': self.final_state.mass,
            'final_speed_m_s': self.final_state.speed,
            'telemetry_packets': len(self.telemetry),
        }


class MissionSimulation:
    """
    Orchestrator for one lunar mission run.

    Parameters
    ----------
    config : SimConfig, optional
        Run parameters; defaults reproduce the reference mission.
    noise : object, optional
        Sensor noise source with a ``corrupt(position)`` method. Built from
        the config if omitted.
    fdir : FDIRManager, optional
        Fault manager. Built from the config if omitted.

    Attributes
    ----------
    state : KinematicState
        True vehicle state (owned by the loop, mutated by the integrator).
    guidance, attitude, kalman, integrator, fdir, telemetry
        Subsystem instances.
    """

    def __init__(self, config: Optional[SimConfig] = None, noise=None,
                 fdir: Optional[FDIRManager] = None) -> None:
        self.config = config if config is not None else SimConfig()
        cfg = self.config

        self.earth_pos = earth_position()
        self.moon_pos = moon_position()
        self.sources = [
            GravitySource(self.earth_pos, EARTH_MASS),
            GravitySource(self.moon_pos, MOON_MASS),
        ]

        # Circular parking orbit, velocity along +X toward the Moon side
        orbit_radius = EARTH_RADIUS + cfg.parking_orbit_altitude
        orbit_speed = circular_velocity(EARTH_MU, orbit_radius)
        self.state = KinematicState(
            position=np.array([0.0, -orbit_radius, 0.0]),
            velocity=np.array([orbit_speed, 0.0, 0.0]),
            mass=cfg.initial_mass,
        )

        self.target_position = self.moon_pos - np.array([MOON_RADIUS, 0.0, 0.0])
        self.guidance = GuidanceComputer(self.target_position, cfg.max_thrust)
        self.attitude = AttitudeController(kp=cfg.attitude_kp, kd=cfg.attitude_kd)
        self.integrator = StateIntegrator(cfg.isp, cfg.dry_mass, method=cfg.integrator)
        self.kalman = KalmanFilter(
            np.concatenate([self.state.position, self.state.velocity]),
            initial_covariance=cfg.kf_initial_covariance,
            process_noise=cfg.kf_process_noise,
            measurement_noise=cfg.kf_measurement_noise,
        )

        if noise is None:
            noise = PositionNoise(cfg.noise_amplitude, cfg.noise_distribution,
                                  seed=cfg.noise_seed)
        self.noise = noise

        if fdir is None:
            fdir = FDIRManager(cfg.fdir_watchdog_timeout, cfg.fdir_max_recovery_attempts)
        self.fdir = fdir

        self.telemetry = TelemetryLogger()
        self.last_thrust = np.zeros(3)
        self._history: List[Dict[str, Any]] = []

        logger.info("MissionSimulation created.  dt=%.3f s  integrator=%s",
                    cfg.dt, cfg.integrator)

    # =========================================================================
    # DERIVED QUANTITIES
    # =========================================================================

    @property
    def earth_altitude(self) -> float:
        return float(np.linalg.norm(self.state.position - self.earth_pos)) - EARTH_RADIUS

    @property
    def moon_distance(self) -> float:
        return float(np.linalg.norm(self.moon_pos - self.state.position))

    @property
    def fuel_percent(self) -> float:
        cfg = self.config
        return (self.state.mass - cfg.dry_mass) / cfg.propellant_mass * 100.0

    # =========================================================================
    # SINGLE TICK
    # =========================================================================

    def step(self) -> TickResult:
        """Advance the mission by one time step."""
        dt = self.config.dt
        phase_before = self.guidance.phase

        # --- Guidance ---
        thrust = self.guidance.compute_thrust(
            self.state.position, self.state.velocity, self.moon_pos, self.earth_pos)

        if self.guidance.phase != phase_before:
            self.telemetry.log_event(
                SubsystemId.GNC, EVENT_PHASE_CHANGE + int(self.guidance.phase),
                f"Phase: {self.guidance.phase.name}", self._timestamp_ms())

        # --- Attitude control ---
        self.attitude.point_towards(thrust)
        torque = self.attitude.compute_torque()
        self.attitude.update(torque, self.config.attitude_inertia, dt)

        # --- Dynamics ---
        self.integrator.step(self.state, thrust, self.sources, dt)

        # --- Navigation ---
        self.kalman.predict(dt)
        measurement = self.noise.corrupt(self.state.position)
        applied = self.kalman.update(measurement)

        self.last_thrust = thrust
        return TickResult(phase=self.guidance.phase, thrust=thrust, update_applied=applied)

    # =========================================================================
    # FULL RUN
    # =========================================================================

    def run(self) -> SimResult:
        """Fly the mission until landing, failure or the time limit."""
        cfg = self.config
        initial_mass = self.state.mass

        logger.info("Mission start: LEO %.0f km, %.0f m/s, mass %.0f kg, "
                    "max thrust %.0f kN",
                    self.earth_altitude / 1000.0, self.state.speed,
                    initial_mass, cfg.max_thrust / 1000.0)

        wall_start = time.time()
        last_telemetry = self.state.time
        iteration = 0
        outcome = MissionOutcome.TIME_EXCEEDED
        self._record_history()

        while self.state.time < cfg.max_time:
            self.fdir.run_cycle()
            if not self.fdir.is_operational():
                outcome = MissionOutcome.SYSTEM_FAILURE
                logger.error("Mission aborted: system critical failure")
                break

            if self.earth_altitude < EARTH_COLLISION_ALTITUDE:
                outcome = MissionOutcome.EARTH_COLLISION
                logger.error("Mission failed: collision with Earth")
                break

            self.step()

            if self.state.time - last_telemetry >= cfg.telemetry_interval:
                self._log_telemetry()
                last_telemetry = self.state.time

            if iteration % cfg.status_interval == 0:
                self._log_status()

            self.fdir.report_nominal()

            if self.guidance.is_landed:
                outcome = MissionOutcome.LANDED
                logger.info("MISSION SUCCESS: landed at T+%.0f s", self.state.time)
                break

            if self.state.mass <= cfg.dry_mass:
                outcome = MissionOutcome.OUT_OF_FUEL
                logger.error("Mission failed: out of fuel")
                break

            iteration += 1

        if outcome == MissionOutcome.TIME_EXCEEDED:
            logger.warning("Simulation time limit reached: %.1f s", cfg.max_time)

        self._record_history()
        self.telemetry.log_event(SubsystemId.GNC, EVENT_MISSION_END,
                                 f"Mission end: {outcome.value}", self._timestamp_ms())

        logger.info("Simulation complete.  %d iterations in %.2f s wall time.  "
                    "Sim time: %.1f s", iteration, time.time() - wall_start,
                    self.state.time)

        return SimResult(
            success=outcome == MissionOutcome.LANDED,
            outcome=outcome,
            final_state=self.state.copy(),
            mission_time=self.state.time,
            fuel_used=initial_mass - self.state.mass,
            telemetry=self.telemetry,
            history=self.get_history(),
            final_phase=self.guidance.phase,
        )

    # =========================================================================
    # TELEMETRY
    # =========================================================================

    def _timestamp_ms(self) -> int:
        return int(round(self.state.time * 1000.0))

    def _log_telemetry(self) -> None:
        ts = self._timestamp_ms()
        self.telemetry.log_navigation(self.state.position, self.state.velocity, ts)
        self.telemetry.log_status(int(self.guidance.phase), self.fuel_percent,
                                  self.fdir.health_percent, ts)
        self._record_history()

    def _log_status(self) -> None:
        logger.info("T+%8.0fs | Phase: %s | Alt Earth: %10.0f km | "
                    "Dist Moon: %10.0f km | Speed: %8.1f m/s | Fuel: %5.1f%%",
                    self.state.time, self.guidance.phase.name,
                    self.earth_altitude / 1000.0, self.moon_distance / 1000.0,
                    self.state.speed, self.fuel_percent)

    def _record_history(self) -> None:
        pos = self.state.position
        vel = self.state.velocity
        est_pos = self.kalman.estimated_position
        est_vel = self.kalman.estimated_velocity

        self._history.append({
            'time': self.state.time,
            'phase': self.guidance.phase.name,
            'pos_x': pos[0],
            'pos_y': pos[1],
            'pos_z': pos[2],
            'vel_x': vel[0],
            'vel_y': vel[1],
            'vel_z': vel[2],
            'est_pos_x': est_pos[0],
            'est_pos_y': est_pos[1],
            'est_pos_z': est_pos[2],
            'est_vel_x': est_vel[0],
            'est_vel_y': est_vel[1],
            'est_vel_z': est_vel[2],
            'position_error_m': float(np.linalg.norm(est_pos - pos)),
            'velocity_error_m_s': float(np.linalg.norm(est_vel - vel)),
            'speed_m_s': self.state.speed,
            'earth_altitude_m': self.earth_altitude,
            'moon_altitude_m': self.moon_distance - MOON_RADIUS,
            'mass': self.state.mass,
            'fuel_percent': self.fuel_percent,
            'thrust_mag': float(np.linalg.norm(self.last_thrust)),
            'pointing_error_deg': float(np.degrees(self.attitude.pointing_error())),
        })

    def get_history(self) -> pd.DataFrame:
        """History samples as a DataFrame indexed by mission time."""
        if not self._history:
            logger.warning("No history recorded.")
            return pd.DataFrame()

        df = pd.DataFrame(self._history)
        return df.drop_duplicates(subset='time', keep='last').set_index('time')

    def __repr__(self) -> str:
        return (f"MissionSimulation(t={self.state.time:.1f}s, "
                f"phase={self.guidance.phase.name}, packets={len(self.telemetry)})")


def run_moon_mission(config: Optional[SimConfig] = None) -> SimResult:
    """Run the reference mission (or `config`) and return its result."""
    return MissionSimulation(config).run()
