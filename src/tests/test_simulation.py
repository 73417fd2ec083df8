"""
===============================================================================
LUNAR GNC - Simulation Engine Integration Tests
===============================================================================
End-to-end checks of the mission loop: a single tick, short runs that hit
each terminal outcome, telemetry cadence and history recording, and seed
reproducibility.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from lunar_gnc.autonomy.fdir import FDIRManager
from lunar_gnc.core.constants import MOON_RADIUS, moon_position
from lunar_gnc.database.telemetry_log import EventPayload
from lunar_gnc.dynamics.gravity import propellant_mass_flow
from lunar_gnc.dynamics.integrators import KinematicState
from lunar_gnc.guidance.guidance_computer import MissionPhase
from lunar_gnc.navigation.sensor_noise import NoNoise
from lunar_gnc.simulation.sim_config import SimConfig
from lunar_gnc.simulation.sim_engine import (
    EVENT_MISSION_END,
    EVENT_PHASE_CHANGE,
    MissionOutcome,
    MissionSimulation,
    run_moon_mission,
)


class FakeClock:

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


@pytest.fixture
def short_config():
    return SimConfig(dt=10.0, max_time=100.0, noise_seed=3)


def event_codes(telemetry):
    return [p.payload.event_code for p in telemetry.packets
            if isinstance(p.payload, EventPayload)]


# =============================================================================
# Initial state and single tick
# =============================================================================

class TestInitialState:

    def test_parking_orbit(self):
        sim = MissionSimulation(SimConfig())
        assert sim.earth_altitude == pytest.approx(400e3)
        assert sim.state.speed == pytest.approx(7670.0, abs=20.0)
        assert sim.state.velocity[0] > 0.0
        assert sim.fuel_percent == pytest.approx(100.0)
        assert sim.guidance.phase == MissionPhase.TRANS_LUNAR_INJECTION

    def test_landing_target_faces_earth(self):
        sim = MissionSimulation(SimConfig())
        assert_allclose(sim.target_position,
                        moon_position() - np.array([MOON_RADIUS, 0.0, 0.0]))

    def test_filter_starts_at_truth(self):
        sim = MissionSimulation(SimConfig())
        assert_allclose(sim.kalman.estimated_position, sim.state.position)
        assert_allclose(sim.kalman.estimated_velocity, sim.state.velocity)


class TestStep:

    def test_tli_tick(self):
        cfg = SimConfig(noise_seed=1)
        sim = MissionSimulation(cfg)
        tick = sim.step()

        assert tick.phase == MissionPhase.TRANS_LUNAR_INJECTION
        assert np.linalg.norm(tick.thrust) == pytest.approx(cfg.max_thrust)
        assert tick.update_applied
        assert sim.state.time == pytest.approx(1.0)
        assert sim.state.mass == pytest.approx(
            cfg.initial_mass - propellant_mass_flow(cfg.max_thrust, cfg.isp))

    def test_attitude_turns_toward_thrust(self):
        sim = MissionSimulation(SimConfig(noise_seed=1))
        sim.step()
        first = sim.attitude.pointing_error()
        for _ in range(500):
            sim.step()
        assert sim.attitude.pointing_error() < first


# =============================================================================
# Terminal outcomes
# =============================================================================

class TestOutcomes:

    def test_time_limit(self, short_config):
        result = MissionSimulation(short_config).run()
        assert not result.success
        assert result.outcome == MissionOutcome.TIME_EXCEEDED
        assert result.mission_time >= 100.0
        assert result.fuel_used > 0.0

    def test_earth_collision(self):
        result = MissionSimulation(SimConfig(parking_orbit_altitude=-1000.0)).run()
        assert result.outcome == MissionOutcome.EARTH_COLLISION
        assert result.mission_time == 0.0

    def test_out_of_fuel(self):
        cfg = SimConfig(initial_mass=15_050.0)
        result = MissionSimulation(cfg).run()
        assert result.outcome == MissionOutcome.OUT_OF_FUEL
        assert result.final_state.mass == cfg.dry_mass
        assert result.fuel_used == pytest.approx(50.0)

    def test_fdir_critical_aborts(self):
        clock = FakeClock()
        fdir = FDIRManager(5.0, max_recovery_attempts=0, clock=clock)
        clock.now = 10.0
        result = MissionSimulation(SimConfig(), fdir=fdir).run()
        assert result.outcome == MissionOutcome.SYSTEM_FAILURE
        assert not result.success

    def test_landing(self):
        cfg = SimConfig(dt=0.1, max_time=10.0)
        sim = MissionSimulation(cfg, noise=NoNoise())
        surface = moon_position() - np.array([MOON_RADIUS + 5.0, 0.0, 0.0])
        sim.state = KinematicState(surface, np.zeros(3), mass=cfg.initial_mass)

        result = sim.run()

        assert result.success
        assert result.outcome == MissionOutcome.LANDED
        assert result.final_phase == MissionPhase.LANDED
        # TLI -> LOI -> DESCENT -> LANDED, one transition per tick
        assert event_codes(result.telemetry) == [
            EVENT_PHASE_CHANGE + int(MissionPhase.LUNAR_ORBIT_INSERTION),
            EVENT_PHASE_CHANGE + int(MissionPhase.DESCENT),
            EVENT_PHASE_CHANGE + int(MissionPhase.LANDED),
            EVENT_MISSION_END,
        ]
        assert result.mission_time == pytest.approx(0.3)


# =============================================================================
# Telemetry and history
# =============================================================================

class TestRecording:

    def test_telemetry_cadence(self, short_config):
        result = MissionSimulation(short_config).run()
        # One nav + status pair at t=60 s, then the end-of-mission event
        assert len(result.telemetry) == 3
        assert [p.packet_id for p in result.telemetry.packets] == [1, 2, 3]
        assert all(p.validate() for p in result.telemetry.packets)
        assert result.telemetry.packets[0].timestamp_ms == 60_000

    def test_history(self, short_config):
        result = MissionSimulation(short_config).run()
        history = result.history

        assert history.index.name == 'time'
        assert list(history.index) == [0.0, 60.0, 100.0]
        for column in ('phase', 'pos_x', 'est_pos_x', 'position_error_m',
                       'speed_m_s', 'earth_altitude_m', 'mass', 'thrust_mag',
                       'pointing_error_deg'):
            assert column in history.columns
        assert np.all(np.isfinite(history['position_error_m']))
        assert history['mass'].is_monotonic_decreasing

    def test_same_seed_same_result(self, short_config):
        first = MissionSimulation(short_config).run()
        second = MissionSimulation(short_config).run()
        assert_allclose(first.history['est_pos_x'], second.history['est_pos_x'])
        assert_allclose(first.final_state.position, second.final_state.position)

    def test_summary(self, short_config):
        summary = run_moon_mission(short_config).summary()
        assert summary['outcome'] == 'time_exceeded'
        assert summary['final_phase'] == 'TRANS_LUNAR_INJECTION'
        assert summary['telemetry_packets'] == 3
