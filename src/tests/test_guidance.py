"""
===============================================================================
LUNAR GNC - Guidance Computer Test Suite
===============================================================================
Phase machine guards, burn cut-off latches, descent speed profile and the
thrust direction produced in each phase.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose

from lunar_gnc.core.constants import EARTH_RADIUS, MOON_RADIUS, moon_position
from lunar_gnc.guidance.guidance_computer import (
    GuidanceComputer,
    GuidanceGeometry,
    MissionPhase,
    descent_target_speed,
)

MAX_THRUST = 500_000.0
MOON = moon_position()
LEO = np.array([0.0, -(EARTH_RADIUS + 400e3), 0.0])


def above_moon(altitude):
    """Point `altitude` meters above the Earth-facing lunar surface."""
    return MOON - np.array([MOON_RADIUS + altitude, 0.0, 0.0])


def along_x(speed):
    return np.array([speed, 0.0, 0.0])


@pytest.fixture
def guidance():
    return GuidanceComputer(above_moon(0.0), MAX_THRUST)


@pytest.fixture
def loi_guidance():
    return GuidanceComputer(above_moon(0.0), MAX_THRUST,
                            initial_phase=MissionPhase.LUNAR_ORBIT_INSERTION)


@pytest.fixture
def descent_guidance():
    return GuidanceComputer(above_moon(0.0), MAX_THRUST,
                            initial_phase=MissionPhase.DESCENT)


# =============================================================================
# Construction
# =============================================================================

class TestConstruction:

    def test_default_phase_is_tli(self, guidance):
        assert guidance.phase == MissionPhase.TRANS_LUNAR_INJECTION
        assert not guidance.tli_complete
        assert not guidance.loi_complete
        assert_allclose(guidance.target_velocity, np.zeros(3))

    def test_bad_target_shape(self):
        with pytest.raises(ValueError):
            GuidanceComputer(np.zeros(2), MAX_THRUST)

    def test_negative_thrust_rejected(self):
        with pytest.raises(ValueError):
            GuidanceComputer(np.zeros(3), -1.0)

    def test_target_does_not_steer(self):
        near = GuidanceComputer(above_moon(0.0), MAX_THRUST)
        far = GuidanceComputer(np.array([1.0e9, -1.0e9, 5.0e8]), MAX_THRUST)
        for velocity in (along_x(7670.0), along_x(10_900.0)):
            assert_allclose(near.compute_thrust(LEO, velocity, MOON),
                            far.compute_thrust(LEO, velocity, MOON))
        assert near.phase == far.phase


# =============================================================================
# Trans-lunar injection
# =============================================================================

class TestTransLunarInjection:

    def test_full_thrust_along_velocity(self, guidance):
        thrust = guidance.compute_thrust(LEO, along_x(7670.0), MOON)
        assert_allclose(thrust, [MAX_THRUST, 0.0, 0.0])
        assert not guidance.tli_complete

    def test_cutoff_latches(self, guidance):
        thrust = guidance.compute_thrust(LEO, along_x(10_900.0), MOON)
        assert_allclose(thrust, np.zeros(3))
        assert guidance.tli_complete

    def test_no_reignition_after_cutoff(self, guidance):
        guidance.compute_thrust(LEO, along_x(10_900.0), MOON)
        # Coasting uphill slows the vehicle below the cut-off speed
        thrust = guidance.compute_thrust(LEO * 20.0, along_x(3_000.0), MOON)
        assert_allclose(thrust, np.zeros(3))
        assert guidance.phase == MissionPhase.TRANS_LUNAR_INJECTION

    def test_zero_velocity_gives_zero_thrust(self, guidance):
        thrust = guidance.compute_thrust(LEO, np.zeros(3), MOON)
        assert np.all(np.isfinite(thrust))
        assert_allclose(thrust, np.zeros(3))

    def test_transition_to_loi_near_moon(self, guidance):
        guidance.compute_thrust(LEO, along_x(10_900.0), MOON)
        guidance.compute_thrust(above_moon(60e6), along_x(1_000.0), MOON)
        assert guidance.phase == MissionPhase.LUNAR_ORBIT_INSERTION
        assert guidance.tli_complete
        assert guidance.transitions == [
            (MissionPhase.TRANS_LUNAR_INJECTION, MissionPhase.LUNAR_ORBIT_INSERTION)
        ]


# =============================================================================
# Lunar orbit insertion
# =============================================================================

class TestLunarOrbitInsertion:

    def test_retrograde_half_thrust(self, loi_guidance):
        thrust = loi_guidance.compute_thrust(above_moon(1e6), along_x(1_000.0), MOON)
        assert_allclose(thrust, [-0.5 * MAX_THRUST, 0.0, 0.0])

    def test_cutoff_latches(self, loi_guidance):
        loi_guidance.compute_thrust(above_moon(1e6), along_x(700.0), MOON)
        assert loi_guidance.loi_complete
        thrust = loi_guidance.compute_thrust(above_moon(1e6), along_x(900.0), MOON)
        assert_allclose(thrust, np.zeros(3))

    def test_transition_to_descent(self, loi_guidance):
        loi_guidance.compute_thrust(above_moon(150e3), along_x(1_600.0), MOON)
        assert loi_guidance.phase == MissionPhase.DESCENT

    def test_too_fast_for_descent(self, loi_guidance):
        loi_guidance.compute_thrust(above_moon(150e3), along_x(1_800.0), MOON)
        assert loi_guidance.phase == MissionPhase.LUNAR_ORBIT_INSERTION


# =============================================================================
# Descent and landing
# =============================================================================

class TestDescent:

    @pytest.mark.parametrize("altitude, expected", [
        (60_000.0, 300.0),
        (50_000.0, 100.0),
        (10_000.0, 100.0),
        (1_000.0, 30.0),
        (100.0, 5.0),
        (0.0, 5.0),
    ])
    def test_speed_profile(self, altitude, expected):
        assert descent_target_speed(altitude) == expected

    def test_brakes_when_too_fast(self, descent_guidance):
        thrust = descent_guidance.compute_thrust(above_moon(100e3), along_x(500.0), MOON)
        assert_allclose(thrust, [-0.8 * MAX_THRUST, 0.0, 0.0])

    def test_coasts_below_profile(self, descent_guidance):
        thrust = descent_guidance.compute_thrust(above_moon(100e3), along_x(200.0), MOON)
        assert_allclose(thrust, np.zeros(3))

    def test_touchdown(self, descent_guidance):
        thrust = descent_guidance.compute_thrust(above_moon(5.0), along_x(2.0), MOON)
        assert descent_guidance.is_landed
        assert_allclose(thrust, np.zeros(3))

    def test_fast_touchdown_is_not_landing(self, descent_guidance):
        descent_guidance.compute_thrust(above_moon(5.0), along_x(4.0), MOON)
        assert not descent_guidance.is_landed

    def test_landed_is_terminal(self, descent_guidance):
        descent_guidance.compute_thrust(above_moon(5.0), along_x(2.0), MOON)
        thrust = descent_guidance.compute_thrust(LEO, along_x(7_000.0), MOON)
        assert descent_guidance.phase == MissionPhase.LANDED
        assert_allclose(thrust, np.zeros(3))


# =============================================================================
# Phase ordering
# =============================================================================

class TestPhaseOrdering:

    def test_ascent_guard(self):
        g = GuidanceComputer(np.zeros(3), MAX_THRUST, initial_phase=MissionPhase.ASCENT)
        g.compute_thrust(LEO, along_x(7_000.0), MOON)
        assert g.phase == MissionPhase.ASCENT
        g.compute_thrust(LEO, along_x(7_800.0), MOON)
        assert g.phase == MissionPhase.TRANS_LUNAR_INJECTION

    def test_one_transition_per_call(self, guidance):
        # Geometry satisfying every guard at once
        everything = GuidanceGeometry(speed=1.0, earth_altitude=3.8e8,
                                      moon_distance=MOON_RADIUS + 1.0,
                                      moon_altitude=1.0)
        seen = [guidance.update_phase(everything) for _ in range(4)]
        assert seen == [MissionPhase.LUNAR_ORBIT_INSERTION,
                        MissionPhase.DESCENT,
                        MissionPhase.LANDED,
                        MissionPhase.LANDED]
        assert len(guidance.transitions) == 3

    def test_phases_never_decrease(self, guidance):
        rng = np.random.default_rng(7)
        last = guidance.phase
        for _ in range(500):
            geometry = GuidanceGeometry(
                speed=float(rng.uniform(0.0, 12_000.0)),
                earth_altitude=float(rng.uniform(0.0, 4e8)),
                moon_distance=float(rng.uniform(MOON_RADIUS, 4e8)),
                moon_altitude=float(rng.uniform(0.0, 1e6)),
            )
            phase = guidance.update_phase(geometry)
            assert phase >= last
            last = phase

    def test_status_summary(self, guidance):
        guidance.compute_thrust(LEO, along_x(10_900.0), MOON)
        summary = guidance.get_status_summary()
        assert "TRANS_LUNAR_INJECTION" in summary
        assert "TLI complete: True" in summary
