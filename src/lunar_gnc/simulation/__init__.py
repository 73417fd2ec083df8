"""
===============================================================================
LUNAR GNC - Simulation Package
===============================================================================
Mission configuration, the time-stepped simulation loop, and Monte Carlo
sweeps over independent runs.

Modules:
    sim_config   -- SimConfig dataclass and YAML loading
    sim_engine   -- MissionSimulation tick loop and SimResult
    monte_carlo  -- Dispersed parallel runs aggregated with pandas
===============================================================================
"""
