#!/usr/bin/env python3
"""
===============================================================================
LUNAR GNC - MAIN ENTRY POINT
===============================================================================
LEO (400 km) -> Trans-Lunar Injection -> Lunar Orbit Insertion -> Landing

Runs the lunar landing simulation and writes telemetry, history and plots.

USAGE:
    lunar-gnc                         # Full mission, 1 s steps
    lunar-gnc --fast                  # 5 s steps, 10 min telemetry
    lunar-gnc --test                  # One simulated hour
    lunar-gnc --monte-carlo 50        # Monte Carlo with 50 dispersed runs
    lunar-gnc --config my.yaml --plots

OUTPUTS (under --output, default ./output):
    simulation.log          - Log file
    data/history.csv        - Time-indexed state history
    data/telemetry.csv      - Telemetry packet table
    plots/                  - Trajectory, time history, estimation plots
    monte_carlo/            - Monte Carlo results and dispersion plots

===============================================================================
"""

import argparse
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from lunar_gnc import __version__
from lunar_gnc.simulation.sim_config import SimConfig, load_config, DEFAULT_CONFIG_PATH
from lunar_gnc.simulation.sim_engine import MissionSimulation, SimResult
from lunar_gnc.simulation.monte_carlo import MonteCarloSim, load_dispersions

logger = logging.getLogger('LUNAR_GNC')


def setup_logging(level: str, output_dir: Optional[Path]) -> None:
    """Console handler plus a log file in the output directory."""
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if output_dir is not None:
        output_dir.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(output_dir / 'simulation.log', mode='w'))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        handlers=handlers,
        force=True,
    )


def build_config(args: argparse.Namespace) -> SimConfig:
    """YAML file first, then preset, then individual command-line overrides."""
    config_path = args.config
    if config_path is None and DEFAULT_CONFIG_PATH.exists():
        config_path = DEFAULT_CONFIG_PATH
    config = load_config(config_path) if config_path is not None else SimConfig()

    if args.fast:
        config = config.replace(dt=5.0, telemetry_interval=600.0)
    elif args.test:
        config = config.replace(dt=1.0, max_time=3600.0)

    overrides = {}
    if args.dt is not None:
        overrides['dt'] = args.dt
    if args.max_time is not None:
        overrides['max_time'] = args.max_time
    if args.seed is not None:
        overrides['noise_seed'] = args.seed
    if overrides:
        config = config.replace(**overrides)
    return config


def print_report(result: SimResult, wall_time: float) -> None:
    state = result.final_state
    print("\n" + "=" * 70)
    print("  MISSION REPORT")
    print("=" * 70)
    print(f"  Result:          {'SUCCESS' if result.success else 'FAILED'} "
          f"({result.outcome.value})")
    print(f"  Final phase:     {result.final_phase.name}")
    print(f"  Mission time:    {result.mission_time / 3600.0:.2f} h "
          f"({result.mission_time:.0f} s)")
    print(f"  Fuel used:       {result.fuel_used:.0f} kg")
    print(f"  Final mass:      {state.mass:.0f} kg")
    print(f"  Final speed:     {state.speed:.1f} m/s")
    print(f"  Telemetry:       {len(result.telemetry)} packets")
    print(f"  Wall time:       {wall_time:.1f} s")
    print("=" * 70)


def run_mission(config: SimConfig, output_dir: Path, make_plots: bool) -> SimResult:
    sim = MissionSimulation(config)

    wall_start = time.time()
    result = sim.run()
    print_report(result, time.time() - wall_start)

    data_dir = output_dir / 'data'
    data_dir.mkdir(parents=True, exist_ok=True)
    if not result.history.empty:
        result.history.to_csv(data_dir / 'history.csv')
    result.telemetry.export_csv(data_dir / 'telemetry.csv')
    logger.info("Data written to %s", data_dir)

    if make_plots:
        from lunar_gnc.visualization.trajectory_plots import generate_all_plots
        generate_all_plots(result.history, str(output_dir / 'plots'))

    return result


def run_monte_carlo(config: SimConfig, output_dir: Path, num_runs: int,
                    num_workers: int, seed: int, config_path: Optional[Path],
                    make_plots: bool) -> float:
    settings = load_dispersions(config_path) if config_path is not None else {}
    mc = MonteCarloSim(config, num_runs=num_runs, seed=seed,
                       dispersions=settings.get('dispersions'))
    results = mc.run_all(num_workers=num_workers)

    mc_dir = output_dir / 'monte_carlo'
    mc_dir.mkdir(parents=True, exist_ok=True)
    results.to_csv(mc_dir / 'results.csv')
    mc.dispersion_table().to_csv(mc_dir / 'dispersions.csv')

    rate = mc.get_success_rate()
    low, high = mc.success_rate_interval(0.95)
    print("\n" + "=" * 70)
    print("  MONTE CARLO SUMMARY")
    print("=" * 70)
    print(f"  Runs:            {num_runs}")
    print(f"  Success rate:    {rate * 100.0:.1f}%  (95% CI {low * 100.0:.1f}%"
          f" - {high * 100.0:.1f}%)")
    for outcome, count in mc.outcome_counts().items():
        print(f"    {outcome:<18s} {count}")
    print("=" * 70)

    if make_plots:
        mc.plot_dispersions(str(mc_dir))
    return rate


def main(argv: Optional[List[str]] = None) -> int:
    """
    Parse arguments and run the requested mode.

    Returns the process exit code: 0 when the mission (or every Monte
    Carlo run) succeeded, 1 otherwise.
    """
    parser = argparse.ArgumentParser(
        prog='lunar-gnc',
        description='Lunar landing GNC simulation: LEO -> TLI -> LOI -> Descent -> Landing',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  lunar-gnc                      Full mission
  lunar-gnc --fast --plots       Quick full mission with plots
  lunar-gnc --test               One simulated hour
  lunar-gnc --monte-carlo 50     Monte Carlo (50 runs)
        """
    )

    parser.add_argument('--config', type=Path, default=None,
                        help='Path to mission config YAML')
    preset = parser.add_mutually_exclusive_group()
    preset.add_argument('--fast', action='store_true',
                        help='Fast mode (dt=5 s, telemetry every 600 s)')
    preset.add_argument('--test', action='store_true',
                        help='Test mode (dt=1 s, one simulated hour)')
    parser.add_argument('--dt', type=float, default=None,
                        help='Integration step in seconds')
    parser.add_argument('--max-time', type=float, default=None,
                        help='Mission time limit in seconds')
    parser.add_argument('--seed', type=int, default=None,
                        help='Sensor noise / Monte Carlo seed')
    parser.add_argument('--output', type=Path, default=Path('output'),
                        help='Output directory (default: ./output)')
    parser.add_argument('--plots', action='store_true',
                        help='Write plots')
    parser.add_argument('--monte-carlo', type=int, default=0,
                        help='Run Monte Carlo with N runs')
    parser.add_argument('--workers', type=int, default=4,
                        help='Monte Carlo worker processes (default: 4)')
    parser.add_argument('--log-level', default='INFO',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: INFO)')
    parser.add_argument('--version', action='version',
                        version=f'%(prog)s {__version__}')

    args = parser.parse_args(argv)

    setup_logging(args.log_level, args.output)

    print("=" * 70)
    print("  LUNAR GNC MISSION SIMULATION")
    print("  LEO -> Trans-Lunar Injection -> Lunar Orbit Insertion -> Landing")
    print("=" * 70)
    print(f"  Start time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 70)

    try:
        config = build_config(args)
    except (OSError, ValueError) as exc:
        logger.error("Invalid configuration: %s", exc)
        return 1

    if args.monte_carlo > 0:
        config_path = args.config
        if config_path is None and DEFAULT_CONFIG_PATH.exists():
            config_path = DEFAULT_CONFIG_PATH
        seed = args.seed if args.seed is not None else 42
        rate = run_monte_carlo(config, args.output, args.monte_carlo, args.workers,
                               seed, config_path, args.plots)
        return 0 if rate == 1.0 else 1

    result = run_mission(config, args.output, args.plots)
    return 0 if result.success else 1


if __name__ == '__main__':
    sys.exit(main())
