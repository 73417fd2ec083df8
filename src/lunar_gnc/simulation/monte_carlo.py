"""
===============================================================================
LUNAR GNC - Monte Carlo Simulation Framework
===============================================================================
Runs N dispersed lunar missions in parallel to assess robustness under
propulsion and mass uncertainty. Uses multiprocessing for parallel execution
and pandas for result aggregation.

Each run draws its engine thrust, specific impulse and initial mass from
Gaussian distributions around the nominal configuration and gets its own
sensor-noise seed, so the ensemble also samples navigation noise. Runs are
independent; nothing is shared between worker processes.

Dispersions are given as 3-sigma bounds in percent of nominal:

    thrust_3sigma_pct         engine thrust
    isp_3sigma_pct            specific impulse
    initial_mass_3sigma_pct   wet mass at mission start

The success-rate confidence interval uses the Wilson score interval, which
stays inside [0, 1] and behaves well for small N or rates near 0 or 1.

References
----------
    [1] NASA-STD-7009A, "Standard for Models and Simulations", 2023.
    [2] Wilson, "Probable Inference, the Law of Succession, and Statistical
        Inference", JASA, 1927.
===============================================================================
"""

import logging
import os
from multiprocessing import Pool
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import yaml
from scipy import stats

from lunar_gnc.simulation.sim_config import SimConfig

logger = logging.getLogger(__name__)

DEFAULT_DISPERSIONS: Dict[str, float] = {
    'thrust_3sigma_pct': 3.0,
    'isp_3sigma_pct': 2.0,
    'initial_mass_3sigma_pct': 1.0,
}


def load_dispersions(path: Union[str, Path]) -> Dict[str, Any]:
    """Read the `monte_carlo:` section of a mission YAML file (may be empty)."""
    with open(path, 'r') as f:
        document = yaml.safe_load(f) or {}
    return document.get('monte_carlo') or {}


def _run_single_wrapper(args: Tuple[Dict[str, Any], int]) -> Dict[str, Any]:
    """
    Fly one dispersed mission inside a worker process.

    Pool.map needs a picklable callable, so the run is described by a plain
    config dictionary and rebuilt inside the worker.

    Parameters
    ----------
    args : tuple of (config_dict, run_id)

    Returns
    -------
    dict
        One results row: run_id, outcome and end-of-run metrics. A run that
        raises is recorded with its error_message instead of aborting the batch.
    """
    config_dict, run_id = args

    # Imported in the worker to keep the module import light
    from lunar_gnc.simulation.sim_engine import MissionSimulation

    result = {
        'run_id': run_id,
        'success': False,
        'outcome': '',
        'final_phase': '',
        'mission_time': np.nan,
        'fuel_used': np.nan,
        'final_mass': np.nan,
        'final_speed': np.nan,
        'final_position_error': np.nan,
        'error_message': '',
    }

    try:
        sim = MissionSimulation(SimConfig.from_dict(config_dict))
        sim_result = sim.run()

        result.update({
            'success': sim_result.success,
            'outcome': sim_result.outcome.value,
            'final_phase': sim_result.final_phase.name,
            'mission_time': sim_result.mission_time,
            'fuel_used': sim_result.fuel_used,
            'final_mass': sim_result.final_state.mass,
            'final_speed': sim_result.final_state.speed,
            'final_position_error': float(np.linalg.norm(
                sim.kalman.estimated_position - sim_result.final_state.position)),
        })
    except Exception as exc:
        result['error_message'] = str(exc)
        logger.warning("Run %d failed: %s", run_id, exc)

    return result


class MonteCarloSim:
    """
    Monte Carlo framework for lunar mission robustness assessment.

    Parameters
    ----------
    base_config : SimConfig
        Nominal configuration.
    num_runs : int
        Number of dispersed runs.
    seed : int
        Master random seed; fixes every dispersion and every noise seed.
    dispersions : dict, optional
        3-sigma percentages (see module docstring). Missing keys use
        DEFAULT_DISPERSIONS; a value of 0 disables that dispersion.

    Attributes
    ----------
    results : pd.DataFrame or None
        Populated after run_all() completes, indexed by run_id.
    dispersed_configs : list of dict
        Config dictionaries for each run.
    """

    def __init__(self, base_config: Optional[SimConfig] = None, num_runs: int = 100,
                 seed: int = 42, dispersions: Optional[Dict[str, float]] = None) -> None:
        if num_runs < 1:
            raise ValueError(f"num_runs must be >= 1, got {num_runs}")

        self.base_config = base_config if base_config is not None else SimConfig()
        self.num_runs = num_runs
        self.seed = seed

        self.dispersions = dict(DEFAULT_DISPERSIONS)
        if dispersions:
            unknown = set(dispersions) - set(DEFAULT_DISPERSIONS)
            if unknown:
                raise ValueError(f"Unknown dispersions: {', '.join(sorted(unknown))}")
            self.dispersions.update(dispersions)

        self._rng = np.random.RandomState(seed)
        self.dispersed_configs: List[Dict[str, Any]] = [
            self._disperse_config(run_id) for run_id in range(num_runs)
        ]

        self.results: Optional[pd.DataFrame] = None

        logger.info("MonteCarloSim initialized: %d runs, seed=%d, dispersions=%s",
                    num_runs, seed, self.dispersions)

    # =========================================================================
    # DISPERSION GENERATION
    # =========================================================================

    def _draw(self, nominal: float, pct_3sigma: float) -> float:
        if pct_3sigma <= 0.0:
            return nominal
        sigma = nominal * pct_3sigma / 100.0 / 3.0
        return float(self._rng.normal(nominal, sigma))

    def _disperse_config(self, run_id: int) -> Dict[str, Any]:
        """Draw one dispersed configuration as a plain dictionary."""
        base = self.base_config
        d = self.dispersions

        thrust = max(self._draw(base.max_thrust, d['thrust_3sigma_pct']), 0.0)
        isp = max(self._draw(base.isp, d['isp_3sigma_pct']), base.isp * 0.5)
        initial_mass = self._draw(base.initial_mass, d['initial_mass_3sigma_pct'])
        # Keep some propellant on board whatever the draw
        initial_mass = max(initial_mass, base.dry_mass * 1.01)

        config = base.to_dict()
        config.update(
            max_thrust=thrust,
            isp=isp,
            initial_mass=initial_mass,
            noise_seed=int(self._rng.randint(0, 2 ** 31 - 1)),
        )
        return config

    def dispersion_table(self) -> pd.DataFrame:
        """Applied dispersions, one row per run."""
        rows = [
            {
                'run_id': run_id,
                'max_thrust': cfg['max_thrust'],
                'isp': cfg['isp'],
                'initial_mass': cfg['initial_mass'],
                'noise_seed': cfg['noise_seed'],
            }
            for run_id, cfg in enumerate(self.dispersed_configs)
        ]
        return pd.DataFrame(rows).set_index('run_id')

    # =========================================================================
    # RUN ALL SIMULATIONS
    # =========================================================================

    def run_all(self, num_workers: int = 4) -> pd.DataFrame:
        """
        Execute all dispersed runs.

        Parameters
        ----------
        num_workers : int
            Worker processes. 1 or less runs sequentially in this process.

        Returns
        -------
        pd.DataFrame
            One row per run, indexed by run_id.
        """
        logger.info("Starting Monte Carlo: %d runs on %d workers",
                    self.num_runs, num_workers)

        args_list = [(cfg, run_id) for run_id, cfg in enumerate(self.dispersed_configs)]

        if num_workers <= 1:
            results_list = [_run_single_wrapper(args) for args in args_list]
        else:
            with Pool(processes=num_workers) as pool:
                results_list = pool.map(_run_single_wrapper, args_list)

        self.results = pd.DataFrame(results_list)
        self.results.set_index('run_id', inplace=True)

        n_success = int(self.results['success'].sum())
        logger.info("Monte Carlo complete: %d/%d runs successful (%.1f%%)",
                    n_success, self.num_runs, 100.0 * n_success / self.num_runs)

        return self.results

    # =========================================================================
    # STATISTICS
    # =========================================================================

    def compute_statistics(self) -> Dict[str, Dict[str, float]]:
        """
        Summary statistics for every numeric result column.

        Returns
        -------
        dict
            metric -> {mean, std, min, max, p01, p50, p99}
        """
        if self.results is None or self.results.empty:
            logger.warning("No results to compute statistics on.")
            return {}

        numeric = self.results.select_dtypes(include=[np.number])
        summary: Dict[str, Dict[str, float]] = {}

        for name, column in numeric.items():
            values = column.dropna()
            if values.empty:
                continue
            p01, p50, p99 = values.quantile([0.01, 0.50, 0.99])
            summary[name] = {
                'mean': float(values.mean()),
                'std': float(values.std(ddof=1)) if len(values) > 1 else 0.0,
                'min': float(values.min()),
                'max': float(values.max()),
                'p01': float(p01),
                'p50': float(p50),
                'p99': float(p99),
            }

        return summary

    def get_success_rate(self) -> float:
        """Fraction of runs that landed, in [0, 1]."""
        if self.results is None or self.results.empty:
            return 0.0
        return float(self.results['success'].mean())

    def success_rate_interval(self, confidence: float = 0.95) -> Tuple[float, float]:
        """
        Wilson score interval for the success probability.

        Parameters
        ----------
        confidence : float
            Two-sided confidence level in (0, 1).

        Returns
        -------
        (lower, upper) : tuple of float
        """
        if not 0.0 < confidence < 1.0:
            raise ValueError(f"Confidence must be in (0, 1), got {confidence}")
        if self.results is None or self.results.empty:
            return (0.0, 1.0)

        n = len(self.results)
        p_hat = self.get_success_rate()
        z = stats.norm.ppf(1.0 - (1.0 - confidence) / 2.0)

        denom = 1.0 + z ** 2 / n
        center = (p_hat + z ** 2 / (2.0 * n)) / denom
        half_width = z * np.sqrt(p_hat * (1.0 - p_hat) / n + z ** 2 / (4.0 * n ** 2)) / denom

        return (max(0.0, float(center - half_width)), min(1.0, float(center + half_width)))

    def outcome_counts(self) -> pd.Series:
        if self.results is None or self.results.empty:
            return pd.Series(dtype=int)
        return self.results['outcome'].value_counts()

    # =========================================================================
    # VISUALIZATION
    # =========================================================================

    def plot_dispersions(self, output_dir: Union[str, Path]) -> List[str]:
        """
        Histogram of each dispersed parameter, one PNG per parameter.

        Returns
        -------
        list of str
            Paths of the written images.
        """
        os.makedirs(output_dir, exist_ok=True)
        table = self.dispersion_table()
        nominal = self.base_config
        written = []

        for param in ('max_thrust', 'isp', 'initial_mass'):
            samples = table[param]
            centre = getattr(nominal, param)

            fig, ax = plt.subplots(figsize=(8, 5))
            ax.hist(samples, bins=min(30, len(samples)), color='steelblue',
                    edgecolor='black', alpha=0.7)
            ax.axvline(centre, color='black', linewidth=1.5,
                       label=f'Nominal = {centre:.4g}')
            if len(samples) > 1:
                spread = samples.std()
                ax.axvspan(samples.mean() - spread, samples.mean() + spread,
                           color='orange', alpha=0.2,
                           label=f'Sample mean +/- 1 sigma ({spread:.3g})')
            ax.set_xlabel(param)
            ax.set_ylabel('Runs')
            ax.set_title(f'{param} dispersion over {self.num_runs} runs (seed {self.seed})')
            ax.legend(loc='upper right')

            path = os.path.join(output_dir, f'dispersion_{param}.png')
            fig.savefig(path, dpi=150, bbox_inches='tight')
            plt.close(fig)
            logger.info("Saved dispersion plot: %s", path)
            written.append(path)

        return written
