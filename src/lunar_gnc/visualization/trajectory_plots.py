"""
===============================================================================
LUNAR GNC - Trajectory and Estimation Plots
===============================================================================

Post-run plots built from the time-indexed history DataFrame returned in
SimResult.history:

  1. Trajectory in the Earth-Moon plane (true path, Earth and Moon)
  2. Speed, altitude and mass time histories with mission phases shaded
  3. Kalman filter position / velocity estimation error

All figures render with the Agg backend, so no display is needed.
===============================================================================
"""

import logging
import os
from typing import Dict

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from lunar_gnc.core.constants import EARTH_RADIUS, MOON_RADIUS, moon_position

logger = logging.getLogger(__name__)

plt.rcParams.update({
    'font.size': 11,
    'axes.labelsize': 12,
    'axes.titlesize': 13,
    'legend.fontsize': 10,
    'axes.grid': True,
    'grid.alpha': 0.3,
    'axes.spines.top': False,
    'axes.spines.right': False,
})

COLORS = {
    'earth': '#3498db',
    'moon': '#95a5a6',
    'trajectory': '#2c3e50',
    'estimate': '#e74c3c',
    'target': '#1abc9c',
    'warning': '#f39c12',
}

PHASE_COLORS = {
    'ASCENT': '#ecf0f1',
    'TRANS_LUNAR_INJECTION': '#d6eaf8',
    'LUNAR_ORBIT_INSERTION': '#fdebd0',
    'DESCENT': '#d5f5e3',
    'LANDED': '#f5eef8',
}


def _check_history(history: pd.DataFrame) -> None:
    if history is None or history.empty:
        raise ValueError("History is empty; nothing to plot.")


def _shade_phases(ax, history: pd.DataFrame) -> None:
    """Background bands for each contiguous run of one mission phase."""
    times = history.index.to_numpy() / 3600.0
    phases = history['phase'].to_numpy()

    start = 0
    for i in range(1, len(phases) + 1):
        if i == len(phases) or phases[i] != phases[start]:
            end_t = times[i] if i < len(phases) else times[-1]
            ax.axvspan(times[start], end_t,
                       color=PHASE_COLORS.get(phases[start], '#ffffff'),
                       alpha=0.6, zorder=0)
            start = i


def plot_trajectory(history: pd.DataFrame, output_path: str) -> str:
    """Vehicle path in the X-Y plane with both bodies drawn to scale."""
    _check_history(history)

    fig, ax = plt.subplots(figsize=(12, 7))
    theta = np.linspace(0.0, 2.0 * np.pi, 200)
    moon = moon_position()

    ax.fill(EARTH_RADIUS / 1e3 * np.cos(theta), EARTH_RADIUS / 1e3 * np.sin(theta),
            color=COLORS['earth'], alpha=0.7, label='Earth')
    ax.fill((moon[0] + MOON_RADIUS * np.cos(theta)) / 1e3,
            (moon[1] + MOON_RADIUS * np.sin(theta)) / 1e3,
            color=COLORS['moon'], alpha=0.8, label='Moon')

    ax.plot(history['pos_x'] / 1e3, history['pos_y'] / 1e3,
            color=COLORS['trajectory'], linewidth=1.5, label='Trajectory')
    ax.scatter([history['pos_x'].iloc[0] / 1e3], [history['pos_y'].iloc[0] / 1e3],
               c=COLORS['target'], s=60, marker='o', zorder=5, label='Start')
    ax.scatter([history['pos_x'].iloc[-1] / 1e3], [history['pos_y'].iloc[-1] / 1e3],
               c=COLORS['estimate'], s=80, marker='*', zorder=5, label='End')

    ax.set_xlabel('X (km)')
    ax.set_ylabel('Y (km)')
    ax.set_title('Earth-Moon Transfer Trajectory', fontweight='bold')
    ax.set_aspect('equal', adjustable='datalim')
    ax.legend(loc='upper left')

    fig.tight_layout()
    fig.savefig(output_path, dpi=150, bbox_inches='tight', facecolor='white')
    plt.close(fig)
    logger.info("Saved: %s", output_path)
    return output_path


def plot_time_histories(history: pd.DataFrame, output_path: str) -> str:
    """Speed, Earth/Moon altitude and mass vs time, phases shaded."""
    _check_history(history)

    t_hr = history.index.to_numpy() / 3600.0
    fig, axes = plt.subplots(3, 1, figsize=(12, 11), sharex=True)

    ax = axes[0]
    _shade_phases(ax, history)
    ax.plot(t_hr, history['speed_m_s'], color=COLORS['trajectory'])
    ax.set_ylabel('Speed (m/s)')
    ax.set_title('Mission Time Histories', fontweight='bold')

    ax = axes[1]
    _shade_phases(ax, history)
    ax.semilogy(t_hr, np.clip(history['earth_altitude_m'] / 1e3, 1e-3, None),
                color=COLORS['earth'], label='Earth altitude')
    ax.semilogy(t_hr, np.clip(history['moon_altitude_m'] / 1e3, 1e-3, None),
                color=COLORS['moon'], label='Moon altitude')
    ax.set_ylabel('Altitude (km)')
    ax.legend(loc='upper right')

    ax = axes[2]
    _shade_phases(ax, history)
    ax.plot(t_hr, history['mass'] / 1e3, color=COLORS['warning'])
    ax.set_ylabel('Mass (t)')
    ax.set_xlabel('Mission time (h)')

    # Phase legend
    seen = list(dict.fromkeys(history['phase']))
    handles = [plt.Rectangle((0, 0), 1, 1, color=PHASE_COLORS.get(p, '#ffffff'))
               for p in seen]
    axes[0].legend(handles, seen, loc='upper right', fontsize=8)

    fig.tight_layout()
    fig.savefig(output_path, dpi=150, bbox_inches='tight', facecolor='white')
    plt.close(fig)
    logger.info("Saved: %s", output_path)
    return output_path


def plot_estimation_error(history: pd.DataFrame, output_path: str) -> str:
    """Norm of the Kalman position and velocity errors vs time."""
    _check_history(history)

    t_hr = history.index.to_numpy() / 3600.0
    fig, (ax1, ax2) = plt.subplots(2, 1, figsize=(12, 8), sharex=True)

    ax1.plot(t_hr, history['position_error_m'], color=COLORS['estimate'])
    ax1.set_ylabel('|r_est - r_true| (m)')
    ax1.set_title('Navigation Filter Estimation Error', fontweight='bold')

    ax2.plot(t_hr, history['velocity_error_m_s'], color=COLORS['trajectory'])
    ax2.set_ylabel('|v_est - v_true| (m/s)')
    ax2.set_xlabel('Mission time (h)')

    fig.tight_layout()
    fig.savefig(output_path, dpi=150, bbox_inches='tight', facecolor='white')
    plt.close(fig)
    logger.info("Saved: %s", output_path)
    return output_path


def generate_all_plots(history: pd.DataFrame, output_dir: str) -> Dict[str, str]:
    """Write every mission plot into `output_dir`; returns name -> path."""
    os.makedirs(output_dir, exist_ok=True)
    return {
        'trajectory': plot_trajectory(history, os.path.join(output_dir, 'trajectory.png')),
        'time_histories': plot_time_histories(
            history, os.path.join(output_dir, 'time_histories.png')),
        'estimation_error': plot_estimation_error(
            history, os.path.join(output_dir, 'estimation_error.png')),
    }
