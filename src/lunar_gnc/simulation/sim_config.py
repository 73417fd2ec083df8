"""
===============================================================================
LUNAR GNC - Simulation Configuration
===============================================================================
Run parameters for the lunar mission simulation.

Defaults reproduce the reference mission: a 250 t vehicle with a 500 kN,
Isp 450 s upper stage leaving a 400 km parking orbit, one-second steps and
a five-day time limit.

Configuration can be built in code, from a plain mapping, or from the
`simulation:` section of a YAML mission file:

    simulation:
      dt: 5.0
      telemetry_interval: 600.0
      integrator: rk4

Unknown keys are rejected so that typos in a mission file fail loudly
instead of silently running the default.
===============================================================================
"""

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[3] / 'config' / 'mission_config.yaml'


@dataclass
class SimConfig:
    """
    Mission simulation parameters (SI units).

    Attributes
    ----------
    dt : float
        Integration step (s).
    max_time : float
        Mission time limit (s).
    isp : float
        Engine specific impulse (s).
    max_thrust : float
        Full-throttle thrust (N).
    initial_mass : float
        Wet mass at mission start (kg).
    dry_mass : float
        Structure mass, the floor for propellant depletion (kg).
    telemetry_interval : float
        Period of telemetry packets and history samples (s).
    integrator : str
        "rk4" or "euler".
    noise_amplitude : float
        Position sensor noise scale (m).
    noise_distribution : str
        "uniform" or "gaussian".
    noise_seed : int or None
        Seed for the sensor noise generator.
    kf_initial_covariance, kf_process_noise, kf_measurement_noise : float
        Kalman filter noise magnitudes (scaled identity matrices).
    attitude_kp, attitude_kd : float
        PD gains of the attitude controller.
    attitude_inertia : float
        Scalar moment of inertia for attitude propagation (kg*m^2).
    parking_orbit_altitude : float
        Altitude of the initial circular orbit (m).
    status_interval : int
        Loop iterations between status log lines.
    fdir_watchdog_timeout : float
        Main-loop watchdog timeout (s, wall clock).
    fdir_max_recovery_attempts : int
        Recoveries allowed before the system is declared critical.
    """
    dt: float = 1.0
    max_time: float = 5.0 * 24.0 * 3600.0
    isp: float = 450.0
    max_thrust: float = 500_000.0
    initial_mass: float = 250_000.0
    dry_mass: float = 15_000.0
    telemetry_interval: float = 60.0

    integrator: str = 'rk4'

    noise_amplitude: float = 100.0
    noise_distribution: str = 'uniform'
    noise_seed: Optional[int] = None

    kf_initial_covariance: float = 1000.0
    kf_process_noise: float = 0.1
    kf_measurement_noise: float = 10.0

    attitude_kp: float = 2.0
    attitude_kd: float = 1.0
    attitude_inertia: float = 100.0

    parking_orbit_altitude: float = 400_000.0
    status_interval: int = 1000

    fdir_watchdog_timeout: float = 5.0
    fdir_max_recovery_attempts: int = 3

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise ValueError on inconsistent parameters."""
        if self.dt <= 0.0:
            raise ValueError(f"dt must be positive, got {self.dt}")
        if self.max_time <= 0.0:
            raise ValueError(f"max_time must be positive, got {self.max_time}")
        if self.dry_mass <= 0.0:
            raise ValueError(f"dry_mass must be positive, got {self.dry_mass}")
        if self.dry_mass >= self.initial_mass:
            raise ValueError(
                f"dry_mass ({self.dry_mass}) must be less than "
                f"initial_mass ({self.initial_mass})"
            )
        if self.isp <= 0.0:
            raise ValueError(f"isp must be positive, got {self.isp}")
        if self.max_thrust < 0.0:
            raise ValueError(f"max_thrust must be >= 0, got {self.max_thrust}")
        if self.telemetry_interval <= 0.0:
            raise ValueError(
                f"telemetry_interval must be positive, got {self.telemetry_interval}"
            )
        if self.integrator not in ('rk4', 'euler'):
            raise ValueError(f"integrator must be 'rk4' or 'euler', got '{self.integrator}'")
        if self.noise_distribution not in ('uniform', 'gaussian'):
            raise ValueError(
                f"noise_distribution must be 'uniform' or 'gaussian', "
                f"got '{self.noise_distribution}'"
            )
        if self.status_interval < 1:
            raise ValueError(f"status_interval must be >= 1, got {self.status_interval}")

        # Sensor and filter noise; R must stay positive definite
        if self.noise_amplitude < 0.0:
            raise ValueError(f"noise_amplitude must be >= 0, got {self.noise_amplitude}")
        if self.kf_initial_covariance < 0.0:
            raise ValueError(
                f"kf_initial_covariance must be >= 0, got {self.kf_initial_covariance}"
            )
        if self.kf_process_noise < 0.0:
            raise ValueError(f"kf_process_noise must be >= 0, got {self.kf_process_noise}")
        if self.kf_measurement_noise <= 0.0:
            raise ValueError(
                f"kf_measurement_noise must be positive, got {self.kf_measurement_noise}"
            )

        if self.attitude_kp <= 0.0:
            raise ValueError(f"attitude_kp must be positive, got {self.attitude_kp}")
        if self.attitude_kd < 0.0:
            raise ValueError(f"attitude_kd must be >= 0, got {self.attitude_kd}")
        if self.attitude_inertia <= 0.0:
            raise ValueError(f"attitude_inertia must be positive, got {self.attitude_inertia}")

        if self.fdir_watchdog_timeout <= 0.0:
            raise ValueError(
                f"fdir_watchdog_timeout must be positive, got {self.fdir_watchdog_timeout}"
            )
        if self.fdir_max_recovery_attempts < 0:
            raise ValueError(
                f"fdir_max_recovery_attempts must be >= 0, "
                f"got {self.fdir_max_recovery_attempts}"
            )

    # -------------------------------------------------------------------------
    # Construction helpers
    # -------------------------------------------------------------------------

    @classmethod
    def field_names(cls):
        return {f.name for f in dataclasses.fields(cls)}

    @classmethod
    def from_dict(cls, mapping: Optional[Mapping[str, Any]]) -> 'SimConfig':
        """Build a config from a mapping; unknown keys raise ValueError."""
        mapping = dict(mapping or {})
        unknown = set(mapping) - cls.field_names()
        if unknown:
            raise ValueError(
                f"Unknown simulation config keys: {', '.join(sorted(unknown))}"
            )
        return cls(**mapping)

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    def replace(self, **changes) -> 'SimConfig':
        """Copy with some fields changed (validated)."""
        unknown = set(changes) - self.field_names()
        if unknown:
            raise ValueError(
                f"Unknown simulation config keys: {', '.join(sorted(unknown))}"
            )
        return dataclasses.replace(self, **changes)

    # -------------------------------------------------------------------------
    # Presets
    # -------------------------------------------------------------------------

    @classmethod
    def fast(cls, **overrides) -> 'SimConfig':
        """Coarse steps and sparse telemetry for quick full-mission runs."""
        params = dict(dt=5.0, telemetry_interval=600.0)
        params.update(overrides)
        return cls.from_dict(params)

    @classmethod
    def test(cls, **overrides) -> 'SimConfig':
        """One simulated hour at 1 s steps."""
        params = dict(dt=1.0, max_time=3600.0)
        params.update(overrides)
        return cls.from_dict(params)

    @property
    def propellant_mass(self) -> float:
        return self.initial_mass - self.dry_mass


def load_config(path: Optional[Union[str, Path]] = None) -> SimConfig:
    """
    Load the `simulation:` section of a YAML mission file.

    Args:
        path: YAML file. Defaults to config/mission_config.yaml at the
              repository root, which only exists in a source checkout.

    Returns:
        Validated SimConfig. A file without a `simulation:` section yields
        the defaults, as does the default path when the file is absent.

    Raises:
        FileNotFoundError: An explicitly given path does not exist.
    """
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            logger.warning("Default mission file %s not found, using built-in defaults",
                           DEFAULT_CONFIG_PATH)
            return SimConfig()
        path = DEFAULT_CONFIG_PATH
    path = Path(path)

    logger.info("Loading configuration from: %s", path)
    with open(path, 'r') as f:
        document = yaml.safe_load(f) or {}

    if not isinstance(document, dict):
        raise ValueError(f"{path}: expected a mapping at the top level")

    mission = document.get('mission') or {}
    if mission.get('name'):
        logger.info("Mission: %s", mission['name'])

    section = document.get('simulation') or {}
    if not isinstance(section, dict):
        raise ValueError(f"{path}: 'simulation' section must be a mapping")
    return SimConfig.from_dict(section)
