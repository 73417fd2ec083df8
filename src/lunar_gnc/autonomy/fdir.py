"""
fdir.py - Fault Detection, Isolation and Recovery
===============================================================================

Onboard fault management for the lunar mission:

1. **RedundantSubsystem** (triple modular redundancy)
   - Three independent channels carry the same quantity.
   - ``vote()`` returns the majority value; when no two channels agree the
     first valid channel wins.
   - ``check_health()`` grades the subsystem by how many channels are alive
     and whether they agree.

2. **Watchdog**
   - Must be kicked periodically by the main loop. If the time since the
     last kick exceeds the timeout it trips and stays tripped until kicked.

3. **FDIRManager**
   - Owns the main-loop watchdog, counts faults and runs a bounded number
     of recovery attempts. Once the attempts are used up the system is
     declared CRITICAL and ``is_operational()`` turns False, which is the
     only signal the simulation loop consumes.

The first-channel tie-break is asymmetric: a channel that persistently
diverges from its peers in position 0 is never outvoted when the other two
also disagree with each other.
"""

from __future__ import annotations

import logging
import math
import time
from enum import Enum
from typing import Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

NUM_CHANNELS = 3


class SystemStatus(Enum):
    """Health grade, ordered from best to worst."""
    NOMINAL = "nominal"
    WARNING = "warning"
    FAULT = "fault"
    CRITICAL = "critical"


# ---------------------------------------------------------------------------
#  Triple modular redundancy
# ---------------------------------------------------------------------------

class RedundantSubsystem(Generic[T]):
    """Three-channel voter.

    Parameters
    ----------
    name : str
        Subsystem label used in log messages.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.values: List[Optional[T]] = [None] * NUM_CHANNELS
        self.status = SystemStatus.NOMINAL

    def set_channel(self, channel: int, value: T) -> None:
        """Store a channel reading. Channels outside 0..2 are ignored."""
        if 0 <= channel < NUM_CHANNELS:
            self.values[channel] = value

    def clear_channel(self, channel: int) -> None:
        """Mark a channel as failed."""
        if 0 <= channel < NUM_CHANNELS:
            self.values[channel] = None

    def _valid(self) -> List[T]:
        return [v for v in self.values if v is not None]

    def vote(self) -> Optional[T]:
        """Majority value of the valid channels, None when all have failed."""
        valid = self._valid()

        if not valid:
            return None
        if len(valid) == 3:
            if valid[0] == valid[1] or valid[0] == valid[2]:
                return valid[0]
            if valid[1] == valid[2]:
                return valid[1]
        # One or two channels, or no consensus: first valid channel wins
        return valid[0]

    def check_health(self) -> SystemStatus:
        """Grade the subsystem and store the result in ``status``."""
        valid = self._valid()
        all_equal = all(a == b for a, b in zip(valid, valid[1:]))

        if len(valid) == 3:
            status = SystemStatus.NOMINAL if all_equal else SystemStatus.WARNING
        elif len(valid) == 2:
            status = SystemStatus.WARNING
        elif len(valid) == 1:
            status = SystemStatus.FAULT
        else:
            status = SystemStatus.CRITICAL

        if status != self.status:
            logger.warning("%s health: %s -> %s (%d/3 channels valid)",
                           self.name, self.status.name, status.name, len(valid))
        self.status = status
        return status


# ---------------------------------------------------------------------------
#  Watchdog
# ---------------------------------------------------------------------------

class Watchdog:
    """Timeout supervisor.

    Parameters
    ----------
    name : str
        Label for log messages.
    timeout_s : float
        Allowed time between kicks in seconds.
    clock : callable
        Monotonic time source in seconds. Tests inject a fake clock.
    """

    def __init__(self, name: str, timeout_s: float,
                 clock: Callable[[], float] = time.monotonic) -> None:
        if timeout_s <= 0.0:
            raise ValueError(f"Watchdog timeout must be positive, got {timeout_s}")
        self.name = name
        self.timeout_s = float(timeout_s)
        self._clock = clock
        self.last_kick = clock()
        self.triggered = False

    def kick(self) -> None:
        self.last_kick = self._clock()
        self.triggered = False

    def elapsed(self) -> float:
        return self._clock() - self.last_kick

    def check(self) -> bool:
        """Return True if the watchdog has tripped (latched until next kick)."""
        if self.elapsed() > self.timeout_s:
            self.triggered = True
        return self.triggered


# ---------------------------------------------------------------------------
#  FDIR manager
# ---------------------------------------------------------------------------

class FDIRManager:
    """Main-loop fault manager with bounded recovery.

    Parameters
    ----------
    watchdog_timeout_s : float
        Main-loop watchdog timeout (default 5 s).
    max_recovery_attempts : int
        Faults that can be recovered from before the system goes CRITICAL.
    clock : callable
        Time source for the watchdog.
    """

    def __init__(self, watchdog_timeout_s: float = 5.0,
                 max_recovery_attempts: int = 3,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.watchdog = Watchdog("MainLoop", watchdog_timeout_s, clock=clock)
        self.system_status = SystemStatus.NOMINAL
        self.fault_count = 0
        self.recovery_attempts = 0
        self.max_recovery_attempts = int(max_recovery_attempts)

    def run_cycle(self) -> None:
        """Check the watchdog and raise a fault if it tripped."""
        if self.watchdog.check():
            self.handle_fault("Watchdog timeout")

    def handle_fault(self, reason: str) -> None:
        self.fault_count += 1
        logger.warning("FDIR: fault detected - %s", reason)

        if self.recovery_attempts < self.max_recovery_attempts:
            self._attempt_recovery()
        else:
            self.system_status = SystemStatus.CRITICAL
            logger.error("FDIR: system CRITICAL - max recovery attempts (%d) exceeded",
                         self.max_recovery_attempts)

    def _attempt_recovery(self) -> None:
        self.recovery_attempts += 1
        logger.warning("FDIR: recovery attempt %d/%d",
                       self.recovery_attempts, self.max_recovery_attempts)
        self.watchdog.kick()
        self.system_status = SystemStatus.WARNING

    def report_nominal(self) -> None:
        """Called once per healthy loop iteration."""
        self.watchdog.kick()
        if self.system_status == SystemStatus.WARNING:
            self.system_status = SystemStatus.NOMINAL
            logger.info("FDIR: system recovered to nominal")

    def is_operational(self) -> bool:
        return self.system_status != SystemStatus.CRITICAL

    @property
    def health_percent(self) -> int:
        """Coarse health figure for status telemetry (100 or 0)."""
        return 100 if self.is_operational() else 0


def calculate_mtbf(failure_rate: float) -> float:
    """Mean time between failures, 1 / rate; infinite for a non-positive rate."""
    if failure_rate > 0.0:
        return 1.0 / failure_rate
    return math.inf
