"""
===============================================================================
LUNAR GNC - Telemetry Packets and Logger
===============================================================================
In-memory telemetry log for a mission run.

Each packet carries a millisecond timestamp, a sequential packet id, the
originating subsystem and one typed payload. A CRC-64 over the header
(timestamp, id, subsystem) protects the packet identity.

Binary layout (little-endian):

    u64  timestamp_ms
    u32  packet_id
    u8   subsystem id
    u8   payload tag (1 NAV, 2 STATUS, 3 SENSORS, 4 EVENT)
    ...  payload fields
    u64  crc

Payload fields:
    NAV      6 x f64          position [m], velocity [m/s]
    STATUS   u8, f32, u8      phase, fuel percent, system health
    SENSORS  3 x f32          temperature, pressure, radiation
    EVENT    u16, u16, bytes  event code, message length, UTF-8 message

Post-processing goes through pandas: to_dataframe() flattens the log into
one row per packet, which can then be written to CSV or SQLite.

Usage:
    from lunar_gnc.database.telemetry_log import TelemetryLogger

    tlm = TelemetryLogger()
    tlm.log_navigation([7.0e6, 0.0, 0.0], [0.0, 7600.0, 0.0])
    tlm.log_status(1, 87.5, 100)
    df = tlm.to_dataframe()

===============================================================================
"""

import sqlite3
import struct
import time
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd


CRC64_POLY = 0x42F0E1EBA9EA3693
_CRC64_MASK = 0xFFFFFFFFFFFFFFFF


class SubsystemId(IntEnum):
    GNC = 1
    FDIR = 2
    PROPULSION = 3
    THERMAL = 4
    POWER = 5
    COMMUNICATION = 6


# =============================================================================
# PAYLOADS
# =============================================================================

@dataclass(frozen=True)
class NavigationPayload:
    position: Tuple[float, float, float]
    velocity: Tuple[float, float, float]

    TAG = 0x01

    def pack(self) -> bytes:
        return struct.pack('<6d', *self.position, *self.velocity)

    def describe(self) -> str:
        p, v = self.position, self.velocity
        return (f"NAV pos=[{p[0]:.0f}, {p[1]:.0f}, {p[2]:.0f}]m "
                f"vel=[{v[0]:.1f}, {v[1]:.1f}, {v[2]:.1f}]m/s")


@dataclass(frozen=True)
class StatusPayload:
    phase: int
    fuel_percent: float
    system_health: int

    TAG = 0x02

    def pack(self) -> bytes:
        return struct.pack('<BfB', self.phase, self.fuel_percent, self.system_health)

    def describe(self) -> str:
        return (f"STATUS phase={self.phase} fuel={self.fuel_percent:.1f}% "
                f"health={self.system_health}")


@dataclass(frozen=True)
class SensorPayload:
    temperature: float
    pressure: float
    radiation: float

    TAG = 0x03

    def pack(self) -> bytes:
        return struct.pack('<3f', self.temperature, self.pressure, self.radiation)

    def describe(self) -> str:
        return (f"SENSORS temp={self.temperature:.1f}C press={self.pressure:.1f}kPa "
                f"rad={self.radiation:.2f}mSv")


@dataclass(frozen=True)
class EventPayload:
    event_code: int
    message: str

    TAG = 0x04

    def pack(self) -> bytes:
        msg = self.message.encode('utf-8')
        return struct.pack('<HH', self.event_code, len(msg)) + msg

    def describe(self) -> str:
        return f"EVENT [{self.event_code}] {self.message}"


Payload = Union[NavigationPayload, StatusPayload, SensorPayload, EventPayload]


# =============================================================================
# CRC-64
# =============================================================================

def _crc_byte(crc: int, byte: int) -> int:
    c = crc ^ byte
    for _ in range(8):
        if c & 1:
            c = (c >> 1) ^ CRC64_POLY
        else:
            c >>= 1
    return c & _CRC64_MASK


def crc64(data: bytes, crc: int = _CRC64_MASK) -> int:
    """Bitwise reflected CRC-64, initial value all ones, no final XOR."""
    for byte in data:
        crc = _crc_byte(crc, byte)
    return crc


# =============================================================================
# PACKET
# =============================================================================

class TelemetryPacket:
    """A single telemetry frame.

    Parameters
    ----------
    packet_id : int
        Sequential id (u32).
    subsystem : SubsystemId
        Originating subsystem.
    payload : Payload
        One of the payload dataclasses.
    timestamp_ms : int, optional
        Milliseconds since the Unix epoch; the current wall clock if omitted.
    """

    def __init__(self, packet_id: int, subsystem: SubsystemId, payload: Payload,
                 timestamp_ms: Optional[int] = None) -> None:
        if not 0 <= packet_id <= 0xFFFFFFFF:
            raise ValueError(f"Packet id must fit in u32, got {packet_id}")
        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)

        self.timestamp_ms = int(timestamp_ms)
        self.packet_id = int(packet_id)
        self.subsystem = SubsystemId(subsystem)
        self.payload = payload
        self.crc = self.calculate_crc()

    def _header(self) -> bytes:
        return struct.pack('<QIB', self.timestamp_ms, self.packet_id, int(self.subsystem))

    def calculate_crc(self) -> int:
        return crc64(self._header())

    def validate(self) -> bool:
        """True if the stored CRC matches the header."""
        return self.crc == self.calculate_crc()

    def to_bytes(self) -> bytes:
        return (self._header()
                + struct.pack('<B', self.payload.TAG)
                + self.payload.pack()
                + struct.pack('<Q', self.crc))

    def __repr__(self) -> str:
        return (f"TelemetryPacket(id={self.packet_id}, subsystem={self.subsystem.name}, "
                f"payload={type(self.payload).__name__})")


# =============================================================================
# LOGGER
# =============================================================================

class TelemetryLogger:
    """Collects packets with monotonically increasing ids starting at 1."""

    def __init__(self) -> None:
        self._packets: List[TelemetryPacket] = []
        self.next_id = 1

    def _log(self, subsystem: SubsystemId, payload: Payload,
             timestamp_ms: Optional[int] = None) -> TelemetryPacket:
        packet = TelemetryPacket(self.next_id, subsystem, payload, timestamp_ms)
        self._packets.append(packet)
        self.next_id += 1
        return packet

    def log_navigation(self, position: Sequence[float], velocity: Sequence[float],
                       timestamp_ms: Optional[int] = None) -> TelemetryPacket:
        payload = NavigationPayload(tuple(float(v) for v in position),
                                    tuple(float(v) for v in velocity))
        return self._log(SubsystemId.GNC, payload, timestamp_ms)

    def log_status(self, phase: int, fuel_percent: float, system_health: int,
                   timestamp_ms: Optional[int] = None) -> TelemetryPacket:
        payload = StatusPayload(int(phase), float(fuel_percent), int(system_health))
        return self._log(SubsystemId.FDIR, payload, timestamp_ms)

    def log_sensors(self, temperature: float, pressure: float, radiation: float,
                    subsystem: SubsystemId = SubsystemId.THERMAL,
                    timestamp_ms: Optional[int] = None) -> TelemetryPacket:
        payload = SensorPayload(float(temperature), float(pressure), float(radiation))
        return self._log(subsystem, payload, timestamp_ms)

    def log_event(self, subsystem: SubsystemId, event_code: int, message: str,
                  timestamp_ms: Optional[int] = None) -> TelemetryPacket:
        return self._log(subsystem, EventPayload(int(event_code), message), timestamp_ms)

    @property
    def packets(self) -> List[TelemetryPacket]:
        return list(self._packets)

    def __len__(self) -> int:
        return len(self._packets)

    def export_summary(self) -> str:
        """Human-readable dump of every packet."""
        lines = ["=== TELEMETRY LOG ===", f"Total packets: {len(self._packets)}", ""]
        for packet in self._packets:
            lines.append(f"[{packet.timestamp_ms}] #{packet.packet_id} "
                         f"{packet.subsystem.name}: {packet.payload.describe()}")
        return "\n".join(lines) + "\n"

    # -------------------------------------------------------------------------
    # pandas export
    # -------------------------------------------------------------------------

    def to_dataframe(self) -> pd.DataFrame:
        """One row per packet; payload fields become columns (NaN if absent)."""
        rows: List[Dict[str, Any]] = []
        for packet in self._packets:
            row: Dict[str, Any] = {
                'packet_id': packet.packet_id,
                'timestamp_ms': packet.timestamp_ms,
                'subsystem': packet.subsystem.name,
                'payload_type': type(packet.payload).__name__,
                'crc_valid': packet.validate(),
            }
            payload = packet.payload
            if isinstance(payload, NavigationPayload):
                row.update(zip(('pos_x', 'pos_y', 'pos_z'), payload.position))
                row.update(zip(('vel_x', 'vel_y', 'vel_z'), payload.velocity))
            elif isinstance(payload, StatusPayload):
                row.update(phase=payload.phase, fuel_percent=payload.fuel_percent,
                           system_health=payload.system_health)
            elif isinstance(payload, SensorPayload):
                row.update(temperature=payload.temperature, pressure=payload.pressure,
                           radiation=payload.radiation)
            else:
                row.update(event_code=payload.event_code, message=payload.message)
            rows.append(row)

        if not rows:
            return pd.DataFrame(columns=['packet_id', 'timestamp_ms', 'subsystem',
                                         'payload_type', 'crc_valid'])
        return pd.DataFrame(rows).set_index('packet_id')

    def export_csv(self, path: Union[str, Path]) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.to_dataframe().to_csv(path)
        return path

    def export_sqlite(self, path: Union[str, Path], table: str = 'telemetry') -> int:
        """Write the packet table into a SQLite file; returns rows written."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        df = self.to_dataframe()
        conn = sqlite3.connect(str(path))
        try:
            df.to_sql(table, conn, if_exists='replace')
            conn.commit()
        finally:
            conn.close()
        return len(df)
