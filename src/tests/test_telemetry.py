"""
===============================================================================
LUNAR GNC - Telemetry Test Suite
===============================================================================
CRC-64 packet integrity, frame layout, logger id sequencing and the
pandas / CSV / SQLite exports.
===============================================================================
"""

import sys
import os
import sqlite3
import struct

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import pandas as pd
import pytest

from lunar_gnc.database.telemetry_log import (
    EventPayload,
    NavigationPayload,
    StatusPayload,
    SubsystemId,
    TelemetryLogger,
    TelemetryPacket,
    crc64,
)

HEADER_SIZE = struct.calcsize('<QIB')   # 13 bytes
CRC_SIZE = 8


@pytest.fixture
def logger_with_packets():
    tlm = TelemetryLogger()
    tlm.log_navigation([1.0, 2.0, 3.0], [4.0, 5.0, 6.0], timestamp_ms=1000)
    tlm.log_status(1, 87.5, 100, timestamp_ms=2000)
    tlm.log_sensors(21.5, 101.3, 0.12, timestamp_ms=3000)
    tlm.log_event(SubsystemId.GNC, 1001, "Phase: TRANS_LUNAR_INJECTION", timestamp_ms=4000)
    return tlm


class TestCRC:

    def test_deterministic(self):
        assert crc64(b"lunar") == crc64(b"lunar")

    def test_sensitive_to_data(self):
        assert crc64(b"lunar") != crc64(b"lunas")

    def test_empty_input_is_initial_value(self):
        assert crc64(b"") == 0xFFFFFFFFFFFFFFFF

    def test_fits_in_64_bits(self):
        assert 0 <= crc64(bytes(range(256))) <= 0xFFFFFFFFFFFFFFFF


class TestPacket:

    def test_fresh_packet_validates(self):
        packet = TelemetryPacket(1, SubsystemId.GNC, StatusPayload(2, 50.0, 100), 123)
        assert packet.validate()

    def test_tampered_header_fails(self):
        packet = TelemetryPacket(1, SubsystemId.GNC, StatusPayload(2, 50.0, 100), 123)
        packet.packet_id = 2
        assert not packet.validate()

    def test_navigation_frame_length(self):
        packet = TelemetryPacket(1, SubsystemId.GNC,
                                 NavigationPayload((0.0, 0.0, 0.0), (0.0, 0.0, 0.0)), 0)
        assert len(packet.to_bytes()) == HEADER_SIZE + 1 + 48 + CRC_SIZE

    def test_event_frame_length(self):
        packet = TelemetryPacket(1, SubsystemId.FDIR, EventPayload(7, "abc"), 0)
        assert len(packet.to_bytes()) == HEADER_SIZE + 1 + 4 + 3 + CRC_SIZE

    def test_frame_layout(self):
        packet = TelemetryPacket(9, SubsystemId.POWER, StatusPayload(3, 10.0, 0), 555)
        frame = packet.to_bytes()
        timestamp, packet_id, subsystem = struct.unpack('<QIB', frame[:HEADER_SIZE])
        assert (timestamp, packet_id, subsystem) == (555, 9, int(SubsystemId.POWER))
        assert frame[HEADER_SIZE] == StatusPayload.TAG
        assert struct.unpack('<Q', frame[-CRC_SIZE:])[0] == packet.crc

    def test_wall_clock_default_timestamp(self):
        packet = TelemetryPacket(1, SubsystemId.GNC, StatusPayload(0, 0.0, 0))
        assert packet.timestamp_ms > 0

    def test_packet_id_range(self):
        with pytest.raises(ValueError):
            TelemetryPacket(2 ** 32, SubsystemId.GNC, StatusPayload(0, 0.0, 0), 0)


class TestLogger:

    def test_ids_start_at_one_and_increase(self, logger_with_packets):
        ids = [p.packet_id for p in logger_with_packets.packets]
        assert ids == [1, 2, 3, 4]
        assert len(logger_with_packets) == 4
        assert logger_with_packets.next_id == 5

    def test_all_packets_validate(self, logger_with_packets):
        assert all(p.validate() for p in logger_with_packets.packets)

    def test_status_comes_from_fdir(self, logger_with_packets):
        assert logger_with_packets.packets[1].subsystem == SubsystemId.FDIR

    def test_summary(self, logger_with_packets):
        summary = logger_with_packets.export_summary()
        assert summary.startswith("=== TELEMETRY LOG ===")
        assert "Total packets: 4" in summary
        assert "EVENT [1001] Phase: TRANS_LUNAR_INJECTION" in summary

    def test_empty_summary(self):
        assert "Total packets: 0" in TelemetryLogger().export_summary()

    def test_dataframe(self, logger_with_packets):
        df = logger_with_packets.to_dataframe()
        assert list(df.index) == [1, 2, 3, 4]
        assert df.loc[1, 'pos_x'] == 1.0
        assert df.loc[2, 'fuel_percent'] == pytest.approx(87.5)
        assert df.loc[4, 'event_code'] == 1001
        assert pd.isna(df.loc[1, 'fuel_percent'])
        assert df['crc_valid'].all()

    def test_empty_dataframe(self):
        df = TelemetryLogger().to_dataframe()
        assert df.empty
        assert 'timestamp_ms' in df.columns

    def test_csv_export(self, logger_with_packets, tmp_path):
        path = logger_with_packets.export_csv(tmp_path / "out" / "telemetry.csv")
        df = pd.read_csv(path, index_col='packet_id')
        assert len(df) == 4

    def test_sqlite_export(self, logger_with_packets, tmp_path):
        path = tmp_path / "telemetry.db"
        assert logger_with_packets.export_sqlite(path) == 4
        conn = sqlite3.connect(str(path))
        try:
            count = conn.execute("SELECT COUNT(*) FROM telemetry").fetchone()[0]
        finally:
            conn.close()
        assert count == 4
