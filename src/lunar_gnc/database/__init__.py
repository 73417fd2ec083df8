"""
===============================================================================
LUNAR GNC - Telemetry Data Handling
===============================================================================
Telemetry packet construction, CRC protection, binary serialization, and a
pandas export of the packet log for post-run analysis.

Submodules:
    telemetry_log -- TelemetryPacket and TelemetryLogger
===============================================================================
"""
