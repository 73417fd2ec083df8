"""
===============================================================================
LUNAR GNC - Control Package
===============================================================================
Attitude control for pointing the main engine along the commanded thrust.

Modules:
    attitude_control  -- Quaternion PD controller with rigid-body propagation
===============================================================================
"""
