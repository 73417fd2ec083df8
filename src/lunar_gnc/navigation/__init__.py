"""
===============================================================================
LUNAR GNC - Navigation Subsystem
===============================================================================
State estimation from noisy position fixes.

Modules:
    kalman_filter  -- Linear constant-velocity Kalman filter (6 states)
    sensor_noise   -- Seedable noise source that corrupts true position
===============================================================================
"""
