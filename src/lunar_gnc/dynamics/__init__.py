"""
===============================================================================
LUNAR GNC - Dynamics Package
===============================================================================
Translational dynamics of the vehicle under two-body gravity and thrust.

Submodules:
    gravity      -- Point-mass gravity, thrust acceleration, propellant flow
    integrators  -- Kinematic state and the Euler / RK4 steppers
===============================================================================
"""
