"""
===============================================================================
LUNAR GNC - Core Package
===============================================================================
Math primitives and constants shared by every GNC subsystem.

Modules:
    constants   -- Physical constants and the fixed Earth-Moon geometry
    quaternion  -- Unit quaternion algebra for the attitude controller
===============================================================================
"""
