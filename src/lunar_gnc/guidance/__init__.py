"""
===============================================================================
LUNAR GNC - Guidance Package
===============================================================================
Mission phase management and thrust command generation for the
Earth-to-Moon landing profile.

Modules:
    guidance_computer  : Five-phase state machine (Ascent, TLI, LOI,
                         Descent, Landed) and its per-phase thrust laws
===============================================================================
"""
