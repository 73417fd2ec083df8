"""
===============================================================================
LUNAR GNC
===============================================================================
Guidance, navigation and control simulation of a lunar landing mission:
from a circular low Earth orbit through trans-lunar injection, lunar orbit
insertion and powered descent to touchdown.
===============================================================================
"""

__version__ = "0.1.0"
