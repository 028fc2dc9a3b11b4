"""
anchorscan - anchored decoration spans and event-driven relationship scanning
"""

__version__ = "1.0.0"
