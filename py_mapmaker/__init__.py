"""
Territory map assembly from administrative boundary data.
"""

__version__ = "0.1.0"
