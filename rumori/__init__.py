"""Rumori client services."""
__version__ = "1.0.0"
