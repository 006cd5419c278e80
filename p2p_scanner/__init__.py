"""Resilient peer-to-peer exchange quote scanner."""

__version__ = "1.0.0"
