"""Tabletop audio library and real-time session sync."""

__version__ = "0.1.0"
