"""Inspection center appointment scheduling and slot availability backend."""

__version__ = "0.1.0"
