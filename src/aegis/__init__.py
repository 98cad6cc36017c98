"""Aegis: campus grievance, academics and opportunities backend."""

__version__ = "0.1.0"
