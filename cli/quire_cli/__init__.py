"""Quire command-line host."""

__version__ = "0.1.0"
