"""Quire, a rich-text document engine."""

__version__ = "0.1.0"
