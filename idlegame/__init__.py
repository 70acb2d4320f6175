"""Progression and persistence engine for an idle game."""

__version__ = "0.1.0"
