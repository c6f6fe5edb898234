"""Kesslerlog - a personal game diary: cycles, play sessions, reviews and stats."""

__version__ = "0.1.0"
