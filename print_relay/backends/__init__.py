"""Output device backends."""

from .cups import CupsBackend

__all__ = ["CupsBackend"]
