"""Typed errors surfaced to callers of the recognition subsystem.

Only structural and configuration failures propagate. Detector and scale
strategy failures are recovered where they happen and never reach here.
"""

from __future__ import annotations


class HexGridError(Exception):
    """Base class for every error raised by ``hexgrid_scanner``."""


class LayoutError(HexGridError, ValueError):
    """The screenshot cannot be mapped onto a complete set of icon slots."""


class ConfigurationError(HexGridError, ValueError):
    """A configuration value is out of range or inconsistent."""
