"""Exceptions raised by the vision simulation."""

from __future__ import annotations


class VisionSimulationError(Exception):
    pass


class ConfigError(VisionSimulationError, ValueError):
    """World bounds that do not describe a whole number of tiles."""


class InitializationError(VisionSimulationError):
    """The terrain data source could not be loaded or parsed.

    Delivered through the ``on_ready`` callback of ``initialize``; the
    simulation stays not ready.
    """


class NotReadyError(VisionSimulationError, RuntimeError):
    """A query was made before terrain finished loading."""


class InvalidOriginError(VisionSimulationError, ValueError):
    """A visibility query was made from a cell outside the grid."""
