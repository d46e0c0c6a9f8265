"""
Exception types raised while building a terrain scene.

Scene generation is a one-shot startup phase, so none of these are retried:
callers either fix their inputs or stop.
"""


class DemSceneError(Exception):
    """Base class for all scene-building errors."""


class ResourceUnavailable(DemSceneError, OSError):
    """A raster or vector source could not be opened or is unusable.

    Also raised for rasters whose min and max are equal, since such a raster
    cannot be normalized.
    """


class ConfigurationError(DemSceneError, ValueError):
    """Inputs are individually valid but cannot be combined as requested."""


class OverlayMismatch(DemSceneError, RuntimeError):
    """A scalar overlay replay did not land on the mesh's vertex count."""
