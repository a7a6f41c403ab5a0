"""
Exceptions raised by the sprite atlas pipeline.

Only structurally invalid input or configuration raises. An analysis that
finds nothing is a normal result (see AnalysisResult.success).
"""


class SpriteAtlasError(ValueError):
    """Base class for all errors raised by this package."""


class InputError(SpriteAtlasError):
    """The pixel buffer is missing, malformed or has zero width/height."""


class ConfigurationError(SpriteAtlasError):
    """A configuration value is invalid. Raised before any pixel processing."""


class AtlasError(SpriteAtlasError):
    """The atlas descriptor could not be built consistently."""
