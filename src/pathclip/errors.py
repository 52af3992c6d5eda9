# src/pathclip/errors.py


class PathclipError(Exception):
    """Base class for errors raised by pathclip."""


class InvalidConfigurationError(PathclipError):
    """Raised before any filesystem access when a Configuration is unusable."""
