"""Custom exception classes for Roll Profile Viewer."""


class RollViewerError(Exception):
    """Base exception for all Roll Profile Viewer errors."""
    pass


class ConfigurationError(RollViewerError):
    """Color scale wired with invalid colors or boundaries."""
    pass


class ValidationError(RollViewerError):
    """Input validation failed."""
    pass


class BoundarySpanError(ConfigurationError, ValidationError):
    """Boundary values do not span a positive range."""
    pass
