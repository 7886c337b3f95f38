class StopgapError(Exception):
    """Base error for all user-facing Stopgap exceptions."""


class ConfigurationError(StopgapError):
    """Raised when configuration is invalid or incomplete."""


class ProjectNotInitializedError(StopgapError):
    """Raised when .stopgap metadata is missing."""


class ValidationError(StopgapError):
    """Raised when model invariants fail."""


class PersistenceError(StopgapError):
    """Raised when the registry or redirect table cannot be read or written."""


class DetectionError(StopgapError):
    """Raised when a detection or cleanup run cannot be started."""


class SiteIndexError(StopgapError):
    """Raised when the sitemap cannot be read, parsed or written."""
