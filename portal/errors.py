"""
Error taxonomy for the qualification engine.

Transport and configuration failures are exceptions that bubble to the
HTTP boundary with their message intact. Validation outcomes (wrong secret,
missing notes, unscored sections) are returned as values by the component
that detects them and are never raised.
"""


class PortalError(Exception):
    """Base class for engine errors."""


class StoreError(PortalError):
    """The lead store was unreachable or answered with a non-2xx status."""

    def __init__(self, message, status_code=None):
        self.status_code = status_code
        super().__init__(message)


class ConfigurationError(PortalError):
    """Store coordinates are missing at boot. Fatal for the whole engine."""


class ImportSourceError(PortalError):
    """The roster sheet could not be downloaded or parsed."""
