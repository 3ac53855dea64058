"""
Error taxonomy for the integrity checker
"""


class IntegrityCheckError(Exception):
    """Base class for checker errors"""


class ManifestUnavailable(IntegrityCheckError):
    """Reference checksums could not be fetched or were malformed.

    Fatal to the checksum pass only; the other passes still run.
    """


class ScanCancelledError(IntegrityCheckError):
    """Raised when a caller cancels a running scan."""


class ConfigError(IntegrityCheckError):
    """Invalid configuration or policy file."""
