"""
WordPress File Integrity Checker
Core checksum verification, unknown/suspicious file detection and
upstream plugin verification
"""

__version__ = "0.1.0"

from .errors import IntegrityCheckError, ManifestUnavailable, ScanCancelledError, ConfigError
from .models import Finding, FindingCategory, ScanResult, VerificationResult
from .config import ScannerConfig, load_config
from .progress import CancellationToken, ProgressTracker
from .scanner import IntegrityScanner

__all__ = [
    "IntegrityCheckError",
    "ManifestUnavailable",
    "ScanCancelledError",
    "ConfigError",
    "Finding",
    "FindingCategory",
    "ScanResult",
    "VerificationResult",
    "ScannerConfig",
    "load_config",
    "CancellationToken",
    "ProgressTracker",
    "IntegrityScanner",
]
