"""
Data models: findings, verification records and scan results
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Any, Optional

from .utils import get_timestamp


class FindingCategory(Enum):
    """Mutually exclusive finding categories within one pass"""
    MODIFIED = "modified"
    MISSING = "missing"
    UNKNOWN = "unknown"
    SUSPICIOUS = "suspicious"


# Risk annotations carried over from the stored-result format
TAG_MU_PLUGIN_REVIEW = 'MUST-USE PLUGIN - REVIEW CAREFULLY'
TAG_UNEXPECTED_DROPIN_REVIEW = 'UNEXPECTED DROP-IN FILE - REVIEW CAREFULLY'
TAG_KNOWN_DROPIN = 'KNOWN DROP-IN - VERIFY LEGITIMACY'
TAG_MU_PLUGIN_RISK = 'MU-PLUGIN - HIGHER RISK'
TAG_UNEXPECTED_DROPIN_RISK = 'UNEXPECTED DROP-IN - HIGH RISK'
TAG_SUSPICIOUS_DROPIN = 'SUSPICIOUS DROP-IN'

_ANNOTATION_RE = re.compile(r' \(.*\)$')


def strip_annotation(path: str) -> str:
    """Remove a trailing ' (TAG)' annotation from a displayed path."""
    return _ANNOTATION_RE.sub('', path)


@dataclass(frozen=True)
class Finding:
    path: str
    category: FindingCategory
    risk_tag: Optional[str] = None
    reason: Optional[str] = None

    def display(self) -> str:
        if self.risk_tag:
            return f"{self.path} ({self.risk_tag})"
        return self.path

    def to_dict(self) -> dict[str, Any]:
        return {
            'path': self.path,
            'category': self.category.value,
            'risk_tag': self.risk_tag,
            'reason': self.reason,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Finding":
        return cls(
            path=data['path'],
            category=FindingCategory(data['category']),
            risk_tag=data.get('risk_tag'),
            reason=data.get('reason'),
        )


@dataclass(frozen=True)
class ReferenceManifest:
    """Expected path -> md5 mapping for one release/locale."""
    version: str
    locale: str
    checksums: Any  # read-only mapping

    def __contains__(self, path: str) -> bool:
        return path in self.checksums

    def __len__(self) -> int:
        return len(self.checksums)

    def get(self, path: str) -> Optional[str]:
        return self.checksums.get(path)


@dataclass(frozen=True)
class FileVerification:
    path: str
    package_slug: str
    local_hash: str
    reference_hash: str
    reference_url: str


@dataclass(frozen=True)
class PackageRef:
    slug: str
    name: str


@dataclass(frozen=True)
class VerificationError:
    path: str
    message: str


@dataclass
class VerificationResult:
    verified: list[FileVerification] = field(default_factory=list)
    modified: list[FileVerification] = field(default_factory=list)
    not_hosted: list[PackageRef] = field(default_factory=list)
    errors: list[VerificationError] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.verified or self.modified or self.not_hosted or self.errors)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VerificationResult":
        return cls(
            verified=[FileVerification(**v) for v in data.get('verified', [])],
            modified=[FileVerification(**v) for v in data.get('modified', [])],
            not_hosted=[PackageRef(**p) for p in data.get('not_hosted', [])],
            errors=[VerificationError(**e) for e in data.get('errors', [])],
        )


@dataclass
class ScanResult:
    modified: list[Finding] = field(default_factory=list)
    missing: list[Finding] = field(default_factory=list)
    unknown: list[Finding] = field(default_factory=list)
    suspicious: list[Finding] = field(default_factory=list)
    verification: Optional[VerificationResult] = None
    timestamp: str = field(default_factory=get_timestamp)
    manifest_version: Optional[str] = None
    manifest_locale: Optional[str] = None
    manifest_error: Optional[str] = None

    def has_issues(self) -> bool:
        if self.modified or self.missing or self.unknown or self.suspicious:
            return True
        v = self.verification
        return bool(v and (v.modified or v.not_hosted or v.errors))

    def counts(self) -> dict[str, int]:
        v = self.verification or VerificationResult()
        return {
            'modified': len(self.modified),
            'missing': len(self.missing),
            'unknown': len(self.unknown),
            'suspicious': len(self.suspicious),
            'verified_upstream': len(v.verified),
            'modified_upstream': len(v.modified),
            'not_hosted': len(v.not_hosted),
            'verification_errors': len(v.errors),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            'modified_files': [f.to_dict() for f in self.modified],
            'missing_files': [f.to_dict() for f in self.missing],
            'unknown_files': [f.to_dict() for f in self.unknown],
            'suspicious_files': [f.to_dict() for f in self.suspicious],
            'verification': self.verification.to_dict() if self.verification else None,
            'timestamp': self.timestamp,
            'manifest_version': self.manifest_version,
            'manifest_locale': self.manifest_locale,
            'manifest_error': self.manifest_error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ScanResult":
        verification = data.get('verification')
        return cls(
            modified=[Finding.from_dict(f) for f in data.get('modified_files', [])],
            missing=[Finding.from_dict(f) for f in data.get('missing_files', [])],
            unknown=[Finding.from_dict(f) for f in data.get('unknown_files', [])],
            suspicious=[Finding.from_dict(f) for f in data.get('suspicious_files', [])],
            verification=VerificationResult.from_dict(verification) if verification else None,
            timestamp=data.get('timestamp') or get_timestamp(),
            manifest_version=data.get('manifest_version'),
            manifest_locale=data.get('manifest_locale'),
            manifest_error=data.get('manifest_error'),
        )
