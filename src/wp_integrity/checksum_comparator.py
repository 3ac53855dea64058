"""
Core Checksum Comparator
Fetches the reference checksums for the installed release and compares
every listed core file against the local copy
"""

import os
from types import MappingProxyType

import requests

from .errors import ManifestUnavailable
from .models import Finding, FindingCategory, ReferenceManifest
from .policy import DEFAULT_POLICY
from .utils import calculate_file_hash


class ChecksumClient:
    """Reference checksum source (api.wordpress.org core checksums)"""

    def __init__(self, api_url='https://api.wordpress.org/core/checksums/1.0/', session=None,
                 timeout=15, user_agent=None):
        self.api_url = api_url
        self.session = session or requests.Session()
        self.timeout = timeout
        self.headers = {'User-Agent': user_agent} if user_agent else {}

    def fetch_manifest(self, version, locale='en_US'):
        """
        Get the core checksums for a release

        Args:
            version (str): Installed release, e.g. '6.4.2'
            locale (str): Installed locale

        Returns:
            ReferenceManifest: Immutable path -> md5 mapping

        Raises:
            ManifestUnavailable: endpoint unreachable or response malformed
        """
        if not version:
            raise ManifestUnavailable("Installed version unknown; cannot request checksums")

        try:
            response = self.session.get(
                self.api_url,
                params={'version': version, 'locale': locale},
                headers=self.headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise ManifestUnavailable(f"Could not reach checksum service: {e}") from e

        if response.status_code != 200:
            raise ManifestUnavailable(f"Checksum service returned status {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise ManifestUnavailable("Checksum service returned malformed JSON") from e

        checksums = data.get('checksums') if isinstance(data, dict) else None
        # Multi-version responses nest the mapping under the version key
        if isinstance(checksums, dict) and isinstance(checksums.get(version), dict):
            checksums = checksums[version]

        if not checksums or not isinstance(checksums, dict):
            raise ManifestUnavailable(
                f"No checksums available for WordPress {version} ({locale})")

        return ReferenceManifest(
            version=version,
            locale=locale,
            checksums=MappingProxyType(dict(checksums)),
        )


def skip_bundled_plugins(relative_path, policy=DEFAULT_POLICY):
    """Default skip predicate: bundled plugins most sites delete or ignore"""
    return policy.is_trusted_plugin_path(relative_path)


class ChecksumComparator:
    """Compares manifest entries with local files: Missing and Modified findings"""

    def __init__(self, progress=None, cancel_token=None, algorithm='md5'):
        self.progress = progress
        self.cancel_token = cancel_token
        self.algorithm = algorithm

    def compare(self, manifest, root, skip=skip_bundled_plugins):
        """
        Compare every (non-skipped) manifest entry with the local tree

        Args:
            manifest (ReferenceManifest): Expected hashes
            root (str): Installation root
            skip: callable(relative_path) -> bool

        Returns:
            tuple: (modified findings, missing findings)
        """
        modified = []
        missing = []
        processed = 0

        for relative_path in sorted(manifest.checksums):
            if self.cancel_token is not None:
                self.cancel_token.raise_if_cancelled()

            if skip is not None and skip(relative_path):
                continue

            processed += 1
            if self.progress is not None:
                step = None
                if processed % 50 == 0:
                    step = f"Checking core file: {relative_path}"
                self.progress.advance(1, step)

            file_path = os.path.join(root, *relative_path.split('/'))
            if not os.path.isfile(file_path):
                missing.append(Finding(relative_path, FindingCategory.MISSING))
                continue

            try:
                file_hash = calculate_file_hash(file_path, self.algorithm)
            except OSError as e:
                print(f"[!] Cannot read {relative_path}: {e}")
                continue

            if file_hash != manifest.checksums[relative_path]:
                modified.append(Finding(relative_path, FindingCategory.MODIFIED))

        return modified, missing

    def count_units(self, manifest, skip=skip_bundled_plugins):
        """Number of entries compare() will check"""
        return sum(1 for p in manifest.checksums if not (skip and skip(p)))
