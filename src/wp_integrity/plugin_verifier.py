"""
Plugin File Verifier
Checks suspicious plugin files against the plugins.svn.wordpress.org repository

For every plugin hosted upstream, the local copy of a flagged file is hashed
and compared with the trunk copy (falling back to the stable tag). Plugins
that are not hosted upstream are reported once, by name.
"""

import os
import re
from urllib.parse import quote

import requests

from .models import (
    Finding, FileVerification, PackageRef, VerificationError, VerificationResult,
    strip_annotation,
)
from .utils import calculate_file_hash, calculate_content_hash, normalize_relative_path, read_file_headers

_PLUGIN_PATH_RE = re.compile(r'^wp-content/plugins/([^/]+)/(.+)$')


class PluginVerifier:
    """Upstream verification of plugin files (one instance per run)"""

    def __init__(self, root, session=None, timeout=15,
                 svn_url='https://plugins.svn.wordpress.org',
                 api_url='https://api.wordpress.org/plugins/info/1.0',
                 user_agent=None, progress=None, cancel_token=None, report_every=5):
        self.root = root
        self.session = session or requests.Session()
        self.timeout = timeout
        self.svn_url = svn_url.rstrip('/')
        self.api_url = api_url.rstrip('/')
        self.headers = {'User-Agent': user_agent} if user_agent else {}
        self.progress = progress
        self.cancel_token = cancel_token
        self.report_every = max(1, int(report_every))

        # slug -> True / False / error message (existence unknown)
        self._exists_cache = {}
        # slug -> stable version or None
        self._stable_cache = {}

    def verify_plugin_files(self, suspicious_files):
        """
        Verify suspicious files against the upstream plugin repository

        Args:
            suspicious_files (list): Findings or annotated path strings

        Returns:
            VerificationResult: verified / modified / not_hosted / errors
        """
        result = VerificationResult()
        if not suspicious_files:
            return result

        print(f"\n[+] Verifying {len(suspicious_files)} suspicious file(s) against plugins.svn.wordpress.org...")

        not_hosted = set()
        for index, entry in enumerate(suspicious_files, 1):
            path = normalize_relative_path(strip_annotation(entry.path if isinstance(entry, Finding) else entry))

            if self.progress is not None:
                step = None
                if index % self.report_every == 0:
                    step = f"Verifying plugin file: {os.path.basename(path)}"
                self.progress.advance(1, step)

            match = _PLUGIN_PATH_RE.match(path)
            if not match:
                continue

            slug, relative_path = match.group(1), match.group(2)
            if slug in not_hosted:
                continue

            exists = self.plugin_exists(slug)
            if exists is True:
                self._verify_file(slug, relative_path, path, result)
            elif exists is False:
                not_hosted.add(slug)
                result.not_hosted.append(PackageRef(slug, self.get_plugin_name(slug)))
            else:
                result.errors.append(VerificationError(path, exists))

        print(f"[[OK]] Verification complete: {len(result.verified)} verified, "
              f"{len(result.modified)} modified, {len(result.not_hosted)} not hosted, "
              f"{len(result.errors)} error(s)")
        return result

    def plugin_exists(self, slug):
        """
        Whether the plugin is hosted upstream (cached per run)

        Returns:
            True, False, or an error message when the check itself failed
        """
        if slug in self._exists_cache:
            return self._exists_cache[slug]

        self._report(f"Checking if {slug} exists on WordPress.org...")
        self._check_cancelled()
        try:
            response = self.session.head(
                f"{self.svn_url}/{quote(slug)}/trunk/",
                headers=self.headers,
                timeout=self.timeout,
            )
            exists = response.status_code == 200
        except requests.exceptions.RequestException as e:
            print(f"[!] Could not check {slug} upstream: {e}")
            exists = f"Error checking upstream repository: {e}"

        self._exists_cache[slug] = exists
        return exists

    def get_stable_version(self, slug):
        """Stable release from the plugin info API, None when unavailable"""
        if slug in self._stable_cache:
            return self._stable_cache[slug]

        self._report(f"Getting stable version of {slug}...")
        self._check_cancelled()
        version = None
        try:
            response = self.session.get(
                f"{self.api_url}/{quote(slug)}.json",
                headers=self.headers,
                timeout=self.timeout,
            )
            if response.status_code == 200:
                data = response.json()
                if isinstance(data, dict) and data.get('version'):
                    version = str(data['version'])
        except (requests.exceptions.RequestException, ValueError) as e:
            print(f"[!] Could not get stable version of {slug}: {e}")

        self._stable_cache[slug] = version
        return version

    def get_plugin_name(self, slug):
        """Name from the local plugin header, or a titleized slug"""
        plugin_dir = os.path.join(self.root, 'wp-content', 'plugins', slug)
        candidates = [
            os.path.join(plugin_dir, f"{slug}.php"),
            os.path.join(plugin_dir, 'index.php'),
        ]
        try:
            candidates.extend(
                os.path.join(plugin_dir, name)
                for name in sorted(os.listdir(plugin_dir))
                if name.lower().endswith('.php')
            )
        except OSError:
            pass

        for candidate in candidates:
            headers = read_file_headers(candidate, {'name': 'Plugin Name'})
            if headers and headers.get('name'):
                return headers['name']

        return slug.replace('-', ' ').title() + ' (Premium/Custom)'

    def _verify_file(self, slug, relative_path, path, result):
        self._report(f"Verifying {slug}/{relative_path} against WordPress.org...")

        local_path = os.path.join(self.root, *path.split('/'))
        if not os.path.isfile(local_path):
            result.errors.append(VerificationError(path, 'File not found in local installation'))
            return

        try:
            local_hash = calculate_file_hash(local_path, 'md5')
        except OSError as e:
            result.errors.append(VerificationError(path, f"Cannot read local file: {e}"))
            return

        quoted = quote(relative_path)
        url = f"{self.svn_url}/{quote(slug)}/trunk/{quoted}"
        try:
            content = self._fetch(url)
            if content is None:
                stable = self.get_stable_version(slug)
                if not stable:
                    result.errors.append(VerificationError(path, 'File not found in upstream repository'))
                    return
                url = f"{self.svn_url}/{quote(slug)}/tags/{quote(stable)}/{quoted}"
                content = self._fetch(url)
                if content is None:
                    result.errors.append(VerificationError(
                        path, 'File not found in upstream repository (trunk or stable tag)'))
                    return
        except requests.exceptions.RequestException as e:
            result.errors.append(VerificationError(path, f"Error fetching upstream file: {e}"))
            return

        reference_hash = calculate_content_hash(content, 'md5')
        record = FileVerification(path, slug, local_hash, reference_hash, url)
        if local_hash == reference_hash:
            result.verified.append(record)
        else:
            print(f"[!] Modified plugin file: {path}")
            result.modified.append(record)

    def _fetch(self, url):
        """Body bytes on 200, None otherwise (transport errors propagate)"""
        self._check_cancelled()
        response = self.session.get(url, headers=self.headers, timeout=self.timeout)
        if response.status_code != 200:
            return None
        return response.content

    def _report(self, label):
        if self.progress is not None:
            self.progress.report(self.progress.snapshot()['processed_files'], label)

    def _check_cancelled(self):
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()
