"""
Integrity Scanner
Runs the checksum, unknown-file and suspicious-file passes in order, filters
theme noise, optionally verifies suspicious plugin files upstream, then
stores the result and notifies when anything was found.
"""

import requests

from .checksum_comparator import ChecksumClient, ChecksumComparator, skip_bundled_plugins
from .config import ScannerConfig
from .content_classifier import ContentClassifier
from .errors import ManifestUnavailable, ScanCancelledError
from .models import ScanResult
from .plugin_verifier import PluginVerifier
from .policy import load_policy
from .progress import ProgressTracker
from .report import summarize
from .store import ResultStore, open_store
from .suspicious_files_checker import SuspiciousFilesChecker
from .theme_file_filter import ThemeFileFilter
from .unknown_files_checker import UnknownFilesChecker
from .utils import detect_wordpress_version

DEFAULT_LOCALE = 'en_US'


class IntegrityScanner:
    """Scan orchestrator: one synchronous pass over a WordPress installation"""

    def __init__(self, config=None, session=None, store=None, progress=None, cancel_token=None,
                 notifier=None, policy=None):
        self.config = config or ScannerConfig()
        self.policy = policy or load_policy(self.config.policy_file)
        self.session = session or requests.Session()
        self.store = store if store is not None else open_store(self.config.store_path)
        self.result_store = ResultStore(self.store, ttl=self.config.result_ttl,
                                        history_size=self.config.history_size)
        self.progress = progress or ProgressTracker(self.store, ttl=self.config.progress_ttl)
        self.cancel_token = cancel_token
        self.notifier = notifier

        self.classifier = ContentClassifier()
        self.theme_filter = ThemeFileFilter(self.policy)
        self.results = ScanResult()

    @property
    def root(self):
        return self.config.root

    def check_file_integrity(self):
        """
        Run every local pass, store the result and notify on issues

        Returns:
            ScanResult: Findings of this run
        """
        self._run_checks()
        self.progress.complete('Scan complete')
        self._finish()
        return self.results

    def verify_suspicious_files(self):
        """
        Verify the current suspicious list against the upstream plugin repository

        Returns:
            bool: False when there was nothing to verify
        """
        if not self.results.suspicious:
            return False

        standalone = not self.progress.active
        if standalone:
            self.progress.start(len(self.results.suspicious), 'Starting upstream verification...')
        else:
            self.progress.add_units(len(self.results.suspicious))

        self._verify()

        if standalone:
            self.progress.complete('Verification complete')
        self.result_store.save(self.results)
        return True

    def check_file_integrity_with_verification(self):
        """Local passes followed by upstream verification of suspicious files"""
        self._run_checks()
        if self.results.suspicious:
            self.progress.add_units(len(self.results.suspicious))
            self._verify()
        self.progress.complete('Scan complete')
        self._finish()
        return self.results

    def perform_scheduled_check(self):
        """Entry point for periodic runs"""
        if self.config.verify_with_upstream:
            return self.check_file_integrity_with_verification()
        return self.check_file_integrity()

    def load_stored_scan_results(self):
        """
        Restore the most recent stored result

        Returns:
            bool: True when a stored result was found
        """
        stored = self.result_store.latest()
        if stored is None:
            return False
        self.results = stored
        return True

    def _run_checks(self):
        self.results = ScanResult()
        root = self.root

        print("=" * 80)
        print("WORDPRESS FILE INTEGRITY CHECK")
        print("=" * 80)
        print(f"\n[+] Installation root: {root}")

        version, locale = self.config.version, self.config.locale
        if not version or not locale:
            detected_version, detected_locale = detect_wordpress_version(root)
            version = version or detected_version
            locale = locale or detected_locale
        locale = locale or DEFAULT_LOCALE
        self.results.manifest_version = version
        self.results.manifest_locale = locale

        manifest = self._fetch_manifest(version, locale)

        comparator = ChecksumComparator(self.progress, self.cancel_token)
        unknown_checker = UnknownFilesChecker(self.policy, self.progress, self.cancel_token,
                                              self.config.follow_symlinks)
        suspicious_checker = SuspiciousFilesChecker(self.classifier, self.policy, self.progress,
                                                    self.cancel_token, self.config.follow_symlinks)

        skip = lambda path: skip_bundled_plugins(path, self.policy)
        total = unknown_checker.count_units(root, include_core=manifest is not None)
        total += suspicious_checker.count_units(root)
        if manifest is not None:
            total += comparator.count_units(manifest, skip)
        self.progress.start(total, 'Starting file integrity check...')

        try:
            if manifest is not None:
                print("\n[+] STEP 1: Comparing core files with reference checksums...")
                self.progress.report(0, 'Checking core files...')
                modified, missing = comparator.compare(manifest, root, skip)
                self.results.modified = modified
                self.results.missing = missing
                print(f"[i] {len(modified)} modified, {len(missing)} missing core file(s)")

            print("\n[+] STEP 2: Looking for unknown files...")
            self.progress.report(self.progress.snapshot()['processed_files'], 'Checking for unknown files...')
            self.results.unknown = unknown_checker.check_for_unknown_files(root, manifest)
            print(f"[i] {len(self.results.unknown)} unknown file(s)")

            print("\n[+] STEP 3: Scanning for suspicious files...")
            self.results.suspicious = suspicious_checker.check_for_suspicious_files(root)
            print(f"[i] {len(self.results.suspicious)} suspicious file(s) "
                  f"out of {suspicious_checker.files_scanned} scanned")
        except ScanCancelledError:
            print("\n[[X]] Scan cancelled")
            self.progress.report(self.progress.snapshot()['processed_files'], 'Scan cancelled')
            raise

        self.results.modified = self.theme_filter.filter_modified_files(self.results.modified)

    def _fetch_manifest(self, version, locale):
        client = ChecksumClient(
            self.config.checksums_api_url,
            session=self.session,
            timeout=self.config.request_timeout,
            user_agent=self.config.user_agent,
        )
        try:
            if self.cancel_token is not None:
                self.cancel_token.raise_if_cancelled()
            manifest = client.fetch_manifest(version, locale)
        except ManifestUnavailable as e:
            print(f"[[X]] Could not retrieve WordPress checksums: {e}")
            print("[!] Skipping checksum comparison; other checks continue")
            self.results.manifest_error = str(e)
            return None

        print(f"[[OK]] Loaded {len(manifest)} reference checksums for WordPress {version} ({locale})")
        return manifest

    def _verify(self):
        verifier = PluginVerifier(
            self.root,
            session=self.session,
            timeout=self.config.request_timeout,
            svn_url=self.config.plugins_svn_url,
            api_url=self.config.plugins_api_url,
            user_agent=self.config.user_agent,
            progress=self.progress,
            cancel_token=self.cancel_token,
            report_every=self.policy.verify_report_every,
        )
        self.results.verification = verifier.verify_plugin_files(self.results.suspicious)

    def _finish(self):
        self.result_store.save(self.results)
        if self.results.has_issues():
            print("\n[!] Issues found")
            if self.notifier is not None:
                self.notifier(self.results, summarize(self.results, self.root))
        elif self.results.manifest_error:
            print("\n[!] Scan incomplete: core checksums unavailable, no other issues found")
        else:
            print("\n[[OK]] No integrity issues found")
