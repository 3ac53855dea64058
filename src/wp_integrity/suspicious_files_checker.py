"""
Suspicious Files Checker
Scans plugins, must-use plugins and wp-content drop-ins for files that look
malicious. Kept apart from the unknown-files pass so legitimate plugins are
never reported as "unknown".
"""

import os
import re

from .content_classifier import ContentClassifier
from .models import (
    Finding, FindingCategory,
    TAG_MU_PLUGIN_RISK, TAG_UNEXPECTED_DROPIN_RISK, TAG_SUSPICIOUS_DROPIN,
)
from .policy import DEFAULT_POLICY
from .tree_scanner import TreeScanner, SkipDecision

_PLUGIN_SLUG_RE = re.compile(r'wp-content/plugins/([^/]+)/')


class SuspiciousFilesChecker:
    """Suspicious file scanner with directory-specific severity tagging"""

    PLUGINS_DIR = 'wp-content/plugins'
    MU_PLUGINS_DIR = 'wp-content/mu-plugins'
    CONTENT_DIR = 'wp-content'

    def __init__(self, classifier=None, policy=DEFAULT_POLICY, progress=None, cancel_token=None,
                 follow_symlinks=True):
        self.classifier = classifier or ContentClassifier()
        self.policy = policy
        self.progress = progress
        self.cancel_token = cancel_token
        self.follow_symlinks = follow_symlinks
        self.files_scanned = 0

    def _scanner(self, report_every):
        return TreeScanner(
            progress=self.progress,
            cancel_token=self.cancel_token,
            report_every=report_every,
            follow_symlinks=self.follow_symlinks,
        )

    def _report(self, label):
        if self.progress is not None:
            self.progress.report(self.progress.snapshot()['processed_files'], label)

    def check_for_suspicious_files(self, root):
        """
        Check plugins directory and other sensitive locations

        Args:
            root (str): Installation root

        Returns:
            list: Suspicious findings
        """
        suspicious = []
        self.files_scanned = 0

        self._report('Starting suspicious files scan...')
        suspicious.extend(self.scan_plugins(root))

        self._report('Scanning must-use plugins...')
        suspicious.extend(self.scan_mu_plugins(root))

        self._report('Checking wp-content drop-ins...')
        suspicious.extend(self.scan_wp_content_dropins(root))

        self._report('Suspicious files scan complete')
        return suspicious

    def plugin_skip_rule(self, relative_path, is_dir):
        candidate = relative_path + '/' if is_dir else relative_path
        if self.policy.is_trusted_plugin_path(candidate) or self.policy.is_excluded_path(candidate):
            return SkipDecision.SKIP_SUBTREE if is_dir else SkipDecision.SKIP_FILE
        if not is_dir and self.policy.has_safe_extension(os.path.basename(relative_path)):
            return SkipDecision.SKIP_FILE
        return SkipDecision.CONTINUE

    def mu_plugin_skip_rule(self, relative_path, is_dir):
        if not is_dir and not self.policy.is_script(os.path.basename(relative_path)):
            return SkipDecision.SKIP_FILE
        return SkipDecision.CONTINUE

    def count_units(self, root):
        """Files this pass will visit (progress total)"""
        total = self._scanner(1).count(
            os.path.join(root, *self.PLUGINS_DIR.split('/')), self.PLUGINS_DIR, self.plugin_skip_rule)
        total += self._scanner(1).count(
            os.path.join(root, *self.MU_PLUGINS_DIR.split('/')), self.MU_PLUGINS_DIR, self.mu_plugin_skip_rule)
        return total

    def scan_plugins(self, root):
        """General plugin files: shallow classification, no extra tag"""
        found = []
        plugins_dir = os.path.join(root, *self.PLUGINS_DIR.split('/'))
        if not os.path.isdir(plugins_dir):
            return found

        def visit(path, relative_path):
            self.files_scanned += 1
            result = self.classifier.classify(os.path.basename(relative_path), path, deep_scan=False)
            if result.suspicious:
                found.append(Finding(relative_path, FindingCategory.SUSPICIOUS, reason=result.reason))

        self._scanner(self.policy.plugin_report_every).walk(
            plugins_dir, self.PLUGINS_DIR, visit, self.plugin_skip_rule,
            label=self._plugin_label,
        )
        return found

    def scan_mu_plugins(self, root):
        """Must-use plugin scripts always get a deep scan"""
        found = []
        mu_dir = os.path.join(root, *self.MU_PLUGINS_DIR.split('/'))
        if not os.path.isdir(mu_dir):
            return found

        def visit(path, relative_path):
            self.files_scanned += 1
            result = self.classifier.classify(os.path.basename(relative_path), path, deep_scan=True)
            if result.suspicious:
                found.append(Finding(relative_path, FindingCategory.SUSPICIOUS, TAG_MU_PLUGIN_RISK, result.reason))

        self._scanner(self.policy.mu_plugin_report_every).walk(
            mu_dir, self.MU_PLUGINS_DIR, visit, self.mu_plugin_skip_rule,
            label=lambda rel: f"Checking MU plugin: {rel}",
        )
        return found

    def scan_wp_content_dropins(self, root):
        """Unlisted drop-ins are flagged outright; listed ones get a deep scan"""
        found = []
        content_dir = os.path.join(root, self.CONTENT_DIR)
        try:
            names = sorted(os.listdir(content_dir))
        except OSError:
            return found

        allowed = self.policy.allowed_dropins | {'index.php'}
        for name in names:
            if self.cancel_token is not None:
                self.cancel_token.raise_if_cancelled()
            path = os.path.join(content_dir, name)
            if os.path.isdir(path) or not self.policy.is_script(name):
                continue

            relative_path = f"{self.CONTENT_DIR}/{name}"
            self.files_scanned += 1
            self._report(f"Checking wp-content file: {name}")

            if name not in allowed:
                found.append(Finding(relative_path, FindingCategory.SUSPICIOUS, TAG_UNEXPECTED_DROPIN_RISK,
                                     'Unexpected drop-in file'))
                continue

            result = self.classifier.classify(name, path, deep_scan=True)
            if result.suspicious:
                found.append(Finding(relative_path, FindingCategory.SUSPICIOUS, TAG_SUSPICIOUS_DROPIN, result.reason))
        return found

    def _plugin_label(self, relative_path):
        match = _PLUGIN_SLUG_RE.search(relative_path)
        name = match.group(1) if match else os.path.basename(os.path.dirname(relative_path))
        return f"Scanning plugin: {name}"
