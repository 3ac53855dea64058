"""
Unknown Files Checker
Finds files in core directories that are not part of the release checksums,
plus PHP files in must-use plugins and wp-content drop-in locations
"""

import os
import re

from .models import (
    Finding, FindingCategory,
    TAG_MU_PLUGIN_REVIEW, TAG_UNEXPECTED_DROPIN_REVIEW, TAG_KNOWN_DROPIN,
)
from .policy import DEFAULT_POLICY
from .tree_scanner import TreeScanner, SkipDecision


class UnknownFilesChecker:
    """Unknown/foreign file detector for core directories and sensitive locations"""

    # Plugins directory is left out on purpose: plugins are not in core checksums
    CORE_DIRS = ('wp-admin', 'wp-includes')
    CONTENT_DIR = 'wp-content'
    MU_PLUGINS_DIR = 'wp-content/mu-plugins'

    def __init__(self, policy=DEFAULT_POLICY, progress=None, cancel_token=None, follow_symlinks=True):
        self.policy = policy
        self.progress = progress
        self.cancel_token = cancel_token
        self.follow_symlinks = follow_symlinks
        self._generated = [re.compile(p) for p in policy.generated_file_patterns]

    def _scanner(self, report_every):
        return TreeScanner(
            progress=self.progress,
            cancel_token=self.cancel_token,
            report_every=report_every,
            follow_symlinks=self.follow_symlinks,
        )

    def check_for_unknown_files(self, root, manifest=None):
        """
        Check core directories and sensitive WordPress locations

        Args:
            root (str): Installation root
            manifest (ReferenceManifest): Core checksums. Without it the
                core-directory walk is skipped (every file would be unknown).

        Returns:
            list: Unknown findings
        """
        unknown = []

        if manifest is not None:
            for core_dir in self.CORE_DIRS:
                unknown.extend(self._scan_core_directory(root, core_dir, manifest))
        else:
            print("[!] No reference checksums: skipping unknown-file scan of core directories")

        unknown.extend(self.check_mu_plugins(root))
        unknown.extend(self.check_wp_content_dropins(root))

        return unknown

    def is_expected_generated_file(self, relative_path):
        """Files generated at runtime that never appear in checksums"""
        if self.policy.is_trusted_plugin_path(relative_path):
            return True
        return any(p.search(relative_path) for p in self._generated)

    def mu_plugin_skip_rule(self, relative_path, is_dir):
        if is_dir:
            return SkipDecision.CONTINUE
        if not self.policy.is_script(os.path.basename(relative_path)):
            return SkipDecision.SKIP_FILE
        return SkipDecision.CONTINUE

    def count_units(self, root, include_core=True):
        """Files this pass will visit (progress total)"""
        scanner = self._scanner(self.policy.core_report_every)
        total = 0
        if include_core:
            for core_dir in self.CORE_DIRS:
                total += scanner.count(os.path.join(root, core_dir), core_dir)
        total += scanner.count(os.path.join(root, self.MU_PLUGINS_DIR), self.MU_PLUGINS_DIR,
                               self.mu_plugin_skip_rule)
        return total

    def _scan_core_directory(self, root, core_dir, manifest):
        found = []
        dir_path = os.path.join(root, core_dir)
        if not os.path.isdir(dir_path):
            return found

        def visit(path, relative_path):
            if relative_path not in manifest and not self.is_expected_generated_file(relative_path):
                found.append(Finding(relative_path, FindingCategory.UNKNOWN))

        self._scanner(self.policy.core_report_every).walk(
            dir_path, core_dir, visit,
            label=lambda rel: f"Checking core directory: {rel.rsplit('/', 1)[0]}",
        )
        return found

    def check_mu_plugins(self, root):
        """Every must-use PHP file runs unconditionally: flag all for review"""
        found = []
        mu_dir = os.path.join(root, *self.MU_PLUGINS_DIR.split('/'))
        if not os.path.isdir(mu_dir):
            return found

        def visit(path, relative_path):
            found.append(Finding(relative_path, FindingCategory.UNKNOWN, TAG_MU_PLUGIN_REVIEW))

        self._scanner(self.policy.mu_plugin_report_every).walk(
            mu_dir, self.MU_PLUGINS_DIR, visit, self.mu_plugin_skip_rule,
            label=lambda rel: f"Checking MU plugin: {rel}",
        )
        return found

    def check_wp_content_dropins(self, root):
        """Direct PHP files in wp-content, known drop-ins included"""
        found = []
        content_dir = os.path.join(root, self.CONTENT_DIR)
        try:
            names = sorted(os.listdir(content_dir))
        except OSError:
            return found

        for name in names:
            if self.cancel_token is not None:
                self.cancel_token.raise_if_cancelled()
            if os.path.isdir(os.path.join(content_dir, name)) or not self.policy.is_script(name):
                continue
            if name == 'index.php':
                continue

            relative_path = f"{self.CONTENT_DIR}/{name}"
            if name not in self.policy.allowed_dropins:
                found.append(Finding(relative_path, FindingCategory.UNKNOWN, TAG_UNEXPECTED_DROPIN_REVIEW))
            else:
                found.append(Finding(relative_path, FindingCategory.UNKNOWN, TAG_KNOWN_DROPIN))
        return found
