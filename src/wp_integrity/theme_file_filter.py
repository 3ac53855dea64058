"""
Theme File Filter
Suppresses "modified" noise from theme files that site owners routinely edit
"""

import os
import re
from pathlib import Path

from .models import Finding
from .policy import DEFAULT_POLICY
from .utils import read_file_headers

THEMES_PREFIX = 'wp-content/themes/'

_THEME_SLUG_RE = re.compile(r'^wp-content/themes/([^/]+)/')
_CHILD_THEME_RE = re.compile(r'^wp-content/themes/[^/]+-child/')
_HEADER_FIELDS = {
    'name': 'Theme Name',
    'version': 'Version',
    'author': 'Author',
    'template': 'Template',
}


class ThemeFileFilter:
    """Drop theme customizations from the Modified list"""

    CRITICAL_THEME_FILES = ('functions.php', 'index.php', 'style.css')

    def __init__(self, policy=DEFAULT_POLICY):
        self.policy = policy

    def filter_modified_files(self, modified_files):
        """
        Remove modified theme files that are expected customizations

        Args:
            modified_files (list): Findings (or plain paths)

        Returns:
            list: Remaining entries, order preserved
        """
        kept = [f for f in modified_files if not self.ignore_theme_file_modification(_path_of(f))]
        dropped = len(modified_files) - len(kept)
        if dropped:
            print(f"[i] Ignored {dropped} customized theme file(s)")
        return kept

    @staticmethod
    def is_theme_file(relative_path):
        return relative_path.startswith(THEMES_PREFIX)

    def ignore_theme_file_modification(self, relative_path):
        """True when a theme file change should not be reported"""
        if not self.is_theme_file(relative_path):
            return False

        if os.path.basename(relative_path) in self.policy.customizable_theme_files:
            return True

        if any(d in relative_path for d in self.policy.customizable_theme_dirs):
            return True

        # Child themes exist to be customized
        if _CHILD_THEME_RE.search(relative_path) or '-parent/' in relative_path:
            return True

        return any(framework in relative_path for framework in self.policy.theme_frameworks)

    def is_critical_theme_file(self, relative_path):
        """Files a theme cannot work without"""
        return os.path.basename(relative_path) in self.CRITICAL_THEME_FILES

    def get_theme_info(self, relative_path, root):
        """
        Theme metadata for the theme a file belongs to

        Args:
            relative_path (str): File path relative to root
            root (str): Installation root

        Returns:
            dict or None: slug, name, version, author, is_child, parent
        """
        if not self.is_theme_file(relative_path):
            return None

        match = _THEME_SLUG_RE.search(relative_path)
        if not match:
            return None

        slug = match.group(1)
        headers = read_theme_headers(Path(root) / 'wp-content' / 'themes' / slug / 'style.css')
        if headers is None:
            return None

        parent = None
        template = headers.get('template')
        if template and template != slug:
            parent_headers = read_theme_headers(Path(root) / 'wp-content' / 'themes' / template / 'style.css')
            parent = (parent_headers or {}).get('name') or template

        return {
            'slug': slug,
            'name': headers.get('name') or slug,
            'version': headers.get('version'),
            'author': headers.get('author'),
            'is_child': parent is not None,
            'parent': parent,
        }


def read_theme_headers(style_path):
    """Parse the comment header of a theme's style.css, None when absent"""
    return read_file_headers(style_path, _HEADER_FIELDS)


def _path_of(entry):
    return entry.path if isinstance(entry, Finding) else entry
