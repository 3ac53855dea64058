"""
Tree Scanner
Recursive directory walker shared by the unknown-file and suspicious-file passes
"""

import os
from enum import Enum


class SkipDecision(Enum):
    CONTINUE = "continue"
    SKIP_FILE = "skip_file"
    SKIP_SUBTREE = "skip_subtree"


def _never_skip(relative_path, is_dir):
    return SkipDecision.CONTINUE


class TreeScanner:
    """
    Walks a directory tree in lexical order.

    - skip_rule(relative_path, is_dir) prunes files or whole subtrees
    - unreadable directories are reported once and skipped
    - symlinked directories are followed once per real path, so link
      cycles cannot recurse forever
    - every visited file advances the progress tracker; every
      ``report_every`` files a step label is published
    """

    def __init__(self, progress=None, cancel_token=None, report_every=50, follow_symlinks=True):
        self.progress = progress
        self.cancel_token = cancel_token
        self.report_every = max(1, int(report_every))
        self.follow_symlinks = follow_symlinks
        self.files_visited = 0

    def walk(self, root, relative_prefix, visit_file, skip_rule=None, label=None):
        """
        Visit every file under root

        Args:
            root: Absolute directory to walk
            relative_prefix: Relative path of root (e.g. 'wp-content/plugins')
            visit_file: callable(path, relative_path) for each file
            skip_rule: callable(relative_path, is_dir) -> SkipDecision
            label: callable(relative_path) -> step label for periodic reports

        Returns:
            int: Number of files visited
        """
        visited = 0
        for path, relative_path in self._iter_files(root, relative_prefix, skip_rule or _never_skip):
            self._check_cancelled()
            visited += 1
            self.files_visited += 1
            if self.progress is not None:
                step = None
                if label is not None and self.files_visited % self.report_every == 0:
                    step = label(relative_path)
                self.progress.advance(1, step)
            visit_file(path, relative_path)
        return visited

    def count(self, root, relative_prefix, skip_rule=None):
        """Number of files walk() would visit (no progress reporting)"""
        return sum(1 for _ in self._iter_files(root, relative_prefix, skip_rule or _never_skip, quiet=True))

    def _iter_files(self, root, relative_prefix, skip_rule, quiet=False):
        seen_dirs = set()
        real_root = self._real_path(root)
        if real_root is None:
            return
        seen_dirs.add(real_root)
        yield from self._iter_dir(root, relative_prefix.rstrip('/'), skip_rule, seen_dirs, quiet)

    def _iter_dir(self, dir_path, relative_path, skip_rule, seen_dirs, quiet):
        self._check_cancelled()
        try:
            with os.scandir(dir_path) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            if not quiet:
                print(f"[!] Cannot read directory {relative_path or dir_path}: {e.strerror or e}")
            return

        for entry in entries:
            if entry.name in ('.', '..'):
                continue
            entry_relative = f"{relative_path}/{entry.name}" if relative_path else entry.name

            try:
                is_symlink = entry.is_symlink()
                is_dir = entry.is_dir(follow_symlinks=self.follow_symlinks)
                is_file = not is_dir and entry.is_file(follow_symlinks=self.follow_symlinks)
            except OSError:
                continue

            if is_dir:
                if skip_rule(entry_relative, True) == SkipDecision.SKIP_SUBTREE:
                    continue
                if is_symlink:
                    real = self._real_path(entry.path)
                    if real is None or real in seen_dirs:
                        continue
                    seen_dirs.add(real)
                else:
                    # record real path so a later link back into it is not re-walked
                    real = self._real_path(entry.path)
                    if real is not None:
                        if real in seen_dirs:
                            continue
                        seen_dirs.add(real)
                yield from self._iter_dir(entry.path, entry_relative, skip_rule, seen_dirs, quiet)
            elif is_file:
                if skip_rule(entry_relative, False) != SkipDecision.CONTINUE:
                    continue
                yield entry.path, entry_relative

    def _check_cancelled(self):
        if self.cancel_token is not None:
            self.cancel_token.raise_if_cancelled()

    @staticmethod
    def _real_path(path):
        try:
            return os.path.realpath(path)
        except OSError:
            return None
