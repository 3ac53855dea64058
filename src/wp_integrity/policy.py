"""
Skip / Allow Policy
Static lists that decide what the scanners skip, trust or treat as noise
"""

import re
from dataclasses import dataclass, fields, replace
from pathlib import Path

import yaml

from .errors import ConfigError


@dataclass(frozen=True)
class SkipPolicy:
    """Read-only scanning policy. Loaded once per process."""

    # WordPress drop-ins that may legitimately live in wp-content/
    allowed_dropins: frozenset = frozenset({
        'advanced-cache.php',
        'blog-deleted.php',
        'blog-inactive.php',
        'blog-suspended.php',
        'db-error.php',
        'db.php',
        'maintenance.php',
        'object-cache.php',
        'php-error.php',
        'fatal-error-handler.php',
        'sunrise.php',
    })

    # Bundled plugins that users commonly delete or ignore
    trusted_plugin_prefixes: tuple = ('wp-content/plugins/akismet/',)
    trusted_plugin_files: frozenset = frozenset({'wp-content/plugins/hello.php'})

    # Vendored code, dependency caches and VCS metadata
    excluded_path_fragments: tuple = (
        'node_modules',
        '/vendor/',
        '/bower_components/',
        '/.git/',
        '/.svn/',
    )

    safe_extensions: frozenset = frozenset({
        'png', 'jpg', 'jpeg', 'gif', 'svg', 'css', 'js',
        'map', 'json', 'txt', 'md', 'html',
    })

    # Generated stylesheets that never appear in core checksums
    generated_file_patterns: tuple = (
        r'(?:^|/)wp-admin/css/colors/.+/colors(?:-rtl)?(?:\.min)?\.css$',
    )

    script_extension: str = '.php'

    customizable_theme_files: frozenset = frozenset({
        'style.css', 'rtl.css', 'functions.php', 'header.php', 'footer.php',
        'sidebar.php', 'sidebar-left.php', 'sidebar-right.php', 'comments.php',
        'single.php', 'page.php', 'archive.php', 'search.php', 'searchform.php',
        '404.php', 'front-page.php', 'home.php', 'index.php', 'content.php',
        'content-page.php', 'content-single.php', 'content-search.php',
        'content-none.php', 'author.php', 'category.php', 'tag.php',
        'taxonomy.php', 'date.php', 'readme.txt', 'screenshot.png',
        'custom.css', 'custom.js', 'editor-style.css', 'theme.json',
        'custom-header.php', 'custom-background.php',
    })

    customizable_theme_dirs: tuple = (
        '/css/', '/js/', '/custom/', '/assets/', '/img/', '/images/',
        '/fonts/', '/inc/', '/includes/', '/template-parts/', '/templates/',
        '/layouts/', '/customizer/', '/blocks/', '/patterns/',
    )

    theme_frameworks: tuple = (
        'twentytwenty', 'twentytwentyone', 'twentytwentytwo',
        'twentytwentythree', 'twentytwentyfour', 'twentytwentyfive',
        'astra', 'elementor', 'divi', 'avada', 'generatepress', 'oceanwp',
        'underscores', 'storefront', 'flatsome', 'kadence', 'bricks',
        'beaver-builder', 'buddyboss', 'bootstrap', 'genesis', 'enfold',
    )

    # Progress label cadence (files between step-label updates)
    plugin_report_every: int = 50
    mu_plugin_report_every: int = 10
    core_report_every: int = 50
    verify_report_every: int = 5

    def is_trusted_plugin_path(self, relative_path):
        if relative_path in self.trusted_plugin_files:
            return True
        return any(relative_path.startswith(p) for p in self.trusted_plugin_prefixes)

    def is_excluded_path(self, relative_path):
        return any(fragment in relative_path for fragment in self.excluded_path_fragments)

    def has_safe_extension(self, filename):
        if '.' not in filename:
            return False
        return filename.rsplit('.', 1)[1].lower() in self.safe_extensions

    def is_script(self, filename):
        return filename.lower().endswith(self.script_extension)


DEFAULT_POLICY = SkipPolicy()


def load_policy(path=None):
    """
    Load the scanning policy, overlaying a YAML file on the defaults

    Args:
        path: Optional YAML file. Keys match SkipPolicy field names.

    Returns:
        SkipPolicy: Policy instance
    """
    if not path:
        return DEFAULT_POLICY

    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read policy file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Malformed policy file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Policy file {path} must contain a mapping")

    known = {f.name: f for f in fields(SkipPolicy)}
    overrides = {}
    for key, value in data.items():
        if key not in known:
            raise ConfigError(f"Unknown policy key: {key}")
        try:
            overrides[key] = _coerce(key, value)
        except (TypeError, ValueError, re.error) as e:
            raise ConfigError(f"Invalid value for policy key {key}: {e}") from e

    return replace(DEFAULT_POLICY, **overrides)


def _coerce(key, value):
    default = getattr(DEFAULT_POLICY, key)
    if isinstance(default, (frozenset, tuple)):
        if isinstance(value, str) or not isinstance(value, (list, tuple, set, type(None))):
            raise TypeError(f"expected a list, got {type(value).__name__}")
        items = [str(v) for v in value or ()]
        if key == 'generated_file_patterns':
            for pattern in items:
                re.compile(pattern)
        return frozenset(items) if isinstance(default, frozenset) else tuple(items)
    if isinstance(default, int):
        if isinstance(value, bool):
            raise TypeError("expected an integer, got bool")
        number = int(value)
        if number < 1:
            raise ValueError(f"must be at least 1, got {number}")
        return number
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {type(value).__name__}")
    return value
