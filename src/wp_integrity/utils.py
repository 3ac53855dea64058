"""
Utility functions for the integrity checker
"""

import json
import os
import re
import tempfile
from pathlib import Path
from datetime import datetime, timezone
import hashlib


def calculate_file_hash(file_path, algorithm='md5'):
    """Calculate hash of a file"""
    hash_func = hashlib.new(algorithm)

    with open(file_path, 'rb') as f:
        for chunk in iter(lambda: f.read(8192), b''):
            hash_func.update(chunk)

    return hash_func.hexdigest()


def calculate_content_hash(content, algorithm='md5'):
    """Calculate hash of in-memory content (bytes or str)"""
    if isinstance(content, str):
        content = content.encode('utf-8')
    return hashlib.new(algorithm, content).hexdigest()


def save_json(data, file_path):
    """Save data to JSON file (written to a temp file, then swapped in)"""
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(dir=file_path.parent, prefix=f'.{file_path.name}.', suffix='.tmp')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        os.replace(tmp_name, file_path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def load_json(file_path):
    """Load data from JSON file"""
    with open(file_path, 'r', encoding='utf-8') as f:
        return json.load(f)


def get_timestamp():
    """Get current UTC timestamp"""
    return datetime.now(timezone.utc).isoformat()


def normalize_relative_path(path):
    """Forward-slash relative path without leading './' or '/'"""
    path = str(path).replace('\\', '/')
    while path.startswith('./'):
        path = path[2:]
    return path.lstrip('/')


_VERSION_RE = re.compile(r"\$wp_version\s*=\s*['\"]([^'\"]+)['\"]")
_LOCAL_PACKAGE_RE = re.compile(r"\$wp_local_package\s*=\s*['\"]([^'\"]+)['\"]")


def detect_wordpress_version(root):
    """
    Read the installed release from wp-includes/version.php

    Args:
        root: Installation root

    Returns:
        tuple: (version or None, locale or None)
    """
    version_file = Path(root) / 'wp-includes' / 'version.php'
    try:
        text = version_file.read_text(encoding='utf-8', errors='ignore')
    except OSError:
        return None, None

    version = _VERSION_RE.search(text)
    locale = _LOCAL_PACKAGE_RE.search(text)
    return (
        version.group(1) if version else None,
        locale.group(1) if locale else None,
    )


# WordPress reads file headers from the first 8 KiB only
HEADER_READ_BYTES = 8192


def read_file_headers(file_path, labels):
    """
    Parse 'Label: value' header lines (plugin main file, theme style.css)

    Args:
        file_path: File to read
        labels (dict): key -> header label, e.g. {'name': 'Plugin Name'}

    Returns:
        dict: key -> value for headers present, or None if unreadable
    """
    try:
        with open(file_path, 'rb') as f:
            text = f.read(HEADER_READ_BYTES).decode('utf-8', errors='ignore')
    except OSError:
        return None

    headers = {}
    for key, label in labels.items():
        match = re.search(rf'^[ \t/*#@]*{re.escape(label)}:(.*)$', text, re.MULTILINE | re.IGNORECASE)
        if match:
            value = re.sub(r'\s*(?:\*/|\?>).*$', '', match.group(1)).strip()
            if value:
                headers[key] = value
    return headers
