"""
Configuration: installation root, upstream endpoints, timeouts, storage.

Values come from an optional JSON config file, then environment variables
(a local .env file is loaded first).
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError

HOUR_IN_SECONDS = 3600
DAY_IN_SECONDS = 86400

DEFAULT_CONFIG_FILE = 'config.json'


@dataclass(frozen=True)
class ScannerConfig:
    root: str = '.'
    version: Optional[str] = None
    locale: Optional[str] = None
    verify_with_upstream: bool = True
    request_timeout: float = 15.0
    checksums_api_url: str = 'https://api.wordpress.org/core/checksums/1.0/'
    plugins_svn_url: str = 'https://plugins.svn.wordpress.org'
    plugins_api_url: str = 'https://api.wordpress.org/plugins/info/1.0'
    user_agent: str = 'wp-file-integrity-checker/1.0'
    follow_symlinks: bool = True
    store_path: Optional[str] = None
    result_ttl: int = DAY_IN_SECONDS
    progress_ttl: int = HOUR_IN_SECONDS
    history_size: int = 5
    policy_file: Optional[str] = None


# env var -> (field, parser)
_ENV_OVERRIDES = {
    'WPFIC_ROOT': ('root', str),
    'WPFIC_VERSION': ('version', str),
    'WPFIC_LOCALE': ('locale', str),
    'WPFIC_VERIFY': ('verify_with_upstream', lambda v: v.strip().lower() in ('1', 'true', 'yes', 'on')),
    'WPFIC_TIMEOUT': ('request_timeout', float),
    'WPFIC_STORE': ('store_path', str),
    'WPFIC_POLICY': ('policy_file', str),
}


def load_config(path=None, **overrides) -> ScannerConfig:
    """
    Build a ScannerConfig from file, environment and explicit overrides.

    Args:
        path: JSON config file. Defaults to ./config.json when present.
        **overrides: Field values that win over file and environment.

    Returns:
        ScannerConfig
    """
    load_dotenv()

    values = {}
    config_path = Path(path or DEFAULT_CONFIG_FILE)
    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Error loading config {config_path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config {config_path} must contain a JSON object")
        section = data.get('scanner', data)
        if not isinstance(section, dict):
            raise ConfigError(f"Config {config_path}: 'scanner' must be a JSON object")
        values.update(section)
    elif path:
        raise ConfigError(f"Config file not found: {config_path}")

    for env_name, (field_name, parse) in _ENV_OVERRIDES.items():
        raw = os.environ.get(env_name)
        if raw:
            try:
                values[field_name] = parse(raw)
            except ValueError as e:
                raise ConfigError(f"Invalid value for {env_name}: {raw}") from e

    values.update({k: v for k, v in overrides.items() if v is not None})

    known = {f.name for f in fields(ScannerConfig)}
    unknown = set(values) - known
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    return replace(ScannerConfig(), **values)
