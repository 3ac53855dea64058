import json

import pytest

from wp_integrity.config import ScannerConfig, load_config
from wp_integrity.errors import ConfigError
from wp_integrity.policy import DEFAULT_POLICY, load_policy
from wp_integrity.report import save_report, summarize
from wp_integrity.models import (
    FileVerification, Finding, FindingCategory, ScanResult, VerificationResult,
    TAG_UNEXPECTED_DROPIN_REVIEW,
)
from wp_integrity.utils import detect_wordpress_version

from conftest import write_file


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in ('WPFIC_ROOT', 'WPFIC_VERSION', 'WPFIC_LOCALE', 'WPFIC_VERIFY',
                 'WPFIC_TIMEOUT', 'WPFIC_STORE', 'WPFIC_POLICY'):
        monkeypatch.delenv(name, raising=False)


def test_defaults_without_config_file():
    config = load_config()
    assert config == ScannerConfig()
    assert config.request_timeout == 15.0
    assert config.verify_with_upstream is True


def test_file_then_env_then_overrides(tmp_path, monkeypatch):
    (tmp_path / 'config.json').write_text(json.dumps({
        'scanner': {'root': '/srv/site', 'request_timeout': 5, 'history_size': 3},
    }))
    monkeypatch.setenv('WPFIC_TIMEOUT', '9')
    monkeypatch.setenv('WPFIC_VERIFY', 'no')

    config = load_config(locale='fr_FR', version=None)

    assert config.root == '/srv/site'
    assert config.request_timeout == 9.0
    assert config.verify_with_upstream is False
    assert config.history_size == 3
    assert config.locale == 'fr_FR'
    assert config.version is None


def test_config_errors(tmp_path, monkeypatch):
    with pytest.raises(ConfigError):
        load_config('does-not-exist.json')

    (tmp_path / 'config.json').write_text('{"unknown_key": 1}')
    with pytest.raises(ConfigError):
        load_config()

    (tmp_path / 'config.json').write_text('{broken')
    with pytest.raises(ConfigError):
        load_config()

    (tmp_path / 'config.json').write_text('{"scanner": "oops"}')
    with pytest.raises(ConfigError, match="'scanner' must be a JSON object"):
        load_config()

    (tmp_path / 'config.json').write_text('{}')
    monkeypatch.setenv('WPFIC_TIMEOUT', 'soon')
    with pytest.raises(ConfigError):
        load_config()


def test_policy_overlay(tmp_path):
    path = tmp_path / 'policy.yaml'
    path.write_text("allowed_dropins:\n  - db.php\nplugin_report_every: 10\n")

    policy = load_policy(str(path))

    assert policy.allowed_dropins == frozenset({'db.php'})
    assert policy.plugin_report_every == 10
    assert policy.safe_extensions == DEFAULT_POLICY.safe_extensions
    assert load_policy(None) is DEFAULT_POLICY


@pytest.mark.parametrize('text', ["- just\n- a list\n", "bogus_key: 1\n", "a: [unclosed\n"])
def test_policy_errors(tmp_path, text):
    path = tmp_path / 'policy.yaml'
    path.write_text(text)
    with pytest.raises(ConfigError):
        load_policy(str(path))


@pytest.mark.parametrize('text', [
    "plugin_report_every: often\n",
    "plugin_report_every: 0\n",
    "allowed_dropins: 5\n",
    "allowed_dropins: db.php\n",
    "generated_file_patterns:\n  - '(unclosed'\n",
])
def test_policy_bad_values_raise_config_error(tmp_path, text):
    path = tmp_path / 'policy.yaml'
    path.write_text(text)
    key = text.split(':', 1)[0]
    with pytest.raises(ConfigError, match=f"Invalid value for policy key {key}"):
        load_policy(str(path))


def test_detect_wordpress_version(tmp_path):
    write_file(tmp_path, 'wp-includes/version.php',
               "<?php\n$wp_version = '6.5';\n$wp_local_package = 'de_DE';\n")
    assert detect_wordpress_version(tmp_path) == ('6.5', 'de_DE')
    assert detect_wordpress_version(tmp_path / 'missing') == (None, None)


def test_summary_and_report(tmp_path):
    result = ScanResult(
        unknown=[Finding('wp-content/cache.php', FindingCategory.UNKNOWN, TAG_UNEXPECTED_DROPIN_REVIEW)],
        suspicious=[Finding('wp-content/plugins/a/shell.php', FindingCategory.SUSPICIOUS,
                            reason='Suspicious filename keyword: shell')],
        verification=VerificationResult(modified=[
            FileVerification('wp-content/plugins/a/shell.php', 'a', '1', '2', 'https://example.org/x'),
        ]),
    )

    summary = summarize(result)
    assert summary['unexpected_dropins'] == ['wp-content/cache.php']
    assert summary['unknown_files'] == [f'wp-content/cache.php ({TAG_UNEXPECTED_DROPIN_REVIEW})']
    assert summary['verification']['modified'][0]['plugin'] == 'a'

    path = save_report(result, tmp_path / 'out' / 'report.json')
    data = json.loads(path.read_text())
    assert ScanResult.from_dict(data['result']).verification.modified[0].reference_hash == '2'


def test_summary_annotates_theme_findings(tmp_path):
    write_file(tmp_path, 'wp-content/themes/shop/style.css',
               "/*\nTheme Name: Shop\nVersion: 3.1\nAuthor: Shop Co\n*/\n")
    result = ScanResult(
        modified=[
            Finding('wp-content/themes/shop/page-shop.php', FindingCategory.MODIFIED),
            Finding('wp-includes/load.php', FindingCategory.MODIFIED),
        ],
        missing=[Finding('wp-content/themes/shop/functions.php', FindingCategory.MISSING)],
    )

    summary = summarize(result, str(tmp_path))

    assert summary['critical_theme_files'] == ['wp-content/themes/shop/functions.php']
    assert list(summary['themes']) == ['shop']
    assert summary['themes']['shop']['name'] == 'Shop'
    assert summary['themes']['shop']['version'] == '3.1'

    without_root = summarize(result)
    assert without_root['critical_theme_files'] == ['wp-content/themes/shop/functions.php']
    assert without_root['themes'] == {}
