import hashlib
import json

import pytest
import requests

from wp_integrity import cli
from wp_integrity.cli import exit_code_for, parse_cli_args
from wp_integrity.models import (
    FileVerification, Finding, FindingCategory, ScanResult, VerificationResult,
    TAG_UNEXPECTED_DROPIN_RISK,
)

from conftest import CORE_FILES, FakeResponse, FakeSession, write_file

CHECKSUMS_URL = 'https://api.wordpress.org/core/checksums/1.0/'


@pytest.fixture
def clean_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for name in ('WPFIC_ROOT', 'WPFIC_VERSION', 'WPFIC_LOCALE', 'WPFIC_VERIFY',
                 'WPFIC_TIMEOUT', 'WPFIC_STORE', 'WPFIC_POLICY'):
        monkeypatch.delenv(name, raising=False)


def test_parse_defaults():
    args = parse_cli_args([])
    assert args.root is None
    assert args.verify is None
    assert args.quiet is False


def test_parse_verify_flags():
    assert parse_cli_args(['--verify']).verify is True
    assert parse_cli_args(['--no-verify']).verify is False
    with pytest.raises(SystemExit):
        parse_cli_args(['--verify', '--no-verify'])


def test_parse_root_and_options():
    args = parse_cli_args(['/var/www', '--wp-version', '6.4.2', '--locale', 'de_DE',
                           '--json', 'out.json', '--quiet'])
    assert args.root == '/var/www'
    assert args.wp_version == '6.4.2'
    assert args.locale == 'de_DE'
    assert args.json_report == 'out.json'
    assert args.quiet is True


def test_exit_codes():
    assert exit_code_for(ScanResult()) == 0
    assert exit_code_for(ScanResult(manifest_error='offline')) == 3
    assert exit_code_for(ScanResult(
        unknown=[Finding('wp-admin/x.php', FindingCategory.UNKNOWN)], manifest_error='offline')) == 1
    assert exit_code_for(ScanResult(
        suspicious=[Finding('wp-content/x.php', FindingCategory.SUSPICIOUS, TAG_UNEXPECTED_DROPIN_RISK)])) == 2

    verification = VerificationResult(modified=[
        FileVerification('wp-content/plugins/a/a.php', 'a', '1', '2', 'https://example.org/a.php'),
    ])
    assert exit_code_for(ScanResult(verification=verification)) == 2


def test_main_clean_site_exits_zero_and_writes_report(wp_root, clean_env, monkeypatch, tmp_path):
    checksums = {p: hashlib.md5(c.encode()).hexdigest() for p, c in CORE_FILES.items()}
    session = FakeSession({('GET', CHECKSUMS_URL): FakeResponse(json_data={'checksums': checksums})})
    monkeypatch.setattr(requests, 'Session', lambda: session)
    report = tmp_path / 'report.json'

    with pytest.raises(SystemExit) as exc:
        cli.main([str(wp_root), '--no-verify', '--quiet', '--json', str(report)])

    assert exc.value.code == 0
    data = json.loads(report.read_text())
    assert data['summary']['has_issues'] is False
    assert data['result']['manifest_version'] == '6.4.2'


def test_main_reports_issues(wp_root, clean_env, monkeypatch):
    write_file(wp_root, 'wp-content/plugins/good-plugin/shell.php', '<?php')
    monkeypatch.setattr(requests, 'Session', lambda: FakeSession())

    with pytest.raises(SystemExit) as exc:
        cli.main([str(wp_root), '--no-verify', '--quiet'])

    assert exc.value.code == 1


def test_main_bad_config_exits_four(clean_env):
    with pytest.raises(SystemExit) as exc:
        cli.main(['--config', 'missing.json', '--quiet'])
    assert exc.value.code == 4


def test_main_bad_policy_value_exits_four(clean_env, monkeypatch, tmp_path, capsys):
    (tmp_path / 'policy.yaml').write_text("plugin_report_every: often\n")
    monkeypatch.setenv('WPFIC_POLICY', str(tmp_path / 'policy.yaml'))
    monkeypatch.setattr(requests, 'Session', lambda: FakeSession())

    with pytest.raises(SystemExit) as exc:
        cli.main([str(tmp_path), '--no-verify', '--quiet'])

    assert exc.value.code == 4
    assert 'Invalid value for policy key plugin_report_every' in capsys.readouterr().out
