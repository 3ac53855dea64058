from types import MappingProxyType

import pytest

from wp_integrity import checksum_comparator
from wp_integrity.checksum_comparator import ChecksumClient, ChecksumComparator, skip_bundled_plugins
from wp_integrity.errors import ManifestUnavailable
from wp_integrity.models import FindingCategory, ReferenceManifest

from conftest import FakeResponse, FakeSession, build_manifest, write_file

API_URL = 'https://api.wordpress.org/core/checksums/1.0/'


def test_matching_tree_has_no_findings(wp_root, manifest):
    modified, missing = ChecksumComparator().compare(manifest, str(wp_root))
    assert modified == []
    assert missing == []


def test_modified_file_reported_once_and_idempotent(wp_root, manifest):
    write_file(wp_root, 'wp-includes/load.php', "<?php\n// injected\n")
    comparator = ChecksumComparator()

    first = comparator.compare(manifest, str(wp_root))
    second = comparator.compare(manifest, str(wp_root))

    assert [f.path for f in first[0]] == ['wp-includes/load.php']
    assert first[0][0].category == FindingCategory.MODIFIED
    assert first == second


def test_missing_file_is_not_also_modified(wp_root, manifest):
    (wp_root / 'wp-admin' / 'index.php').unlink()
    modified, missing = ChecksumComparator().compare(manifest, str(wp_root))
    assert [f.path for f in missing] == ['wp-admin/index.php']
    assert missing[0].category == FindingCategory.MISSING
    assert modified == []


def test_unreadable_core_file_is_skipped_without_finding(wp_root, manifest, monkeypatch, capsys):
    real_hash = checksum_comparator.calculate_file_hash

    def flaky_hash(file_path, *args, **kwargs):
        if file_path.endswith('load.php'):
            raise PermissionError(13, 'Permission denied')
        return real_hash(file_path, *args, **kwargs)

    monkeypatch.setattr(checksum_comparator, 'calculate_file_hash', flaky_hash)
    write_file(wp_root, 'wp-admin/index.php', "<?php\n// injected\n")

    modified, missing = ChecksumComparator().compare(manifest, str(wp_root))

    assert [f.path for f in modified] == ['wp-admin/index.php']
    assert missing == []
    assert '[!] Cannot read wp-includes/load.php' in capsys.readouterr().out


def test_bundled_plugins_are_skipped(wp_root):
    checksums = dict(build_manifest(wp_root).checksums)
    checksums['wp-content/plugins/akismet/class.akismet.php'] = 'deadbeef'
    checksums['wp-content/plugins/hello.php'] = 'deadbeef'
    manifest = ReferenceManifest('6.4.2', 'en_US', MappingProxyType(checksums))

    modified, missing = ChecksumComparator().compare(manifest, str(wp_root))
    assert modified == []
    assert missing == []
    assert skip_bundled_plugins('wp-content/plugins/akismet/akismet.php')
    assert not skip_bundled_plugins('wp-content/plugins/other/other.php')


def test_count_units_excludes_skipped(wp_root, manifest):
    assert ChecksumComparator().count_units(manifest) == len(manifest) - 2


def test_fetch_manifest_success():
    session = FakeSession({
        ('GET', API_URL): FakeResponse(json_data={'checksums': {'index.php': 'abc'}}),
    })
    manifest = ChecksumClient(session=session, timeout=7).fetch_manifest('6.4.2', 'de_DE')

    assert manifest.version == '6.4.2'
    assert manifest.locale == 'de_DE'
    assert manifest.get('index.php') == 'abc'
    assert session.calls[0]['params'] == {'version': '6.4.2', 'locale': 'de_DE'}
    assert session.calls[0]['timeout'] == 7
    with pytest.raises(TypeError):
        manifest.checksums['index.php'] = 'tampered'


def test_fetch_manifest_nested_by_version():
    session = FakeSession({
        ('GET', API_URL): FakeResponse(json_data={'checksums': {'6.4.2': {'index.php': 'abc'}}}),
    })
    manifest = ChecksumClient(session=session).fetch_manifest('6.4.2')
    assert 'index.php' in manifest


@pytest.mark.parametrize('response', [
    FakeResponse(500),
    FakeResponse(200, json_data=None),
    FakeResponse(200, json_data={'checksums': False}),
    FakeResponse(200, json_data={'checksums': {}}),
])
def test_fetch_manifest_unavailable(response):
    session = FakeSession({('GET', API_URL): response})
    with pytest.raises(ManifestUnavailable):
        ChecksumClient(session=session).fetch_manifest('6.4.2')


def test_fetch_manifest_transport_error(connection_error):
    session = FakeSession({('GET', API_URL): connection_error})
    with pytest.raises(ManifestUnavailable):
        ChecksumClient(session=session).fetch_manifest('6.4.2')


def test_fetch_manifest_without_version_makes_no_request():
    session = FakeSession()
    with pytest.raises(ManifestUnavailable):
        ChecksumClient(session=session).fetch_manifest(None)
    assert session.calls == []
