import sys
import os
from types import MappingProxyType

import pytest
import requests

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src')))

from wp_integrity.models import ReferenceManifest
from wp_integrity.utils import calculate_file_hash

BENIGN_PLUGIN = (
    "<?php\n"
    "/**\n"
    " * Plugin Name: Good Plugin\n"
    " * Version: 1.2.3\n"
    " */\n"
    "function good_plugin_init() {\n"
    "    add_action('init', 'good_plugin_register');\n"
    "}\n"
    "good_plugin_init();\n"
)

CORE_FILES = {
    'index.php': "<?php\ndefine('WP_USE_THEMES', true);\nrequire __DIR__ . '/wp-blog-header.php';\n",
    'wp-admin/index.php': "<?php\n// dashboard\nrequire_once __DIR__ . '/admin.php';\n",
    'wp-admin/css/common.css': "body { margin: 0; }\n",
    'wp-includes/load.php': "<?php\nfunction wp_get_environment_type() { return 'production'; }\n",
    'wp-includes/version.php': "<?php\n$wp_version = '6.4.2';\n$wp_db_version = 56657;\n",
    'wp-content/index.php': "<?php\n// Silence is golden.\n",
    'wp-content/plugins/hello.php': "<?php\n/* Plugin Name: Hello Dolly */\n",
    'wp-content/plugins/akismet/akismet.php': "<?php\n/* Plugin Name: Akismet */\n",
    'wp-content/themes/twentytwentyfour/style.css': "/*\nTheme Name: Twenty Twenty-Four\nVersion: 1.0\n*/\n",
}


def write_file(root, relative_path, content):
    path = root.joinpath(*relative_path.split('/'))
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content, encoding='utf-8')
    return path


@pytest.fixture
def wp_root(tmp_path):
    """Minimal WordPress tree with core files and one benign plugin"""
    root = tmp_path / 'site'
    for relative_path, content in CORE_FILES.items():
        write_file(root, relative_path, content)
    write_file(root, 'wp-content/plugins/good-plugin/good-plugin.php', BENIGN_PLUGIN)
    write_file(root, 'wp-content/plugins/good-plugin/readme.txt', 'Good plugin readme\n')
    return root


def build_manifest(root, paths=None, version='6.4.2', locale='en_US'):
    """Manifest whose hashes match the files currently on disk"""
    paths = paths or CORE_FILES.keys()
    checksums = {p: calculate_file_hash(root.joinpath(*p.split('/'))) for p in paths}
    return ReferenceManifest(version, locale, MappingProxyType(checksums))


@pytest.fixture
def manifest(wp_root):
    return build_manifest(wp_root)


class FakeResponse:
    def __init__(self, status_code=200, content=b'', json_data=None):
        self.status_code = status_code
        self.content = content if isinstance(content, bytes) else content.encode('utf-8')
        self._json = json_data

    def json(self):
        if self._json is None:
            raise ValueError("No JSON")
        return self._json


class FakeSession:
    """
    requests.Session stand-in. Routes map (method, url) to a FakeResponse or
    an exception instance; unknown URLs answer 404. Every call is recorded.
    """

    def __init__(self, routes=None):
        self.routes = dict(routes or {})
        self.calls = []

    def _request(self, method, url, **kwargs):
        self.calls.append({'method': method, 'url': url, **kwargs})
        response = self.routes.get((method, url), FakeResponse(404))
        if isinstance(response, Exception):
            raise response
        return response

    def get(self, url, **kwargs):
        return self._request('GET', url, **kwargs)

    def head(self, url, **kwargs):
        return self._request('HEAD', url, **kwargs)


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def connection_error():
    return requests.exceptions.ConnectionError("connection refused")
