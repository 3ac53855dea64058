"""
Content Classifier
Decides whether a single file looks malicious from its name, size and content

Checks run in order and the first hit wins:
1. Backup / swap / legacy-save extensions
2. Highly suspicious filename keywords
3. PHP scripts: content patterns and entropy (deep scan), or the size and
   keyword shortcuts (shallow scan)

Matching is purely lexical: a pattern quoted inside a PHP comment still
matches. That is a known, accepted false positive.
"""

import math
import os
import re
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Classification:
    suspicious: bool
    reason: Optional[str] = None


NOT_SUSPICIOUS = Classification(False)

_REQUEST_VARS = r'\$_(?:REQUEST|POST|GET|COOKIE)'


class ContentClassifier:
    """Heuristic malicious-file classifier (no side effects beyond reading the file)"""

    SUSPICIOUS_EXTENSIONS = (
        '.php.suspected',
        '.php.bak',
        '.php~',
        '.php.old',
        '.php.save',
        '.phtml',
        '.shtml',
        '.php.swp',
        '.suspected',
        '.bak',
        '.old',
        '.swp',
    )

    HIGHLY_SUSPICIOUS_NAMES = (
        'backdoor',
        'c99',
        'r57',
        'webshell',
        'rootkit',
        'malware',
        'trojan',
        'hacktools',
        'phising',
        'bypass',
        'exploit',
        'shell',
    )

    # Names that justify reading a mid-sized script in shallow mode
    MODERATE_RISK_NAMES = ('shell', 'hack', 'upload', 'eval')

    TINY_SCRIPT_BYTES = 100
    SHALLOW_READ_LIMIT = 100 * 1024

    ENTROPY_MIN_LENGTH = 200
    ENTROPY_SAMPLE_SIZE = 1000
    ENTROPY_THRESHOLD = 5.7
    ENTROPY_MARKERS = (b'eval(', b'base64_decode')

    MALICIOUS_PATTERNS = [
        {
            'name': 'Base64 decode of request input',
            'pattern': r'base64_decode\s*\(\s*' + _REQUEST_VARS,
        },
        {
            'name': 'Eval of request input',
            'pattern': r'eval\s*\(\s*' + _REQUEST_VARS,
        },
        {
            'name': 'System command from request input',
            'pattern': r'system\s*\(\s*' + _REQUEST_VARS,
        },
        {
            'name': 'shell_exec of request input',
            'pattern': r'shell_exec\s*\(\s*' + _REQUEST_VARS,
        },
        {
            'name': 'passthru of request input',
            'pattern': r'passthru\s*\(\s*' + _REQUEST_VARS,
        },
        {
            'name': 'exec of request input',
            'pattern': r'exec\s*\(\s*' + _REQUEST_VARS,
        },
        {
            'name': 'preg_replace /e code execution',
            'pattern': r'preg_replace\s*\(\s*([\'"]).*/e\1',
        },
        {
            'name': 'create_function with request input',
            'pattern': r'create_function\s*\(.*' + _REQUEST_VARS,
        },
        {
            'name': 'Variable function from request input',
            'pattern': r'\$(\w+)\s*=\s*' + _REQUEST_VARS + r'.*\$\1\s*\(',
        },
        {
            'name': 'rot13 + base64 obfuscation',
            'pattern': r'str_rot13\s*\(\s*base64_decode',
        },
        {
            'name': 'gzinflate + base64 obfuscation',
            'pattern': r'gzinflate\s*\(\s*base64_decode',
        },
        {
            'name': 'Hidden iframe injection',
            'pattern': r'<iframe\s+style=[\'"]display:\s*none',
        },
        {
            'name': 'Indexed-array dynamic dispatch',
            'pattern': r'(?:eval|assert|passthru|exec|include|system|shell_exec)\s*\(\s*\$\w+\s*\[\s*\d+\s*\]',
        },
        {
            'name': 'Backtick command execution',
            'pattern': r'echo\s+`',
        },
        {
            'name': 'Hardcoded backdoor password',
            'pattern': r'\$password\s*=\s*[\'"](?:admin|123456|password|hack|shell)',
        },
        {
            'name': 'Programmatic user creation',
            'pattern': r'wp_insert_user\s*\(\s*array\s*\(',
        },
        {
            'name': 'Direct insert into users table',
            'pattern': r'INSERT\s+INTO.*wp_users',
        },
        {
            'name': 'Encoded literal passed to eval/assert',
            'pattern': r'\$\w+=[\'"][a-zA-Z0-9+/]+[\'"]\s*;.*(?:eval|assert)',
        },
        {
            'name': 'Remote file inclusion',
            'pattern': r'(?:include|require)(?:_once)?\s*\(\s*[\'"]https?://',
        },
    ]

    def __init__(self):
        self._compiled_patterns = [
            {**p, 'compiled': re.compile(p['pattern'], re.IGNORECASE)}
            for p in self.MALICIOUS_PATTERNS
        ]

    def classify(self, filename, file_path=None, deep_scan=False, content=None):
        """
        Classify one file

        Args:
            filename (str): Base name used for extension/keyword checks
            file_path (str): Path to read content and size from
            deep_scan (bool): Always inspect script content (no size shortcuts)
            content (bytes): Content to use instead of reading file_path

        Returns:
            Classification: suspicious flag and the rule that fired
        """
        lower_filename = filename.lower()

        for ext in self.SUSPICIOUS_EXTENSIONS:
            if lower_filename.endswith(ext):
                return Classification(True, f'Suspicious extension: {ext}')

        for name in self.HIGHLY_SUSPICIOUS_NAMES:
            if name in lower_filename:
                return Classification(True, f'Suspicious filename keyword: {name}')

        if not lower_filename.endswith('.php'):
            return NOT_SUSPICIOUS

        if deep_scan:
            data = content if content is not None else self._read(file_path)
            if data is None:
                return NOT_SUSPICIOUS
            return self.check_content(data)

        size = len(content) if content is not None else self._size(file_path)
        if size is None:
            return NOT_SUSPICIOUS

        if size < self.TINY_SCRIPT_BYTES:
            return Classification(True, f'Very small PHP file ({size} bytes)')

        if any(name in lower_filename for name in self.MODERATE_RISK_NAMES):
            if size < self.SHALLOW_READ_LIMIT:
                data = content if content is not None else self._read(file_path)
                if data is not None:
                    return self.check_content(data)

        return NOT_SUSPICIOUS

    def check_content(self, content):
        """Run the pattern battery, then the entropy + marker heuristic"""
        if isinstance(content, str):
            content = content.encode('utf-8', errors='ignore')

        # latin-1 maps bytes 1:1 so offsets and byte values are preserved
        text = content.decode('latin-1')
        for pattern_def in self._compiled_patterns:
            if pattern_def['compiled'].search(text):
                return Classification(True, f"Malicious pattern: {pattern_def['name']}")

        if len(content) > self.ENTROPY_MIN_LENGTH:
            sample = content[:self.ENTROPY_SAMPLE_SIZE]
            entropy = self.calculate_entropy(sample)
            if entropy > self.ENTROPY_THRESHOLD and any(m in content for m in self.ENTROPY_MARKERS):
                return Classification(True, f'High entropy content ({entropy:.2f}) with eval/base64 marker')

        return NOT_SUSPICIOUS

    @staticmethod
    def calculate_entropy(data):
        """Shannon entropy (bits per byte) of the byte-frequency distribution"""
        if not data:
            return 0.0
        if isinstance(data, str):
            data = data.encode('utf-8', errors='ignore')
        n = len(data)
        counts = [0] * 256
        for b in data:
            counts[b] += 1
        entropy = 0.0
        for c in counts:
            if c > 0:
                p_x = c / n
                entropy -= p_x * math.log2(p_x)
        return entropy

    @staticmethod
    def _size(file_path):
        try:
            return os.path.getsize(file_path)
        except (OSError, TypeError):
            return None

    @staticmethod
    def _read(file_path):
        try:
            with open(file_path, 'rb') as f:
                return f.read()
        except (OSError, TypeError):
            return None
