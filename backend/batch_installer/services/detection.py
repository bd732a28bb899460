from __future__ import annotations
"""WordPress-style plugin header detection over repository files.

Repositories are submitted with their root files (path -> content); nothing
is fetched over the network here.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

logger = logging.getLogger(__name__)

# Only the first 8 KiB of a file (UTF-8 bytes, not characters) are inspected, as WordPress itself does
HEADER_SCAN_BYTES = 8192

REQUIRED_HEADERS = ['Plugin Name']
OPTIONAL_HEADERS = [
    'Plugin URI',
    'Description',
    'Version',
    'Author',
    'Author URI',
    'Text Domain',
    'Domain Path',
    'Requires at least',
    'Tested up to',
    'Requires PHP',
    'Network',
    'License',
    'License URI',
]

_PHP_OPEN = re.compile(r'^\s*<\?php', re.IGNORECASE)
_HEADER_PATTERNS = {
    header: re.compile(r'^[ \t/*#@]*' + re.escape(header) + r':(.*)$', re.IGNORECASE | re.MULTILINE)
    for header in REQUIRED_HEADERS + OPTIONAL_HEADERS
}
_TRAILING_CLOSER = re.compile(r'\s*(?:\*/|\?>).*')
_LEADING_MARKERS = re.compile(r'^[\s/*#@]*')

HIGH_PRIORITY_NAMES = ('plugin.php', 'main.php')
LOW_PRIORITY_PATTERNS = [
    re.compile(r'^index\.php$', re.IGNORECASE),
    re.compile(r'^uninstall\.php$', re.IGNORECASE),
    re.compile(r'test', re.IGNORECASE),
    re.compile(r'config', re.IGNORECASE),
]


@dataclass
class DetectionResult:
    is_plugin: bool
    plugin_file: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)
    scanned: List[str] = field(default_factory=list)

    def to_json(self):
        return {
            'is_plugin': self.is_plugin,
            'plugin_file': self.plugin_file,
            'plugin_data': self.headers,
            'scanned_files': self.scanned,
        }


def clean_header_value(value: str) -> str:
    value = value.strip()
    value = _TRAILING_CLOSER.sub('', value)
    value = _LEADING_MARKERS.sub('', value)
    return value.strip()


def parse_plugin_headers(content: str) -> Dict[str, str]:
    """Return the plugin headers found in a PHP file, or {} if it is not a plugin main file."""
    content = content.encode('utf-8')[:HEADER_SCAN_BYTES].decode('utf-8', errors='ignore')
    if not _PHP_OPEN.match(content):
        return {}
    headers: Dict[str, str] = {}
    for header, pattern in _HEADER_PATTERNS.items():
        match = pattern.search(content)
        if match:
            headers[header] = clean_header_value(match.group(1))
    for required in REQUIRED_HEADERS:
        if not headers.get(required):
            return {}
    return headers


def _file_priority(filename: str, slug: str) -> int:
    lower = filename.lower()
    if lower == f'{slug.lower()}.php':
        return 0
    if lower in HIGH_PRIORITY_NAMES:
        return 1
    for pattern in LOW_PRIORITY_PATTERNS:
        if pattern.search(lower):
            return 3
    return 2


def candidate_files(files: Mapping[str, str], slug: str) -> List[str]:
    """Root-level .php files ordered by how likely they hold the plugin header."""
    roots = [path for path in files if '/' not in path.strip('/') and path.lower().endswith('.php')]
    return sorted(roots, key=lambda path: (_file_priority(path, slug), path))


def detect_plugin(full_name: str, files: Mapping[str, str]) -> DetectionResult:
    slug = full_name.rsplit('/', 1)[-1]
    result = DetectionResult(is_plugin=False)
    for path in candidate_files(files, slug):
        result.scanned.append(path)
        headers = parse_plugin_headers(files[path] or '')
        if headers:
            result.is_plugin = True
            result.plugin_file = path.strip('/')
            result.headers = headers
            break
    logger.info('Plugin detection for %s: is_plugin=%s file=%s (scanned %d)',
                full_name, result.is_plugin, result.plugin_file, len(result.scanned))
    return result


__all__ = ['DetectionResult', 'clean_header_value', 'parse_plugin_headers', 'candidate_files', 'detect_plugin']
