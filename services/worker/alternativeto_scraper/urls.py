"""
URL helpers: absolute resolution, canonical tool URLs, page classification
and start-URL normalization for alternativeto.net.
"""
import re
from enum import Enum
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

BASE_URL = 'https://alternativeto.net/'
BARE_HOST = 'alternativeto.net'
WWW_HOST = 'www.alternativeto.net'
DEFAULT_START = 'https://alternativeto.net/category/ai-tools/ai-image-generator/'
SEARCH_PATH = '/browse/search/'

TOOL_URL_RE = re.compile(r'^https://(?:www\.)?alternativeto\.net/software/[^/?#]+/?$', re.I)
SITE_HOST_RE = re.compile(r'(?:^|\.)alternativeto\.net$', re.I)
NOISE_SUFFIX_RE = re.compile(r'/(?:about|reviews)/?$', re.I)
DETAIL_PATH_RE = re.compile(r'^/software/[^/]+/?$')
SUBPAGE_PATH_RE = re.compile(r'^/software/[^/]+/(?:about|reviews|alternatives)$', re.I)
WHITESPACE_RE = re.compile(r'\s+')


class PageKind(str, Enum):
    SEARCH = 'search'
    CATEGORY = 'category'
    SOFTWARE = 'software'
    OTHER = 'other'


def _clean(value):
    return WHITESPACE_RE.sub(' ', str(value)).strip()


def abs_url(href, base: str = BASE_URL) -> Optional[str]:
    """Resolve href against base; None for empty, non-string or malformed input."""
    if not href or not isinstance(href, str):
        return None
    clean = _clean(href)
    if not clean:
        return None
    try:
        url = urljoin(base or BASE_URL, clean)
        parts = urlsplit(url)
    except ValueError:
        return None
    if parts.scheme not in ('http', 'https') or not parts.netloc:
        return None
    return url


def canonical_tool(href, base: str = BASE_URL) -> Optional[str]:
    """
    Canonical detail-page URL for a tool, or None.

    Fragments, query strings, the /about and /reviews sub-pages, the www
    host and a missing trailing slash all collapse onto one key.
    """
    url = abs_url(href, base)
    if not url:
        return None
    parts = urlsplit(url)
    if parts.scheme != 'https' or not SITE_HOST_RE.search(parts.hostname or ''):
        return None
    path = NOISE_SUFFIX_RE.sub('/', parts.path)
    clean = urlunsplit(('https', BARE_HOST, path.rstrip('/') + '/', '', ''))
    return clean if TOOL_URL_RE.match(clean) else None


def classify(url) -> PageKind:
    """Bucket a URL by path shape."""
    if not isinstance(url, str):
        return PageKind.OTHER
    try:
        path = urlsplit(url).path.lower()
    except (TypeError, ValueError, AttributeError):
        return PageKind.OTHER
    if path.startswith(SEARCH_PATH):
        return PageKind.SEARCH
    if path.startswith('/category/'):
        return PageKind.CATEGORY
    if DETAIL_PATH_RE.match(path):
        return PageKind.SOFTWARE
    return PageKind.OTHER


def search_url(keyword: str) -> str:
    return f"{BASE_URL.rstrip('/')}{SEARCH_PATH}?{urlencode({'q': keyword})}"


def swap_host(url: str) -> str:
    """Toggle between the www and bare host variants."""
    parts = urlsplit(url)
    host = BARE_HOST if parts.hostname == WWW_HOST else WWW_HOST
    return urlunsplit((parts.scheme, host, parts.path, parts.query, parts.fragment))


def set_query_param(url: str, name: str, value: str) -> str:
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != name]
    query.append((name, value))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def normalize_start_url(candidate) -> Optional[str]:
    """
    Normalize a user-supplied start URL onto the bare https host.

    Returns None for malformed URLs and for hosts outside alternativeto.net.
    """
    absolute = abs_url(candidate)
    if not absolute:
        return None
    parts = urlsplit(absolute)
    if not SITE_HOST_RE.search(parts.hostname or ''):
        return None

    path = re.sub(r'/+', '/', parts.path).rstrip('/') or '/'
    query = parts.query
    params = dict(parse_qsl(query))
    if path == '/software' and _clean(params.get('q', '')):
        path = SEARCH_PATH
    elif SUBPAGE_PATH_RE.match(path):
        path = '/'.join(path.split('/')[:3]) + '/'
    elif re.match(r'^/software/[^/]+$', path, re.I):
        path = f'{path}/'
    elif re.match(r'^/category/.+', path, re.I):
        path = f'{path}/'
    elif re.match(r'^/browse/search$', path, re.I):
        path = SEARCH_PATH
    elif path != '/':
        path = parts.path
    return urlunsplit(('https', BARE_HOST, path, query, ''))
