"""
Block detection and fallback start URLs.
"""
import re
from urllib.parse import parse_qsl, urlsplit

from bs4 import BeautifulSoup

from alternativeto_scraper.urls import (
    DEFAULT_START,
    SEARCH_PATH,
    normalize_start_url,
    search_url,
    set_query_param,
    swap_host,
)

BLOCKED_TITLES = [
    re.compile(r'access denied', re.I),
    re.compile(r'captcha', re.I),
    re.compile(r'forbidden', re.I),
    re.compile(r'verify', re.I),
]
CHALLENGE_SIGNATURES = ('cf-chl', 'cf-challenge', 'datadome', 'perimeterx')
BLOCK_ERROR_RE = re.compile(r'403|429|forbidden|blocked', re.I)
BLOCK_STATUSES = (403, 429)


def page_title(html):
    soup = html if isinstance(html, BeautifulSoup) else BeautifulSoup(html or '', 'html.parser')
    title = soup.find('title')
    return ' '.join(title.get_text().split()) if title else ''


def is_blocked(html, soup=None):
    """True for challenge/denial pages: by title or by vendor signature in the markup."""
    title = page_title(soup if soup is not None else html)
    if any(pattern.search(title) for pattern in BLOCKED_TITLES):
        return True
    lower = (html or '').lower()
    return any(signature in lower for signature in CHALLENGE_SIGNATURES)


def is_block_error(message='', status=None):
    """Classify a failed request as a block (403/429 or a blocking message)."""
    if status in BLOCK_STATUSES:
        return True
    return bool(BLOCK_ERROR_RE.search(message or ''))


def fallback_seeds(blocked_url):
    """
    Alternate start URLs for a blocked first seed: the other host variant,
    the top two segments of a category path, or the same search one page
    later plus the default category. Never returns blocked_url itself.
    """
    candidates = []

    def add(url):
        normalized = normalize_start_url(url)
        if normalized and normalized not in candidates and normalized != blocked_url:
            candidates.append(normalized)

    try:
        parts = urlsplit(blocked_url)
    except (TypeError, ValueError):
        return []
    if not parts.netloc:
        return []
    path = parts.path.lower()

    # normalize_start_url pins the bare host, so the swapped variant is built directly
    swapped = swap_host(blocked_url)
    if swapped != blocked_url:
        candidates.append(swapped)

    if path.startswith('/category/'):
        segments = [s for s in path.split('/') if s]
        if len(segments) >= 2:
            add(f'https://alternativeto.net/{segments[0]}/{segments[1]}/')
    elif path.startswith(SEARCH_PATH):
        keyword = ' '.join(dict(parse_qsl(parts.query)).get('q', '').split())
        if keyword:
            add(set_query_param(search_url(keyword), 'p', '2'))
        add(DEFAULT_START)
    return candidates
