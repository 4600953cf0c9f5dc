"""
Pagination controller: finds the next listing page or declares the end.
"""
import re
from urllib.parse import parse_qsl, urlsplit

from alternativeto_scraper.urls import PageKind, abs_url, set_query_param

PAGE_PARAM = 'p'
NEXT_TEXT_RE = re.compile(r'^next$', re.I)
FALLBACK_KINDS = (PageKind.SEARCH, PageKind.CATEGORY, PageKind.SOFTWARE)
CURRENT_MARKERS = ('[aria-current="page"]', '.active', '.current', '[class*="current"]')
# Case-insensitive aria-label match; cssselect has no [attr i] flag
PAGINATION_CONTAINERS = (
    '//nav[contains(translate(@aria-label, "PAGINTO", "paginto"), "pagination")]',
    '//*[contains(@class, "pagination")]',
)


def _rel_next(selector, current_url):
    href = selector.xpath(
        '//a[@rel="next"]/@href | '
        '//a[contains(translate(@aria-label, "NEXT", "next"), "next")]/@href'
    ).get()
    return abs_url(href, current_url)


def _text_next(selector, current_url):
    for anchor in selector.css('a'):
        label = ' '.join(' '.join(anchor.xpath('.//text()').getall()).split())
        if NEXT_TEXT_RE.match(label):
            return abs_url(anchor.attrib.get('href'), current_url)
    return None


def _same_listing(url, current_url):
    """True for another page of the listing at current_url."""
    if not url:
        return False
    parts = urlsplit(url)
    if PAGE_PARAM in dict(parse_qsl(parts.query)):
        return True
    current = urlsplit(current_url)
    return parts.netloc == current.netloc and parts.path.rstrip('/') == current.path.rstrip('/')


def _sibling_of_current(selector, current_url):
    """The anchor right after the current-page marker of a pagination control."""
    for container_xpath in PAGINATION_CONTAINERS:
        for container in selector.xpath(container_xpath):
            for marker_css in CURRENT_MARKERS:
                marker = container.css(marker_css)
                if not marker:
                    continue
                href = marker[0].xpath(
                    'following::a[@href][1]/@href'
                ).get()
                # Only accept links that stay inside the pagination control
                if not href or href not in container.css('a::attr(href)').getall():
                    continue
                url = abs_url(href, current_url)
                if _same_listing(url, current_url):
                    return url
    return None


def numeric_fallback(current_url, page_kind):
    """Increment the ?p= page number; only for recognised listing kinds."""
    if page_kind not in FALLBACK_KINDS:
        return None
    params = dict(parse_qsl(urlsplit(current_url).query))
    try:
        current = int(params.get(PAGE_PARAM) or '1')
    except ValueError:
        return None
    candidate = set_query_param(current_url, PAGE_PARAM, str(current + 1))
    return candidate if candidate != current_url else None


STRATEGIES = (_rel_next, _text_next, _sibling_of_current)


def find_next_url(selector, current_url, page_kind):
    """First URL produced by the strategies in priority order, or None."""
    for strategy in STRATEGIES:
        url = strategy(selector, current_url)
        if url and url != current_url:
            return url
    return numeric_fallback(current_url, page_kind)


def next_page(selector, current_url, page_kind, page_no, context):
    """
    Next listing URL to enqueue, or None when pagination is over: no
    strategy yields a URL, the page cap or result quota is reached, or the
    candidate was already visited.
    """
    if context.quota_reached or page_no >= context.max_pages:
        return None
    url = find_next_url(selector, current_url, page_kind)
    if not url or context.was_visited(url):
        return None
    return url
