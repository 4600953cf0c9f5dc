"""
Page fetcher adapter over scrapy-playwright.

A fetched page is handed to the extractors as a PageSnapshot: the rendered
markup plus the JSON bodies observed from background responses during the
visit. The payloads are collected by a per-request PayloadCollector
registered as a Playwright ``response`` handler.
"""
import json
import logging
import random
from dataclasses import dataclass, field
from functools import cached_property
from typing import List

from bs4 import BeautifulSoup
from scrapy.selector import Selector

from alternativeto_scraper.blocking import is_blocked
from alternativeto_scraper.errors import BlockedPageError
from alternativeto_scraper.policy import ExtractionPolicy

logger = logging.getLogger(__name__)

BLOCKED_RESOURCE_TYPES = {'image', 'font', 'media', 'stylesheet'}
TRACKER_PATTERNS = (
    'google-analytics', 'googletagmanager', 'doubleclick', 'facebook.net',
    'ads', 'pinterest', 'hotjar', 'segment',
)
JSON_URL_HINTS = ('/api/', '/_next/data/', 'graphql')

USER_AGENTS = [
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:133.0) Gecko/20100101 Firefox/133.0',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 14.7; rv:133.0) Gecko/20100101 Firefox/133.0',
    'Mozilla/5.0 (X11; Linux x86_64; rv:133.0) Gecko/20100101 Firefox/133.0',
    'Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:132.0) Gecko/20100101 Firefox/132.0',
    'Mozilla/5.0 (Macintosh; Intel Mac OS X 14.6; rv:132.0) Gecko/20100101 Firefox/132.0',
]
VIEWPORTS = [
    {'width': 1920, 'height': 1080},
    {'width': 1366, 'height': 768},
    {'width': 1536, 'height': 864},
    {'width': 1440, 'height': 900},
]

SCROLL_JS = """
async (rounds) => {
    const delay = (ms) => new Promise((r) => setTimeout(r, ms));
    let prev = 0;
    for (let i = 0; i < rounds; i++) {
        window.scrollBy(0, window.innerHeight * 0.6);
        await delay(300 + Math.random() * 400);
        const h = document.body.scrollHeight;
        if (h === prev && i > 2) break;
        prev = h;
    }
    window.scrollTo(0, 0);
}
"""

SLOW_SCROLL_JS = """
async () => {
    const delay = (ms) => new Promise((r) => setTimeout(r, ms));
    for (let i = 0; i < 5; i++) {
        window.scrollTo(0, document.body.scrollHeight * (i + 1) / 5);
        await delay(400 + Math.random() * 300);
    }
    window.scrollTo(0, 0);
}
"""


@dataclass
class PageSnapshot:
    """Rendered markup of one page visit plus its intercepted JSON payloads."""
    url: str
    html: str
    payloads: List = field(default_factory=list)

    @cached_property
    def soup(self):
        return BeautifulSoup(self.html or '', 'html.parser')

    @cached_property
    def selector(self):
        return Selector(text=self.html or '<html></html>')

    @property
    def blocked(self):
        return is_blocked(self.html, self.soup)


def is_json_response(url, content_type):
    content_type = (content_type or '').lower()
    return 'application/json' in content_type or any(hint in url for hint in JSON_URL_HINTS)


class PayloadCollector:
    """Accumulates JSON bodies from one page's background responses."""

    def __init__(self, limit=50):
        self.limit = limit
        self.payloads = []

    def add(self, status, url, content_type, body):
        """Keep body if it is a successful JSON object/array; returns True if kept."""
        if len(self.payloads) >= self.limit or status >= 400:
            return False
        if not is_json_response(url, content_type):
            return False
        try:
            data = json.loads(body)
        except (TypeError, ValueError):
            return False
        if not isinstance(data, (dict, list)):
            return False
        self.payloads.append(data)
        return True

    async def on_response(self, response):
        """Playwright ``response`` event handler."""
        if len(self.payloads) >= self.limit:
            return
        try:
            content_type = response.headers.get('content-type', '')
            if response.status >= 400 or not is_json_response(response.url, content_type):
                return
            body = await response.text()
        except Exception as e:
            logger.debug(f'Could not read response body from {response.url}: {e}')
            return
        self.add(response.status, response.url, content_type, body)


def should_abort_request(request):
    """PLAYWRIGHT_ABORT_REQUEST predicate: drop heavy resources and trackers."""
    url = request.url.lower()
    return request.resource_type in BLOCKED_RESOURCE_TYPES or any(t in url for t in TRACKER_PATTERNS)


def playwright_meta(collector, **extra):
    """Request meta enabling Playwright rendering with payload capture."""
    meta = {
        'playwright': True,
        'playwright_include_page': True,
        'playwright_context': f'ctx_{random.randrange(3)}',
        'playwright_context_kwargs': {
            'user_agent': random.choice(USER_AGENTS),
            'viewport': random.choice(VIEWPORTS),
            'locale': 'en-US',
        },
        'playwright_page_goto_kwargs': {'wait_until': 'domcontentloaded'},
        'playwright_page_event_handlers': {'response': collector.on_response},
        'payload_collector': collector,
    }
    meta.update(extra)
    return meta


async def _quiet(awaitable):
    try:
        await awaitable
    except Exception as e:
        logger.debug(f'Ignoring page wait failure: {e}')


async def settle_page(page, policy: ExtractionPolicy):
    """Wait for the first cards, then scroll through the page to trigger lazy chunks."""
    await _quiet(page.wait_for_selector('a[href*="/software/"]', timeout=8000))
    await _quiet(page.mouse.move(300 + random.random() * 500, 200 + random.random() * 300))
    await _quiet(page.evaluate(SCROLL_JS, policy.scroll_rounds))
    await _quiet(page.wait_for_load_state('networkidle', timeout=policy.networkidle_timeout_ms))


async def hydrate_more(page, policy: ExtractionPolicy):
    """The single bounded wait before a re-extraction pass."""
    await _quiet(page.evaluate(SLOW_SCROLL_JS))
    await _quiet(page.wait_for_load_state('networkidle', timeout=policy.networkidle_timeout_ms))
    await _quiet(page.wait_for_timeout(policy.hydration_wait_ms))


async def stable_snapshot(page, url, collector, policy: ExtractionPolicy):
    """
    Snapshot the rendered page. A page that looks blocked gets one bounded
    wait and a second look before BlockedPageError is raised.
    """
    snapshot = PageSnapshot(url, await page.content(), list(collector.payloads))
    if not snapshot.blocked:
        return snapshot
    await _quiet(page.wait_for_load_state('networkidle', timeout=policy.networkidle_timeout_ms))
    await _quiet(page.wait_for_timeout(policy.block_retry_wait_ms))
    snapshot = PageSnapshot(url, await page.content(), list(collector.payloads))
    if snapshot.blocked:
        raise BlockedPageError(url)
    return snapshot


def static_snapshot(response, collector=None):
    """Snapshot from a non-rendered response; blocked pages raise BlockedPageError."""
    payloads = list(collector.payloads) if collector is not None else []
    snapshot = PageSnapshot(response.url, response.text, payloads)
    if snapshot.blocked:
        raise BlockedPageError(response.url)
    return snapshot
