"""Run loop: push gate, quota, pagination and blocked-seed fallback."""

import asyncio
import logging

import pytest
import scrapy
from scrapy.exceptions import CloseSpider
from scrapy.http import HtmlResponse
from scrapy.spidermiddlewares.httperror import HttpError
from twisted.python.failure import Failure

from alternativeto_scraper.errors import InputError
from alternativeto_scraper.extractors import ListingExtraction
from alternativeto_scraper.extractors.live import READ_CARDS_JS
from alternativeto_scraper.fetcher import SLOW_SCROLL_JS
from alternativeto_scraper.items import ToolItem
from alternativeto_scraper.normalize import clean_item
from alternativeto_scraper.spiders.alternativeto_spider import AlternativeToSpider
from conftest import PAGE_URL, tool_url


def make_spider(**raw):
    raw.setdefault("startUrls", [PAGE_URL])
    return AlternativeToSpider(run_input=raw, dataset_id="test")


def run_page(spider, snapshot, page_no=1):
    """Drain one page's output; reports whether the spider asked to close."""
    outputs = []
    try:
        for output in spider.handle_snapshot(snapshot, page_no):
            outputs.append(output)
    except CloseSpider as e:
        return outputs, e.reason
    return outputs, None


def items_of(outputs):
    return [o for o in outputs if isinstance(o, ToolItem)]


def requests_of(outputs):
    return [o for o in outputs if isinstance(o, scrapy.Request)]


class TestStartRequests:
    def test_seed_meta(self):
        spider = make_spider(startUrls=[PAGE_URL, "https://alternativeto.net/software/gimp/about"])
        requests = list(spider.start_requests())
        assert [r.url for r in requests] == [PAGE_URL, tool_url("gimp")]
        for request in requests:
            assert request.meta["page_no"] == 1
            assert request.meta["seed_start"] is True
            assert request.meta["playwright"] is True
            assert request.callback == spider.parse
            assert request.errback == spider.errback


class TestPushGate:
    def test_quota_limits_pushes(self, five_card_page):
        spider = make_spider(results_wanted=2)
        outputs, reason = run_page(spider, five_card_page)
        assert [i["url"] for i in items_of(outputs)] == [tool_url("alpha"), tool_url("bravo")]
        assert reason == "results_wanted_reached"
        assert requests_of(outputs) == []
        assert spider.context.pushed == 2

    def test_leftovers_not_pushed_on_repeat_page(self, five_card_page):
        spider = make_spider(results_wanted=2)
        run_page(spider, five_card_page)
        outputs, reason = run_page(spider, five_card_page)
        assert items_of(outputs) == []
        assert reason == "results_wanted_reached"
        assert spider.context.pushed == 2

    def test_duplicates_across_pages(self, snapshot_factory):
        spider = make_spider(results_wanted=10)
        first, _ = run_page(spider, snapshot_factory(["a", "b", "c"], next_href="?p=2"))
        second, _ = run_page(
            spider, snapshot_factory(["b", "c", "d"], url=PAGE_URL + "?p=2"), page_no=2
        )
        assert [i["url"] for i in items_of(first)] == [tool_url("a"), tool_url("b"), tool_url("c")]
        assert [i["url"] for i in items_of(second)] == [tool_url("d")]
        assert spider.context.pushed == 4

    def test_complete_items_pushed_first(self, snapshot_factory):
        payload = {
            "items": [{
                "urlName": "c",
                "name": "Charlie",
                "description": "Charlie renders photorealistic scenes from prompts.",
                "likes": 51,
                "licenseCost": "Freemium",
                "platforms": ["Web"],
            }]
        }
        spider = make_spider(results_wanted=1)
        outputs, _ = run_page(spider, snapshot_factory(["a", "b", "c"], payloads=[payload]))
        (item,) = items_of(outputs)
        assert item["url"] == tool_url("c")
        assert item["pricing"] == "Freemium"

    def test_items_are_clean_tool_items(self, snapshot_factory):
        spider = make_spider(results_wanted=10)
        outputs, _ = run_page(spider, snapshot_factory(["a"]))
        (item,) = items_of(outputs)
        assert item["platforms"] == []
        assert item["_source"] == "html"
        assert item["description"] == "A turns text prompts into images."


class TestPagination:
    def test_next_request(self, snapshot_factory):
        spider = make_spider(results_wanted=10)
        outputs, reason = run_page(spider, snapshot_factory(["a"], next_href="?p=2"))
        assert reason is None
        (request,) = requests_of(outputs)
        assert request.url == PAGE_URL + "?p=2"
        assert request.meta["page_no"] == 2
        assert request.meta["seed_start"] is False

    def test_max_pages_stops(self, snapshot_factory):
        spider = make_spider(results_wanted=10, max_pages=1)
        outputs, _ = run_page(spider, snapshot_factory(["a"], next_href="?p=2"))
        assert requests_of(outputs) == []

    def test_visited_next_page_not_requeued(self, snapshot_factory):
        spider = make_spider(results_wanted=10)
        spider.context.mark_visited(PAGE_URL + "?p=2")
        outputs, _ = run_page(spider, snapshot_factory(["a"], next_href="?p=2"))
        assert requests_of(outputs) == []


class TestLiveScope:
    def test_complete_page_needs_no_live_read(self):
        spider = make_spider()
        item = clean_item({
            "url": tool_url("a"),
            "description": "A long enough description here.",
            "likes": 3,
            "pricing": "Free",
        })
        assert spider.live_scope(ListingExtraction([item], [tool_url("a")])) is None

    def test_scope_covers_listing_missing_and_sparse(self):
        spider = make_spider()
        sparse = clean_item({"url": tool_url("x"), "title": "X-ray"})
        scope = spider.live_scope(ListingExtraction([sparse], [tool_url("a"), tool_url("b")]))
        assert scope == [tool_url("a"), tool_url("b"), tool_url("x")]


class TestBlockedSeedFallback:
    def test_fallback_enqueued_once(self):
        spider = make_spider()
        (seed,) = spider.start_requests()
        fallbacks = spider.handle_block(seed)
        assert fallbacks[0].url == "https://www.alternativeto.net/category/ai-tools/ai-image-generator/"
        assert all(r.meta["seed_start"] is False and r.meta["page_no"] == 1 for r in fallbacks)
        assert spider.context.blocked_count == 1

        # the fallback itself is blocked: no further fallback
        assert spider.handle_block(fallbacks[0]) == []
        # nor for the same seed reported twice
        assert spider.handle_block(seed) == []
        assert spider.context.blocked_count == 2

    def test_no_fallback_once_something_was_pushed(self):
        spider = make_spider()
        (seed,) = spider.start_requests()
        spider.context.accept_push(tool_url("a"))
        assert spider.handle_block(seed) == []

    def test_no_fallback_for_later_pages(self):
        spider = make_spider()
        request = spider.listing_request(PAGE_URL + "?p=3", page_no=3, seed_start=True)
        assert spider.handle_block(request) == []

    def test_http_403_failure_is_a_block(self):
        spider = make_spider()
        (seed,) = spider.start_requests()
        response = HtmlResponse(url=seed.url, status=403, body=b"", request=seed)
        failure = Failure(HttpError(response, "Ignoring non-200 response"))
        failure.request = seed
        fallbacks = spider.handle_failure(failure)
        assert len(fallbacks) == 2
        assert spider.context.blocked_count == 1

    def test_other_failures_are_logged(self, caplog):
        spider = make_spider()
        (seed,) = spider.start_requests()
        failure = Failure(TimeoutError("navigation timed out"))
        failure.request = seed
        with caplog.at_level(logging.ERROR):
            assert spider.handle_failure(failure) == []
        assert spider.context.blocked_count == 0
        assert "Request failed" in caplog.text


class TestClosed:
    def test_warns_when_everything_was_blocked(self, caplog):
        spider = make_spider()
        spider.context.mark_blocked(PAGE_URL)
        with caplog.at_level(logging.INFO):
            spider.closed("finished")
        assert "All requests were blocked" in caplog.text

    def test_no_warning_with_proxy(self, caplog):
        spider = make_spider(proxyConfiguration={"proxyUrls": ["http://proxy:8000"]})
        spider.context.mark_blocked(PAGE_URL)
        with caplog.at_level(logging.INFO):
            spider.closed("finished")
        assert "Run finished" in caplog.text
        assert "All requests were blocked" not in caplog.text


class TestInput:
    def test_invalid_input_raises(self):
        with pytest.raises(InputError):
            make_spider(results_wanted=0)


BLOCKED_HTML = "<html><head><title>Access denied</title></head></html>"


class FakeMouse:
    async def move(self, x, y):
        pass


class FakeRenderedPage:
    """Stands in for a Playwright page: serves queued HTML and canned live cards."""

    def __init__(self, *documents, live_cards=()):
        self.documents = list(documents)
        self.live_cards = list(live_cards)
        self.scripts = []
        self.closed = False
        self.mouse = FakeMouse()

    async def content(self):
        return self.documents.pop(0) if len(self.documents) > 1 else self.documents[0]

    async def evaluate(self, script, arg=None):
        self.scripts.append(script)
        return self.live_cards if script == READ_CARDS_JS else None

    async def wait_for_selector(self, selector, timeout=None):
        pass

    async def wait_for_load_state(self, state, timeout=None):
        pass

    async def wait_for_timeout(self, ms):
        pass

    async def close(self):
        self.closed = True


def parse_with_page(spider, page):
    (seed,) = spider.start_requests()
    seed.meta["playwright_page"] = page
    response = HtmlResponse(url=seed.url, body=b"<html></html>", request=seed)

    async def drain():
        return [output async for output in spider.parse(response)]

    return asyncio.run(drain())


class TestParse:
    def test_sparse_page_retried_once_then_read_live(self, five_card_page):
        page = FakeRenderedPage(
            five_card_page.html,
            live_cards=[
                {"href": "/software/alpha/", "title": "Alpha", "likesText": "120", "costTexts": ["Free"]},
                {"href": "/software/zulu/", "title": "Zulu", "likesText": "9"},
            ],
        )
        spider = make_spider()
        outputs = parse_with_page(spider, page)

        by_url = {item["url"]: item for item in items_of(outputs)}
        assert len(by_url) == 5
        assert tool_url("zulu") not in by_url
        assert by_url[tool_url("alpha")]["likes"] == 120
        assert by_url[tool_url("alpha")]["pricing"] == "Free"
        assert page.scripts.count(SLOW_SCROLL_JS) == 1
        assert page.scripts.count(READ_CARDS_JS) == 1
        assert page.closed
        (next_request,) = requests_of(outputs)
        assert next_request.meta["page_no"] == 2

    def test_small_page_skips_retry(self, snapshot_factory):
        page = FakeRenderedPage(snapshot_factory(["a", "b"]).html)
        spider = make_spider()
        outputs = parse_with_page(spider, page)
        assert len(items_of(outputs)) == 2
        assert SLOW_SCROLL_JS not in page.scripts
        assert page.closed

    def test_blocked_seed_yields_fallbacks_and_closes_page(self):
        page = FakeRenderedPage(BLOCKED_HTML)
        spider = make_spider()
        outputs = parse_with_page(spider, page)
        assert items_of(outputs) == []
        assert requests_of(outputs)[0].url == "https://www.alternativeto.net/category/ai-tools/ai-image-generator/"
        assert spider.context.blocked_count == 1
        assert page.closed
