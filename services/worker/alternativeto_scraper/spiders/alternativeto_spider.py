"""
AlternativeTo listing spider.
Walks paginated search, category and alternatives pages and emits one
ToolItem per canonical software URL, up to results_wanted.
"""
import scrapy
from scrapy.exceptions import CloseSpider
from scrapy.spidermiddlewares.httperror import HttpError
from scrapy.utils.project import get_project_settings

from alternativeto_scraper.blocking import fallback_seeds, is_block_error
from alternativeto_scraper.completeness import (
    missing_listing_urls,
    needs_retry,
    order_for_push,
    sparse_urls,
)
from alternativeto_scraper.config import RunInput
from alternativeto_scraper.context import RunContext
from alternativeto_scraper.errors import BlockedPageError
from alternativeto_scraper.extractors import ListingExtraction, extract_listing, extract_live_cards
from alternativeto_scraper.fetcher import (
    PayloadCollector,
    hydrate_more,
    playwright_meta,
    settle_page,
    stable_snapshot,
    static_snapshot,
)
from alternativeto_scraper.items import ToolItem
from alternativeto_scraper.normalize import clean_item
from alternativeto_scraper.pagination import next_page
from alternativeto_scraper.policy import ExtractionPolicy
from alternativeto_scraper.urls import classify

STATS_PREFIX = 'alternativeto'


class AlternativeToSpider(scrapy.Spider):
    """
    Listing-only spider: no detail pages are visited.
    Input comes from run_input (RunInput or raw dict), an input file path,
    or the RUN_INPUT project setting.
    """
    name = 'alternativeto'
    allowed_domains = ['alternativeto.net']

    def __init__(self, run_input=None, input_path=None, dataset_id=None, *args, **kwargs):
        super(AlternativeToSpider, self).__init__(*args, **kwargs)
        if input_path:
            run_input = RunInput.from_file(input_path)
        elif run_input is None:
            run_input = get_project_settings().get('RUN_INPUT') or {}
        if not isinstance(run_input, RunInput):
            run_input = RunInput.from_raw(run_input)
        self.run_input = run_input
        self.dataset_id = dataset_id or get_project_settings().get('DATASET_ID')
        self.context = RunContext(run_input.results_wanted, run_input.max_pages)
        self.policy = ExtractionPolicy()
        self.stats = None

        self.logger.info(
            f'Spider initialized with {len(run_input.start_urls)} start URLs, '
            f'results_wanted={run_input.results_wanted}, max_pages={run_input.max_pages}'
        )

    @classmethod
    def from_crawler(cls, crawler, *args, **kwargs):
        spider = super(AlternativeToSpider, cls).from_crawler(crawler, *args, **kwargs)
        spider.policy = ExtractionPolicy.from_settings(crawler.settings)
        spider.stats = crawler.stats
        return spider

    def _inc(self, key, count=1):
        if self.stats is not None:
            self.stats.inc_value(f'{STATS_PREFIX}/{key}', count)

    def listing_request(self, url, page_no, seed_start=False, priority=0):
        collector = PayloadCollector(self.policy.max_payloads)
        return scrapy.Request(
            url=url,
            callback=self.parse,
            errback=self.errback,
            priority=priority,
            meta=playwright_meta(collector, page_no=page_no, seed_start=seed_start),
        )

    def start_requests(self):
        """One seed request per normalized start URL."""
        for url in self.run_input.start_urls:
            self.logger.info(f'Starting crawl from: {url}')
            yield self.listing_request(url, page_no=1, seed_start=True)

    async def parse(self, response):
        """
        Render, extract, optionally re-extract once, push and paginate.
        A page still blocked after the stable read goes to the block handler.
        """
        page = response.meta.get('playwright_page')
        collector = response.meta.get('payload_collector') or PayloadCollector(0)
        page_no = response.meta.get('page_no', 1)
        self.context.mark_visited(response.request.url)
        self.context.mark_visited(response.url)

        try:
            if page is None:
                snapshot = static_snapshot(response, collector)
                extraction = extract_listing(snapshot)
            else:
                snapshot, extraction = await self.render_and_extract(page, response.url, collector, page_no)
        except BlockedPageError as e:
            for request in self.handle_block(response.request, e.url):
                yield request
            return
        finally:
            if page is not None:
                await page.close()

        for output in self.finalize_page(extraction, snapshot, page_no):
            yield output

    async def render_and_extract(self, page, url, collector, page_no):
        await settle_page(page, self.policy)
        snapshot = await stable_snapshot(page, url, collector, self.policy)
        extraction = extract_listing(snapshot)

        if needs_retry(extraction.items, extraction.listing_urls, self.policy):
            self._inc('retry_passes')
            self.logger.debug(f'Sparse extraction on {url} (page {page_no}), waiting for late hydration')
            await hydrate_more(page, self.policy)
            snapshot = await stable_snapshot(page, url, collector, self.policy)
            extraction = extraction.merged_with(extract_listing(snapshot))

        scope = self.live_scope(extraction)
        if scope:
            live_items = await extract_live_cards(page, url, scope)
            extraction = extraction.merged_with(ListingExtraction(live_items))
        return snapshot, extraction

    def live_scope(self, extraction):
        """URLs worth a live DOM read, or None when every card is complete."""
        missing = missing_listing_urls(extraction.items, extraction.listing_urls)
        sparse = sparse_urls(extraction.items, self.policy)
        if not missing and not sparse:
            return None
        return list(dict.fromkeys(list(extraction.listing_urls) + missing + sparse))

    def handle_snapshot(self, snapshot, page_no=1):
        """Static extraction of a snapshot followed by push and pagination."""
        self.context.mark_visited(snapshot.url)
        return self.finalize_page(extract_listing(snapshot), snapshot, page_no)

    def finalize_page(self, extraction, snapshot, page_no):
        """
        Push fresh records up to the remaining quota (complete ones first),
        then yield the next listing request if pagination continues.
        Raises CloseSpider once the quota is reached.
        """
        ordered = order_for_push(extraction.items, self.policy)
        fresh = [item for item in ordered if not self.context.is_discovered(item['url'])]
        self._inc('pages')
        self.logger.info(
            f'Page parsed: {snapshot.url} (page {page_no}) '
            f'expected={len(extraction.listing_urls) or None} total={len(extraction.items)} '
            f'fresh={len(fresh)} sparse={len(sparse_urls(fresh, self.policy))} pushed={self.context.pushed}'
        )

        for item in fresh:
            if self.context.quota_reached:
                break
            self.context.mark_discovered(item['url'])
            record = clean_item(item)
            if record and self.context.accept_push(record['url']):
                self._inc('pushed')
                yield ToolItem.from_record(record)

        if self.context.quota_reached:
            self.logger.info(f'Reached results_wanted={self.run_input.results_wanted}, stopping')
            raise CloseSpider('results_wanted_reached')

        next_url = next_page(snapshot.selector, snapshot.url, classify(snapshot.url), page_no, self.context)
        if next_url:
            self.logger.info(f'Queueing next page: {next_url} (page {page_no + 1})')
            yield self.listing_request(next_url, page_no + 1)
        else:
            self.logger.info(f'No more pages after {snapshot.url} (page {page_no})')

    def handle_block(self, request, url=None):
        """
        Record a blocked page. For the first seed page of a run with nothing
        pushed yet, return the fallback seed requests (once per run).
        """
        url = url or request.url
        self.context.mark_blocked(url)
        self._inc('blocked')
        self.logger.warning(f'Blocked: {url}')

        is_seed = request.meta.get('seed_start') is True and request.meta.get('page_no', 1) == 1
        if not is_seed or not self.context.claim_fallback():
            return []
        seeds = [seed for seed in fallback_seeds(url) if not self.context.was_visited(seed)]
        if seeds:
            self._inc('fallback_seeds', len(seeds))
            self.logger.warning(f'Queued {len(seeds)} fallback URLs for blocked seed {url}')
        return [self.listing_request(seed, page_no=1, seed_start=False, priority=10) for seed in seeds]

    def handle_failure(self, failure):
        """Classify a failed request; blocks may produce fallback requests."""
        request = failure.request
        status = failure.value.response.status if failure.check(HttpError) else None
        message = str(failure.value)
        if is_block_error(message, status):
            return self.handle_block(request)
        self.logger.error(f'Request failed: {request.url}: {message}')
        return []

    async def errback(self, failure):
        page = failure.request.meta.get('playwright_page')
        if page is not None:
            await page.close()
        return self.handle_failure(failure)

    def closed(self, reason):
        """Final summary; warns when every request was blocked without a proxy."""
        self.logger.info(
            f'Run finished ({reason}): pushed={self.context.pushed} '
            f'discovered={self.context.discovered_count} blocked_pages={self.context.blocked_count}'
        )
        if self.context.pushed == 0 and self.context.blocked_count > 0 and not self.run_input.proxy_url:
            self.logger.error(
                'All requests were blocked. Set proxyConfiguration.proxyUrls (residential proxy) to avoid blocks.'
            )
