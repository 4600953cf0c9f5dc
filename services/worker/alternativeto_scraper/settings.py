"""
Scrapy settings for alternativeto_scraper project.
"""
import os

BOT_NAME = 'alternativeto_scraper'

SPIDER_MODULES = ['alternativeto_scraper.spiders']
NEWSPIDER_MODULE = 'alternativeto_scraper.spiders'

# robots.txt is not consulted; rate limits below keep the crawl polite
ROBOTSTXT_OBEY = False

ITEM_PIPELINES = {
    'alternativeto_scraper.pipelines.DatasetPipeline': 300,
}

# Dataset sink (see storage.get_dataset_storage)
DATASET_ID = os.environ.get('DATASET_ID', 'alternativeto')
DATABASE_URL = os.environ.get('DATABASE_URL')

# Headless browser via scrapy-playwright
DOWNLOAD_HANDLERS = {
    'http': 'scrapy_playwright.handler.ScrapyPlaywrightDownloadHandler',
    'https': 'scrapy_playwright.handler.ScrapyPlaywrightDownloadHandler',
}
TWISTED_REACTOR = 'twisted.internet.asyncioreactor.AsyncioSelectorReactor'
PLAYWRIGHT_BROWSER_TYPE = 'firefox'
PLAYWRIGHT_LAUNCH_OPTIONS = {
    'headless': True,
    'firefox_user_prefs': {
        'dom.webdriver.enabled': False,
        'useAutomationExtension': False,
        'network.http.sendRefererHeader': 2,
    },
}
PLAYWRIGHT_DEFAULT_NAVIGATION_TIMEOUT = 20 * 1000
PLAYWRIGHT_MAX_CONTEXTS = 3
PLAYWRIGHT_ABORT_REQUEST = 'alternativeto_scraper.fetcher.should_abort_request'

DEFAULT_REQUEST_HEADERS = {
    'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8',
    'Accept-Language': 'en-US,en;q=0.9',
    'DNT': '1',
    'Upgrade-Insecure-Requests': '1',
}

# At most 3 pages in flight, ~2 seconds between requests to the same domain
CONCURRENT_REQUESTS = 3
CONCURRENT_REQUESTS_PER_DOMAIN = 3
DOWNLOAD_DELAY = 2.0
RANDOMIZE_DOWNLOAD_DELAY = True
DOWNLOAD_TIMEOUT = 40

AUTOTHROTTLE_ENABLED = True
AUTOTHROTTLE_START_DELAY = 2.0
AUTOTHROTTLE_MAX_DELAY = 10.0
AUTOTHROTTLE_TARGET_CONCURRENCY = 2.0

# Retry settings; blocked responses that survive retries reach the spider errback
RETRY_ENABLED = True
RETRY_TIMES = 2
RETRY_HTTP_CODES = [403, 408, 429, 500, 502, 503, 504]
RETRY_PRIORITY_ADJUST = -1

# Extraction policy (see policy.ExtractionPolicy)
SPARSE_MIN_SIGNALS = 3
SPARSE_RATIO_THRESHOLD = 0.1
SPARSE_MIN_ITEMS = 3
MAX_MISSING_LISTINGS = 3
HYDRATION_WAIT_MS = 600
BLOCK_RETRY_WAIT_MS = 2500
NETWORKIDLE_TIMEOUT_MS = 6000
SCROLL_ROUNDS = 15
MAX_INTERCEPTED_PAYLOADS = 50

# Logging
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
