"""
Scrapy pipelines for processing items.
"""
import os

from scrapy.utils.project import get_project_settings

from alternativeto_scraper.errors import StorageError
from alternativeto_scraper.storage import get_dataset_storage

STORAGE_ERRORS_STAT = 'alternativeto/storage_errors'


class DatasetPipeline:
    """
    Pipeline that writes every accepted ToolItem to the dataset storage.
    The spider's push gate already guarantees at most one item per URL.
    """

    def __init__(self, crawler=None, storage=None):
        self.crawler = crawler
        self.settings = None
        self.dataset_id = None
        self.database_url = None
        self.storage = storage
        self.items_count = 0

    @classmethod
    def from_crawler(cls, crawler):
        """Create pipeline instance from crawler (Scrapy's standard way)."""
        return cls(crawler)

    def _get_settings(self):
        """Lazy load settings when needed."""
        if self.settings is None:
            if self.crawler:
                self.settings = self.crawler.settings
            else:
                self.settings = get_project_settings()
            self.dataset_id = self.settings.get('DATASET_ID') or os.environ.get('DATASET_ID') or 'alternativeto'
            self.database_url = self.settings.get('DATABASE_URL') or os.environ.get('DATABASE_URL')

    def _record_failure(self):
        """Count a storage failure in the crawl stats (read back by main.py)."""
        if self.crawler is not None and getattr(self.crawler, 'stats', None) is not None:
            self.crawler.stats.inc_value(STORAGE_ERRORS_STAT)

    def open_spider(self, spider=None):
        """Open the storage backend when spider starts."""
        self._get_settings()
        if spider is not None and getattr(spider, 'dataset_id', None):
            self.dataset_id = spider.dataset_id
        if self.storage is None:
            try:
                self.storage = get_dataset_storage(self.database_url)
            except StorageError:
                self._record_failure()
                raise
        if spider:
            spider.logger.info(
                f'DatasetPipeline: Writing to {type(self.storage).__name__} (dataset: {self.dataset_id})'
            )

    def close_spider(self, spider=None):
        """Close the storage backend when spider finishes."""
        if self.storage:
            self.storage.close()
        if spider:
            spider.logger.info(f'DatasetPipeline: Stored {self.items_count} items')

    def process_item(self, item, spider=None):
        """Store item; storage errors are logged and re-raised."""
        if self.storage is None:
            self.open_spider(spider)

        record = dict(item)
        try:
            inserted = self.storage.save_item(self.dataset_id, record)
        except Exception as e:
            self._record_failure()
            if spider:
                spider.logger.error(f'Error storing item {record.get("url")}: {e}')
            raise

        if inserted:
            self.items_count += 1
            if spider:
                spider.logger.debug(f'Successfully saved item: {record["url"][:80]}')
            if spider and self.items_count % 10 == 0:
                spider.logger.info(f'DatasetPipeline: Stored {self.items_count} items so far')
        return item
