"""
Run input normalization.

Input keys follow the actor input schema: startUrls, keyword,
results_wanted, max_pages, proxyConfiguration.
"""
import json
import math
from dataclasses import dataclass, field
from typing import List, Optional

from alternativeto_scraper.errors import InputError
from alternativeto_scraper.normalize import txt
from alternativeto_scraper.urls import DEFAULT_START, normalize_start_url, search_url

DEFAULT_RESULTS_WANTED = 100
MAX_RESULTS_WANTED = 5000
DEFAULT_MAX_PAGES = 20
MAX_MAX_PAGES = 500


def positive_int(value, default, name, maximum):
    """Positive integer input, floored and capped; default when unset."""
    if value is None or value == '':
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InputError(f'Input "{name}" must be a positive integer.') from None
    if not math.isfinite(number) or number <= 0:
        raise InputError(f'Input "{name}" must be a positive integer.')
    return min(int(number), maximum)


@dataclass
class RunInput:
    start_urls: List[str]
    results_wanted: int = DEFAULT_RESULTS_WANTED
    max_pages: int = DEFAULT_MAX_PAGES
    keyword: str = ''
    proxy_configuration: Optional[dict] = field(default=None, repr=False)

    @classmethod
    def from_raw(cls, raw=None):
        raw = raw or {}
        keyword = txt(raw.get('keyword'))
        results_wanted = positive_int(raw.get('results_wanted'), DEFAULT_RESULTS_WANTED,
                                      'results_wanted', MAX_RESULTS_WANTED)
        max_pages = positive_int(raw.get('max_pages'), DEFAULT_MAX_PAGES, 'max_pages', MAX_MAX_PAGES)

        candidates = []
        start_list = raw.get('startUrls') if isinstance(raw.get('startUrls'), list) else []
        for entry in start_list:
            if isinstance(entry, str) and txt(entry):
                candidates.append(txt(entry))
            elif isinstance(entry, dict) and txt(entry.get('url')):
                candidates.append(txt(entry.get('url')))
        if not start_list:
            candidates.append(search_url(keyword) if keyword else DEFAULT_START)

        start_urls = []
        for candidate in candidates:
            url = normalize_start_url(candidate)
            if url and url not in start_urls:
                start_urls.append(url)
        if not start_urls:
            raise InputError('No valid start URLs resolved from input.')

        return cls(
            start_urls=start_urls,
            results_wanted=results_wanted,
            max_pages=max_pages,
            keyword=keyword,
            proxy_configuration=raw.get('proxyConfiguration'),
        )

    @classmethod
    def from_file(cls, path):
        try:
            with open(path, encoding='utf-8') as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            raise InputError(f'Cannot read input file {path}: {e}') from e
        if not isinstance(raw, dict):
            raise InputError(f'Input file {path} must contain a JSON object.')
        return cls.from_raw(raw)

    @property
    def proxy_url(self):
        """First configured proxy URL, or None when proxying is disabled."""
        config = self.proxy_configuration or {}
        urls = config.get('proxyUrls') if isinstance(config, dict) else None
        if isinstance(urls, list):
            return next((txt(u) for u in urls if txt(u)), None)
        return None

    def to_dict(self):
        return {
            'startUrls': self.start_urls,
            'keyword': self.keyword,
            'results_wanted': self.results_wanted,
            'max_pages': self.max_pages,
            'proxyConfiguration': self.proxy_configuration,
        }
