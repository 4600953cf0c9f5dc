"""
Completeness evaluation for merged listing records.
"""
from alternativeto_scraper.normalize import txt
from alternativeto_scraper.policy import ExtractionPolicy

DEFAULT_POLICY = ExtractionPolicy()


def _number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def signal_score(item) -> int:
    """Count the populated descriptive signals (0..11) on a record."""
    item = item or {}
    signals = (
        len(txt(item.get('description'))) >= 20,
        _number(item.get('rating')),
        _number(item.get('likes')),
        bool(txt(item.get('pricing')) or txt(item.get('cost')) or txt(item.get('license'))),
        bool(txt(item.get('logoUrl'))),
        bool(item.get('platforms')),
        bool(item.get('applicationTypes')),
        bool(item.get('origins')),
        bool(item.get('images')),
        bool(txt(item.get('category'))),
        bool(txt(item.get('developer'))),
    )
    return sum(signals)


def is_sparse(item, policy: ExtractionPolicy = DEFAULT_POLICY) -> bool:
    return signal_score(item) < policy.min_signals


def missing_listing_urls(items, listing_urls):
    """Expected listing URLs with no merged record, in listing order."""
    found = {item['url'] for item in items if item.get('url')}
    return [url for url in listing_urls if url not in found]


def sparse_urls(items, policy: ExtractionPolicy = DEFAULT_POLICY):
    return [item['url'] for item in items if is_sparse(item, policy)]


def needs_retry(items, listing_urls=(), policy: ExtractionPolicy = DEFAULT_POLICY) -> bool:
    """
    True when a page deserves one wait-and-re-extract pass: too many sparse
    records, or too many listing cards with no record at all.
    """
    sparse_count = len(sparse_urls(items, policy))
    if items and sparse_count > policy.min_sparse_items and sparse_count > len(items) * policy.sparse_ratio:
        return True
    return len(missing_listing_urls(items, listing_urls)) > policy.max_missing_listings


def order_for_push(items, policy: ExtractionPolicy = DEFAULT_POLICY):
    """Complete records first, sparse ones after; stable within each group."""
    complete = [item for item in items if not is_sparse(item, policy)]
    sparse = [item for item in items if is_sparse(item, policy)]
    return complete + sparse
