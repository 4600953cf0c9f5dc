"""
Source extractors.

Each extractor reads one representation of a listing page and returns
normalized candidates merged per canonical URL. ``extract_listing`` runs the
static ones in precedence order (intercepted API, structured scripts, HTML
cards) so earlier sources win scalar ties.
"""
from dataclasses import dataclass, field
from typing import List

from alternativeto_scraper.extractors.api import extract_from_payloads
from alternativeto_scraper.extractors.cards import extract_cards, extract_listing_urls
from alternativeto_scraper.extractors.live import extract_live_cards
from alternativeto_scraper.extractors.structured import extract_structured
from alternativeto_scraper.merge import merge_item_sets


@dataclass
class ListingExtraction:
    items: List[dict] = field(default_factory=list)
    listing_urls: List[str] = field(default_factory=list)

    def scoped(self):
        """Restrict items to the page's own listing cards when those are known."""
        if not self.listing_urls:
            return self
        wanted = set(self.listing_urls)
        return ListingExtraction([item for item in self.items if item['url'] in wanted], self.listing_urls)

    def merged_with(self, other):
        items = merge_item_sets(self.items, other.items)
        return ListingExtraction(items, other.listing_urls or self.listing_urls).scoped()


def extract_from_page(soup, page_url, payloads=()):
    return merge_item_sets(
        extract_from_payloads(payloads, page_url),
        extract_structured(soup, page_url),
        extract_cards(soup, page_url),
    )


def extract_listing(snapshot):
    """Run every static extractor over a PageSnapshot."""
    soup = snapshot.soup
    extraction = ListingExtraction(
        items=extract_from_page(soup, snapshot.url, snapshot.payloads),
        listing_urls=extract_listing_urls(soup, snapshot.url),
    )
    return extraction.scoped()


__all__ = [
    'ListingExtraction',
    'extract_cards',
    'extract_from_page',
    'extract_from_payloads',
    'extract_listing',
    'extract_listing_urls',
    'extract_live_cards',
    'extract_structured',
]
