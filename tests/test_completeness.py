"""Completeness signals, retry trigger and push ordering."""

import pytest

from alternativeto_scraper.completeness import (
    is_sparse,
    missing_listing_urls,
    needs_retry,
    order_for_push,
    signal_score,
    sparse_urls,
)
from alternativeto_scraper.normalize import clean_item, empty_item
from alternativeto_scraper.policy import ExtractionPolicy


def url(n):
    return f"https://alternativeto.net/software/tool-{n}/"


def rich(n):
    return clean_item({
        "url": url(n),
        "title": f"Tool {n}",
        "description": "A thorough description of the tool.",
        "likes": 10,
        "pricing": "Free",
        "platforms": ["Windows"],
    }, "internal-api")


def bare(n):
    return clean_item({"url": url(n), "title": f"Tool {n}"}, "html")


class TestSignals:
    def test_empty_item_scores_zero(self):
        assert signal_score(empty_item(url(1))) == 0
        assert signal_score(None) == 0

    def test_full_item_scores_eleven(self):
        item = clean_item({
            "url": url(1),
            "description": "Long enough description text.",
            "rating": 4.1,
            "likes": 0,
            "license": "Open Source",
            "logoUrl": "/i.png",
            "platforms": ["Web"],
            "applicationTypes": ["Editor"],
            "origins": ["Germany"],
            "images": ["/s.png"],
            "category": "Editor",
            "developer": "Acme",
        })
        assert signal_score(item) == 11

    def test_short_description_does_not_count(self):
        item = clean_item({"url": url(1), "description": "Too short"})
        assert signal_score(item) == 0

    def test_sparse_threshold(self):
        assert is_sparse(bare(1))
        assert not is_sparse(rich(1))
        assert sparse_urls([rich(1), bare(2)]) == [url(2)]


class TestNeedsRetry:
    def test_many_sparse_items(self):
        items = [rich(n) for n in range(6)] + [bare(n) for n in range(6, 10)]
        assert needs_retry(items)

    def test_three_sparse_items_is_not_enough(self):
        items = [rich(n) for n in range(7)] + [bare(n) for n in range(7, 10)]
        assert not needs_retry(items)

    def test_sparse_fraction_below_ratio(self):
        items = [rich(n) for n in range(46)] + [bare(n) for n in range(46, 50)]
        assert not needs_retry(items)

    @pytest.mark.parametrize("missing,expected", [(3, False), (4, True)])
    def test_missing_listing_urls(self, missing, expected):
        items = [rich(n) for n in range(5)]
        listing = [url(n) for n in range(5 + missing)]
        assert missing_listing_urls(items, listing) == [url(n) for n in range(5, 5 + missing)]
        assert needs_retry(items, listing) is expected

    def test_policy_overrides(self):
        policy = ExtractionPolicy(min_sparse_items=0, sparse_ratio=0.0)
        assert needs_retry([rich(1), bare(2)], policy=policy)

    def test_empty_page(self):
        assert not needs_retry([])


class TestOrderForPush:
    def test_complete_first_stable(self):
        items = [bare(1), rich(2), bare(3), rich(4)]
        assert [i["url"] for i in order_for_push(items)] == [url(2), url(4), url(1), url(3)]
