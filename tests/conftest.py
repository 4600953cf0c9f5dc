"""Shared fixtures and HTML builders for listing-page tests."""

import json

import pytest

from alternativeto_scraper.fetcher import PageSnapshot

PAGE_URL = "https://alternativeto.net/category/ai-tools/ai-image-generator/"


def card_html(slug, title, description="", extra=""):
    """One server-rendered listing card."""
    return (
        f'<li class="app-list-item" data-testid="item-{slug}">'
        f'<h2><a class="no-link-color" href="/software/{slug}/about/">{title}</a></h2>'
        f"<p>{description}</p>{extra}"
        f"</li>"
    )


def json_ld_html(data):
    return f'<script type="application/ld+json">{json.dumps(data)}</script>'


def page_html(cards, head="", tail=""):
    return (
        "<html><head><title>Best AI Image Generators</title>"
        f"{head}</head><body><ul>{''.join(cards)}</ul>{tail}</body></html>"
    )


def tool_url(slug):
    return f"https://alternativeto.net/software/{slug}/"


@pytest.fixture
def five_card_page():
    cards = [card_html(slug, slug.title()) for slug in ("alpha", "bravo", "charlie", "delta", "echo")]
    tail = '<a rel="next" href="?p=2">Next</a>'
    return PageSnapshot(PAGE_URL, page_html(cards, tail=tail))


@pytest.fixture
def snapshot_factory():
    def make(slugs, url=PAGE_URL, payloads=None, next_href=None):
        cards = [card_html(slug, slug.title(), f"{slug.title()} turns text prompts into images.") for slug in slugs]
        tail = f'<a rel="next" href="{next_href}">Next</a>' if next_href else ""
        return PageSnapshot(url, page_html(cards, tail=tail), list(payloads or []))

    return make
