"""
Live-render fallback extractor.

Reads cards from the rendered Playwright page rather than the HTML
snapshot, for listing cards that static extraction left sparse or missing.
"""
import logging

from alternativeto_scraper.merge import merge_into
from alternativeto_scraper.normalize import (
    LICENSE_TYPE_RE,
    PRICING_RE,
    clean_item,
    float_val,
    int_val,
)
from alternativeto_scraper.urls import canonical_tool

logger = logging.getLogger(__name__)

# Read-only DOM query; returns plain JSON-serializable card summaries.
READ_CARDS_JS = """
() => {
    const cards = [];
    const cardSelector = 'article.app-item-container, li[data-testid^="item-"], div[data-testid="app-listing-item"], div.flex.flex-col.gap-3 > div, article[class*="app"], li[class*="item"]';
    const seen = new Set();
    const textsOf = (card, selector, min, max) => {
        const out = [];
        for (const el of card.querySelectorAll(selector)) {
            const t = (el.textContent || '').trim();
            if (t && t.length > min && t.length < max) out.push(t);
        }
        return out;
    };
    for (const card of document.querySelectorAll(cardSelector)) {
        const anchors = Array.from(card.querySelectorAll('h2 a[href*="/software/"], h3 a[href*="/software/"], a.no-link-color[href*="/software/"], a[href*="/software/"]'));
        const primary = anchors.find((a) => {
            const text = (a.textContent || '').trim();
            return text && !/\\balternatives?\\b/i.test(text) && !a.classList.contains('text-meta');
        }) || anchors.find((a) => a.classList.contains('no-link-color')) || anchors[0];
        if (!primary) continue;
        const href = primary.getAttribute('href');
        if (!href || seen.has(href)) continue;
        seen.add(href);
        const heading = card.querySelector('h2, h3, h4');
        const title = (primary.textContent || '').trim() || (heading && heading.textContent || '').trim();
        const descriptions = textsOf(card, 'p, [class*="description"], [class*="tagline"], [class*="summary"]', 20, 100000)
            .filter((t) => t !== title);
        const icon = card.querySelector('img[data-testid^="icon-"], img');
        let likesText = null;
        for (const el of card.querySelectorAll('[class*="like"], [class*="vote"], [class*="upvote"], button')) {
            const t = (el.textContent || '').trim();
            if (t && /^\\d+$/.test(t.replace(/,/g, ''))) { likesText = t; break; }
        }
        const ratingTexts = [];
        for (const el of card.querySelectorAll('[aria-label*="rating" i], [class*="rating"], [class*="score"], [data-testid*="rating"]')) {
            const t = (el.getAttribute('aria-label') || el.textContent || '').trim();
            if (t) ratingTexts.push(t);
        }
        cards.push({
            href,
            title,
            description: descriptions[0] || null,
            tags: textsOf(card, '[class*="tag"], [class*="badge"], [class*="category"], [class*="label"], [class*="chip"]', 1, 50),
            costTexts: textsOf(card, '[class*="price"], [class*="cost"], [class*="license"], [class*="free"], [class*="paid"]', 1, 50),
            likesText,
            ratingTexts,
            logoUrl: icon ? (icon.getAttribute('src') || icon.getAttribute('data-src')) : null,
        });
    }
    return cards;
}
"""


def map_live_card(raw, page_url):
    """Normalize one card summary returned by READ_CARDS_JS."""
    url = canonical_tool(raw.get('href'), page_url)
    if not url or not (2 <= len(raw.get('title') or '') <= 200):
        return None
    cost_texts = raw.get('costTexts') or []
    tags = raw.get('tags') or []
    ratings = [float_val(text) for text in raw.get('ratingTexts') or []]
    return clean_item({
        'url': url,
        'title': raw.get('title'),
        'description': raw.get('description'),
        'likes': int_val(raw.get('likesText')) if raw.get('likesText') else None,
        'rating': next((value for value in ratings if value is not None), None),
        'pricing': next((t for t in cost_texts if PRICING_RE.search(t)), None),
        'license': next((t for t in cost_texts if LICENSE_TYPE_RE.search(t)), None),
        'cost': ' | '.join(cost_texts) or None,
        'category': next((t for t in tags if not PRICING_RE.search(t) and not LICENSE_TYPE_RE.search(t)), None),
        'logoUrl': raw.get('logoUrl'),
    }, 'dom')


def map_live_cards(raw_cards, page_url, only_urls=None):
    only = set(only_urls) if only_urls else None
    by_url = {}
    for raw in raw_cards or []:
        if not isinstance(raw, dict):
            continue
        item = map_live_card(raw, page_url)
        if item is None or (only is not None and item['url'] not in only):
            continue
        merge_into(by_url, [item])
    return list(by_url.values())


async def extract_live_cards(page, page_url, only_urls=None):
    """Run the DOM query in the rendered page; [] if the page cannot be read."""
    try:
        raw_cards = await page.evaluate(READ_CARDS_JS)
    except Exception as e:
        logger.debug(f'Live card extraction failed on {page_url}: {e}')
        return []
    return map_live_cards(raw_cards, page_url, only_urls)
