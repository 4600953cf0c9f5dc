"""
DOM-card extractor for server-rendered listing cards.

Each field is read by an ordered list of independent strategies; the first
strategy returning a non-empty value wins. Strategies take the card element
and return a value or None.
"""
import re

from alternativeto_scraper.merge import merge_into
from alternativeto_scraper.normalize import (
    clean_item,
    float_val,
    has_license_token,
    has_pricing_token,
    int_val,
    is_noise_field_value,
    txt,
    uniq,
)
from alternativeto_scraper.urls import abs_url, canonical_tool

CARD_SELECTOR = (
    'article.app-item-container, li[data-testid^="item-"], div[data-testid="app-listing-item"], '
    'article[class*="app"], li[class*="item"]'
)
LISTING_CARD_SELECTOR = CARD_SELECTOR + ', div.flex.flex-col.gap-3 > div'
TITLE_ANCHOR_SELECTOR = (
    'h2 a[href*="/software/"], h3 a[href*="/software/"], '
    'a.no-link-color[href*="/software/"], a[href*="/software/"]'
)
PRIMARY_ANCHOR_SELECTOR = (
    'h2 a.no-link-color[href*="/software/"], h3 a.no-link-color[href*="/software/"], '
    'a.no-link-color[href*="/software/"]'
)
ALTERNATIVES_RE = re.compile(r'\balternatives?\b', re.I)

COST_HEADING_RE = re.compile(r'cost\s*/\s*license|pricing|license|price', re.I)
PLATFORM_HEADING_RE = re.compile(r'platforms?|operating system', re.I)
APP_TYPE_HEADING_RE = re.compile(r'application\s*types?|categories?|tags?', re.I)
ORIGIN_HEADING_RE = re.compile(r'origin|made in|country|location', re.I)
BEST_ALTERNATIVE_RE = re.compile(r'best\s*alternative|top\s*alternative', re.I)
LIKES_TEXT_RE = re.compile(r'(\d[\d,]*)\s*likes?', re.I)
RATING_TEXT_RE = re.compile(r'rating[:\s]*(\d+\.?\d*)', re.I)


def text_of(element):
    return txt(element.get_text(' ')) if element is not None else ''


def first_text(card, selector):
    return text_of(card.select_one(selector)) or None


def first_non_empty(strategies, card):
    for strategy in strategies:
        value = strategy(card)
        if value not in (None, '', []):
            return value
    return None


def values_from_heading(card, pattern):
    """Values listed under the first heading whose text matches pattern."""
    heading = next(
        (el for el in card.select('h2, h3, h4, dt, strong') if pattern.search(text_of(el))),
        None,
    )
    if heading is None or heading.parent is None:
        return []
    parent = heading.parent
    entries = parent.select('ul li, ol li') or parent.select('a, span, p, div')
    heading_text = text_of(heading)
    values = [text_of(el) for el in entries]
    return uniq([v for v in values if not is_noise_field_value(v) and v != heading_text])


def labeled_value(card, pattern):
    """Single value next to a label such as 'Best alternative: X'."""
    values = values_from_heading(card, pattern)
    if values:
        return values[0]
    for element in card.select('dt, th, strong, span, div, p'):
        label = text_of(element)
        if not label or not pattern.search(label):
            continue
        anchor = element.find('a')
        sibling = element.find_next_sibling(['dd', 'td', 'span', 'div', 'p'])
        value = text_of(anchor) or text_of(sibling) or txt(':'.join(label.split(':')[1:]))
        if value:
            return value
    return None


def parse_cost_license(values):
    clean = uniq(values)
    if not clean:
        return {'pricing': None, 'cost': None, 'license': None}
    return {
        'pricing': next((v for v in clean if has_pricing_token(v)), None),
        'cost': ' | '.join(clean),
        'license': next((v for v in clean if has_license_token(v)), None),
    }


def _likes_from_text(card):
    match = LIKES_TEXT_RE.search(text_of(card))
    return int_val(match.group(1)) if match else None


def _likes_from_counter(card):
    return int_val(first_text(card, '[class*="like"], [data-testid*="like"]'))


def _rating_from_indicator(card):
    return float_val(first_text(card, '[aria-label*="rating" i], [class*="rating"], [class*="score"], [data-testid*="rating"]'))


def _rating_from_text(card):
    match = RATING_TEXT_RE.search(text_of(card))
    return float_val(match.group(1)) if match else None


def _logo(card):
    img = card.find('img')
    if img is None:
        return None
    src = img.get('src') or img.get('data-src')
    return src if isinstance(src, str) else None


FIELD_STRATEGIES = {
    'description': [
        lambda card: first_text(card, '[id*="description"] p, p[class*="description"], [class*="description"], '
                                      'p[class*="tagline"], [class*="summary"]'),
        lambda card: first_text(card, 'p'),
        lambda card: first_text(card, '[class*="excerpt"], .app-description'),
    ],
    'category': [lambda card: first_text(card, '[class*="category"], [data-testid*="category"]')],
    'developer': [
        lambda card: first_text(card, '[class*="company"], [class*="developer"], '
                                      '[data-testid*="company"], [class*="author"]'),
    ],
    'likes': [_likes_from_text, _likes_from_counter],
    'rating': [_rating_from_indicator, _rating_from_text],
    'logoUrl': [_logo],
    'platforms': [lambda card: values_from_heading(card, PLATFORM_HEADING_RE)],
    'applicationTypes': [lambda card: values_from_heading(card, APP_TYPE_HEADING_RE)],
    'origins': [lambda card: values_from_heading(card, ORIGIN_HEADING_RE)],
    'bestAlternative': [lambda card: labeled_value(card, BEST_ALTERNATIVE_RE)],
}


def card_title(card, anchor):
    return text_of(anchor) or first_text(card, 'h2, h3, h4, [class*="title"]')


def extract_card(card, page_url):
    """Raw-to-clean record for a single card element, or None."""
    anchor = card.select_one(TITLE_ANCHOR_SELECTOR)
    url = canonical_tool(anchor.get('href'), page_url) if anchor is not None else None
    if not url:
        return None

    raw = {field: first_non_empty(strategies, card) for field, strategies in FIELD_STRATEGIES.items()}
    raw.update(parse_cost_license(values_from_heading(card, COST_HEADING_RE)))
    raw['url'] = url
    raw['title'] = card_title(card, anchor)
    if raw['logoUrl']:
        raw['logoUrl'] = abs_url(raw['logoUrl'], page_url)

    return clean_item(raw, 'html')


def extract_cards(soup, page_url):
    by_url = {}
    for card in soup.select(CARD_SELECTOR):
        merge_into(by_url, [extract_card(card, page_url)])
    return list(by_url.values())


def _primary_anchor(card):
    for anchor in card.select(PRIMARY_ANCHOR_SELECTOR):
        if not ALTERNATIVES_RE.search(text_of(anchor)):
            return anchor
    for anchor in card.select(TITLE_ANCHOR_SELECTOR):
        label = text_of(anchor)
        if label and not ALTERNATIVES_RE.search(label) and 'text-meta' not in (anchor.get('class') or []):
            return anchor
    return None


def extract_listing_urls(soup, page_url):
    """
    Link-only scan of the primary card anchors, in page order.

    This is the independent tally of what the page is expected to list.
    """
    urls = []

    def add(href):
        url = canonical_tool(href, page_url)
        if url and url not in urls:
            urls.append(url)

    for card in soup.select(LISTING_CARD_SELECTOR):
        anchor = _primary_anchor(card)
        if anchor is not None:
            add(anchor.get('href'))
    if not urls:
        for anchor in soup.select('a.no-link-color[href*="/software/"]'):
            add(anchor.get('href'))
    return urls
