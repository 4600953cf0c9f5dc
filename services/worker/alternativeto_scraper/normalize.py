"""
Record normalization.

Turns loosely-typed key/value bags produced by the extractors into the
canonical item shape (see items.ITEM_FIELDS). Every function here is total:
malformed values become None or an empty list, never an exception.
"""
import math
import re
from typing import Optional

import pycountry

from alternativeto_scraper.items import COLLECTION_FIELDS, ITEM_FIELDS
from alternativeto_scraper.urls import abs_url, canonical_tool

PRICING_RE = re.compile(r'(free|paid|freemium|subscription|trial|one[-\s]?time|lifetime)', re.I)
LICENSE_TYPE_RE = re.compile(
    r'(open\s*source|opensource|proprietary|commercial|apache|mit|gpl|bsd|mozilla|agpl|lgpl|mpl|cc0)',
    re.I,
)
SPLIT_RE = re.compile(r'[|,;/]+')
INT_RE = re.compile(r'(\d[\d,]*)')
FLOAT_RE = re.compile(r'(\d+(?:\.\d+)?)')
WHITESPACE_RE = re.compile(r'\s+')

# Section headings that leak into value lists when a card is over-matched
NOISE_FIELD_VALUES = {'application type', 'application types', 'cost / license', 'origin', 'platforms'}


def txt(value) -> str:
    """Collapse whitespace; '' for None and containers."""
    if value is None or isinstance(value, (dict, list, tuple, set)):
        return ''
    return WHITESPACE_RE.sub(' ', str(value)).strip()


def _label(value) -> str:
    if isinstance(value, dict):
        return txt(value.get('name') or value.get('title') or '')
    return txt(value)


def uniq(value) -> list:
    """
    Flatten a collection encoding into an ordered, de-duplicated list.

    Accepts lists, delimited strings (``a, b | c``), mappings of objects and
    objects exposing ``name``/``title``. Duplicates are detected on the
    case-folded text; the first-seen spelling is kept.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple, set)):
        values = list(value)
    elif isinstance(value, str):
        values = SPLIT_RE.split(value)
    elif isinstance(value, dict):
        values = [value] if ('name' in value or 'title' in value) else list(value.values())
    else:
        values = [value]

    out = []
    seen = set()
    for entry in values:
        label = _label(entry)
        key = label.casefold()
        if label and key not in seen:
            seen.add(key)
            out.append(label)
    return out


def uniq_urls(values, base) -> list:
    """Absolute, de-duplicated URL list. URLs are never split on delimiters."""
    if values is None:
        return []
    if not isinstance(values, (list, tuple, set)):
        values = [values]
    out = []
    for value in values:
        url = abs_url(value, base) if isinstance(value, str) else None
        if url and url not in out:
            out.append(url)
    return out


def int_val(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) and value >= 0 else None
    match = INT_RE.search(txt(value))
    if not match:
        return None
    return int(match.group(1).replace(',', ''))


def float_val(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    match = FLOAT_RE.search(txt(value))
    return float(match.group(1)) if match else None


def has_pricing_token(value) -> bool:
    return bool(PRICING_RE.search(txt(value)))


def has_license_token(value) -> bool:
    return bool(LICENSE_TYPE_RE.search(txt(value)))


def is_noise_field_value(value) -> bool:
    clean = txt(value).lower()
    return not clean or clean in NOISE_FIELD_VALUES


def country_from_code(code) -> Optional[str]:
    """Country name for an ISO 3166 alpha-2 code; the code itself if unknown."""
    clean = txt(code).upper()
    if not re.fullmatch(r'[A-Z]{2}', clean):
        return None
    country = pycountry.countries.get(alpha_2=clean)
    if country is None:
        return clean
    return getattr(country, 'common_name', None) or country.name


def empty_item(url) -> dict:
    item = {field: None for field in ITEM_FIELDS}
    for field in COLLECTION_FIELDS:
        item[field] = []
    item['url'] = url
    return item


def clean_item(raw, source=None) -> Optional[dict]:
    """
    Normalize a raw candidate into the canonical item shape.

    Returns None when the bag has no resolvable canonical tool URL.
    Idempotent: ``clean_item(clean_item(x)) == clean_item(x)``.
    """
    if not isinstance(raw, dict):
        return None
    url = canonical_tool(raw.get('url'))
    if not url:
        return None

    item = empty_item(url)
    item['title'] = txt(raw.get('title')) or None
    item['description'] = txt(raw.get('description')) or None
    item['rating'] = float_val(raw.get('rating'))
    item['likes'] = int_val(raw.get('likes'))
    item['platforms'] = [v for v in uniq(raw.get('platforms')) if not is_noise_field_value(v)]
    item['applicationTypes'] = [v for v in uniq(raw.get('applicationTypes')) if not is_noise_field_value(v)]
    item['origins'] = [v for v in uniq(raw.get('origins')) if not is_noise_field_value(v)]
    item['images'] = uniq_urls(raw.get('images'), url)
    item['category'] = txt(raw.get('category')) or (item['applicationTypes'][0] if item['applicationTypes'] else None)
    item['bestAlternative'] = txt(raw.get('bestAlternative')) or None
    item['developer'] = txt(raw.get('developer')) or None
    logo = raw.get('logoUrl')
    item['logoUrl'] = abs_url(logo, url) if isinstance(logo, str) else None

    pricing = txt(raw.get('pricing'))
    cost = txt(raw.get('cost'))
    license_ = txt(raw.get('license'))

    category_values = {v.casefold() for v in [txt(item['category'])] + item['applicationTypes'] if v}
    if pricing.casefold() in category_values:
        pricing = ''
    if cost.casefold() in category_values:
        cost = ''
    if license_.casefold() in category_values:
        license_ = ''

    if not pricing and has_pricing_token(cost):
        pricing = cost
    if not license_ and has_license_token(cost):
        license_ = cost
    if not cost and (pricing or license_):
        cost = ' | '.join(uniq([pricing, license_]))

    item['pricing'] = pricing or None
    item['cost'] = cost or None
    item['license'] = license_ or None
    item['_source'] = txt(source) or txt(raw.get('_source')) or 'alternativeto'
    return item
