"""
Merge engine: fuses partial records that share a canonical URL.
"""
from alternativeto_scraper.items import COLLECTION_FIELDS, SCALAR_FIELDS
from alternativeto_scraper.normalize import txt, uniq


def _present(value) -> bool:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return True
    return bool(txt(value))


def merge_item(a, b):
    """
    Merge b into a.

    Scalars keep a's value unless it is empty; description keeps the longer
    text; collections are unioned. ``_source`` moves to b's tag only when b
    contributed something, so re-merging an absorbed candidate is a no-op.
    """
    if not a:
        return b
    if not b:
        return a

    merged = dict(a)
    contributed = False
    for field in SCALAR_FIELDS:
        if field == 'description':
            continue
        if not _present(a.get(field)) and _present(b.get(field)):
            merged[field] = b[field]
            contributed = True

    if len(txt(b.get('description'))) > len(txt(a.get('description'))):
        merged['description'] = b['description']
        contributed = True

    for field in COLLECTION_FIELDS:
        current = list(a.get(field) or [])
        union = uniq(current + list(b.get(field) or []))
        if len(union) > len(uniq(current)):
            contributed = True
        merged[field] = union

    if contributed and b.get('_source'):
        merged['_source'] = b['_source']
    return merged


def merge_into(by_url, items):
    """Fold items into a url -> record dict, preserving first-seen order."""
    for item in items:
        if item and item.get('url'):
            by_url[item['url']] = merge_item(by_url.get(item['url']), item)
    return by_url


def merge_item_sets(*sets):
    """Merge several candidate lists per URL; earlier sets win scalar ties."""
    by_url = {}
    for items in sets:
        merge_into(by_url, items or [])
    return list(by_url.values())
