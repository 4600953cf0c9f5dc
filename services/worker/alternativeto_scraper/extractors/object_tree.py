"""
Generic object-graph walk shared by the JSON-LD, __NEXT_DATA__, flight and
intercepted-API extractors.

The walk makes no assumption about where entities sit in the graph. A node
is an entity when ``is_entity`` says so; its fields are read through the
``FIELD_PATHS`` table. Both are plain data so they can be tested on their
own.
"""
from alternativeto_scraper.merge import merge_into
from alternativeto_scraper.normalize import clean_item, country_from_code, txt, uniq
from alternativeto_scraper.urls import canonical_tool

TOOL_URL_TEMPLATE = 'https://alternativeto.net/software/{slug}/'

# Keys that may carry the entity's own detail URL
URL_KEYS = ('url', 'href', 'link', 'canonicalUrl')

# A node known only by urlName needs at least one of these to count as a tool
ENTITY_MARKERS = frozenset({
    'icon', 'iconUrl', 'screenshots', 'platforms', 'appTypes',
    'licenseCost', 'licenseModel', 'license', 'licenseType', 'pricing', 'price', 'cost',
    # schema.org spellings of the same facts
    'operatingSystem', 'applicationCategory', 'offers', 'logo', 'image',
})

SCREENSHOT_KEYS = ('url309x197', 'url618x394', 'url1200x1200', 'url')

# Ordered key paths per field; the first path resolving to a scalar wins
FIELD_PATHS = {
    'title': [('name',), ('title',), ('alternateName',), ('displayName',)],
    'description': [
        ('description',), ('shortDescriptionOrTagLine',), ('shortDescription',),
        ('summary',), ('abstract',), ('tagline',),
    ],
    'rating': [
        ('aggregateRating', 'ratingValue'), ('ratingValue',), ('rating', 'rating'),
        ('rating', 'value'), ('rating',), ('score',),
    ],
    'likes': [('likes',), ('likeCount',), ('votes',), ('voteCount',), ('upvotes',)],
    'pricing': [('licenseCost',), ('pricing',), ('cost',), ('price',)],
    'license': [('licenseModel',), ('license',), ('licenseType',), ('priceModel',)],
    'bestAlternative': [('topAlternatives', 0, 'name'), ('topAlternative', 'name')],
    'developer': [
        ('company', 'name'), ('companyName',), ('developer', 'name'), ('developer',),
        ('author', 'name'), ('provider', 'name'), ('publisher', 'name'),
        ('organization', 'name'), ('creator', 'name'),
    ],
    'logoUrl': [
        ('icon', 'url140'), ('icon', 'url70'), ('icon', 'url280'), ('icon', 'url40'),
        ('icon',), ('iconUrl',), ('image', 'url'), ('image',), ('logo', 'url'), ('logo',),
        ('thumbnailUrl',), ('thumbnail',),
    ],
}
COST_KEYS = ('licenseCost', 'licenseModel', 'cost', 'pricing', 'price')
ORIGIN_KEYS = ('origin', 'country', 'madeIn', 'location')


def resolve_path(node, path):
    """Follow a key/index path; None if any step is missing."""
    current = node
    for step in path:
        if isinstance(step, int):
            if not isinstance(current, list) or len(current) <= step:
                return None
            current = current[step]
        elif isinstance(current, dict):
            current = current.get(step)
        else:
            return None
    return current


def first_scalar(node, paths):
    for path in paths:
        value = resolve_path(node, path)
        if value is None or isinstance(value, (dict, list)):
            continue
        if isinstance(value, str) and not txt(value):
            continue
        return value
    return None


def explicit_url(node, page_url):
    """Canonical tool URL from the first URL key that resolves to one."""
    for key in URL_KEYS:
        url = canonical_tool(node.get(key), page_url) if isinstance(node.get(key), str) else None
        if url:
            return url
    return None


def slug_url(node):
    slug = node.get('urlName')
    if isinstance(slug, str) and txt(slug):
        return TOOL_URL_TEMPLATE.format(slug=txt(slug))
    return None


def node_url(node, page_url):
    """The canonical tool URL a node identifies, via a URL key or urlName."""
    return explicit_url(node, page_url) or slug_url(node)


def is_entity(node, page_url=None) -> bool:
    """
    A node naming a tool URL outright is an entity. A node known only by its
    urlName slug also needs a domain marker field.
    """
    if not isinstance(node, dict):
        return False
    if explicit_url(node, page_url):
        return True
    if not slug_url(node):
        return False
    return any(node.get(key) not in (None, '', [], {}) for key in ENTITY_MARKERS)


def _labels(values, keys):
    if not isinstance(values, list):
        return values
    out = []
    for value in values:
        if isinstance(value, dict):
            value = next((value.get(k) for k in keys if value.get(k)), None)
        out.append(value)
    return out


def map_entity(node, page_url, source):
    """Raw candidate bag for one entity node, run through the normalizer."""
    url = node_url(node, page_url)
    raw = {field: first_scalar(node, paths) for field, paths in FIELD_PATHS.items()}
    raw['url'] = url
    raw['_source'] = source

    app_types = uniq(_labels(node.get('appTypes'), ('name', 'appType')))
    if not app_types:
        categories = node.get('categories') if isinstance(node.get('categories'), list) else []
        tags = node.get('tags') if isinstance(node.get('tags'), list) else []
        app_types = uniq([node.get('applicationCategory'), node.get('category')] + categories + tags)
    raw['applicationTypes'] = app_types

    platforms = node.get('platforms')
    if not platforms:
        platforms = node.get('operatingSystem') or node.get('supportedPlatforms')
    raw['platforms'] = uniq(_labels(platforms, ('name', 'platform')))

    raw['images'] = [v for v in _labels(node.get('screenshots') or [], SCREENSHOT_KEYS) if isinstance(v, str)]

    company = node.get('company') if isinstance(node.get('company'), dict) else {}
    country = country_from_code(company.get('countryCode') or node.get('countryCode'))
    raw['origins'] = uniq([node.get(key) for key in ORIGIN_KEYS] + [country])

    raw['cost'] = ' | '.join(uniq([node.get(key) for key in COST_KEYS]))
    return clean_item(raw, source)


def walk(root):
    """
    Yield every dict in an object graph, depth-first.

    Shared sub-objects and reference cycles are visited once (identity
    based), and no depth limit is assumed.
    """
    stack = [root]
    seen = set()
    while stack:
        node = stack.pop()
        if not isinstance(node, (dict, list)) or id(node) in seen:
            continue
        seen.add(id(node))
        if isinstance(node, list):
            stack.extend(reversed(node))
            continue
        yield node
        stack.extend(reversed(list(node.values())))


def from_object_tree(root, page_url, source):
    """Extract and per-URL merge every tool entity found in root."""
    by_url = {}
    for node in walk(root):
        if is_entity(node, page_url):
            merge_into(by_url, [map_entity(node, page_url, source)])
    return list(by_url.values())
