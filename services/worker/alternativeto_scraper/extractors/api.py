"""
Intercepted-API extractor: JSON bodies captured from background responses
during the page visit.
"""
from alternativeto_scraper.extractors.object_tree import from_object_tree
from alternativeto_scraper.merge import merge_into


def extract_from_payloads(payloads, page_url):
    by_url = {}
    for payload in payloads or []:
        if isinstance(payload, (dict, list)):
            merge_into(by_url, from_object_tree(payload, page_url, 'internal-api'))
    return list(by_url.values())
