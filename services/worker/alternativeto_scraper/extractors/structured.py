"""
Structured-script extractor: JSON-LD blocks, the __NEXT_DATA__ payload and
Next.js flight chunks (``self.__next_f.push([...])``).

Flight chunks are read as JSON literals, never evaluated.
"""
import json
import logging
import re

from alternativeto_scraper.extractors.object_tree import from_object_tree
from alternativeto_scraper.merge import merge_into

logger = logging.getLogger(__name__)

FLIGHT_PUSH = 'self.__next_f.push('
FLIGHT_RECORD_RE = re.compile(r'^([A-Za-z0-9]+):(.*)$')


def parse_json(text):
    """json.loads that returns None for malformed input."""
    if not text or not isinstance(text, str):
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


def collect_flight_entries(scripts):
    """Decode every push() argument found in the given script bodies."""
    decoder = json.JSONDecoder()
    entries = []
    for script in scripts:
        start = script.find(FLIGHT_PUSH)
        while start != -1:
            offset = start + len(FLIGHT_PUSH)
            try:
                entry, _ = decoder.raw_decode(script, offset)
                entries.append(entry)
            except ValueError:
                logger.debug('Skipping malformed flight chunk at offset %d', offset)
            start = script.find(FLIGHT_PUSH, offset)
    return entries


def parse_flight_records(entries):
    """Map flight record ids to their decoded JSON rows."""
    records = {}
    for entry in entries:
        if not isinstance(entry, list) or len(entry) < 2 or not isinstance(entry[1], str):
            continue
        for line in entry[1].split('\n'):
            match = FLIGHT_RECORD_RE.match(line)
            if not match:
                continue
            parsed = parse_json(match.group(2))
            if parsed is not None:
                records[match.group(1)] = parsed
    return records


def extract_from_flight(soup, page_url):
    scripts = [script.get_text() for script in soup.find_all('script')]
    records = parse_flight_records(collect_flight_entries(scripts))
    by_url = {}
    for record in records.values():
        merge_into(by_url, from_object_tree(record, page_url, 'next-flight'))
    return list(by_url.values())


def extract_from_next_data(soup, page_url):
    script = soup.find('script', id='__NEXT_DATA__')
    data = parse_json(script.get_text()) if script else None
    if not isinstance(data, (dict, list)):
        return []
    return from_object_tree(data, page_url, '__NEXT_DATA__')


def extract_from_json_ld(soup, page_url):
    by_url = {}
    for script in soup.find_all('script', attrs={'type': 'application/ld+json'}):
        data = parse_json(script.get_text())
        if isinstance(data, (dict, list)):
            merge_into(by_url, from_object_tree(data, page_url, 'json-ld'))
    return list(by_url.values())


def extract_structured(soup, page_url):
    """All script-embedded sources, flight first as it carries the most items."""
    by_url = {}
    merge_into(by_url, extract_from_flight(soup, page_url))
    merge_into(by_url, extract_from_next_data(soup, page_url))
    merge_into(by_url, extract_from_json_ld(soup, page_url))
    return list(by_url.values())
