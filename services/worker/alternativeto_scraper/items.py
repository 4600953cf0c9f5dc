"""
Scrapy items for normalized data structures.
"""
import scrapy

SCALAR_FIELDS = (
    'title', 'description', 'category', 'rating', 'pricing', 'cost', 'license',
    'likes', 'bestAlternative', 'developer', 'logoUrl',
)
COLLECTION_FIELDS = ('platforms', 'applicationTypes', 'origins', 'images')
ITEM_FIELDS = ('url',) + SCALAR_FIELDS + COLLECTION_FIELDS + ('_source',)


class ToolItem(scrapy.Item):
    """Normalized AlternativeTo tool listing (entity_type: tool.v1)."""
    url = scrapy.Field()  # Canonical detail URL, unique key
    title = scrapy.Field()
    description = scrapy.Field()
    category = scrapy.Field()
    rating = scrapy.Field()  # float
    pricing = scrapy.Field()  # free / paid / freemium ...
    cost = scrapy.Field()  # Joined cost / license text
    license = scrapy.Field()  # open source / proprietary ...
    likes = scrapy.Field()  # int
    platforms = scrapy.Field()  # List of strings
    applicationTypes = scrapy.Field()  # List of strings
    origins = scrapy.Field()  # List of country names
    images = scrapy.Field()  # List of absolute URLs
    bestAlternative = scrapy.Field()
    developer = scrapy.Field()
    logoUrl = scrapy.Field()
    _source = scrapy.Field()  # Provenance tag (diagnostic only)

    @classmethod
    def from_record(cls, record):
        return cls({field: record.get(field) for field in ITEM_FIELDS})
