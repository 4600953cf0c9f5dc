"""
Exception hierarchy for the AlternativeTo scraper.
"""


class ScraperError(Exception):
    """Base exception for all scraper errors."""


class InputError(ScraperError):
    """Run input could not be normalized (bad numbers, no usable start URL)."""


class BlockedPageError(ScraperError):
    """A page is still a challenge/denial page after the stable-read retry."""

    def __init__(self, url, message='Request blocked - received 403 status code.'):
        super().__init__(message)
        self.url = url


class StorageError(ScraperError):
    """Dataset storage is misconfigured or unavailable."""
