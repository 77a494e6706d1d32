"""Exceptions raised across the collector."""


class CurtaincallError(Exception):
    pass


class SourceConfigError(CurtaincallError):
    """The primary source cannot be queried (no service key)."""


class GeocodingAuthError(CurtaincallError):
    """The geocoding service rejected our credential (HTTP 403)."""

    def __init__(self, message: str, detail=None):
        super().__init__(message)
        self.detail = detail


class CrawlInProgressError(CurtaincallError):
    """A crawl is already running in this process."""
