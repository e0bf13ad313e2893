class BlogDigestError(Exception):
    """Base class for every error raised by the extraction engine."""


class FetchError(BlogDigestError):
    """Network or HTTP failure; ``source_id`` is set once the source is known."""

    def __init__(self, url: str, reason: str, source_id: str | None = None):
        self.url = url
        self.reason = reason
        self.source_id = source_id
        super().__init__(url, reason)

    def __str__(self) -> str:
        prefix = f"[{self.source_id}] " if self.source_id else ""
        return f"{prefix}Failed to fetch '{self.url}': {self.reason}"


class NoFetchStrategyError(BlogDigestError):
    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(
            f"No custom scraper, RSS feed or scrapeable listing URL for source '{source_id}'"
        )


class ParseError(BlogDigestError):
    """Malformed structured data. Always recovered by the code that raised it."""

    def __init__(self, what: str, reason: str):
        self.what = what
        self.reason = reason
        super().__init__(f"Could not parse {what}: {reason}")


class RobotsDisallowedError(BlogDigestError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"Scraping disallowed by robots.txt for '{url}'")


class FetchTimeoutError(BlogDigestError):
    def __init__(self, source_id: str, timeout: float):
        self.source_id = source_id
        self.timeout = timeout
        super().__init__(f"Fetching source '{source_id}' timed out after {timeout:.1f}s")


class UnknownSourceError(BlogDigestError):
    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"Source not found: '{source_id}'")
