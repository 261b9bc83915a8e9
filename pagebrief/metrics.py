from dataclasses import dataclass

from .errors import PageBriefError


@dataclass
class FetchResult:
    """
    Normalized outcome of one fetch attempt, shared by both fetchers.

    Fields:
        url      : The URL that was requested.
        fetcher  : Name of the fetcher, "service" or "browser".
        html     : Retrieved document on success, None on failure.
        error    : Taxonomy error on failure, None on success.
        ttl_s    : Total time the attempt took (seconds).
    """
    url: str
    fetcher: str
    html: str | None = None
    error: PageBriefError | None = None
    ttl_s: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None and self.html is not None
