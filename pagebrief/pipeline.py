import logging

from .errors import InputError, PageBriefError, ScrapeError
from .extractor import extract_summary
from .retrieval import Retriever
from .settings import load_scrape_config, load_service_settings

logger = logging.getLogger(__name__)

_default_retriever: Retriever | None = None


def get_default_retriever() -> Retriever:
    """
    Process-wide retriever built from scrape_config.yaml and the environment.

    Built on first use; its browser handle is shared by every later call.
    """
    global _default_retriever
    if _default_retriever is None:
        _default_retriever = Retriever(load_scrape_config(), load_service_settings())
    return _default_retriever


async def aclose_default_retriever() -> None:
    global _default_retriever
    if _default_retriever is not None:
        retriever, _default_retriever = _default_retriever, None
        await retriever.aclose()


async def scrape(url: str, *, retriever: Retriever | None = None) -> tuple[str, ...]:
    """
    Retrieve `url` and return its summary as Markdown display lines.

    Raises:
        InputError: `url` is empty.
        ScrapeError: retrieval or extraction failed; `.cause` holds the reason.
    """
    if not url or not url.strip():
        raise InputError("Please provide a URL to scrape.")

    try:
        retriever = retriever or get_default_retriever()
        html = await retriever.fetch_html(url)
        return extract_summary(html, url, render_js=retriever.config.render_js)
    except PageBriefError as e:
        logger.error("Scraping failed: %s", e.message)
        raise ScrapeError(e) from e
