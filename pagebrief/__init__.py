from .errors import (
    BrowserFetchError,
    ConfigError,
    ErrorKind,
    ExtractionError,
    FetchError,
    InputError,
    NavigationTimeoutError,
    PageBriefError,
    ScrapeError,
    ServiceFetchError,
)
from .pipeline import aclose_default_retriever, get_default_retriever, scrape
from .retrieval import Retriever
from .settings import ScrapeConfig, ServiceSettings, load_scrape_config, load_service_settings

__all__ = [
    "BrowserFetchError",
    "ConfigError",
    "ErrorKind",
    "ExtractionError",
    "FetchError",
    "InputError",
    "NavigationTimeoutError",
    "PageBriefError",
    "Retriever",
    "ScrapeConfig",
    "ScrapeError",
    "ServiceFetchError",
    "ServiceSettings",
    "aclose_default_retriever",
    "get_default_retriever",
    "load_scrape_config",
    "load_service_settings",
    "scrape",
]
