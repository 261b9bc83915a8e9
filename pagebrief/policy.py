"""
Policy module: decides which fetchers a request may use, in what order,
and whether a failed attempt should fall back to the next one.

The logic is:
- explicit
- configurable
- easily auditable
"""

from .errors import ConfigError
from .metrics import FetchResult
from .settings import FETCH_MODES, ScrapeConfig, ServiceSettings

BROWSER = "browser"
SERVICE = "service"


def resolve_fetch_mode(config: ScrapeConfig, service: ServiceSettings) -> str:
    if config.fetch_mode:
        return config.fetch_mode
    return SERVICE if service.enabled else BROWSER


def plan_attempts(mode: str, hybrid_order: str = "browser-first") -> tuple[str, ...]:
    if mode == SERVICE:
        return (SERVICE,)
    if mode == BROWSER:
        return (BROWSER,)
    if mode == "hybrid":
        if hybrid_order == "service-first":
            return (SERVICE, BROWSER)
        return (BROWSER, SERVICE)
    raise ConfigError(
        f"No fetch mode enabled. Set SCRAPER_FETCH_MODE to {', '.join(FETCH_MODES[:-1])}, "
        f"or {FETCH_MODES[-1]}."
    )


def should_fall_back(r: FetchResult, remaining: int) -> bool:
    # One fallback per remaining fetcher, never a retry of the same one
    if r.ok:
        return False
    return remaining > 0
