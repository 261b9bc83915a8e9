import logging
import time

from .browser_scraper import BrowserHandle, BrowserScraper
from .errors import PageBriefError
from .metrics import FetchResult
from .policy import BROWSER, SERVICE, plan_attempts, resolve_fetch_mode, should_fall_back
from .service_scraper import ServiceScraper
from .settings import ScrapeConfig, ServiceSettings

logger = logging.getLogger(__name__)


class Retriever:
    """
    Picks a fetch plan from the configured mode and runs it.

    - "service" / "browser": a single attempt, errors propagate as-is
    - "hybrid": first fetcher, then exactly one fallback to the other
    """

    def __init__(
        self,
        config: ScrapeConfig,
        service_settings: ServiceSettings,
        *,
        service: ServiceScraper | None = None,
        browser: BrowserScraper | None = None,
    ):
        self.config = config
        self.service_settings = service_settings
        self.mode = resolve_fetch_mode(config, service_settings)
        self.service = service or ServiceScraper(config, service_settings)
        self.browser = browser or BrowserScraper(config, BrowserHandle(config))

    def _fetcher(self, name: str):
        return {SERVICE: self.service, BROWSER: self.browser}[name]

    async def attempt(self, name: str, url: str) -> FetchResult:
        t0 = time.perf_counter()
        try:
            html = await self._fetcher(name).fetch(url)
        except PageBriefError as e:
            return FetchResult(url=url, fetcher=name, error=e, ttl_s=time.perf_counter() - t0)
        return FetchResult(url=url, fetcher=name, html=html, ttl_s=time.perf_counter() - t0)

    async def fetch_html(self, url: str) -> str:
        plan = plan_attempts(self.mode, self.config.hybrid_order)

        result = None
        for i, name in enumerate(plan):
            result = await self.attempt(name, url)
            if result.ok:
                logger.debug("Fetched %s via %s in %.2fs", url, name, result.ttl_s)
                return result.html

            remaining = len(plan) - i - 1
            if not should_fall_back(result, remaining):
                break
            logger.warning(
                "%s fetch failed, falling back to %s: %s",
                name.capitalize(), plan[i + 1], result.error.message,
            )

        raise result.error

    async def aclose(self) -> None:
        await self.browser.handle.close()
