import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path

from playwright.async_api import Browser, Playwright, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .errors import BrowserFetchError, ConfigError, NavigationTimeoutError
from .settings import ScrapeConfig

logger = logging.getLogger(__name__)

# Flags suited to containers and serverless hosts without a sandbox
CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]
DEFAULT_VIEWPORT = {"width": 1280, "height": 720}

# Puppeteer-style idle strategies: max in-flight requests tolerated
IDLE_THRESHOLDS = {"networkidle0": 0, "networkidle2": 2}
NETWORK_IDLE_WINDOW_S = 0.5


class InflightRequests:
    """
    Counts a page's unfinished requests and waits for the network to go quiet.

    "Quiet" means at most `max_inflight` requests for one full idle window;
    going above the threshold restarts the window.
    """

    def __init__(self, page, max_inflight: int):
        self.max_inflight = max_inflight
        self._pending = set()
        self._busy = asyncio.Event()
        self._quiet = asyncio.Event()
        self._update()
        page.on("request", self._started)
        page.on("requestfinished", self._done)
        page.on("requestfailed", self._done)

    @property
    def count(self) -> int:
        return len(self._pending)

    def _started(self, request) -> None:
        self._pending.add(request)
        self._update()

    def _done(self, request) -> None:
        self._pending.discard(request)
        self._update()

    def _update(self) -> None:
        if self.count > self.max_inflight:
            self._quiet.clear()
            self._busy.set()
        else:
            self._busy.clear()
            self._quiet.set()

    async def wait_for_idle(self, window_s: float) -> None:
        while True:
            await self._quiet.wait()
            try:
                await asyncio.wait_for(self._busy.wait(), window_s)
            except asyncio.TimeoutError:
                return


def resolve_executable(config: ScrapeConfig, playwright: Playwright) -> str:
    """
    Return the Chromium binary to launch.

    The configured override wins; otherwise Playwright's bundled Chromium,
    which only exists after `playwright install chromium`.
    """
    candidate = config.browser_executable_path or playwright.chromium.executable_path
    if not candidate or not Path(candidate).exists():
        raise ConfigError(
            "Unable to locate a Chromium executable. Set BROWSER_EXECUTABLE_PATH or run "
            "`playwright install chromium`."
        )
    return candidate


class BrowserHandle:
    """
    Owner of the one long-lived browser process shared by all requests.

    - Launches lazily on first use; concurrent first callers share one launch
    - Drops the browser when it reports "disconnected" so the next call relaunches
    - Async context manager: `async with BrowserHandle(config) as handle: ...`
    """

    def __init__(self, config: ScrapeConfig, launcher: Callable[[], Awaitable[Browser]] | None = None):
        self.config = config
        self._launcher = launcher or self._launch
        self._lock = asyncio.Lock()
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @property
    def connected(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def get(self) -> Browser:
        if self.connected:
            return self._browser

        async with self._lock:
            # Another task may have finished launching while we waited
            if not self.connected:
                browser = await self._launcher()
                browser.on("disconnected", self._on_disconnected)
                self._browser = browser
            return self._browser

    def _on_disconnected(self, browser: Browser) -> None:
        if browser is self._browser:
            logger.warning("Browser disconnected; it will be relaunched on next use")
            self._browser = None

    async def _launch(self) -> Browser:
        if self._playwright is None:
            self._playwright = await async_playwright().start()

        executable = resolve_executable(self.config, self._playwright)
        logger.info("Launching Chromium from %s", executable)
        try:
            return await self._playwright.chromium.launch(
                executable_path=executable,
                headless=self.config.browser_headless,
                args=CHROMIUM_ARGS,
            )
        except PlaywrightError as e:
            raise BrowserFetchError(f"Failed to launch browser: {e.message}") from e

    async def close(self) -> None:
        browser, self._browser = self._browser, None
        playwright, self._playwright = self._playwright, None
        try:
            if browser is not None:
                await browser.close()
        finally:
            if playwright is not None:
                await playwright.stop()


class BrowserScraper:
    """
    JS-enabled fetcher using the shared Playwright browser.

    Opens one page per request and always closes it, whatever happens during
    navigation or content reading.
    """

    name = "browser"

    def __init__(self, config: ScrapeConfig, handle: BrowserHandle):
        self.config = config
        self.handle = handle

    async def _navigate(self, page, url: str) -> None:
        wait_until = self.config.browser_wait_until
        max_inflight = IDLE_THRESHOLDS.get(wait_until)
        if max_inflight is None:
            await page.goto(url, wait_until=wait_until, timeout=self.config.timeout_ms)
            return

        # Listen before navigating so no early request is missed
        inflight = InflightRequests(page, max_inflight)
        loop = asyncio.get_running_loop()
        started = loop.time()
        await page.goto(url, wait_until="load", timeout=self.config.timeout_ms)

        remaining_s = self.config.timeout_ms / 1000 - (loop.time() - started)
        try:
            await asyncio.wait_for(inflight.wait_for_idle(NETWORK_IDLE_WINDOW_S), max(remaining_s, 0))
        except asyncio.TimeoutError as e:
            raise NavigationTimeoutError(
                f"Navigation timeout of {self.config.timeout_ms}ms exceeded "
                f"({inflight.count} requests still in flight)"
            ) from e

    async def fetch(self, url: str) -> str:
        browser = await self.handle.get()
        try:
            page = await browser.new_page(
                user_agent=self.config.user_agent,
                viewport=DEFAULT_VIEWPORT,
                ignore_https_errors=True,
            )
        except PlaywrightError as e:
            raise BrowserFetchError(f"Failed to open page: {e.message}") from e

        try:
            await page.set_extra_http_headers({"Accept-Language": self.config.accept_language})
            await self._navigate(page, url)

            if self.config.browser_wait_ms > 0:
                await page.wait_for_timeout(self.config.browser_wait_ms)

            return await page.content()

        except PlaywrightTimeoutError as e:
            raise NavigationTimeoutError(f"Navigation timeout of {self.config.timeout_ms}ms exceeded") from e
        except PlaywrightError as e:
            raise BrowserFetchError(e.message) from e

        finally:
            try:
                await page.close()
            except PlaywrightError as close_error:
                logger.warning("Failed to close Playwright page: %s", close_error.message)
