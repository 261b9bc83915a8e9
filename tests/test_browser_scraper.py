import asyncio
from pathlib import Path
from types import SimpleNamespace

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from pagebrief import browser_scraper
from pagebrief.browser_scraper import BrowserHandle, BrowserScraper, resolve_executable
from pagebrief.errors import BrowserFetchError, ConfigError, NavigationTimeoutError
from pagebrief.settings import ScrapeConfig


@pytest.fixture(autouse=True)
def short_idle_window(monkeypatch):
    monkeypatch.setattr(browser_scraper, "NETWORK_IDLE_WINDOW_S", 0.01)


class FakePage:
    def __init__(
        self,
        goto_exc: Exception | None = None,
        html: str = "<html>rendered</html>",
        stuck_requests: int = 0,
        finishing_requests: int = 0,
        finish_after_s: float = 0.02,
    ):
        self.goto_exc = goto_exc
        self.html = html
        self.stuck_requests = stuck_requests
        self.finishing_requests = finishing_requests
        self.finish_after_s = finish_after_s
        self.handlers = {}
        self.headers = None
        self.goto_kwargs = None
        self.waited_ms = None
        self.closed = False

    def on(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)

    def emit(self, event, request):
        for handler in self.handlers.get(event, []):
            handler(request)

    async def set_extra_http_headers(self, headers):
        self.headers = headers

    async def goto(self, url, **kwargs):
        self.goto_kwargs = {"url": url, **kwargs}
        if self.goto_exc is not None:
            raise self.goto_exc
        # Requests still open when "load" fires, e.g. long-polls and beacons
        for _ in range(self.stuck_requests):
            self.emit("request", object())
        loop = asyncio.get_running_loop()
        for _ in range(self.finishing_requests):
            request = object()
            self.emit("request", request)
            loop.call_later(self.finish_after_s, self.emit, "requestfinished", request)

    async def wait_for_timeout(self, ms):
        self.waited_ms = ms

    async def content(self):
        return self.html

    async def close(self):
        self.closed = True


class FakeBrowser:
    def __init__(self, page: FakePage | None = None):
        self.page = page or FakePage()
        self.page_kwargs = None
        self.handlers = {}
        self.alive = True
        self.closed = False

    def on(self, event, handler):
        self.handlers[event] = handler

    def is_connected(self):
        return self.alive

    def disconnect(self):
        self.alive = False
        self.handlers["disconnected"](self)

    async def new_page(self, **kwargs):
        self.page_kwargs = kwargs
        return self.page

    async def close(self):
        self.closed = True


class CountingLauncher:
    def __init__(self):
        self.launched: list[FakeBrowser] = []

    async def __call__(self):
        await asyncio.sleep(0)
        browser = FakeBrowser()
        self.launched.append(browser)
        return browser


def scraper_with(page: FakePage, config: ScrapeConfig | None = None) -> BrowserScraper:
    config = config or ScrapeConfig()
    browser = FakeBrowser(page)

    async def launcher():
        return browser

    return BrowserScraper(config, BrowserHandle(config, launcher=launcher))


@pytest.mark.asyncio
async def test_fetch_returns_rendered_html_and_closes_page():
    page = FakePage()
    config = ScrapeConfig(accept_language="da-DK", browser_wait_ms=250, timeout_ms=9000)
    html = await scraper_with(page, config).fetch("https://example.com")

    assert html == "<html>rendered</html>"
    assert page.headers == {"Accept-Language": "da-DK"}
    assert page.goto_kwargs == {"url": "https://example.com", "wait_until": "load", "timeout": 9000}
    assert page.waited_ms == 250
    assert page.closed


@pytest.mark.asyncio
async def test_no_settle_delay_by_default():
    page = FakePage()
    await scraper_with(page).fetch("https://example.com")
    assert page.waited_ms is None


@pytest.mark.asyncio
async def test_navigation_timeout_closes_page():
    page = FakePage(goto_exc=PlaywrightTimeoutError("Timeout 10ms exceeded."))
    with pytest.raises(NavigationTimeoutError):
        await scraper_with(page).fetch("https://example.com")
    assert page.closed


@pytest.mark.asyncio
async def test_navigation_error_closes_page():
    page = FakePage(goto_exc=PlaywrightError("net::ERR_NAME_NOT_RESOLVED"))
    with pytest.raises(BrowserFetchError, match="ERR_NAME_NOT_RESOLVED"):
        await scraper_with(page).fetch("https://nowhere.invalid")
    assert page.closed


@pytest.mark.asyncio
async def test_repeated_failures_leak_no_pages():
    pages = [FakePage(goto_exc=PlaywrightTimeoutError("Timeout")) for _ in range(3)]
    for page in pages:
        with pytest.raises(NavigationTimeoutError):
            await scraper_with(page).fetch("https://example.com")
    assert all(p.closed for p in pages)


@pytest.mark.asyncio
async def test_concurrent_first_use_launches_once():
    launcher = CountingLauncher()
    handle = BrowserHandle(ScrapeConfig(), launcher=launcher)

    first, second, third = await asyncio.gather(handle.get(), handle.get(), handle.get())

    assert len(launcher.launched) == 1
    assert first is second is third


@pytest.mark.asyncio
async def test_disconnect_triggers_relaunch():
    launcher = CountingLauncher()
    handle = BrowserHandle(ScrapeConfig(), launcher=launcher)

    first = await handle.get()
    first.disconnect()
    assert not handle.connected

    second = await handle.get()
    assert second is not first
    assert len(launcher.launched) == 2


@pytest.mark.asyncio
async def test_close_shuts_browser_down():
    launcher = CountingLauncher()
    async with BrowserHandle(ScrapeConfig(), launcher=launcher) as handle:
        browser = await handle.get()
    assert browser.closed
    assert not handle.connected


def test_resolve_executable_prefers_override(tmp_path: Path):
    binary = tmp_path / "chromium"
    binary.write_text("")
    playwright = SimpleNamespace(chromium=SimpleNamespace(executable_path="/nope"))
    config = ScrapeConfig(browser_executable_path=str(binary))
    assert resolve_executable(config, playwright) == str(binary)


def test_resolve_executable_missing_is_config_error(tmp_path: Path):
    playwright = SimpleNamespace(chromium=SimpleNamespace(executable_path=str(tmp_path / "absent")))
    with pytest.raises(ConfigError, match="Chromium executable"):
        resolve_executable(ScrapeConfig(), playwright)


@pytest.mark.asyncio
async def test_mostly_idle_tolerates_two_open_requests():
    page = FakePage(stuck_requests=2)
    html = await scraper_with(page, ScrapeConfig(timeout_ms=1000)).fetch("https://example.com")
    assert html == "<html>rendered</html>"
    assert page.closed


@pytest.mark.asyncio
async def test_mostly_idle_waits_for_requests_to_drain():
    page = FakePage(finishing_requests=3, finish_after_s=0.05)
    loop = asyncio.get_running_loop()
    started = loop.time()
    html = await scraper_with(page, ScrapeConfig(timeout_ms=1000)).fetch("https://example.com")
    assert html == "<html>rendered</html>"
    assert loop.time() - started >= 0.05


@pytest.mark.asyncio
async def test_mostly_idle_times_out_when_network_stays_busy():
    page = FakePage(stuck_requests=3)
    with pytest.raises(NavigationTimeoutError, match="3 requests still in flight"):
        await scraper_with(page, ScrapeConfig(timeout_ms=100)).fetch("https://example.com")
    assert page.closed


@pytest.mark.asyncio
async def test_fully_idle_rejects_a_single_open_request():
    page = FakePage(stuck_requests=1)
    config = ScrapeConfig(browser_wait_until="networkidle0", timeout_ms=100)
    with pytest.raises(NavigationTimeoutError):
        await scraper_with(page, config).fetch("https://example.com")
    assert page.goto_kwargs["wait_until"] == "load"


@pytest.mark.asyncio
async def test_native_wait_strategy_is_passed_to_playwright():
    page = FakePage()
    await scraper_with(page, ScrapeConfig(browser_wait_until="networkidle")).fetch("https://example.com")
    assert page.goto_kwargs["wait_until"] == "networkidle"
    assert page.handlers == {}


@pytest.mark.asyncio
async def test_close_stops_driver_even_if_browser_close_fails():
    class BrokenBrowser(FakeBrowser):
        async def close(self):
            raise PlaywrightError("Target closed")

    class FakePlaywright:
        stopped = False

        async def stop(self):
            self.stopped = True

    async def launcher():
        return BrokenBrowser()

    handle = BrowserHandle(ScrapeConfig(), launcher=launcher)
    await handle.get()
    driver = FakePlaywright()
    handle._playwright = driver

    with pytest.raises(PlaywrightError):
        await handle.close()
    assert driver.stopped
    assert not handle.connected
