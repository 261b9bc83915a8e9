import asyncio
import json
import logging

import aiohttp

from .errors import ConfigError, ServiceFetchError
from .settings import ScrapeConfig, ServiceSettings

logger = logging.getLogger(__name__)


def _service_message(body: str) -> str | None:
    """Pull the structured `message` field out of an error body, if any."""
    try:
        data = json.loads(body)
    except ValueError:
        return None
    if isinstance(data, dict) and isinstance(data.get("message"), str) and data["message"]:
        return data["message"]
    return None


class ServiceScraper:
    """
    Fetcher that delegates rendering to a remote scraping service.

    - One GET per URL against `ServiceSettings.endpoint`
    - Optional JS rendering, country and device hints
    - Uses the injected aiohttp session, or a throwaway one per call
    """

    name = "service"

    def __init__(
        self,
        config: ScrapeConfig,
        settings: ServiceSettings,
        session: aiohttp.ClientSession | None = None,
    ):
        self.config = config
        self.settings = settings
        self.session = session

    def build_params(self, url: str) -> dict[str, str]:
        params = {"api_key": self.settings.api_key, "url": url}
        if self.config.render_js:
            params["render"] = "true"
        if self.settings.country_code:
            params["country_code"] = self.settings.country_code
        if self.settings.device_type:
            params["device_type"] = self.settings.device_type
        return params

    async def fetch(self, url: str) -> str:
        """
        Fetch the rendered HTML for `url` through the service.

        Raises:
            ConfigError: no API key configured.
            ServiceFetchError: timeout, transport failure or non-2xx reply.
        """
        if not self.settings.enabled:
            raise ConfigError(
                "SCRAPER_API_KEY is missing. Add it to your environment to enable the scraping service."
            )

        if self.session is not None:
            return await self._get(self.session, url)
        async with aiohttp.ClientSession() as session:
            return await self._get(session, url)

    async def _get(self, session: aiohttp.ClientSession, url: str) -> str:
        timeout = aiohttp.ClientTimeout(total=self.config.timeout_ms / 1000)
        headers = {"User-Agent": self.config.user_agent}

        try:
            async with session.get(
                self.settings.endpoint, params=self.build_params(url),
                headers=headers, timeout=timeout,
            ) as resp:
                # Undecodable bytes must not escape as UnicodeDecodeError
                body = await resp.text(errors="replace")
                if resp.status >= 400:
                    message = _service_message(body) or f"Request failed with status code {resp.status}"
                    raise ServiceFetchError(message, status=resp.status)
                return body
        except asyncio.TimeoutError as e:
            raise ServiceFetchError(f"timeout of {self.config.timeout_ms}ms exceeded") from e
        except aiohttp.ClientError as e:
            raise ServiceFetchError(str(e) or type(e).__name__) from e
