import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path

import yaml
from pydantic import BaseModel

from .errors import ConfigError

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[1]

FETCH_MODES = ("service", "browser", "hybrid")
HYBRID_ORDERS = ("browser-first", "service-first")
# networkidle0 / networkidle2: at most 0 / 2 requests in flight for 500 ms after "load"
WAIT_UNTIL_OPTIONS = ("load", "domcontentloaded", "networkidle", "commit", "networkidle0", "networkidle2")

DEFAULT_SERVICE_ENDPOINT = "https://api.scraperapi.com"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/113.0.0.0 Safari/537.36 PageBrief/2.0"
)


class ServiceSettings(BaseModel):
    """
    Connection settings for the remote fetch service.

    The credential only ever comes from the environment, never from
    scrape_config.yaml, so the YAML file can be committed.
    """
    endpoint: str = DEFAULT_SERVICE_ENDPOINT
    api_key: str | None = None
    country_code: str | None = None
    device_type: str | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


def load_service_settings(env: Mapping[str, str] | None = None) -> ServiceSettings:
    env = os.environ if env is None else env
    return ServiceSettings(
        endpoint=env.get("SCRAPER_API_URL") or DEFAULT_SERVICE_ENDPOINT,
        api_key=env.get("SCRAPER_API_KEY") or None,
        country_code=env.get("SCRAPER_COUNTRY_CODE") or None,
        device_type=env.get("SCRAPER_DEVICE_TYPE") or None,
    )


@dataclass(frozen=True)
class ScrapeConfig:
    """
    Central configuration for retrieval behavior.

    Values can be overridden via scrape_config.yaml at the project root and
    then via SCRAPER_* environment variables (see ENV_OVERRIDES).
    """

    # Retrieval mode; None picks "service" when an API key exists, else "browser"
    fetch_mode: str | None = None
    hybrid_order: str = "browser-first"

    # General
    timeout_ms: int = 60_000
    user_agent: str = DEFAULT_USER_AGENT
    accept_language: str = "en-US,en;q=0.9"

    # Service
    render_js: bool = False

    # Browser tuning
    browser_executable_path: str | None = None
    browser_wait_until: str = "networkidle2"
    browser_wait_ms: int = 0
    browser_headless: bool = True

    def validate(self) -> None:
        if self.fetch_mode is not None and self.fetch_mode not in FETCH_MODES:
            raise ConfigError(
                f"Unknown fetch mode {self.fetch_mode!r}. "
                "Set SCRAPER_FETCH_MODE to service, browser, or hybrid."
            )
        if self.hybrid_order not in HYBRID_ORDERS:
            raise ConfigError(f"Unknown hybrid order {self.hybrid_order!r}.")
        if self.browser_wait_until not in WAIT_UNTIL_OPTIONS:
            raise ConfigError(
                f"Unknown browser wait strategy {self.browser_wait_until!r}; "
                f"expected one of {', '.join(WAIT_UNTIL_OPTIONS)}."
            )


ENV_OVERRIDES = {
    "SCRAPER_FETCH_MODE": "fetch_mode",
    "SCRAPER_HYBRID_ORDER": "hybrid_order",
    "SCRAPER_RENDER_JS": "render_js",
    "SCRAPER_TIMEOUT_MS": "timeout_ms",
    "SCRAPER_ACCEPT_LANGUAGE": "accept_language",
    "SCRAPER_BROWSER_WAIT_UNTIL": "browser_wait_until",
    "SCRAPER_BROWSER_WAIT_MS": "browser_wait_ms",
    "BROWSER_EXECUTABLE_PATH": "browser_executable_path",
}


# Choice fields compared case-insensitively
LOWERCASE_FIELDS = {"fetch_mode", "hybrid_order", "browser_wait_until"}


def _coerce(name: str, raw, default):
    """Convert a YAML or environment value to the type of the field's default."""
    if isinstance(default, bool):
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() == "true"
    if isinstance(default, int):
        try:
            value = int(raw)
        except (TypeError, ValueError):
            logger.warning("[config] %s=%r is not an integer, keeping %s", name, raw, default)
            return default
        # zero or negative timeouts behave like "unset"
        if name == "timeout_ms" and value <= 0:
            return default
        return value
    if name in LOWERCASE_FIELDS:
        return str(raw).strip().lower()
    return str(raw)


def apply_env_overrides(config: ScrapeConfig, env: Mapping[str, str] | None = None) -> ScrapeConfig:
    env = os.environ if env is None else env
    defaults = ScrapeConfig()
    overrides = {}
    for var, name in ENV_OVERRIDES.items():
        raw = env.get(var)
        if not raw:
            continue
        overrides[name] = _coerce(name, raw, getattr(defaults, name))
    return replace(config, **overrides) if overrides else config


def load_scrape_config(
    path: str | Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ScrapeConfig:
    """
    Load ScrapeConfig from YAML if present, then apply environment overrides.

    By default, looks for `scrape_config.yaml` at the project root.
    """

    if path is None:
        path = PROJECT_ROOT / "scrape_config.yaml"

    path = Path(path)
    config = ScrapeConfig()

    if not path.exists():
        logger.info("[config] YAML not found at %s, using defaults", path)
    else:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            logger.warning("[config] Expected mapping in %s, got %s, using defaults", path, type(data))
        else:
            allowed_keys = {f.name for f in fields(ScrapeConfig)}
            filtered = {
                k: _coerce(k, v, getattr(config, k))
                for k, v in data.items()
                if k in allowed_keys and v is not None
            }
            config = ScrapeConfig(**filtered)

    config = apply_env_overrides(config, env)
    config.validate()
    return config
