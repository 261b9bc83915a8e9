"""
Command-line caller: `python -m pagebrief https://example.com`.

Prints the summary the chat bot would send, or the failure message.
"""

import argparse
import asyncio
import logging
import re
import sys
from dataclasses import replace

from .errors import PageBriefError
from .pipeline import scrape
from .retrieval import Retriever
from .settings import FETCH_MODES, load_scrape_config, load_service_settings

URL_PATTERN = re.compile(r"^(https?://\S+)", re.IGNORECASE)


def looks_like_url(text: str) -> bool:
    return bool(URL_PATTERN.match(text.strip()))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pagebrief", description="Summarize a web page for a chat message.")
    parser.add_argument("url", help="page to summarize (http:// or https://)")
    parser.add_argument("--mode", choices=FETCH_MODES, help="override SCRAPER_FETCH_MODE")
    parser.add_argument("--config", help="path to a scrape_config.yaml")
    parser.add_argument("--log-level", default="WARNING")
    return parser


async def run(url: str, retriever: Retriever) -> int:
    try:
        lines = await scrape(url, retriever=retriever)
    except PageBriefError as e:
        print(e.message, file=sys.stderr)
        return 1
    finally:
        await retriever.aclose()

    print("Scraped data:")
    print("\n".join(lines))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    url = args.url.strip()
    if not looks_like_url(url):
        print("Please send a valid URL only (starting with http:// or https://).", file=sys.stderr)
        return 2

    try:
        config = load_scrape_config(args.config)
    except PageBriefError as e:
        print(e.message, file=sys.stderr)
        return 1
    if args.mode:
        config = replace(config, fetch_mode=args.mode)

    retriever = Retriever(config, load_service_settings())
    return asyncio.run(run(url, retriever))


if __name__ == "__main__":
    sys.exit(main())
