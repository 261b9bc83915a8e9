"""
Structured page summary from raw HTML.

Parses the document with BeautifulSoup (lxml tree builder, which closes
implied end tags the way browsers do) and derives a fixed sequence of
Markdown display lines: identity metadata, headings, a short content
preview, link statistics and image statistics. Every piece of page text is
whitespace-normalized, truncated where bounded and Markdown-escaped, so the
output is deterministic for a given document.
"""

import logging
from dataclasses import dataclass, field
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from .errors import ExtractionError
from .utils import escape_markdown, normalize_whitespace, truncate

logger = logging.getLogger(__name__)

NO_TITLE = "No title found"
NO_DESCRIPTION = "No meta description found."
NO_KEYWORDS = "No meta keywords found."
NOT_PROVIDED = "Not provided"
NOT_DECLARED = "Not declared"
NOT_SPECIFIED = "Not specified"
NOT_FOUND = "Not found"
NO_HEADINGS = "None discovered"
NO_PARAGRAPHS = "- No substantial paragraphs detected."
NO_LINKS = "- No crawlable links discovered."

HEADING_LEVELS = (1, 2, 3)
HEADING_PREVIEW_COUNT = 3
HEADING_MAX_LEN = 120

PARAGRAPH_MIN_LEN = 60
PARAGRAPH_PREVIEW_COUNT = 2
PARAGRAPH_MAX_LEN = 240

LINK_SAMPLE_COUNT = 5
LINK_TEXT_MAX_LEN = 80


@dataclass(frozen=True)
class PageMetadata:
    """Identity fields of a page, with placeholders already applied."""

    title: str
    canonical: str
    language: str
    description: str
    keywords: str
    og_title: str
    og_description: str
    robots: str
    last_updated: str
    word_count: int
    structured_data_blocks: int


@dataclass
class LinkStats:
    total: int = 0
    internal: int = 0
    external: int = 0
    samples: list[str] = field(default_factory=list)


def parse_document(html) -> BeautifulSoup:
    if isinstance(html, bytes):
        html = html.decode("utf-8", errors="replace")
    if not isinstance(html, str):
        raise ExtractionError(f"Expected an HTML document, got {type(html).__name__}")
    try:
        return BeautifulSoup(html, "lxml")
    except Exception as e:  # noqa: BLE001
        raise ExtractionError(f"Could not parse HTML: {e}") from e


def _meta_content(soup: BeautifulSoup, selector: str) -> str:
    tag = soup.select_one(selector)
    if tag is None:
        return ""
    return normalize_whitespace(tag.get("content"))


def _attr(soup: BeautifulSoup, selector: str, attr: str) -> str | None:
    tag = soup.select_one(selector)
    if tag is None:
        return None
    return tag.get(attr) or None


def extract_metadata(soup: BeautifulSoup) -> PageMetadata:
    title_tag = soup.find("title")
    title = normalize_whitespace(title_tag.get_text()) if title_tag else ""

    body = soup.body or soup
    word_count = len([w for w in normalize_whitespace(body.get_text()).split(" ") if w])

    last_updated = (
        _attr(soup, 'meta[property="article:modified_time"]', "content")
        or _attr(soup, 'meta[property="og:updated_time"]', "content")
    )

    return PageMetadata(
        title=title or NO_TITLE,
        canonical=_attr(soup, 'link[rel="canonical"]', "href") or NOT_DECLARED,
        language=_attr(soup, "html", "lang") or NOT_SPECIFIED,
        description=_meta_content(soup, 'meta[name="description"]') or NO_DESCRIPTION,
        keywords=_meta_content(soup, 'meta[name="keywords"]') or NO_KEYWORDS,
        og_title=_meta_content(soup, 'meta[property="og:title"]') or NOT_PROVIDED,
        og_description=_meta_content(soup, 'meta[property="og:description"]') or NOT_PROVIDED,
        robots=_meta_content(soup, 'meta[name="robots"]') or NOT_DECLARED,
        last_updated=normalize_whitespace(last_updated) or NOT_FOUND,
        word_count=word_count,
        structured_data_blocks=len(soup.select('script[type="application/ld+json"]')),
    )


def summarize_headings(soup: BeautifulSoup) -> list[str]:
    lines = []
    for level in HEADING_LEVELS:
        texts = [t for t in (normalize_whitespace(h.get_text()) for h in soup.find_all(f"h{level}")) if t]
        preview = " | ".join(
            escape_markdown(truncate(t, HEADING_MAX_LEN)) for t in texts[:HEADING_PREVIEW_COUNT]
        )
        more = f" (+{len(texts) - HEADING_PREVIEW_COUNT} more)" if len(texts) > HEADING_PREVIEW_COUNT else ""
        lines.append(f"- H{level} ({len(texts)}): {preview or NO_HEADINGS}{more}")
    return lines


def preview_paragraphs(soup: BeautifulSoup) -> list[str]:
    texts = [normalize_whitespace(p.get_text()) for p in soup.find_all("p")]
    substantial = [t for t in texts if len(t) >= PARAGRAPH_MIN_LEN][:PARAGRAPH_PREVIEW_COUNT]
    if not substantial:
        return [NO_PARAGRAPHS]
    return [
        f"- Para {i}: {escape_markdown(truncate(t, PARAGRAPH_MAX_LEN))}"
        for i, t in enumerate(substantial, start=1)
    ]


def _resolve_href(href: str, base_url: str) -> str | None:
    """Absolute URL for `href`, or None when it cannot be resolved."""
    try:
        resolved = urljoin(base_url, href.strip())
        parsed = urlparse(resolved)
        parsed.port  # raises ValueError on a malformed port
    except ValueError:
        return None
    if not parsed.scheme:
        return None
    if parsed.scheme in ("http", "https") and not parsed.hostname:
        return None
    return resolved


def _hostname(url: str) -> str | None:
    try:
        return urlparse(url).hostname
    except ValueError:
        return None


def collect_link_stats(soup: BeautifulSoup, base_url: str) -> LinkStats:
    stats = LinkStats()
    source_host = _hostname(base_url)

    for a in soup.find_all("a", href=True):
        raw_href = a.get("href") or ""
        if not raw_href or raw_href.startswith("#") or raw_href.lower().startswith("javascript"):
            continue

        resolved = _resolve_href(raw_href, base_url)
        if resolved is None:
            logger.debug("Skipping unresolvable href %r", raw_href)
            continue

        stats.total += 1
        if source_host and _hostname(resolved) == source_host:
            stats.internal += 1
        else:
            stats.external += 1

        if len(stats.samples) < LINK_SAMPLE_COUNT:
            text = normalize_whitespace(a.get_text()) or resolved
            stats.samples.append(
                f"  - {escape_markdown(truncate(text, LINK_TEXT_MAX_LEN))} → {escape_markdown(resolved)}"
            )

    return stats


def summarize_links(stats: LinkStats) -> list[str]:
    lines = [f"- Total links: {stats.total} (internal {stats.internal} / external {stats.external})"]
    if stats.samples:
        lines.append("- Sample links:")
        lines.extend(stats.samples)
    else:
        lines.append(NO_LINKS)
    return lines


def summarize_images(soup: BeautifulSoup) -> list[str]:
    images = soup.find_all("img")
    with_alt = sum(1 for img in images if normalize_whitespace(img.get("alt")))
    return [
        f"- Total images: {len(images)}",
        f"- With alt text: {with_alt}",
        f"- Missing alt text: {len(images) - with_alt}",
    ]


def extract_summary(html, url: str, *, render_js: bool = False) -> tuple[str, ...]:
    """
    Build the display lines for one retrieved document.

    Args:
        html: Raw HTML as returned by a fetcher.
        url: The source URL; relative links resolve against it.
        render_js: Whether the fetch service was asked to render JavaScript.

    Returns:
        Ordered, Markdown-escaped summary lines.

    Raises:
        ExtractionError: if `html` is not a parsable document.
    """
    soup = parse_document(html)
    meta = extract_metadata(soup)

    lines = [
        f"*URL*: {escape_markdown(url)}",
        f"*Title*: {escape_markdown(meta.title)}",
        f"*Canonical*: {escape_markdown(meta.canonical)}",
        f"*Language*: {escape_markdown(meta.language)}",
        f"*Meta Description*: {escape_markdown(meta.description)}",
        f"*Meta Keywords*: {escape_markdown(meta.keywords)}",
        f"*Open Graph Title*: {escape_markdown(meta.og_title)}",
        f"*Open Graph Description*: {escape_markdown(meta.og_description)}",
        f"*Robots*: {escape_markdown(meta.robots)}",
        f"*Last Updated*: {escape_markdown(meta.last_updated)}",
        f"*Word Count (approx)*: {meta.word_count}",
        f"*Structured Data Blocks*: {meta.structured_data_blocks}",
        f"*JavaScript Rendering*: {'Enabled via service' if render_js else 'Disabled'}",
        "",
        "*Headings Overview*:",
        *summarize_headings(soup),
        "",
        "*Content Preview*:",
        *preview_paragraphs(soup),
        "",
        "*Links*:",
        *summarize_links(collect_link_stats(soup, url)),
        "",
        "*Images*:",
        *summarize_images(soup),
    ]
    return tuple(lines)
