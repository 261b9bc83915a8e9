import re

# Characters with meaning in Telegram-style Markdown
MARKDOWN_SPECIAL = re.compile(r"([_*\[\]`])")
WHITESPACE_RUN = re.compile(r"\s+")

ELLIPSIS = "..."
DEFAULT_MAX_LEN = 160


def normalize_whitespace(text: str | None) -> str:
    """Collapse every whitespace run to a single space and trim both ends."""
    if not text:
        return ""
    return WHITESPACE_RUN.sub(" ", text).strip()


def truncate(text: str, max_len: int = DEFAULT_MAX_LEN) -> str:
    """
    Cut `text` down to `max_len` characters, ending with an ellipsis when cut.

    Callers pass max_len >= 4 so the ellipsis leaves room for content.
    """
    if len(text) > max_len:
        return text[: max_len - len(ELLIPSIS)] + ELLIPSIS
    return text


def escape_markdown(text: str) -> str:
    """Backslash-escape underscore, asterisk, square brackets and backtick."""
    return MARKDOWN_SPECIAL.sub(r"\\\1", str(text))
