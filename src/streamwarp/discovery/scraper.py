"""Discover further same-session URLs in a fetched page"""
import logging
import re
from typing import List, Optional
from urllib.parse import urljoin, urlparse

from .classifier import should_follow

logger = logging.getLogger(__name__)

# Attribute values may start with stray quotes left behind by unescaping
# pre-serialized JSON (e.g. href=""https:\/\/...")
_VALUE = r"""["']*([^"'\s<>]+)"""

CANDIDATE_PATTERNS = [
    ('anchor', re.compile(r'<a\b[^>]*?\shref\s*=\s*' + _VALUE, re.IGNORECASE)),
    ('iframe', re.compile(r'<iframe\b[^>]*?\ssrc\s*=\s*' + _VALUE, re.IGNORECASE)),
    ('data-attr', re.compile(r'\sdata-(?:[\w-]+-)?(?:src|url)\s*=\s*' + _VALUE, re.IGNORECASE)),
    ('json-url', re.compile(r'"url"\s*:\s*"*([^"\s<>]+)', re.IGNORECASE)),
]

_UNICODE_ESCAPE = re.compile(r'\\u([0-9a-fA-F]{4})')

# Delimiter remnants that naive attribute matching leaves at either end
_TRAILING_JUNK = re.compile(r'(?:\\+|%22|%27|&quot;|&#34;|&#39;|&apos;|[,;)\]}]+)+$', re.IGNORECASE)
_LEADING_JUNK = re.compile(r'^(?:\\+|%22|%27|&quot;|&#34;|&#39;|&apos;)+', re.IGNORECASE)

_SKIP_SCHEMES = ('javascript:', 'mailto:', 'tel:', 'data:', 'blob:', 'about:')


def unescape_inline(html: str) -> str:
    """
    Undo JSON/JS string escaping inside raw HTML.

    Handles \\uXXXX code points, escaped forward slashes and escaped quotes.
    """
    text = _UNICODE_ESCAPE.sub(lambda m: chr(int(m.group(1), 16)), html)
    return text.replace('\\/', '/').replace('\\"', '"').replace("\\'", "'")


def clean_candidate(raw: str) -> str:
    """Trim delimiter remnants from both ends of a matched attribute value."""
    value = raw.strip()
    previous = None
    while value != previous:
        previous = value
        value = _TRAILING_JUNK.sub('', value)
        value = _LEADING_JUNK.sub('', value)
        value = value.strip()
    return value.replace('&amp;', '&')


def resolve_candidate(raw: str, base_url: str) -> Optional[str]:
    """Absolute http(s) URL for a candidate, or None if it is not navigable."""
    value = clean_candidate(raw)
    if not value or value.startswith('#') or value.lower().startswith(_SKIP_SCHEMES):
        return None
    try:
        absolute = urljoin(base_url, value)
        parsed = urlparse(absolute)
    except ValueError:
        return None
    if parsed.scheme not in ('http', 'https') or not parsed.netloc:
        return None
    return absolute.split('#', 1)[0]


def discover_additional_urls(html: str, base_url: str) -> List[str]:
    """
    Find URLs in a page worth fetching in the same session.

    Scans, in order: anchor hrefs, iframe srcs, data-*-src / data-*-url
    attributes and "url" fields of inline JSON. Same-host URLs are kept;
    cross-host URLs only when they look like a stream or player.

    Args:
        html: Raw page HTML (may contain escaped JSON blobs)
        base_url: URL the page was fetched from

    Returns:
        Absolute URLs in first-seen order, without duplicates
    """
    if not html:
        return []

    text = unescape_inline(html)
    urls = []
    seen = set()

    for source, pattern in CANDIDATE_PATTERNS:
        for match in pattern.finditer(text):
            url = resolve_candidate(match.group(1), base_url)
            if not url or url in seen:
                continue
            if not should_follow(url, base_url):
                logger.debug(f"Dropping cross-host {source} candidate {url}")
                continue
            seen.add(url)
            urls.append(url)

    return urls
