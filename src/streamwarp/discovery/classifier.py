"""URL classification for discovered links.

Decides whether a discovered URL is worth fetching in the same session:
- same host: always kept
- cross host: kept only when it looks like a stream or an embeddable player
"""
import re
from typing import Optional
from urllib.parse import parse_qsl, urlparse

# Configuration patterns
PATTERNS = {
    'manifest_extensions': ('.m3u8', '.m3u', '.mpd', '.f4m', '.ism'),
    'player_segments': re.compile(r'(?:^|[/._-])(?:embed|player|iframe-player|live-player)(?:$|[/._-])', re.IGNORECASE),
    'stream_query_keys': {'stream', 'streamid', 'stream_id', 'channel', 'channelid', 'm3u8', 'manifest'},
    'static_extensions': (
        '.png', '.jpg', '.jpeg', '.gif', '.webp', '.svg', '.ico', '.bmp', '.avif',
        '.css', '.woff', '.woff2', '.ttf', '.eot', '.pdf', '.zip',
    ),
}


def host_of(url: str) -> Optional[str]:
    """Lowercased hostname, or None when the URL has none."""
    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    return host.lower() if host else None


def is_same_host(url: str, base_url: str) -> bool:
    host = host_of(url)
    return host is not None and host == host_of(base_url)


def is_media_manifest(url: str) -> bool:
    """True for HLS/DASH manifest URLs (extension on the path)."""
    path = urlparse(url).path.lower()
    return path.endswith(PATTERNS['manifest_extensions'])


def is_static_asset(url: str) -> bool:
    path = urlparse(url).path.lower()
    return path.endswith(PATTERNS['static_extensions'])


def looks_like_player(url: str) -> bool:
    """Path segment naming an embed/player, or a stream-ish query key."""
    parsed = urlparse(url)
    if PATTERNS['player_segments'].search(parsed.path):
        return True
    for key, _ in parse_qsl(parsed.query, keep_blank_values=True):
        if key.lower() in PATTERNS['stream_query_keys']:
            return True
    return False


def is_stream_candidate(url: str) -> bool:
    """Stream/player heuristic applied to cross-host URLs."""
    if is_media_manifest(url):
        return True
    if is_static_asset(url):
        return False
    return looks_like_player(url)


def should_follow(url: str, base_url: str) -> bool:
    """Keep same-host URLs; keep cross-host URLs only when they look like streams."""
    if is_same_host(url, base_url):
        return True
    return is_stream_candidate(url)
