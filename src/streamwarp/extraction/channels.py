"""Locate channel entries inside a decoded application-state graph"""
import re
from typing import Any, List, Optional, Tuple

from .models import ChannelLink

NAME_KEYS = ('name', 'title', 'channelName', 'channel_name', 'displayName', 'label')

URL_KEYS = {
    'url', 'streamUrl', 'stream_url', 'hls', 'hlsUrl', 'hls_url', 'dash', 'dashUrl',
    'dash_url', 'manifest', 'manifestUrl', 'src', 'acestream', 'acestreamUrl',
    'acestream_url', 'playbackUrl', 'link',
}

STREAM_CONTAINER_KEYS = {'streams', 'sources', 'urls', 'renditions', 'manifests', 'playlists'}

# Stream schemes, or an HLS/DASH manifest path
_STREAM_URL = re.compile(
    r'^(?:acestream|sop|rtmps?|rtsp|udp|rtp|srt)://|\.(?:m3u8|mpd)(?:$|[?#])',
    re.IGNORECASE,
)


def is_stream_url(value: Any) -> bool:
    return isinstance(value, str) and bool(_STREAM_URL.search(value.strip()))


def collect_channel_links(graph: Any) -> List[ChannelLink]:
    """
    Flatten every channel found in the graph into ChannelLinks.

    A channel is a mapping with a name and at least one stream URL, either
    directly (url/hls/dash/...) or under a streams/sources container. Channels
    are emitted in depth-first traversal order; a channel is not searched for
    nested channels. Shared sub-objects are visited once.
    """
    links: List[ChannelLink] = []
    visited = set()
    stack = [graph]

    while stack:
        node = stack.pop()
        if not isinstance(node, (dict, list)):
            continue
        if id(node) in visited:
            continue
        visited.add(id(node))

        if isinstance(node, dict):
            channel = _channel_from(node)
            if channel:
                name, urls = channel
                links.extend(ChannelLink(name=name, url=url) for url in urls)
                continue
            stack.extend(reversed(list(node.values())))
        else:
            stack.extend(reversed(node))

    return links


def _channel_from(node: dict) -> Optional[Tuple[str, List[str]]]:
    name = None
    for key in NAME_KEYS:
        if isinstance(node.get(key), str):
            name = node[key].strip()
            break
    if name is None:
        return None

    urls: List[str] = []
    for key, value in node.items():
        if key in URL_KEYS and is_stream_url(value):
            _append_unique(urls, value.strip())
        elif key in STREAM_CONTAINER_KEYS:
            for url in _container_urls(value):
                _append_unique(urls, url)

    if not urls:
        return None
    return name, urls


def _container_urls(value: Any) -> List[str]:
    """URLs held by a streams/sources container (list or mapping, one level deep)."""
    found = []
    items = value.values() if isinstance(value, dict) else value if isinstance(value, list) else []
    for item in items:
        if is_stream_url(item):
            found.append(item.strip())
        elif isinstance(item, dict):
            for key, nested in item.items():
                if key in URL_KEYS and is_stream_url(nested):
                    found.append(nested.strip())
    return found


def _append_unique(urls: List[str], url: str) -> None:
    if url not in urls:
        urls.append(url)
