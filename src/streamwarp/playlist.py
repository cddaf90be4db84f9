"""M3U and JSON playlist rendering."""
import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .errors import ConfigValidationError
from .extraction import ChannelLink

logger = logging.getLogger(__name__)


def render_m3u(links: Iterable[ChannelLink]) -> str:
    lines = ['#EXTM3U']
    for link in links:
        lines.append(f'#EXTINF:-1 group-title="{link.name}" tvg-id="{link.name}",{link.name}')
        lines.append(link.url)
    return '\n'.join(lines) + '\n'


def render_json(links: Iterable[ChannelLink]) -> str:
    return json.dumps({'channels': [link.to_dict() for link in links]},
                      indent=2, ensure_ascii=False) + '\n'


RENDERERS = {
    'm3u': render_m3u,
    'json': render_json,
}


def write_playlist(links: List[ChannelLink],
                   path: Union[str, Path],
                   fmt: str = 'm3u') -> Optional[Path]:
    """
    Write the playlist to path as UTF-8.

    Returns:
        The written path, or None when there was nothing to write
        (an existing file is left untouched).

    Raises:
        ConfigValidationError: unknown format
    """
    renderer = RENDERERS.get(fmt)
    if renderer is None:
        raise ConfigValidationError(f"Unknown output format '{fmt}'")
    if not links:
        logger.warning(f"No links to write, {path} not created")
        return None

    path = Path(path)
    if path.parent and not path.parent.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(renderer(links), encoding='utf-8')
    logger.info(f"Wrote {len(links)} links to {path} ({fmt})")
    return path
