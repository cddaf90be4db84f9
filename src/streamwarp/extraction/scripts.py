"""Find the <script> bodies of a page that may carry channel data"""
import logging
import re
from typing import Callable, List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

from ..errors import StreamwarpError
from .models import ScriptCandidate

logger = logging.getLogger(__name__)

LEGACY_MARKER = 'linksData'

HYDRATION_MARKERS = (
    '__NUXT__',
    '__NUXT_DATA__',
    '__NUXT_PAYLOAD__',
    '__NUXT_JSONP__',
    '__INITIAL_STATE__',
    '__PRELOADED_STATE__',
    '__APP_STATE__',
)

# Script ids that mark a serialized payload block (<script id="__NUXT_DATA__">)
PAYLOAD_SCRIPT_IDS = {'__NUXT_DATA__', '__NUXT_PAYLOAD__'}

# External data chunks: Nuxt _payload.js/_payload.json, static payload.js, linksData.js
EXTERNAL_DATA_SCRIPT = re.compile(r'(?:^|/)(?:_?payload|links-?data)\.(?:js|json)$', re.IGNORECASE)

FetchExternalScript = Callable[[str], object]


def has_data_marker(content: str) -> bool:
    return LEGACY_MARKER in content or any(marker in content for marker in HYDRATION_MARKERS)


def is_external_data_script(src: str) -> bool:
    try:
        path = urlparse(src).path
    except ValueError:
        return False
    return bool(EXTERNAL_DATA_SCRIPT.search(path))


def extract_links_data_scripts(html: str,
                               base_url: Optional[str] = None,
                               fetch_external_script: Optional[FetchExternalScript] = None
                               ) -> List[ScriptCandidate]:
    """
    Collect script bodies worth running through the extraction strategies.

    Inline scripts are kept when they mention linksData or a hydration
    marker. <script src> references following an external data-chunk
    convention are resolved against base_url and fetched through the
    injected fetch_external_script(url) -> result with status_code/body;
    without a fetcher they are skipped.

    Args:
        html: Page HTML
        base_url: URL the page was loaded from
        fetch_external_script: Transport-supplied fetcher for script URLs

    Returns:
        Candidates in document order; index is the position among all scripts
    """
    if not html:
        return []

    soup = BeautifulSoup(html, 'html.parser')
    candidates = []

    for index, script in enumerate(soup.find_all('script')):
        src = script.get('src')
        if src:
            candidate = _external_candidate(index, src, base_url, fetch_external_script)
            if candidate:
                candidates.append(candidate)
            continue

        content = script.string if script.string is not None else script.get_text()
        if not content or not content.strip():
            continue
        if script.get('id') in PAYLOAD_SCRIPT_IDS or has_data_marker(content):
            logger.debug(f"Script {index} carries a data marker")
            candidates.append(ScriptCandidate(index=index, content=content, source_url=base_url))

    return candidates


def _external_candidate(index: int, src: str, base_url: Optional[str],
                        fetch_external_script: Optional[FetchExternalScript]) -> Optional[ScriptCandidate]:
    if not is_external_data_script(src) or fetch_external_script is None:
        return None

    try:
        url = urljoin(base_url or '', src.strip())
    except ValueError as e:
        logger.warning(f"Skipping malformed data script URL {src!r}: {e}")
        return None
    try:
        result = fetch_external_script(url)
    except StreamwarpError as e:
        logger.warning(f"Could not load data script {url}: {e}")
        return None

    status_code = getattr(result, 'status_code', None)
    body = getattr(result, 'body', '')
    if status_code != 200 or not body:
        logger.warning(f"Data script {url} returned HTTP {status_code}")
        return None

    logger.debug(f"Script {index} loaded from {url} ({len(body)} chars)")
    return ScriptCandidate(index=index, content=body, source_url=url)
