"""
Channel extraction strategies.

Three in-page encodings are recognised, tried in order:

1. legacy:    var linksData = { links: [{ name, url }, ...] };
2. hydration: window.__NUXT__ = { ...nested state... };
              window.__NUXT__ = (function(a,b){return {...}}("x","y"));
3. payload:   [ ...flat reference-graph array... ]  (e.g. __NUXT_DATA__)

The first strategy that matches wins. A strategy that stumbles over
malformed input counts as no match; the next one is tried.
"""
import json
import logging
import re
from typing import Dict, List, Optional

from .channels import collect_channel_links
from .literal import find_balanced_end, parse_js_literal, parse_js_string
from .models import ChannelLink
from .payload import resolve_payload

logger = logging.getLogger(__name__)

LEGACY_ASSIGNMENT = re.compile(r'\b(?:const|var|let)\s+linksData\s*=\s*')

HYDRATION_ASSIGNMENT = re.compile(
    r'(?:(?<![\w$])(?:__NUXT__|__INITIAL_STATE__|__PRELOADED_STATE__|__APP_STATE__)\s*=(?!=)'
    r'|__NUXT_JSONP__\s*\(\s*["\'][^"\']*["\']\s*,)\s*'
)

PAYLOAD_ASSIGNMENT = re.compile(
    r'(?:(?<![\w$])(?:__NUXT_DATA__|__NUXT_PAYLOAD__)\s*=(?!=)|\bexport\s+default)\s*'
)

JSON_PARSE_CALL = re.compile(r'JSON\.parse\s*\(\s*')

# Nuxt 2 state factory: (function(a,b){return {...}}(args)) or (function(){...})(args)
STATE_FACTORY = re.compile(r'\(\s*function\s*\(([\w$\s,]*)\)\s*\{\s*return\s*')
WHITESPACE = re.compile(r'\s*')

# Scheme prefixes stripped before the placeholder check
KNOWN_SCHEMES = re.compile(r'^(?:acestream|sop|https?|rtmps?|rtsp|udp|rtp|srt)://', re.IGNORECASE)

# Exceptions that mean "this strategy does not apply"
MISMATCH_ERRORS = (ValueError, TypeError, KeyError, AttributeError, IndexError, RecursionError)


def extract_links_data_from_script(content: str) -> Optional[Dict[str, List[ChannelLink]]]:
    """
    Recover the channel list from one script body.

    Returns:
        {'links': [ChannelLink, ...]} from the first matching strategy, with
        placeholder entries removed, or None when no strategy matches
    """
    if not content:
        return None

    for name, strategy in STRATEGIES:
        try:
            links = strategy(content)
        except MISMATCH_ERRORS as e:
            logger.debug(f"{name} strategy rejected script: {e}")
            continue
        if links is None:
            continue

        cleaned = drop_placeholders(links)
        logger.debug(f"{name} strategy matched: {len(links)} links, {len(cleaned)} kept")
        return {'links': cleaned}

    return None


def drop_placeholders(links: List[ChannelLink]) -> List[ChannelLink]:
    """Drop unassigned slots: URLs that are empty once the scheme is removed."""
    return [link for link in links if KNOWN_SCHEMES.sub('', link.url).strip()]


def legacy_links(content: str) -> Optional[List[ChannelLink]]:
    """var/let/const linksData = {...}; evaluated as a pure data literal."""
    match = LEGACY_ASSIGNMENT.search(content)
    if not match:
        return None

    data = _literal_at(content, match.end())
    if not isinstance(data, dict) or not isinstance(data.get('links'), list):
        return None

    links = []
    for entry in data['links']:
        if not isinstance(entry, dict) or entry.get('url') is None:
            continue
        name = entry.get('name')
        links.append(ChannelLink(
            name='' if name is None else str(name).strip(),
            url=str(entry['url']).strip(),
        ))
    return links


def hydration_links(content: str) -> Optional[List[ChannelLink]]:
    """Global state assignment holding a nested object graph."""
    for match in HYDRATION_ASSIGNMENT.finditer(content):
        state = _literal_at(content, match.end())
        if state is None:
            continue
        links = collect_channel_links(state)
        if links:
            return links
    return None


def payload_links(content: str) -> Optional[List[ChannelLink]]:
    """Flat JSON array with index references (de-duplicated object graph)."""
    stripped = content.strip()
    if stripped.startswith('['):
        segments = [stripped]
    else:
        segments = []
        for match in PAYLOAD_ASSIGNMENT.finditer(content):
            start = match.end()
            if content.startswith('JSON.parse', start):
                segments.append(_json_parse_argument(content, start))
                continue
            end = find_balanced_end(content, start)
            if end is not None:
                segments.append(content[start:end])

    for segment in segments:
        if not segment:
            continue
        nodes = json.loads(segment)
        if not isinstance(nodes, list):
            continue
        links = collect_channel_links(resolve_payload(nodes))
        if links:
            return links
    return None


def _literal_at(content: str, start: int):
    """Parse the literal starting at content[start]; None if there is none."""
    if STATE_FACTORY.match(content, start):
        return _factory_state(content, start)
    if content.startswith('JSON.parse', start):
        argument = _json_parse_argument(content, start)
        return json.loads(argument) if argument else None

    end = find_balanced_end(content, start)
    if end is None:
        return None
    return parse_js_literal(content[start:end])


def _factory_state(content: str, start: int):
    """
    Value returned by a state factory function.

    The parameters are bound to the parsed call arguments and substituted
    into the returned literal. The body must be a bare return statement.
    """
    match = STATE_FACTORY.match(content, start)
    params = [name.strip() for name in match.group(1).split(',') if name.strip()]

    body_start = match.end()
    body_end = find_balanced_end(content, body_start)
    if body_end is None:
        return None

    pos = _skip_space(content, body_end)
    if content.startswith(';', pos):
        pos = _skip_space(content, pos + 1)
    if not content.startswith('}', pos):
        return None
    pos = _skip_space(content, pos + 1)
    if content.startswith(')', pos):
        pos = _skip_space(content, pos + 1)

    args_end = find_balanced_end(content, pos)
    if args_end is None or content[pos] != '(':
        return None
    arguments = parse_js_literal('[' + content[pos + 1:args_end - 1] + ']')
    arguments += [None] * (len(params) - len(arguments))

    return parse_js_literal(content[body_start:body_end], bindings=dict(zip(params, arguments)))


def _skip_space(content: str, pos: int) -> int:
    return WHITESPACE.match(content, pos).end()


def _json_parse_argument(content: str, start: int) -> Optional[str]:
    """The string argument of JSON.parse('...') beginning at content[start]."""
    match = JSON_PARSE_CALL.match(content, start)
    if not match:
        return None
    paren = content.index('(', start)
    end = find_balanced_end(content, paren)
    if end is None:
        return None
    argument = content[paren + 1:end - 1].strip()
    return parse_js_string(argument)


STRATEGIES = (
    ('legacy', legacy_links),
    ('hydration', hydration_links),
    ('payload', payload_links),
)
