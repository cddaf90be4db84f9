"""
Login plan resolution.

A LoginPlan is resolved field by field from two scopes: run-wide options
("global") and the credential record of the target host ("credential").
Global values win whenever both define a field. Each field records where
its value came from.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union
from urllib.parse import ParseResult, urlencode, urljoin, urlparse

from ..errors import ConfigValidationError

logger = logging.getLogger(__name__)

DEFAULT_LOGIN_METHOD = 'POST'

# Split on newlines, or on ';' when the next segment starts a new "Name:" pair
_HEADER_SEPARATOR = re.compile(r'\r?\n|;(?![^"]*")(?=[^:;]+:)')


@dataclass
class LoginOptions:
    """Run-wide login settings (the "global" scope)."""
    login_url: Optional[str] = None
    login_method: Optional[str] = None
    login_payload: Any = None
    login_headers: Any = None   # mapping or "Name: value" string

    @classmethod
    def from_dict(cls, data: Optional[Mapping]) -> 'LoginOptions':
        data = data or {}
        return cls(
            login_url=_first(data, 'login_url', 'loginUrl'),
            login_method=_first(data, 'login_method', 'loginMethod'),
            login_payload=_first(data, 'login_payload', 'loginPayload'),
            login_headers=_first(data, 'login_headers', 'loginHeaders'),
        )


@dataclass
class CredentialRecord:
    """Per-host login settings (the "credential" scope)."""
    login_url: Optional[str] = None
    method: Optional[str] = None
    payload: Any = None
    headers: Any = None
    cookies: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping) -> 'CredentialRecord':
        if not isinstance(data, Mapping):
            raise ConfigValidationError(f"Credential record must be an object, got {type(data).__name__}")
        return cls(
            login_url=_first(data, 'login_url', 'loginUrl', 'url'),
            method=_first(data, 'method', 'loginMethod'),
            payload=_first(data, 'payload', 'loginPayload'),
            headers=_first(data, 'headers', 'loginHeaders'),
            cookies=_first(data, 'cookies', 'cookie'),
        )

    def to_dict(self) -> dict:
        return {
            'loginUrl': self.login_url,
            'method': self.method,
            'payload': self.payload,
            'headers': self.headers,
            'cookies': self.cookies,
        }


@dataclass(frozen=True)
class LoginPlan:
    """Resolved login request. *_source is 'global', 'credential', 'default' or None."""
    url: Optional[str]
    url_source: Optional[str]
    method: str
    method_source: str
    headers: Dict[str, str] = field(default_factory=dict)
    headers_source: Optional[str] = None
    payload: Any = None
    payload_source: Optional[str] = None

    def describe(self) -> str:
        """One-line summary for logs. Payload values are never included."""
        keys = sorted(self.payload) if isinstance(self.payload, Mapping) else []
        return (f"{self.method} {self.url} "
                f"(url: {self.url_source}, method: {self.method_source}, "
                f"headers: {self.headers_source}, payload: {self.payload_source}"
                f"{', keys=' + ','.join(keys) if keys else ''})")


def build_login_info(url_object: Union[str, ParseResult],
                     options: Union[LoginOptions, Mapping, None],
                     credential: Union[CredentialRecord, Mapping, None]) -> LoginPlan:
    """
    Resolve the login plan for a target.

    Args:
        url_object: Target page URL (string or urlparse result); relative
            login URLs are resolved against its origin
        options: Global login options (LoginOptions or a mapping with
            login_url/loginUrl, login_method, login_payload, login_headers)
        credential: Credential record for the target host (CredentialRecord,
            a mapping with loginUrl/method/payload/headers, or None)

    Returns:
        LoginPlan with each field's provenance
    """
    target = urlparse(url_object) if isinstance(url_object, str) else url_object

    url, url_source = _resolve(
        _first(options, 'login_url', 'loginUrl'),
        _first(credential, 'login_url', 'loginUrl'),
    )
    if url and target is not None and target.scheme:
        try:
            url = urljoin(f"{target.scheme}://{target.netloc}/", url)
        except ValueError as e:
            raise ConfigValidationError(f"Malformed login URL {url!r}: {e}") from e

    method, method_source = _resolve(
        _first(options, 'login_method', 'loginMethod'),
        _first(credential, 'method', 'loginMethod'),
    )
    if method:
        method = str(method).strip().upper()
    else:
        method, method_source = DEFAULT_LOGIN_METHOD, 'default'

    headers, headers_source = _resolve(
        _normalize_headers(_first(options, 'login_headers', 'loginHeaders')),
        _normalize_headers(_first(credential, 'headers', 'loginHeaders')),
    )

    payload, payload_source = _resolve(
        _first(options, 'login_payload', 'loginPayload'),
        _first(credential, 'payload', 'loginPayload'),
    )

    return LoginPlan(
        url=url,
        url_source=url_source,
        method=method,
        method_source=method_source,
        headers=dict(headers or {}),
        headers_source=headers_source,
        payload=payload,
        payload_source=payload_source,
    )


def parse_header_string(raw_headers: Optional[str]) -> Dict[str, str]:
    """Parse "Name: value" pairs separated by newlines or ';'."""
    if not raw_headers:
        return {}

    headers = {}
    for segment in _HEADER_SEPARATOR.split(raw_headers):
        segment = segment.strip()
        name, colon, value = segment.partition(':')
        if colon and name.strip():
            headers[name.strip()] = value.strip()
    return headers


def find_credential(host: Optional[str],
                    credentials: Optional[Mapping[str, CredentialRecord]]) -> Optional[CredentialRecord]:
    """Credential whose key equals the host or is a dot-suffix of it; longest key wins."""
    if not host or not credentials:
        return None
    host = host.lower()
    best_key = None
    for key in credentials:
        candidate = key.lower().lstrip('.')
        if host == candidate or host.endswith('.' + candidate):
            if best_key is None or len(candidate) > len(best_key.lstrip('.')):
                best_key = key
    return credentials[best_key] if best_key is not None else None


def encode_login_body(plan: LoginPlan) -> Tuple[Optional[Union[str, bytes]], Dict[str, str]]:
    """Request body and headers for the plan's payload (JSON unless form-encoded is asked for)."""
    headers = dict(plan.headers)
    payload = plan.payload
    if payload is None:
        return None, headers
    if isinstance(payload, (str, bytes)):
        return payload, headers

    content_type = next((v for k, v in headers.items() if k.lower() == 'content-type'), '')
    if 'x-www-form-urlencoded' in content_type.lower():
        return urlencode(payload, doseq=True), headers
    if not content_type:
        headers['Content-Type'] = 'application/json'
    return json.dumps(payload), headers


def perform_login(plan: LoginPlan, fetcher: Callable, **fetch_kwargs) -> List[Tuple[str, str]]:
    """
    Send the login request and return the cookies it set.

    Raises whatever the fetcher raises (NetworkError and friends).
    """
    body, headers = encode_login_body(plan)
    base_headers = dict(fetch_kwargs.pop('headers', None) or {})
    base_headers.update(headers)

    result = fetcher(plan.url, headers=base_headers, method=plan.method, data=body, **fetch_kwargs)
    if result.status_code >= 400:
        logger.warning(f"Login to {plan.url} returned HTTP {result.status_code}")
        return []
    # A session cookie usually arrives on the 302 that answers the login POST
    responses = list(result.history) + [result]
    return [
        pair
        for response in responses
        for value in response.header_list('Set-Cookie')
        for pair in parse_set_cookie(value)
    ]


def parse_cookie_string(raw: Optional[str]) -> List[Tuple[str, str]]:
    """'a=1; b=2' -> [('a', '1'), ('b', '2')]"""
    pairs = []
    for part in (raw or '').split(';'):
        name, eq, value = part.strip().partition('=')
        if eq and name.strip():
            pairs.append((name.strip(), value.strip()))
    return pairs


def parse_set_cookie(value: str) -> List[Tuple[str, str]]:
    """Name/value pair of one Set-Cookie header (attributes dropped)."""
    return parse_cookie_string(value.split(';', 1)[0])


def _resolve(global_value: Any, credential_value: Any) -> Tuple[Any, Optional[str]]:
    if _is_set(global_value):
        return global_value, 'global'
    if _is_set(credential_value):
        return credential_value, 'credential'
    return None, None


def _is_set(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, Mapping, list, tuple)) and len(value) == 0:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def _normalize_headers(value: Any) -> Optional[Dict[str, str]]:
    if value is None:
        return None
    if isinstance(value, str):
        return parse_header_string(value)
    if isinstance(value, Mapping):
        return {str(k): str(v) for k, v in value.items()}
    raise ConfigValidationError(f"Login headers must be an object or a header string, got {type(value).__name__}")


def _first(source: Any, *names: str) -> Any:
    """First non-None attribute/key among names; works for mappings and objects."""
    if source is None:
        return None
    for name in names:
        if isinstance(source, Mapping):
            value = source.get(name)
        else:
            value = getattr(source, name, None)
        if value is not None:
            return value
    return None
