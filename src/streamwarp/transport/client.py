"""
Single-request HTTP(S) transport.

Three paths:
- direct: requests, no proxy, no environment proxies
- HTTP target through a proxy: requests in absolute-form with our own
  Proxy-Authorization header
- HTTPS target through a proxy: CONNECT tunnel opened by hand, TLS
  negotiated over the raw socket, HTTP/1.1 written and read directly

Every request opens and closes its own connection. Bodies are always read
undecoded and passed through decode_response_body.
"""
import logging
import socket
import ssl
from dataclasses import dataclass, field
from typing import Callable, Iterable, Mapping, Optional, Tuple, Union
from urllib.parse import urljoin, urlparse

import requests
from requests.structures import CaseInsensitiveDict
from urllib3.exceptions import HTTPError as Urllib3Error
from urllib3.util.ssltransport import SSLTransport

from ..errors import NetworkError, ProxyTunnelError
from .decode import decode_response_body
from .proxy import ProxyEndpoint

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 20.0
MAX_REDIRECTS = 5
REDIRECT_CODES = {301, 302, 303, 307, 308}
RECV_SIZE = 65536
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)
ACCEPT_ENCODING = "gzip, deflate, br"

Body = Optional[Union[bytes, str]]


@dataclass(frozen=True)
class FetchResult:
    """Outcome of one HTTP request. Header values are a string or a list for repeats."""
    status_code: int
    headers: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    body: str = ''
    url: str = ''
    # Redirect hops that led here, oldest first (bodies dropped)
    history: Tuple['FetchResult', ...] = ()

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def header_list(self, name: str) -> list:
        """All values of a header, [] when absent."""
        value = self.headers.get(name)
        if value is None:
            return []
        return list(value) if isinstance(value, list) else [value]


def fetch(url: str,
          headers: Optional[Mapping[str, str]] = None,
          proxy: Optional[ProxyEndpoint] = None,
          timeout: float = DEFAULT_TIMEOUT,
          method: str = 'GET',
          data: Body = None) -> FetchResult:
    """
    Fetch a URL, following redirects, and return its decoded body.

    Redirects are followed here rather than by requests so that an HTTPS
    hop after an HTTP one still goes through the CONNECT tunnel.

    Raises:
        NetworkError: connection, DNS, TLS or timeout failure
        ProxyTunnelError: the proxy answered CONNECT with a non-2xx status
        DecodeError: the body could not be decompressed
    """
    current_url = url
    current_method = method.upper()
    current_data = data
    hops = []

    for _ in range(MAX_REDIRECTS + 1):
        status_code, response_headers, raw_body = _fetch_once(
            current_url, headers, proxy, timeout, current_method, current_data
        )
        location = response_headers.get('Location')
        if isinstance(location, list):
            location = location[0]
        if status_code in REDIRECT_CODES and location:
            try:
                next_url = urljoin(current_url, location)
            except ValueError as e:
                raise NetworkError(current_url, f"Malformed redirect Location {location!r}: {e}") from e
            hops.append(FetchResult(status_code=status_code, headers=response_headers, url=current_url))
            logger.debug(f"Redirect {status_code}: {current_url} -> {next_url}")
            current_url = next_url
            if status_code == 303 or (status_code in (301, 302) and current_method != 'GET'):
                current_method = 'GET'
                current_data = None
            continue

        body = decode_response_body(raw_body, response_headers)
        return FetchResult(
            status_code=status_code,
            headers=response_headers,
            body=body,
            url=current_url,
            history=tuple(hops),
        )

    raise NetworkError(url, f"Too many redirects (>{MAX_REDIRECTS})")


def make_script_fetcher(proxy: Optional[ProxyEndpoint] = None,
                        headers: Optional[Mapping[str, str]] = None,
                        timeout: float = DEFAULT_TIMEOUT,
                        fetcher: Callable[..., FetchResult] = None) -> Callable[[str], FetchResult]:
    """Bind transport settings into the fetch_external_script collaborator."""
    fetcher = fetcher or fetch

    def fetch_external_script(url: str) -> FetchResult:
        return fetcher(url, headers=headers, proxy=proxy, timeout=timeout)

    return fetch_external_script


def _fetch_once(url: str, headers, proxy, timeout, method, data) -> Tuple[int, CaseInsensitiveDict, bytes]:
    try:
        parsed = urlparse(url)
        parsed.port  # raises for out-of-range or non-numeric ports
    except ValueError as e:
        raise NetworkError(url, f"Malformed URL: {e}") from e
    scheme = parsed.scheme.lower()
    if scheme not in ('http', 'https') or not parsed.hostname:
        raise NetworkError(url, f"Unsupported URL '{url}'")

    if proxy is not None and scheme == 'https':
        return _fetch_through_tunnel(url, headers, proxy, timeout, method, data)
    return _fetch_with_requests(url, headers, proxy, timeout, method, data)


# =============================================================================
# Direct and plain-HTTP proxy requests
# =============================================================================

def _fetch_with_requests(url, headers, proxy, timeout, method, data):
    request_headers = {'User-Agent': USER_AGENT, 'Accept-Encoding': ACCEPT_ENCODING}
    request_headers.update(headers or {})
    request_headers['Connection'] = 'close'

    proxies = None
    if proxy is not None:
        # Only the http key: https targets never reach this path
        proxies = {'http': proxy.url}
        authorization = proxy.proxy_authorization()
        if authorization:
            request_headers['Proxy-Authorization'] = authorization

    with requests.Session() as session:
        session.trust_env = False
        try:
            response = session.request(
                method, url,
                headers=request_headers,
                data=data,
                proxies=proxies,
                timeout=timeout,
                allow_redirects=False,
                stream=True,
            )
            try:
                raw_body = response.raw.read(decode_content=False)
                response_headers = collect_headers(response.raw.headers.iteritems())
                status_code = response.status_code
            finally:
                response.close()
        except (requests.RequestException, Urllib3Error) as e:
            raise NetworkError(url, str(e)) from e

    logger.debug(f"{method} {url} -> {status_code} ({len(raw_body)} bytes)")
    return status_code, response_headers, raw_body


# =============================================================================
# HTTPS through a CONNECT tunnel
# =============================================================================

def _fetch_through_tunnel(url, headers, proxy: ProxyEndpoint, timeout, method, data):
    parsed = urlparse(url)
    host = parsed.hostname
    port = parsed.port or 443
    authority = f"[{host}]" if ':' in host else host
    target = f"{authority}:{port}"

    try:
        sock = socket.create_connection((proxy.host, proxy.port), timeout=timeout)
    except OSError as e:
        raise NetworkError(url, f"Could not connect to proxy {proxy.host}:{proxy.port}: {e}") from e

    channel = sock
    opened = [sock]
    try:
        if proxy.protocol == 'https':
            channel = ssl.create_default_context().wrap_socket(sock, server_hostname=proxy.host)
            opened.append(channel)

        _open_tunnel(channel, target, proxy, url)
        logger.debug(f"Tunnel open to {target} via {proxy.host}:{proxy.port}")

        context = ssl.create_default_context()
        if channel is sock:
            secure = context.wrap_socket(sock, server_hostname=host)
        else:
            # TLS inside TLS: SSLSocket cannot wrap another SSLSocket
            secure = SSLTransport(channel, context, server_hostname=host)
        opened.append(secure)

        host_header = authority if port == 443 else target
        secure.sendall(build_request(method, parsed, host_header, headers, data))
        raw = _read_until_close(secure)
    except (OSError, ValueError) as e:
        raise NetworkError(url, str(e) or e.__class__.__name__) from e
    finally:
        for resource in reversed(opened):
            resource.close()

    status_code, response_headers, raw_body = parse_raw_response(raw, url)
    logger.debug(f"{method} {url} (tunnel) -> {status_code} ({len(raw_body)} bytes)")
    return status_code, response_headers, raw_body


def _open_tunnel(channel, target: str, proxy: ProxyEndpoint, url: str) -> None:
    lines = [
        f"CONNECT {target} HTTP/1.1",
        f"Host: {target}",
        f"User-Agent: {USER_AGENT}",
    ]
    authorization = proxy.proxy_authorization()
    if authorization:
        lines.append(f"Proxy-Authorization: {authorization}")
    channel.sendall(("\r\n".join(lines) + "\r\n\r\n").encode('latin-1'))

    head = b''
    while b"\r\n\r\n" not in head:
        chunk = channel.recv(4096)
        if not chunk:
            raise NetworkError(url, f"Proxy {proxy.host} closed the connection during CONNECT")
        head += chunk

    status_line = head.split(b"\r\n", 1)[0].decode('latin-1')
    status_code = parse_status_line(status_line, url)
    if not 200 <= status_code < 300:
        raise ProxyTunnelError(url, status_code, proxy.host)


def build_request(method: str, parsed, host_header: str,
                  headers: Optional[Mapping[str, str]], data: Body) -> bytes:
    """Serialize an HTTP/1.1 request with Host and Connection: close."""
    path = parsed.path or '/'
    if parsed.query:
        path += '?' + parsed.query

    merged = CaseInsensitiveDict({'User-Agent': USER_AGENT, 'Accept-Encoding': ACCEPT_ENCODING})
    merged.update(headers or {})
    merged['Host'] = host_header
    merged['Connection'] = 'close'

    payload = data.encode('utf-8') if isinstance(data, str) else data
    if payload is not None:
        merged['Content-Length'] = str(len(payload))

    lines = [f"{method} {path} HTTP/1.1"]
    lines.extend(f"{name}: {value}" for name, value in merged.items())
    request = ("\r\n".join(lines) + "\r\n\r\n").encode('utf-8')
    return request + (payload or b'')


def _read_until_close(channel) -> bytes:
    chunks = []
    while True:
        chunk = channel.recv(RECV_SIZE)
        if not chunk:
            break
        chunks.append(chunk)
    return b''.join(chunks)


def parse_status_line(line: str, url: str = '') -> int:
    """Status code from 'HTTP/1.1 200 OK'."""
    parts = line.strip().split(' ', 2)
    if len(parts) < 2 or not parts[0].upper().startswith('HTTP/'):
        raise NetworkError(url, f"Malformed status line: {line!r}")
    try:
        return int(parts[1])
    except ValueError as e:
        raise NetworkError(url, f"Malformed status line: {line!r}") from e


def parse_raw_response(raw: bytes, url: str = '') -> Tuple[int, CaseInsensitiveDict, bytes]:
    """
    Split a raw HTTP/1.1 response into status code, headers and body.

    The body is still content-encoded; chunked transfer coding is removed.
    """
    head, separator, body = raw.partition(b"\r\n\r\n")
    if not separator:
        raise NetworkError(url, "Malformed response: no header terminator")

    lines = head.decode('latin-1').split("\r\n")
    status_code = parse_status_line(lines[0], url)

    pairs = []
    for line in lines[1:]:
        name, colon, value = line.partition(':')
        if colon and name.strip():
            pairs.append((name.strip(), value.strip()))
    headers = collect_headers(pairs)

    transfer_encoding = headers.get('Transfer-Encoding') or ''
    if isinstance(transfer_encoding, list):
        transfer_encoding = ', '.join(transfer_encoding)
    if 'chunked' in transfer_encoding.lower():
        body = dechunk(body, url)

    return status_code, headers, body


def collect_headers(pairs: Iterable[Tuple[str, str]]) -> CaseInsensitiveDict:
    """Build a case-insensitive header map; repeated names become lists."""
    headers = CaseInsensitiveDict()
    for name, value in pairs:
        if name in headers:
            existing = headers[name]
            if isinstance(existing, list):
                existing.append(value)
            else:
                headers[name] = [existing, value]
        else:
            headers[name] = value
    return headers


def dechunk(body: bytes, url: str = '') -> bytes:
    """Remove HTTP/1.1 chunked transfer coding."""
    out = bytearray()
    pos = 0
    while True:
        line_end = body.find(b"\r\n", pos)
        if line_end == -1:
            break
        size_field = body[pos:line_end].split(b';', 1)[0].strip()
        try:
            size = int(size_field or b'0', 16)
        except ValueError as e:
            raise NetworkError(url, f"Malformed chunk size {size_field!r}") from e
        if size == 0:
            break
        start = line_end + 2
        out += body[start:start + size]
        pos = start + size + 2
    return bytes(out)
