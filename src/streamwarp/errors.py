"""Exception types raised by streamwarp."""
from typing import Optional


class StreamwarpError(Exception):
    """Base class for all streamwarp errors."""


class NetworkError(StreamwarpError):
    """Connection, DNS or timeout failure while fetching a URL."""

    def __init__(self, url: str, message: str):
        super().__init__(f"{message} ({url})")
        self.url = url


class ProxyTunnelError(NetworkError):
    """The proxy refused to open a CONNECT tunnel."""

    def __init__(self, url: str, status_code: int, proxy_host: Optional[str] = None):
        where = f" via {proxy_host}" if proxy_host else ""
        super().__init__(url, f"CONNECT tunnel refused{where}: HTTP {status_code}")
        self.status_code = status_code
        self.proxy_host = proxy_host


class DecodeError(StreamwarpError):
    """Response body could not be decompressed."""

    def __init__(self, encoding: str, message: str):
        super().__init__(f"Could not decode '{encoding}' body: {message}")
        self.encoding = encoding


class ConfigValidationError(StreamwarpError):
    """Invalid run configuration (proxy URL, output format, credential file)."""


class VpnError(StreamwarpError):
    """The VPN command line client failed."""


class VpnConnectTimeout(VpnError):
    """The VPN never reported a connected state before the deadline."""


class VpnBinaryMissing(VpnError):
    """The VPN command line client is not installed or not on PATH."""
