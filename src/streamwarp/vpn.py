"""
NordVPN command line gate.

Before any fetch, a run can require the local NordVPN client to report a
connected state. The client is driven through its CLI (`nordvpn status`,
`nordvpn connect [server]`) and polled on a fixed interval until an overall
deadline.
"""
import logging
import re
import subprocess
import time
from typing import Callable, List, Optional

from .errors import VpnBinaryMissing, VpnConnectTimeout, VpnError

logger = logging.getLogger(__name__)

NORDVPN_BINARY = 'nordvpn'
DEFAULT_TIMEOUT_MS = 60000
POLL_INTERVAL = 3.0
COMMAND_TIMEOUT = 15.0

_STATUS_LINE = re.compile(r'^\s*status\s*:\s*(\S+)', re.IGNORECASE | re.MULTILINE)
_DETAIL_LINE = re.compile(
    r'^\s*(?:current server|server|hostname|country|city)\s*:\s*(.+?)\s*$',
    re.IGNORECASE | re.MULTILINE,
)


class NordVpnClient:
    """Thin subprocess wrapper around the nordvpn binary."""

    def __init__(self, binary: str = NORDVPN_BINARY, command_timeout: float = COMMAND_TIMEOUT):
        self.binary = binary
        self.command_timeout = command_timeout

    def status(self) -> str:
        return self.run(['status'])

    def connect(self, server: Optional[str] = None) -> str:
        return self.run(['connect'] + ([server] if server else []))

    def run(self, args: List[str]) -> str:
        """
        Run one nordvpn command and return its stdout.

        Raises:
            VpnBinaryMissing: the binary is not installed
            VpnError: non-zero exit or command timeout
        """
        command = [self.binary] + list(args)
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.command_timeout,
            )
        except FileNotFoundError as e:
            raise VpnBinaryMissing(
                f"'{self.binary}' not found; install the NordVPN CLI and make sure it is on PATH"
            ) from e
        except subprocess.TimeoutExpired as e:
            raise VpnError(f"'{' '.join(command)}' timed out after {self.command_timeout}s") from e

        if completed.returncode != 0:
            detail = (completed.stderr or completed.stdout or '').strip()
            raise VpnError(f"'{' '.join(command)}' exited with {completed.returncode}: {detail}")
        return completed.stdout or ''


def is_vpn_connected(status_output: str, server: Optional[str] = None) -> bool:
    """
    True when `nordvpn status` output reports a connection.

    With a server, country or city name, one of the Server, Hostname,
    Country or City lines must name it. Server codes match the hostname
    label with or without its number (`us`, `us1234`).
    """
    output = (status_output or '').lower()
    if 'status' not in output or 'connected' not in output:
        return False

    match = _STATUS_LINE.search(output)
    if match and match.group(1) != 'connected':
        return False

    if server:
        return _normalize_place(server) in _connected_names(output)
    return True


def _normalize_place(value: str) -> str:
    return ' '.join(value.lower().replace('_', ' ').split())


def _connected_names(output: str) -> set:
    """Every name the status detail lines give for the current server."""
    names = set()
    for value in _DETAIL_LINE.findall(output):
        value = _normalize_place(value)
        label = value.split('.', 1)[0]
        names.update({value, value.split(' #', 1)[0], label, label.rstrip('0123456789')})
    names.discard('')
    return names


def ensure_vpn_connection(server: Optional[str] = None,
                          timeout_ms: int = DEFAULT_TIMEOUT_MS,
                          client: Optional[NordVpnClient] = None,
                          poll_interval: float = POLL_INTERVAL,
                          sleep: Callable[[float], None] = time.sleep,
                          clock: Callable[[], float] = time.monotonic) -> None:
    """
    Block until the VPN reports connected, connecting first if needed.

    Raises:
        VpnBinaryMissing: nordvpn is not installed
        VpnError: the connect command failed
        VpnConnectTimeout: still not connected after timeout_ms
    """
    client = client or NordVpnClient()

    try:
        if is_vpn_connected(client.status(), server):
            logger.info("VPN already connected")
            return
    except VpnBinaryMissing:
        raise
    except VpnError as e:
        logger.warning(f"Could not read VPN status ({e}), connecting anyway")

    logger.info(f"Connecting VPN{f' to {server}' if server else ''}")
    output = client.connect(server)
    if output.strip():
        logger.debug(f"nordvpn connect: {output.strip()}")

    deadline = clock() + timeout_ms / 1000.0
    while clock() < deadline:
        try:
            status = client.status()
        except VpnError as e:
            logger.warning(f"VPN status check failed ({e}), retrying")
        else:
            if is_vpn_connected(status, server):
                logger.info("VPN connection established")
                return
            logger.debug(f"VPN still connecting: {status.strip()}")
        sleep(poll_interval)

    raise VpnConnectTimeout(f"VPN not connected after {timeout_ms} ms")
