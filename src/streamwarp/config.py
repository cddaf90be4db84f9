"""Run configuration: defaults, environment (.env aware) and CLI overrides."""
import json
import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

from dotenv import find_dotenv, load_dotenv

from .errors import ConfigValidationError
from .session import CredentialRecord, LoginOptions, SessionOptions
from .transport import DEFAULT_TIMEOUT, USER_AGENT, ProxyEndpoint

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ('m3u', 'json')
DEFAULT_OUTPUTS = {'m3u': 'playlist.m3u', 'json': 'playlist.json'}
DEFAULT_VPN_TIMEOUT_MS = 60000
DEFAULT_MAX_DISCOVERED = 25


@dataclass
class RunConfig:
    """Everything one scrape run needs"""
    seed_urls: List[str] = field(default_factory=list)
    proxy: Optional[ProxyEndpoint] = None
    use_proxy: bool = False
    credentials: Dict[str, CredentialRecord] = field(default_factory=dict)
    login: LoginOptions = field(default_factory=LoginOptions)
    output_format: str = 'm3u'
    output_path: Optional[str] = None     # None = playlist.<format>
    timeout: float = DEFAULT_TIMEOUT      # seconds, per request
    follow_discovered: bool = True
    max_discovered: int = DEFAULT_MAX_DISCOVERED
    use_vpn_cli: bool = False
    vpn_server: Optional[str] = None
    vpn_timeout_ms: int = DEFAULT_VPN_TIMEOUT_MS
    headers: Dict[str, str] = field(default_factory=lambda: {'User-Agent': USER_AGENT})

    @property
    def resolved_output_path(self) -> str:
        return self.output_path or DEFAULT_OUTPUTS.get(self.output_format, 'playlist.m3u')

    @property
    def active_proxy(self) -> Optional[ProxyEndpoint]:
        """The proxy requests should go through (None unless use_proxy is on)."""
        return self.proxy if self.use_proxy else None

    def validate(self) -> 'RunConfig':
        """
        Check the configuration before any network activity.

        Raises:
            ConfigValidationError: no seeds, proxy requested but missing,
                unknown output format or non-positive timeouts
        """
        if not self.seed_urls:
            raise ConfigValidationError("No seed URL given (use --url or SCRAPER_URL)")
        if self.use_proxy and self.proxy is None:
            raise ConfigValidationError(
                "Proxy requested but no proxy configured "
                "(use --proxy, NORDVPN_PROXY_URL or NORDVPN_PROXY_HOST/NORDVPN_PROXY_PORT)"
            )
        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigValidationError(
                f"Unknown output format '{self.output_format}' (expected one of {', '.join(OUTPUT_FORMATS)})"
            )
        if self.timeout <= 0:
            raise ConfigValidationError(f"Timeout must be positive, got {self.timeout}")
        if self.vpn_timeout_ms <= 0:
            raise ConfigValidationError(f"VPN timeout must be positive, got {self.vpn_timeout_ms}")
        return self

    def session_options(self) -> SessionOptions:
        return SessionOptions(
            proxy=self.active_proxy,
            headers=dict(self.headers),
            timeout=self.timeout,
            follow_discovered=self.follow_discovered,
            max_discovered=self.max_discovered,
            login=self.login,
            credentials=dict(self.credentials),
        )

    def with_overrides(self, **overrides: Any) -> 'RunConfig':
        """Copy with every override that is not None applied (CLI layer)."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_dict(self) -> dict:
        """Log-safe summary: proxy masked, login payload reduced to its keys."""
        payload = self.login.login_payload
        return {
            'seed_urls': list(self.seed_urls),
            'proxy': self.proxy.masked() if self.proxy else None,
            'use_proxy': self.use_proxy,
            'credentials': sorted(self.credentials),
            'login_url': self.login.login_url,
            'login_method': self.login.login_method,
            'login_payload_keys': sorted(payload) if isinstance(payload, Mapping) else None,
            'output_format': self.output_format,
            'output_path': self.resolved_output_path,
            'timeout': self.timeout,
            'follow_discovered': self.follow_discovered,
            'max_discovered': self.max_discovered,
            'use_vpn_cli': self.use_vpn_cli,
            'vpn_server': self.vpn_server,
            'vpn_timeout_ms': self.vpn_timeout_ms,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> 'RunConfig':
        proxy = data.get('proxy')
        if isinstance(proxy, str):
            proxy = ProxyEndpoint.from_url(proxy) if proxy.strip() else None

        seeds = data.get('seed_urls', [])
        if isinstance(seeds, str):
            seeds = split_seed_urls(seeds)

        credentials = data.get('credentials') or {}
        return cls(
            seed_urls=list(seeds),
            proxy=proxy,
            use_proxy=bool(data.get('use_proxy', False)),
            credentials={
                host.lower(): record if isinstance(record, CredentialRecord) else CredentialRecord.from_dict(record)
                for host, record in credentials.items()
            },
            login=LoginOptions.from_dict(data.get('login')),
            output_format=data.get('output_format', 'm3u'),
            output_path=data.get('output_path'),
            timeout=float(data.get('timeout', DEFAULT_TIMEOUT)),
            follow_discovered=bool(data.get('follow_discovered', True)),
            max_discovered=int(data.get('max_discovered', DEFAULT_MAX_DISCOVERED)),
            use_vpn_cli=bool(data.get('use_vpn_cli', False)),
            vpn_server=data.get('vpn_server') or None,
            vpn_timeout_ms=int(data.get('vpn_timeout_ms', DEFAULT_VPN_TIMEOUT_MS)),
            headers=dict(data.get('headers') or {'User-Agent': USER_AGENT}),
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'RunConfig':
        """
        Build a configuration from environment variables.

        With no explicit mapping, a .env file in the working directory is
        loaded first (existing variables win) and os.environ is read.

        Raises:
            ConfigValidationError: malformed proxy URL, credential file or
                login JSON
        """
        if environ is None:
            load_dotenv(find_dotenv(usecwd=True))
            environ = os.environ

        config = cls(
            seed_urls=split_seed_urls(environ.get('SCRAPER_URL', '')),
            use_proxy=env_flag(environ.get('USE_NORDVPN')),
            use_vpn_cli=env_flag(environ.get('USE_NORDVPN_CLI')),
            vpn_server=environ.get('NORDVPN_CLI_SERVER') or None,
        )

        proxy_url = proxy_url_from_env(environ)
        if proxy_url:
            config.proxy = ProxyEndpoint.from_url(proxy_url)

        vpn_timeout = _env_number(environ, 'NORDVPN_CLI_TIMEOUT_MS', int)
        if vpn_timeout is not None:
            config.vpn_timeout_ms = vpn_timeout
        timeout = _env_number(environ, 'SCRAPER_TIMEOUT', float)
        if timeout is not None:
            config.timeout = timeout

        if environ.get('SCRAPER_FORMAT'):
            config.output_format = environ['SCRAPER_FORMAT'].strip().lower()
        if environ.get('SCRAPER_OUTPUT'):
            config.output_path = environ['SCRAPER_OUTPUT']
        if environ.get('SCRAPER_CREDENTIALS'):
            config.credentials = load_credentials(environ['SCRAPER_CREDENTIALS'])

        config.login = LoginOptions(
            login_url=environ.get('LOGIN_URL') or None,
            login_method=environ.get('LOGIN_METHOD') or None,
            login_payload=_env_json(environ, 'LOGIN_PAYLOAD'),
            login_headers=_env_headers(environ, 'LOGIN_HEADERS'),
        )
        return config


# =============================================================================
# Environment helpers
# =============================================================================

def env_flag(value: Optional[str]) -> bool:
    """'true' and '1' switch a flag on; anything else leaves it off."""
    return (value or '').strip().lower() in ('true', '1')


def split_seed_urls(raw: str) -> List[str]:
    return [part.strip() for part in (raw or '').split(',') if part.strip()]


def proxy_url_from_env(environ: Mapping[str, str]) -> Optional[str]:
    """NORDVPN_PROXY_URL, or an http URL assembled from NORDVPN_PROXY_HOST/PORT."""
    if environ.get('NORDVPN_PROXY_URL'):
        return environ['NORDVPN_PROXY_URL']

    host = environ.get('NORDVPN_PROXY_HOST')
    port = environ.get('NORDVPN_PROXY_PORT')
    if not (host and port):
        return None

    user = environ.get('NORDVPN_USERNAME')
    password = environ.get('NORDVPN_PASSWORD')
    credentials = ''
    if user and password:
        credentials = f"{quote(user, safe='')}:{quote(password, safe='')}@"
    return f"http://{credentials}{host}:{port}"


def load_credentials(path: str) -> Dict[str, CredentialRecord]:
    """
    Load per-host credential records from a JSON file.

    Raises:
        ConfigValidationError: unreadable file, invalid JSON, or a document
            that is not an object of objects
    """
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigValidationError(f"Cannot read credential file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigValidationError(f"Credential file {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigValidationError(f"Credential file {path} must contain a JSON object keyed by host")

    records = {}
    for host, record in data.items():
        if not isinstance(record, dict):
            raise ConfigValidationError(f"Credential for '{host}' in {path} must be an object")
        records[host.strip().lower()] = CredentialRecord.from_dict(record)

    logger.info(f"Loaded {len(records)} credential record(s) from {path}")
    return records


def _env_number(environ: Mapping[str, str], name: str, kind):
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return None
    try:
        return kind(raw)
    except ValueError:
        logger.warning(f"Ignoring {name}={raw!r}: not a number")
        return None


def _env_json(environ: Mapping[str, str], name: str) -> Any:
    raw = environ.get(name)
    if not raw:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigValidationError(f"{name} is not valid JSON: {e}") from e


def _env_headers(environ: Mapping[str, str], name: str) -> Any:
    """A JSON object, or the raw 'Name: value' string for parse_header_string."""
    raw = environ.get(name)
    if not raw:
        return None
    if raw.lstrip().startswith('{'):
        return _env_json(environ, name)
    return raw
