"""
Session orchestration: fetch -> extract (-> discover -> fetch -> extract) per seed.

Seeds are processed strictly one after another so the playlist order is
deterministic and a single proxy egress never sees concurrent connections.
A failing seed is logged and recorded; it never aborts the run.
"""
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlparse

from ..discovery import discover_additional_urls, is_media_manifest, is_static_asset
from ..errors import NetworkError, StreamwarpError
from ..extraction import ChannelLink, extract_links_data_from_script, extract_links_data_scripts
from ..transport import DEFAULT_TIMEOUT, USER_AGENT, FetchResult, ProxyEndpoint, explain_proxy_failure, fetch
from ..transport.client import make_script_fetcher
from .login import (
    CredentialRecord,
    LoginOptions,
    build_login_info,
    find_credential,
    parse_cookie_string,
    perform_login,
)

logger = logging.getLogger(__name__)

Fetcher = Callable[..., FetchResult]


@dataclass
class SessionOptions:
    """Everything the orchestrator needs from configuration."""
    proxy: Optional[ProxyEndpoint] = None
    headers: Dict[str, str] = field(default_factory=lambda: {'User-Agent': USER_AGENT})
    timeout: float = DEFAULT_TIMEOUT
    follow_discovered: bool = True
    max_discovered: int = 25
    login: LoginOptions = field(default_factory=LoginOptions)
    credentials: Dict[str, CredentialRecord] = field(default_factory=dict)


@dataclass
class SeedOutcome:
    """What happened to one seed URL."""
    url: str
    ok: bool = False
    link_count: int = 0
    discovered: int = 0
    error: Optional[str] = None


@dataclass
class SessionReport:
    playlist: List[ChannelLink]
    seeds: List[SeedOutcome]

    @property
    def succeeded(self) -> bool:
        """True when at least one seed produced links."""
        return any(seed.ok for seed in self.seeds)


def aggregate_links(links: Iterable[ChannelLink]) -> List[ChannelLink]:
    """Dedupe by URL; the first occurrence (and its name) wins."""
    seen = set()
    unique = []
    for link in links:
        if link.url not in seen:
            seen.add(link.url)
            unique.append(link)
    return unique


def run_session(seed_urls: Iterable[str],
                options: Optional[SessionOptions] = None,
                fetcher: Fetcher = fetch) -> SessionReport:
    """Process every seed in order and return the deduplicated playlist."""
    return CrawlSession(options or SessionOptions(), fetcher).run(seed_urls)


class CrawlSession:
    """State of one run: visited URLs, per-host cookies and completed logins."""

    def __init__(self, options: SessionOptions, fetcher: Fetcher = fetch):
        self.options = options
        self.fetcher = fetcher
        self.visited = set()
        self.cookies: Dict[str, Dict[str, str]] = {}
        self.logged_in = set()

    def run(self, seed_urls: Iterable[str]) -> SessionReport:
        collected: List[ChannelLink] = []
        outcomes: List[SeedOutcome] = []

        for seed in seed_urls:
            try:
                outcome, links = self.process_seed(seed)
            except StreamwarpError as e:
                message = self.describe_error(e)
                logger.warning(f"Seed {seed} failed: {message}")
                outcome, links = SeedOutcome(url=seed, error=message), []
            outcomes.append(outcome)
            collected.extend(links)

        playlist = aggregate_links(collected)
        logger.info(f"Session finished: {len(playlist)} unique links from "
                    f"{sum(1 for o in outcomes if o.ok)}/{len(outcomes)} seeds")
        return SessionReport(playlist=playlist, seeds=outcomes)

    def process_seed(self, seed: str) -> Tuple[SeedOutcome, List[ChannelLink]]:
        outcome = SeedOutcome(url=seed)

        page = self.fetch_page(seed)
        self.visited.update({seed, page.url or seed})
        if page.status_code != 200:
            outcome.error = f"HTTP {page.status_code}"
            logger.warning(f"Seed {seed} returned HTTP {page.status_code}")
            return outcome, []

        logger.info(f"Loaded {seed} ({len(page.body)} chars)")
        links = self.extract(page)

        if self.options.follow_discovered:
            for url in self.discover(page):
                sub_links = self._follow(url)
                if sub_links is not None:
                    outcome.discovered += 1
                    links.extend(sub_links)

        outcome.link_count = len(links)
        outcome.ok = bool(links)
        if not links:
            outcome.error = "No channel data found"
            logger.warning(f"Seed {seed}: no channel data found")
        return outcome, links

    def _follow(self, url: str) -> Optional[List[ChannelLink]]:
        """Fetch and extract one discovered page; None when it could not be loaded."""
        try:
            page = self.fetch_page(url)
        except StreamwarpError as e:
            logger.warning(f"Discovered page {url} failed: {self.describe_error(e)}")
            return None
        if page.status_code != 200:
            logger.debug(f"Discovered page {url} returned HTTP {page.status_code}")
            return None
        self.visited.add(page.url or url)
        return self.extract(page)

    def discover(self, page: FetchResult) -> List[str]:
        """Unvisited pages one hop from page, capped at max_discovered."""
        found = []
        for url in discover_additional_urls(page.body, page.url):
            if url in self.visited or is_media_manifest(url) or is_static_asset(url):
                continue
            if len(found) >= self.options.max_discovered:
                logger.info(f"Discovery capped at {self.options.max_discovered} pages for {page.url}")
                break
            self.visited.add(url)
            found.append(url)
        logger.debug(f"Discovered {len(found)} pages from {page.url}")
        return found

    def extract(self, page: FetchResult) -> List[ChannelLink]:
        """Run every script candidate of a page through the strategies."""
        script_fetcher = make_script_fetcher(
            proxy=self.options.proxy,
            headers=self.request_headers(page.url),
            timeout=self.options.timeout,
            fetcher=self.fetcher,
        )
        candidates = extract_links_data_scripts(page.body, base_url=page.url,
                                                fetch_external_script=script_fetcher)

        links: List[ChannelLink] = []
        for candidate in candidates:
            data = extract_links_data_from_script(candidate.content)
            if data is None:
                logger.debug(f"Script {candidate.index} on {page.url}: no strategy matched")
                continue
            logger.info(f"Script {candidate.index} on {page.url}: {len(data['links'])} links")
            links.extend(data['links'])
        return links

    def fetch_page(self, url: str) -> FetchResult:
        self.ensure_login(url)
        return self.fetcher(
            url,
            headers=self.request_headers(url),
            proxy=self.options.proxy,
            timeout=self.options.timeout,
        )

    def request_headers(self, url: str) -> Dict[str, str]:
        headers = dict(self.options.headers)
        jar = self.cookies.get(_host(url))
        if jar:
            headers['Cookie'] = '; '.join(f"{name}={value}" for name, value in jar.items())
        return headers

    def ensure_login(self, url: str) -> None:
        """Seed credential cookies and run the login request once per host."""
        host = _host(url)
        if not host or host in self.logged_in:
            return
        self.logged_in.add(host)

        credential = find_credential(host, self.options.credentials)
        jar = self.cookies.setdefault(host, {})
        if credential and credential.cookies:
            jar.update(parse_cookie_string(credential.cookies))

        try:
            plan = build_login_info(urlparse(url), self.options.login, credential)
            if not plan.url:
                return
            logger.info(f"Logging in for {host}: {plan.describe()}")
            cookies = perform_login(
                plan, self.fetcher,
                headers=self.request_headers(url),
                proxy=self.options.proxy,
                timeout=self.options.timeout,
            )
        except StreamwarpError as e:
            logger.warning(f"Login for {host} failed, continuing without it: {self.describe_error(e)}")
            return
        jar.update(cookies)
        logger.info(f"Login for {host} set {len(cookies)} cookie(s)")

    def describe_error(self, error: StreamwarpError) -> str:
        if self.options.proxy is not None and isinstance(error, NetworkError):
            return explain_proxy_failure(error, self.options.proxy)
        return str(error)


def _host(url: str) -> Optional[str]:
    try:
        host = urlparse(url).hostname
    except ValueError:
        return None
    return host.lower() if host else None
