"""Pytest configuration for the streamwarp test suite."""
from pathlib import Path

import pytest

from streamwarp.transport import FetchResult
from requests.structures import CaseInsensitiveDict

FIXTURES = Path(__file__).parent / 'fixtures'


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (may require network access)"
    )


def read_fixture(name: str) -> str:
    return (FIXTURES / name).read_text(encoding='utf-8')


class FakeFetcher:
    """Stands in for transport.fetch: serves canned pages and records calls."""

    def __init__(self, pages=None):
        self.pages = dict(pages or {})
        self.calls = []

    def add(self, url, body="", status_code=200, headers=None):
        self.pages[url] = (status_code, body, headers or {})

    def __call__(self, url, headers=None, proxy=None, timeout=None, method='GET', data=None):
        self.calls.append({'url': url, 'headers': dict(headers or {}), 'proxy': proxy,
                           'method': method, 'data': data})
        page = self.pages.get(url)
        if isinstance(page, Exception):
            raise page
        if page is None:
            return FetchResult(status_code=404, headers=CaseInsensitiveDict(), body='', url=url)
        if isinstance(page, str):
            page = (200, page, {})
        status_code, body, headers = page
        return FetchResult(status_code=status_code, headers=CaseInsensitiveDict(headers),
                           body=body, url=url)

    def urls(self):
        return [call['url'] for call in self.calls]


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every configuration variable the scraper reads."""
    for name in ('SCRAPER_URL', 'USE_NORDVPN', 'NORDVPN_PROXY_URL', 'NORDVPN_PROXY_HOST',
                 'NORDVPN_PROXY_PORT', 'NORDVPN_USERNAME', 'NORDVPN_PASSWORD',
                 'USE_NORDVPN_CLI', 'NORDVPN_CLI_SERVER', 'NORDVPN_CLI_TIMEOUT_MS',
                 'SCRAPER_CREDENTIALS', 'SCRAPER_OUTPUT', 'SCRAPER_FORMAT', 'SCRAPER_TIMEOUT',
                 'LOGIN_URL', 'LOGIN_METHOD', 'LOGIN_PAYLOAD', 'LOGIN_HEADERS'):
        # setenv first so the variable is removed again on teardown
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)


@pytest.fixture
def load_fixture():
    return read_fixture
