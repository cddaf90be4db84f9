"""HTTP(S) transport with hand-built CONNECT tunnelling"""
from .client import (
    DEFAULT_TIMEOUT,
    USER_AGENT,
    FetchResult,
    fetch,
    make_script_fetcher,
    parse_raw_response,
)
from .decode import decode_response_body, header_value
from .proxy import ProxyEndpoint, explain_proxy_failure
