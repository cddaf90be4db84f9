"""Seed processing, login resolution and playlist aggregation"""
from .login import (
    CredentialRecord,
    LoginOptions,
    LoginPlan,
    build_login_info,
    find_credential,
    parse_header_string,
)
from .orchestrator import (
    CrawlSession,
    SeedOutcome,
    SessionOptions,
    SessionReport,
    aggregate_links,
    run_session,
)
