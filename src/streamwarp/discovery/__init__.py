"""URL discovery within fetched pages"""
from .scraper import discover_additional_urls, unescape_inline, clean_candidate
from .classifier import (
    is_media_manifest,
    is_static_asset,
    is_same_host,
    is_stream_candidate,
    should_follow,
)
