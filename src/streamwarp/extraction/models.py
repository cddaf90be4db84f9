"""Extraction data types"""
from dataclasses import asdict, dataclass
from typing import Optional


@dataclass(frozen=True)
class ChannelLink:
    """One playable URL of a channel. A channel with several renditions yields several links."""
    name: str
    url: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ScriptCandidate:
    """Script text worth running through the extraction strategies."""
    index: int                  # position among the page's <script> tags
    content: str
    source_url: Optional[str]   # page URL for inline scripts, script URL for external ones
