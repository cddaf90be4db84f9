"""Channel extraction from in-page application state"""
from .models import ChannelLink, ScriptCandidate
from .scripts import extract_links_data_scripts
from .strategies import drop_placeholders, extract_links_data_from_script
from .literal import LiteralSyntaxError, parse_js_literal
from .payload import PayloadCycleError, PayloadError, resolve_payload
