"""
Site module for the stream recorder.

Handles login, model discovery and stream negotiation.
"""

from .client import SiteClient, create_session, create_site_client, parse_favourites
from .negotiator import NegotiationState, StreamNegotiator, create_negotiator, run_handshake
from .page import StreamPage, parse_stream_page, ws_url_for
from .resolver import resolve_targets

__all__ = [
    'SiteClient',
    'create_session',
    'create_site_client',
    'parse_favourites',
    'NegotiationState',
    'StreamNegotiator',
    'create_negotiator',
    'run_handshake',
    'StreamPage',
    'parse_stream_page',
    'ws_url_for',
    'resolve_targets',
]
