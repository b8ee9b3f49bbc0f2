# Parsing helpers for director headers, WebDAV listings and OAuth state.
# Created: 2026-10-15

from pelicanclient.util.headers import parse_record_header
from pelicanclient.util.oauth_state import build_oauth_state, parse_oauth_state
from pelicanclient.util.webdav import parse_multistatus

__all__ = [
    "build_oauth_state",
    "parse_multistatus",
    "parse_oauth_state",
    "parse_record_header",
]
