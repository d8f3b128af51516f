"""
Adapters package for the Edge Service.

Wraps the collaborators the edge treats as given: Cookie header parsing and
the outbound HTTP transport to the wiki origin. Keep adapters thin and side
effect free outside of explicit calls.
"""

from .cookie_jar import parse_cookie_header, parse_cookie_headers
from .origin_client import OriginClient

__all__ = [
    "OriginClient",
    "parse_cookie_header",
    "parse_cookie_headers",
]
