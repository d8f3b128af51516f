"""
Cookie header parsing for the edge.

Delegates to Starlette's parser, the same one FastAPI uses for
``Request.cookies``, so the edge sees cookies exactly as the app would.
"""

from typing import Dict, Iterable, Optional

from starlette.requests import cookie_parser


def parse_cookie_header(raw_header: Optional[str]) -> Dict[str, str]:
    """Turn a raw ``Cookie`` header value into a name -> value mapping."""
    if not raw_header:
        return {}
    return cookie_parser(raw_header)


def parse_cookie_headers(raw_headers: Iterable[str]) -> Dict[str, str]:
    """Parse several ``Cookie`` headers (HTTP/2 may split them) into one mapping."""
    return parse_cookie_header("; ".join(header for header in raw_headers if header))
