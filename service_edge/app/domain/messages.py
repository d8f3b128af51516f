"""
Immutable request and response values passed between the edge layers.
"""

from dataclasses import dataclass, replace
from typing import Iterable, List, Optional, Tuple
from urllib.parse import SplitResult, urlsplit

# Header values are the wire bytes decoded as latin-1, as ASGI servers hand
# them over, so encoding them back with latin-1 restores the exact bytes.
Headers = Tuple[Tuple[str, str], ...]


def encode_headers(headers: Headers) -> List[Tuple[bytes, bytes]]:
    return [(key.encode("latin-1"), value.encode("latin-1")) for key, value in headers]


def decode_headers(raw: Iterable[Tuple[bytes, bytes]]) -> Headers:
    return tuple((key.decode("latin-1"), value.decode("latin-1")) for key, value in raw)


def get_header(headers: Headers, name: str) -> Optional[str]:
    """Return the first header value matching ``name`` (case-insensitive)."""
    lowered = name.lower()
    for key, value in headers:
        if key.lower() == lowered:
            return value
    return None


def get_all_headers(headers: Headers, name: str) -> List[str]:
    lowered = name.lower()
    return [value for key, value in headers if key.lower() == lowered]


def without_headers(headers: Headers, names: Iterable[str]) -> Headers:
    dropped = {name.lower() for name in names}
    return tuple((key, value) for key, value in headers if key.lower() not in dropped)


@dataclass(frozen=True)
class InboundRequest:
    """A request as received by the edge. ``url`` keeps the raw, undecoded path."""

    method: str
    url: str
    headers: Headers = ()
    body: bytes = b""

    @property
    def split_url(self) -> SplitResult:
        return urlsplit(self.url)


@dataclass(frozen=True)
class OutboundRequest:
    """The request the edge sends to the origin."""

    method: str
    url: str
    headers: Headers = ()
    body: bytes = b""

    @classmethod
    def from_inbound(cls, request: InboundRequest) -> "OutboundRequest":
        return cls(method=request.method, url=request.url, headers=request.headers, body=request.body)

    @property
    def split_url(self) -> SplitResult:
        return urlsplit(self.url)

    def with_url(self, url: str) -> "OutboundRequest":
        return replace(self, url=url)


@dataclass(frozen=True)
class EdgeResponse:
    """Origin response as handed back to the HTTP surface."""

    status_code: int
    headers: Headers = ()
    content: bytes = b""

    def header(self, name: str) -> Optional[str]:
        return get_header(self.headers, name)

    @property
    def media_type(self) -> str:
        content_type = self.header("content-type") or ""
        return content_type.split(";", 1)[0].strip().lower()
