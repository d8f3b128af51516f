"""
Article resolution for inbound wiki URLs.

Maps the path and query of a request onto the logical resource it asks for:
a (namespace, title) pair, or ``Unresolvable`` when the URL shape is not one
the edge understands. Resolution never raises; callers treat
``Unresolvable`` as "not cacheable".
"""

from dataclasses import dataclass
from typing import Union
from urllib.parse import SplitResult, parse_qs, urlsplit

DEFAULT_ENTRY_POINT_PATH = "/index.php"
DEFAULT_ARTICLE_PATH_PREFIX = "/w/"
MAIN_PAGE_TITLE = "Main_Page"

NAMESPACE_SEPARATOR = ":"


def normalize_title(value: str) -> str:
    """Spaces and underscores are the same character in a wiki title."""
    return value.replace(" ", "_")


@dataclass(frozen=True)
class Article:
    """Logical resource identity. An empty namespace is the main namespace."""

    namespace: str
    title: str

    def __post_init__(self):
        if not self.title:
            raise ValueError("Article title must not be empty")

    @property
    def prefixed_title(self) -> str:
        if self.namespace:
            return f"{self.namespace}{NAMESPACE_SEPARATOR}{self.title}"
        return self.title


@dataclass(frozen=True)
class Unresolvable:
    """The request does not name an article the edge can identify."""

    reason: str


ArticleResolution = Union[Article, Unresolvable]


def as_split_url(url: Union[str, SplitResult]) -> SplitResult:
    if isinstance(url, SplitResult):
        return url
    return urlsplit(url)


def query_params(url: SplitResult) -> dict:
    """Decode the query string, keeping keys that carry blank values."""
    return parse_qs(url.query, keep_blank_values=True)


def split_title(value: str, main_page_title: str = MAIN_PAGE_TITLE) -> ArticleResolution:
    """Split ``Namespace:Title`` on the first separator.

    ``"Foo:Bar"`` is ``Article("Foo", "Bar")``, ``"Foo"`` is
    ``Article("", "Foo")`` and ``"Foo:"`` is unresolvable. An empty value
    names the main page. Spaces are folded to underscores, so
    ``"Help talk:Foo"`` and ``"Help_talk:Foo"`` resolve alike.
    """
    if not value:
        return Article("", main_page_title)

    left, separator, right = normalize_title(value).partition(NAMESPACE_SEPARATOR)
    if not separator:
        return Article("", left)
    if not right:
        return Unresolvable("empty title after namespace")
    return Article(left, right)


def resolve_article(
    url: Union[str, SplitResult],
    *,
    entry_point_path: str = DEFAULT_ENTRY_POINT_PATH,
    article_path_prefix: str = DEFAULT_ARTICLE_PATH_PREFIX,
    main_page_title: str = MAIN_PAGE_TITLE,
) -> ArticleResolution:
    """Resolve the article a request URL refers to."""
    url = as_split_url(url)
    path = url.path

    if path == entry_point_path:
        titles = query_params(url).get("title")
        # A missing or empty title parameter renders the main page.
        return split_title(titles[0] if titles else "", main_page_title)

    if path == "/":
        return Article("", main_page_title)

    if path.startswith(article_path_prefix):
        # The remainder is left percent-encoded. Only the namespace is used
        # for cache decisions, and decoding would need malformed-URI handling.
        return split_title(path[len(article_path_prefix):], main_page_title)

    return Unresolvable("unrecognized path")
