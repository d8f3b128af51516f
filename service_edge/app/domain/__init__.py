"""
Domain logic for the Edge Service.

Everything here is a pure function of the request and the ``CacheConfig``
except ``WikiRequest.fetch``, which awaits the outbound transport.
"""

from .article import Article, Unresolvable, resolve_article
from .cache_policy import CacheConfig, CacheDirective, build_cache_directive, is_eligible_for_cache
from .client_prefs import ClientPref, extract_client_prefs
from .messages import EdgeResponse, InboundRequest, OutboundRequest
from .wiki_request import WikiRequest, canonicalize, handle

__all__ = [
    "Article",
    "CacheConfig",
    "CacheDirective",
    "ClientPref",
    "EdgeResponse",
    "InboundRequest",
    "OutboundRequest",
    "Unresolvable",
    "WikiRequest",
    "build_cache_directive",
    "canonicalize",
    "extract_client_prefs",
    "handle",
    "is_eligible_for_cache",
    "resolve_article",
]
