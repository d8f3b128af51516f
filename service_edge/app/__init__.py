"""
Wiki Edge service package.

The edge fronts a wiki origin and decides, per request and before any origin
round trip, whether the response may be cached, which article the request
names, and which display preferences the client asked for.

Structure:
- app.main: FastAPI app, catch-all proxy route and wiring.
- app.domain: Pure request classification (articles, cache policy,
  client preferences) and request normalization.
- app.adapters: Cookie parsing and the httpx origin client.
"""
