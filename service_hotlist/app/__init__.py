"""
Hotlist Service application package.

Serves trending lists from many upstream sites behind one uniform API:
- Source adapters fetch and normalize each upstream into list items
- A fetch layer caches payloads with a TTL and collapses concurrent misses
- A registry maps source keys to handlers for uniform dispatch
- Optional AI analysis and translation helpers reuse the same cache
"""
