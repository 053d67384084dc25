"""
Adapters package for the Hotlist Service.

HTTP client wrappers for upstream sites. Adapters map transport errors to
shared errors and return decoded payloads; parsing belongs to the sources.
"""

from .upstream_client import UpstreamClient

__all__ = [
    "UpstreamClient",
]
