from ghsync.cache.coalescer import InFlightCoalescer
from ghsync.cache.ttl import KeyedTTLCache

__all__ = [
    "InFlightCoalescer",
    "KeyedTTLCache",
]
