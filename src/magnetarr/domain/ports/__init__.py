from .debrid_provider import DebridProviderPort
from .indexer import IndexerBackendPort
from .stream_cache import StreamCachePort

__all__ = [
    "DebridProviderPort",
    "IndexerBackendPort",
    "StreamCachePort",
]
