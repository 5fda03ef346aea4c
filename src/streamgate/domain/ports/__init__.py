from .media_cache import MediaCachePort
from .media_extractor import MediaExtractorPort
from .media_upstream import MediaUpstreamPort
from .page_fetcher import PageFetcherPort
from .provider_heuristic import ProviderHeuristicPort
from .provider_registry import ProviderRegistryPort

__all__ = [
    "MediaCachePort",
    "MediaExtractorPort",
    "MediaUpstreamPort",
    "PageFetcherPort",
    "ProviderHeuristicPort",
    "ProviderRegistryPort",
]
