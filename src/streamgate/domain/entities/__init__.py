from .media import (
    MEDIA_TYPE_ORDER,
    CachedMedia,
    CandidateMedia,
    FetchedPage,
    MediaType,
    ProviderProfile,
    ResolvedMedia,
    ResolveFailure,
    ResolveResult,
    quality_rank,
)
from .proxy import ProxyRequest, ProxyResponse, UpstreamResponse

__all__ = [
    "MEDIA_TYPE_ORDER",
    "CachedMedia",
    "CandidateMedia",
    "FetchedPage",
    "MediaType",
    "ProviderProfile",
    "ProxyRequest",
    "ProxyResponse",
    "ResolveFailure",
    "ResolveResult",
    "ResolvedMedia",
    "UpstreamResponse",
    "quality_rank",
]
