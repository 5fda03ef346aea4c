from .resolve_media import ResolveMediaUseCase
from .stream_media import StreamMediaUseCase

__all__ = ["ResolveMediaUseCase", "StreamMediaUseCase"]
