"""Generated image retrieval."""

from .fetcher import ArtifactFetcher

__all__ = ["ArtifactFetcher"]
