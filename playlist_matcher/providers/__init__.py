from .base import MetadataProvider
from .spotify import SpotifyProvider

__all__ = ["MetadataProvider", "SpotifyProvider"]
