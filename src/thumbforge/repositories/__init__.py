"""Repository layer for thumbforge.

Provides data access abstractions over the database and the cache.
Every repository method returns a Result instead of raising.
"""

from thumbforge.repositories.cache import CacheRepository
from thumbforge.repositories.thumbnail import ThumbnailRepository

__all__ = [
    "ThumbnailRepository",
    "CacheRepository",
]
