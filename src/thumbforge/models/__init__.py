"""SQLModel database entities.

All models are imported here to ensure they're registered with SQLModel metadata
for Alembic autogenerate support.
"""

from thumbforge.models.thumbnail import (
    InvalidStateTransition,
    NewThumbnail,
    Thumbnail,
    ThumbnailFormat,
    ThumbnailStatus,
    ThumbnailStatusUpdate,
)

__all__ = [
    "Thumbnail",
    "ThumbnailStatus",
    "ThumbnailFormat",
    "NewThumbnail",
    "ThumbnailStatusUpdate",
    "InvalidStateTransition",
]
