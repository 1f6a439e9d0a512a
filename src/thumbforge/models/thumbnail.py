"""Thumbnail entity - Derived-image job with lifecycle status tracking."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

import sqlalchemy as sa
from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel

MAX_DIMENSION = 4096


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ThumbnailStatus(str, Enum):
    """Thumbnail job lifecycle status."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ThumbnailFormat(str, Enum):
    """Output image format."""

    PNG = "png"
    JPG = "jpg"
    WEBP = "webp"


class InvalidStateTransition(Exception):
    """Raised when attempting an invalid thumbnail status transition."""

    pass


# Worker-driven transitions. Retries go back to pending; completed is terminal.
ALLOWED_TRANSITIONS: dict[ThumbnailStatus, frozenset[ThumbnailStatus]] = {
    ThumbnailStatus.PENDING: frozenset({ThumbnailStatus.PROCESSING, ThumbnailStatus.FAILED}),
    ThumbnailStatus.PROCESSING: frozenset(
        {ThumbnailStatus.COMPLETED, ThumbnailStatus.FAILED, ThumbnailStatus.PENDING}
    ),
    ThumbnailStatus.FAILED: frozenset({ThumbnailStatus.PENDING}),
    ThumbnailStatus.COMPLETED: frozenset(),
}


def _enum_values(enum_cls: type[Enum]) -> list[str]:
    # Persist "pending", not "PENDING"
    return [member.value for member in enum_cls]


class Thumbnail(SQLModel, table=True):
    """Thumbnail job row.

    Rows with a non-null deleted_at are soft-deleted and hidden from default reads.
    """

    __tablename__ = "thumbnails"  # type: ignore[assignment]

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True, max_length=36)
    url: str
    original_path: Optional[str] = Field(default=None, max_length=512)
    thumbnail_path: Optional[str] = Field(default=None, max_length=512)
    width: Optional[int] = Field(default=None, ge=1, le=MAX_DIMENSION)
    height: Optional[int] = Field(default=None, ge=1, le=MAX_DIMENSION)
    format: Optional[ThumbnailFormat] = Field(
        default=None,
        sa_type=sa.Enum(
            ThumbnailFormat,
            name="thumbnail_format",
            native_enum=False,
            length=10,
            values_callable=_enum_values,
        ),
    )
    status: ThumbnailStatus = Field(
        default=ThumbnailStatus.PENDING,
        index=True,
        sa_type=sa.Enum(
            ThumbnailStatus,
            name="thumbnail_status",
            native_enum=False,
            length=20,
            values_callable=_enum_values,
        ),
    )
    error_message: Optional[str] = Field(default=None)
    job_id: Optional[str] = Field(default=None, max_length=255, index=True)
    retry_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    deleted_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def can_transition_to(self, status: ThumbnailStatus) -> bool:
        """Check whether the worker may move this job to the given status."""
        return status in ALLOWED_TRANSITIONS[ThumbnailStatus(self.status)]

    def check_transition(self, status: ThumbnailStatus) -> None:
        """Validate a worker-driven status change.

        Raises:
            InvalidStateTransition: If the transition is not allowed from the current status
        """
        if not self.can_transition_to(status):
            current = ThumbnailStatus(self.status)
            allowed = ", ".join(sorted(s.value for s in ALLOWED_TRANSITIONS[current])) or "none"
            raise InvalidStateTransition(
                f"Cannot move thumbnail from {current.value} to {status.value}. "
                f"Allowed: {allowed}."
            )


class NewThumbnail(SQLModel):
    """Fields accepted when creating a thumbnail job."""

    url: str
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[ThumbnailFormat] = None


class ThumbnailStatusUpdate(SQLModel):
    """Partial update applied alongside a status change.

    Only fields explicitly set by the caller are written, so passing
    ``error_message=None`` clears the column while omitting it leaves it untouched.
    """

    status: ThumbnailStatus
    thumbnail_path: Optional[str] = None
    original_path: Optional[str] = None
    error_message: Optional[str] = None
    job_id: Optional[str] = None
    retry_count: Optional[int] = Field(default=None, ge=0)

    def changed_fields(self) -> dict:
        """Return the explicitly set partial fields, excluding status."""
        return self.model_dump(exclude_unset=True, exclude={"status"})
