"""Thumbnail repository for thumbforge.

Provides data access methods for Thumbnail entities. Every method returns a Result
and never raises: store exceptions are logged and converted to DatabaseError.

Each method accepts an optional ``tx`` session. With ``tx`` the work joins the
caller's transaction (flush only, the caller commits); without it the method runs
in its own short-lived session and commits before returning.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from sqlalchemy import ColumnElement, Select, delete, func, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from thumbforge.core.errors import BaseError, DatabaseError, exception_detail
from thumbforge.core.result import Result, from_awaitable
from thumbforge.models.thumbnail import (
    NewThumbnail,
    Thumbnail,
    ThumbnailStatus,
    ThumbnailStatusUpdate,
    utcnow,
)

logger = structlog.get_logger(__name__)


def _active() -> ColumnElement[bool]:
    """Predicate shared by every default read: row is not soft-deleted."""
    return Thumbnail.deleted_at.is_(None)  # type: ignore[union-attr]


def _select_active() -> Select:
    return select(Thumbnail).where(_active())


class ThumbnailRepository:
    """Repository for Thumbnail entities.

    Owns persistence of thumbnails exclusively. Soft-deleted rows are excluded
    from all reads except ``find_by_id(..., include_deleted=True)``.
    """

    name = "ThumbnailRepository"

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """Initialize repository with a session factory.

        Args:
            session_factory: SQLAlchemy async session factory used when no
                transactional session is supplied
        """
        self.session_factory = session_factory

    @asynccontextmanager
    async def _session(self, tx: AsyncSession | None) -> AsyncIterator[AsyncSession]:
        if tx is not None:
            yield tx
            await tx.flush()
            return

        async with self.session_factory() as session:
            async with session.begin():
                yield session

    def _on_error(self, message: str, **context):
        def mapper(exc: Exception) -> BaseError:
            if isinstance(exc, DatabaseError):
                logger.error("thumbnail_repository.failed", reason=exc.message, **context)
                return exc
            logger.error(
                "thumbnail_repository.failed",
                reason=message,
                error=str(exc),
                error_type=type(exc).__name__,
                **context,
            )
            return DatabaseError(message, exception_detail(exc, **context))

        return mapper

    async def create(
        self, new_thumbnail: NewThumbnail, tx: AsyncSession | None = None
    ) -> Result[Thumbnail, BaseError]:
        """Insert a new thumbnail job in pending state.

        Args:
            new_thumbnail: Creation fields (url, optional width/height/format)
            tx: Optional transactional session

        Returns:
            Ok with the persisted row, Err(DatabaseError) if the insert fails
            or returns no row
        """

        async def _create() -> Thumbnail:
            row = Thumbnail(
                url=new_thumbnail.url,
                width=new_thumbnail.width,
                height=new_thumbnail.height,
                format=new_thumbnail.format,
                status=ThumbnailStatus.PENDING,
            )
            async with self._session(tx) as session:
                result = await session.scalars(
                    insert(Thumbnail).returning(Thumbnail), [row.model_dump()]
                )
                created = result.one_or_none()
                if created is None:
                    raise DatabaseError("Failed to create thumbnail - no row returned")
            logger.info("thumbnail.created", thumbnail_id=created.id)
            return created

        return await from_awaitable(_create, self._on_error("Failed to create thumbnail"))

    async def find_by_id(
        self,
        thumbnail_id: str,
        tx: AsyncSession | None = None,
        include_deleted: bool = False,
    ) -> Result[Thumbnail | None, BaseError]:
        """Retrieve thumbnail by id.

        Args:
            thumbnail_id: Thumbnail's unique identifier
            tx: Optional transactional session
            include_deleted: Also return soft-deleted rows (maintenance use only)

        Returns:
            Ok(Thumbnail) if found, Ok(None) otherwise
        """

        async def _find() -> Thumbnail | None:
            stmt = select(Thumbnail) if include_deleted else _select_active()
            async with self._session(tx) as session:
                result = await session.execute(
                    stmt.where(Thumbnail.id == thumbnail_id).limit(1)  # type: ignore[arg-type]
                )
                return result.scalar_one_or_none()

        return await from_awaitable(
            _find, self._on_error("Failed to find thumbnail", thumbnail_id=thumbnail_id)
        )

    async def find_by_job_id(
        self, job_id: str, tx: AsyncSession | None = None
    ) -> Result[Thumbnail | None, BaseError]:
        """Retrieve thumbnail by external worker job id.

        Returns:
            Ok(Thumbnail) if found, Ok(None) otherwise
        """

        async def _find() -> Thumbnail | None:
            async with self._session(tx) as session:
                result = await session.execute(
                    _select_active().where(Thumbnail.job_id == job_id).limit(1)  # type: ignore[arg-type]
                )
                return result.scalar_one_or_none()

        return await from_awaitable(
            _find, self._on_error("Failed to find thumbnail", job_id=job_id)
        )

    async def find_all(
        self, page: int = 1, page_size: int = 50, tx: AsyncSession | None = None
    ) -> Result[list[Thumbnail], BaseError]:
        """Retrieve one page of thumbnails, newest first.

        Args:
            page: 1-based page number
            page_size: Rows per page
            tx: Optional transactional session

        Returns:
            Ok with up to page_size thumbnails ordered by created_at DESC
        """

        async def _find() -> list[Thumbnail]:
            offset = (page - 1) * page_size
            async with self._session(tx) as session:
                result = await session.execute(
                    _select_active()
                    .order_by(Thumbnail.created_at.desc(), Thumbnail.id.desc())  # type: ignore[attr-defined]
                    .limit(page_size)
                    .offset(offset)
                )
                return list(result.scalars().all())

        return await from_awaitable(
            _find, self._on_error("Failed to list thumbnails", page=page, page_size=page_size)
        )

    async def count(self, tx: AsyncSession | None = None) -> Result[int, BaseError]:
        """Count non-deleted thumbnails (same filter as find_all)."""

        async def _count() -> int:
            async with self._session(tx) as session:
                result = await session.execute(
                    select(func.count()).select_from(Thumbnail).where(_active())
                )
                return int(result.scalar_one())

        return await from_awaitable(_count, self._on_error("Failed to count thumbnails"))

    async def find_by_status(
        self, status: ThumbnailStatus, tx: AsyncSession | None = None
    ) -> Result[list[Thumbnail], BaseError]:
        """Retrieve all thumbnails in a status, newest first."""

        async def _find() -> list[Thumbnail]:
            async with self._session(tx) as session:
                result = await session.execute(
                    _select_active()
                    .where(Thumbnail.status == status)  # type: ignore[arg-type]
                    .order_by(Thumbnail.created_at.desc(), Thumbnail.id.desc())  # type: ignore[attr-defined]
                )
                return list(result.scalars().all())

        return await from_awaitable(
            _find, self._on_error("Failed to find thumbnails", status=status.value)
        )

    async def update_status(
        self,
        thumbnail_id: str,
        status: ThumbnailStatus,
        updates: ThumbnailStatusUpdate | None = None,
        tx: AsyncSession | None = None,
    ) -> Result[Thumbnail, BaseError]:
        """Set status and any explicitly provided partial fields.

        Does not check transition rules and does not distinguish a missing row from
        one that could not be updated; both return Err(DatabaseError).

        Args:
            thumbnail_id: Thumbnail's unique identifier
            status: New status
            updates: Optional partial fields (thumbnail_path, original_path,
                error_message, job_id, retry_count)
            tx: Optional transactional session

        Returns:
            Ok with the updated row
        """

        async def _update() -> Thumbnail:
            values = {"status": status, "updated_at": utcnow()}
            if updates is not None:
                values.update(updates.changed_fields())

            async with self._session(tx) as session:
                result = await session.execute(
                    update(Thumbnail)
                    .where(Thumbnail.id == thumbnail_id)  # type: ignore[arg-type]
                    .values(**values)
                    .returning(Thumbnail)
                    .execution_options(populate_existing=True)
                )
                updated = result.scalar_one_or_none()
                if updated is None:
                    raise DatabaseError(f"Thumbnail not found: {thumbnail_id}")
            logger.info("thumbnail.status_updated", thumbnail_id=thumbnail_id, status=status.value)
            return updated

        return await from_awaitable(
            _update,
            self._on_error(
                "Failed to update thumbnail status", thumbnail_id=thumbnail_id, status=status.value
            ),
        )

    async def delete(
        self, thumbnail_id: str, tx: AsyncSession | None = None
    ) -> Result[None, BaseError]:
        """Hard delete a thumbnail (idempotent).

        Reserved for administrative and maintenance use.
        """

        async def _delete() -> None:
            async with self._session(tx) as session:
                result = await session.execute(
                    delete(Thumbnail)
                    .where(Thumbnail.id == thumbnail_id)  # type: ignore[arg-type]
                    .execution_options(synchronize_session=False)
                )
            logger.info(
                "thumbnail.deleted",
                thumbnail_id=thumbnail_id,
                deleted=result.rowcount > 0,  # type: ignore[attr-defined]
            )

        return await from_awaitable(
            _delete, self._on_error("Failed to delete thumbnail", thumbnail_id=thumbnail_id)
        )

    async def soft_delete(
        self, thumbnail_id: str, tx: AsyncSession | None = None
    ) -> Result[bool, BaseError]:
        """Mark an active thumbnail as deleted.

        deleted_at is never overwritten: an already-deleted row is not matched.

        Returns:
            Ok(True) if a row was marked, Ok(False) if none matched
        """

        async def _soft_delete() -> bool:
            now = utcnow()
            async with self._session(tx) as session:
                result = await session.execute(
                    update(Thumbnail)
                    .where(Thumbnail.id == thumbnail_id, _active())  # type: ignore[arg-type]
                    .values(deleted_at=now, updated_at=now)
                    .returning(Thumbnail.id)
                )
                deleted = result.first() is not None
            logger.info("thumbnail.soft_deleted", thumbnail_id=thumbnail_id, deleted=deleted)
            return deleted

        return await from_awaitable(
            _soft_delete,
            self._on_error("Failed to soft delete thumbnail", thumbnail_id=thumbnail_id),
        )
