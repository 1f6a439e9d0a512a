"""Thumbnail use case.

Orchestrates validation, repository calls and cache-aside reads for thumbnail jobs.
Image processing itself happens in an external worker that picks up pending jobs
and reports back through ``update_thumbnail_status``.

Cache policy:
- Reads by id go through ``thumbnail:{id}`` with a 300 second TTL
- Creation does not warm the cache
- Soft delete and status updates invalidate the key after a successful write
- Cache failures never fail a call; they degrade to a miss or a skipped write
"""

import asyncio
from datetime import datetime
from typing import Optional

import structlog
from pydantic import AnyUrl, BaseModel, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from thumbforge.core.errors import (
    BaseError,
    ConflictError,
    DatabaseError,
    NotFoundError,
    ValidationError,
    exception_detail,
)
from thumbforge.core.result import Err, Ok, Result, from_awaitable, from_try
from thumbforge.models.thumbnail import (
    MAX_DIMENSION,
    NewThumbnail,
    Thumbnail,
    ThumbnailFormat,
    ThumbnailStatus,
    ThumbnailStatusUpdate,
)
from thumbforge.repositories.cache import CacheRepository
from thumbforge.repositories.thumbnail import ThumbnailRepository
from thumbforge.uow import TransactionManager

logger = structlog.get_logger(__name__)

CACHE_KEY_PREFIX = "thumbnail:"
CACHE_TTL_SECONDS = 300
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100

_url_adapter = TypeAdapter(AnyUrl)


# Request/Response Models


class CreateThumbnailRequest(BaseModel):
    """Thumbnail generation request. Validated by the service, not on construction."""

    url: str
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[ThumbnailFormat] = None


class ThumbnailResponse(BaseModel):
    """Thumbnail job as returned to callers and stored in the cache."""

    id: str
    url: str
    original_path: Optional[str]
    thumbnail_path: Optional[str]
    width: Optional[int]
    height: Optional[int]
    format: Optional[ThumbnailFormat]
    status: ThumbnailStatus
    error_message: Optional[str]
    job_id: Optional[str]
    retry_count: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, thumbnail: Thumbnail) -> "ThumbnailResponse":
        return cls.model_validate(thumbnail.model_dump(exclude={"deleted_at"}))


class ThumbnailListResponse(BaseModel):
    items: list[ThumbnailResponse]
    total: int
    page: int
    page_size: int


class DeleteResponse(BaseModel):
    message: str


def cache_key(thumbnail_id: str) -> str:
    return f"{CACHE_KEY_PREFIX}{thumbnail_id}"


def _validate_dimension(name: str, value: Optional[int]) -> Result[None, BaseError]:
    if value is None:
        return Ok(None)
    if value < 1 or value > MAX_DIMENSION:
        return Err(
            ValidationError(
                f"{name.capitalize()} must be between 1 and {MAX_DIMENSION}", {name: value}
            )
        )
    return Ok(None)


def validate_create_request(request: CreateThumbnailRequest) -> Result[None, BaseError]:
    """Validate a generation request.

    Rules:
    - url is non-empty and parses as a URL
    - width/height, when present, are integers in [1, 4096]
    """
    if not request.url or not request.url.strip():
        return Err(ValidationError("URL is required", {"field": "url"}))

    parsed = from_try(
        lambda: _url_adapter.validate_python(request.url),
        lambda exc: ValidationError("Invalid URL format", {"field": "url", "url": request.url}),
    )
    if parsed.is_err():
        return parsed

    return _validate_dimension("width", request.width).flat_map(
        lambda _: _validate_dimension("height", request.height)
    )


def _validate_id(thumbnail_id: str) -> Result[None, BaseError]:
    if not thumbnail_id or not thumbnail_id.strip():
        return Err(ValidationError("Invalid thumbnail ID", {"field": "id"}))
    return Ok(None)


class ThumbnailService:
    """Thumbnail job use case.

    Stateless: all collaborators are injected already initialized and safe to
    share across concurrent requests.
    """

    name = "ThumbnailService"

    def __init__(
        self,
        thumbnails: ThumbnailRepository,
        cache: CacheRepository,
        transactions: TransactionManager,
    ):
        """Initialize service with its collaborators.

        Args:
            thumbnails: Thumbnail repository (authoritative store)
            cache: Cache repository (advisory)
            transactions: Transaction manager for multi-step writes
        """
        self.thumbnails = thumbnails
        self.cache = cache
        self.transactions = transactions

    async def generate_thumbnail(
        self, request: CreateThumbnailRequest
    ) -> Result[ThumbnailResponse, BaseError]:
        """Validate and register a new thumbnail job in pending state.

        The new job is not cached; the first read populates the cache.
        """
        logger.info("thumbnail.create_requested", url=request.url)

        validation = validate_create_request(request)
        if validation.is_err():
            logger.info("thumbnail.create_rejected", reason=validation.error.message)
            return validation

        created = await self.thumbnails.create(
            NewThumbnail(
                url=request.url,
                width=request.width,
                height=request.height,
                format=request.format,
            )
        )
        if created.is_err():
            return created

        logger.info(
            "thumbnail.awaiting_worker",
            thumbnail_id=created.value.id,
            status=ThumbnailStatus(created.value.status).value,
        )
        return created.map(ThumbnailResponse.from_entity)

    async def get_thumbnail_by_id(self, thumbnail_id: str) -> Result[ThumbnailResponse, BaseError]:
        """Read a thumbnail through the cache.

        Cache hit: returned without touching the database.
        Cache miss (or unreadable cache): read from the database, then populate the
        cache with a 300 second TTL on a best-effort basis.
        """
        validation = _validate_id(thumbnail_id)
        if validation.is_err():
            return validation

        key = cache_key(thumbnail_id)
        cached = await self._read_cached(key)
        if cached is not None:
            logger.debug("thumbnail.cache_hit", thumbnail_id=thumbnail_id)
            return Ok(cached)

        found = await self.thumbnails.find_by_id(thumbnail_id)
        if found.is_err():
            return found
        if found.value is None:
            return Err(NotFoundError("Thumbnail", thumbnail_id))

        response = ThumbnailResponse.from_entity(found.value)
        stored = await self.cache.set(
            key, response.model_dump(mode="json"), ttl_seconds=CACHE_TTL_SECONDS
        )
        if stored.is_err():
            logger.warning(
                "thumbnail.cache_populate_skipped",
                thumbnail_id=thumbnail_id,
                error=stored.error.message,
            )
        return Ok(response)

    async def get_thumbnail_by_job_id(self, job_id: str) -> Result[ThumbnailResponse, BaseError]:
        """Look up a thumbnail by its external worker job id (uncached)."""
        if not job_id or not job_id.strip():
            return Err(ValidationError("Invalid job ID", {"field": "job_id"}))

        found = await self.thumbnails.find_by_job_id(job_id)
        if found.is_err():
            return found
        if found.value is None:
            return Err(NotFoundError("Thumbnail", job_id))
        return Ok(ThumbnailResponse.from_entity(found.value))

    async def list_thumbnails(
        self, page: int = 1, page_size: int = DEFAULT_PAGE_SIZE
    ) -> Result[ThumbnailListResponse, BaseError]:
        """Return one page of thumbnails (newest first) with the total count.

        The page and the count are fetched concurrently; if either fails the whole
        call fails.
        """
        if page < 1:
            return Err(ValidationError("Page must be at least 1", {"page": page}))
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            return Err(
                ValidationError(
                    f"Page size must be between 1 and {MAX_PAGE_SIZE}", {"page_size": page_size}
                )
            )

        items, total = await asyncio.gather(
            self.thumbnails.find_all(page=page, page_size=page_size),
            self.thumbnails.count(),
        )
        if items.is_err():
            return items
        if total.is_err():
            return total

        return Ok(
            ThumbnailListResponse(
                items=[ThumbnailResponse.from_entity(t) for t in items.value],
                total=total.value,
                page=page,
                page_size=page_size,
            )
        )

    async def delete_thumbnail(self, thumbnail_id: str) -> Result[DeleteResponse, BaseError]:
        """Soft delete a thumbnail and drop its cached read."""
        validation = _validate_id(thumbnail_id)
        if validation.is_err():
            return validation

        deleted = await self.thumbnails.soft_delete(thumbnail_id)
        if deleted.is_err():
            return deleted
        if not deleted.value:
            return Err(NotFoundError("Thumbnail", thumbnail_id))

        await self._invalidate(thumbnail_id)
        logger.info("thumbnail.delete_completed", thumbnail_id=thumbnail_id)
        return Ok(DeleteResponse(message=f"Thumbnail {thumbnail_id} deleted"))

    async def update_thumbnail_status(
        self, thumbnail_id: str, update: ThumbnailStatusUpdate
    ) -> Result[ThumbnailResponse, BaseError]:
        """Apply a worker-reported status change.

        Reads the current row and writes the update in one transaction so the
        transition check and the write see the same state. Any status other than
        failed clears error_message.

        Errors:
            ValidationError: Empty id, error_message given for a non-failed status,
                or retry_count explicitly set to None
            NotFoundError: Thumbnail absent or soft-deleted
            ConflictError: Transition not allowed from the current status
            DatabaseError: The transaction could not be completed
        """
        validation = _validate_id(thumbnail_id)
        if validation.is_err():
            return validation
        if update.error_message is not None and update.status != ThumbnailStatus.FAILED:
            return Err(
                ValidationError(
                    "error_message is only allowed with status 'failed'",
                    {"status": update.status.value},
                )
            )
        if "retry_count" in update.model_fields_set and update.retry_count is None:
            return Err(ValidationError("retry_count cannot be null", {"field": "retry_count"}))

        if update.status != ThumbnailStatus.FAILED:
            fields = {**update.changed_fields(), "error_message": None}
            update = ThumbnailStatusUpdate(status=update.status, **fields)

        async def _apply(tx: AsyncSession) -> Result[Thumbnail, BaseError]:
            found = await self.thumbnails.find_by_id(thumbnail_id, tx=tx)
            if found.is_err():
                return found
            current = found.value
            if current is None:
                return Err(NotFoundError("Thumbnail", thumbnail_id))

            allowed = from_try(
                lambda: current.check_transition(update.status),
                lambda exc: ConflictError(
                    str(exc),
                    {
                        "thumbnail_id": thumbnail_id,
                        "from": ThumbnailStatus(current.status).value,
                        "to": update.status.value,
                    },
                ),
            )
            if allowed.is_err():
                return allowed

            return await self.thumbnails.update_status(
                thumbnail_id, update.status, update, tx=tx
            )

        outcome = await from_awaitable(
            lambda: self.transactions.run_in_transaction(_apply),
            lambda exc: exc
            if isinstance(exc, BaseError)
            else DatabaseError("Status update failed", exception_detail(exc)),
        )
        updated = outcome.flat_map(lambda result: result)
        if updated.is_err():
            return updated

        await self._invalidate(thumbnail_id)
        return updated.map(ThumbnailResponse.from_entity)

    async def _read_cached(self, key: str) -> ThumbnailResponse | None:
        cached = await self.cache.get(key)
        if cached.is_err():
            logger.warning("thumbnail.cache_read_failed", key=key, error=cached.error.message)
            return None
        if cached.value is None:
            return None
        try:
            return ThumbnailResponse.model_validate(cached.value)
        except PydanticValidationError:
            logger.warning("thumbnail.cache_payload_invalid", key=key)
            return None

    async def _invalidate(self, thumbnail_id: str) -> None:
        removed = await self.cache.delete(cache_key(thumbnail_id))
        if removed.is_err():
            logger.warning(
                "thumbnail.cache_invalidate_failed",
                thumbnail_id=thumbnail_id,
                error=removed.error.message,
            )
