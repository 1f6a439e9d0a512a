"""Repository layer tests for thumbnails.

Tests focus on the persistence contract:
- Creation defaults (pending, no thumbnail path, zero retries)
- Soft delete visibility and idempotence
- Pagination ordering and count consistency
- Partial status updates
- Store failures surface as DatabaseError values, never exceptions
"""

import asyncio

import pytest

from thumbforge.core.database import setup_db_session
from thumbforge.core.errors import DatabaseError
from thumbforge.models.thumbnail import (
    NewThumbnail,
    ThumbnailFormat,
    ThumbnailStatus,
    ThumbnailStatusUpdate,
)
from thumbforge.repositories.thumbnail import ThumbnailRepository


async def create(repo: ThumbnailRepository, url: str = "https://example.com/cat.png", **fields):
    result = await repo.create(NewThumbnail(url=url, **fields))
    assert result.is_ok(), result
    return result.unwrap()


@pytest.mark.asyncio
async def test_create_sets_pending_defaults(thumbnail_repo):
    """Freshly created rows are pending with no output and zero retries."""
    thumbnail = await create(thumbnail_repo, width=320, height=240, format=ThumbnailFormat.WEBP)

    assert thumbnail.id
    assert thumbnail.status == ThumbnailStatus.PENDING
    assert thumbnail.thumbnail_path is None
    assert thumbnail.retry_count == 0
    assert thumbnail.deleted_at is None
    assert thumbnail.width == 320
    assert thumbnail.format == ThumbnailFormat.WEBP
    assert thumbnail.updated_at >= thumbnail.created_at


@pytest.mark.asyncio
async def test_create_generates_unique_ids(thumbnail_repo):
    ids = {(await create(thumbnail_repo)).id for _ in range(5)}

    assert len(ids) == 5


@pytest.mark.asyncio
async def test_find_by_id_returns_none_when_absent(thumbnail_repo):
    result = await thumbnail_repo.find_by_id("does-not-exist")

    assert result.is_ok()
    assert result.unwrap() is None


@pytest.mark.asyncio
async def test_soft_delete_hides_row_but_keeps_it(thumbnail_repo):
    """Scenario:
    1. Create two thumbnails
    2. Soft delete one
    3. Default reads exclude it; the row still exists with deleted_at set
    """
    kept = await create(thumbnail_repo)
    removed = await create(thumbnail_repo)

    deleted = await thumbnail_repo.soft_delete(removed.id)
    assert deleted.unwrap() is True

    assert (await thumbnail_repo.find_by_id(removed.id)).unwrap() is None
    listed = (await thumbnail_repo.find_all()).unwrap()
    assert [t.id for t in listed] == [kept.id]
    assert (await thumbnail_repo.count()).unwrap() == 1

    raw = (await thumbnail_repo.find_by_id(removed.id, include_deleted=True)).unwrap()
    assert raw is not None
    assert raw.deleted_at is not None
    assert raw.updated_at >= raw.created_at


@pytest.mark.asyncio
async def test_soft_delete_is_idempotent_and_keeps_first_timestamp(thumbnail_repo):
    thumbnail = await create(thumbnail_repo)

    first = await thumbnail_repo.soft_delete(thumbnail.id)
    stamped = (await thumbnail_repo.find_by_id(thumbnail.id, include_deleted=True)).unwrap()
    second = await thumbnail_repo.soft_delete(thumbnail.id)
    after = (await thumbnail_repo.find_by_id(thumbnail.id, include_deleted=True)).unwrap()

    assert first.unwrap() is True
    assert second.is_ok()
    assert second.unwrap() is False, "Already-deleted row must not be matched again"
    assert after.deleted_at == stamped.deleted_at


@pytest.mark.asyncio
async def test_soft_delete_unknown_id_returns_false(thumbnail_repo):
    result = await thumbnail_repo.soft_delete("missing")

    assert result.is_ok()
    assert result.unwrap() is False


@pytest.mark.asyncio
async def test_hard_delete_is_idempotent(thumbnail_repo):
    thumbnail = await create(thumbnail_repo)

    assert (await thumbnail_repo.delete(thumbnail.id)).is_ok()
    assert (await thumbnail_repo.delete(thumbnail.id)).is_ok()
    assert (await thumbnail_repo.find_by_id(thumbnail.id, include_deleted=True)).unwrap() is None


@pytest.mark.asyncio
async def test_find_all_paginates_newest_first(thumbnail_repo):
    """120 rows: page 1 holds 50 newest, page 3 holds the remaining 20."""
    created = [await create(thumbnail_repo, url=f"https://example.com/{i}.png") for i in range(120)]

    page_one = (await thumbnail_repo.find_all(page=1, page_size=50)).unwrap()
    page_three = (await thumbnail_repo.find_all(page=3, page_size=50)).unwrap()
    total = (await thumbnail_repo.count()).unwrap()

    assert total == 120
    assert len(page_one) == 50
    assert len(page_three) == 20
    assert [t.created_at for t in page_one] == sorted(
        (t.created_at for t in page_one), reverse=True
    )
    assert page_one[0].id == created[-1].id
    assert page_three[-1].id == created[0].id


@pytest.mark.asyncio
async def test_find_by_status_and_job_id(thumbnail_repo):
    pending = await create(thumbnail_repo)
    processing = await create(thumbnail_repo)
    await thumbnail_repo.update_status(
        processing.id,
        ThumbnailStatus.PROCESSING,
        ThumbnailStatusUpdate(status=ThumbnailStatus.PROCESSING, job_id="job-42"),
    )

    in_progress = (await thumbnail_repo.find_by_status(ThumbnailStatus.PROCESSING)).unwrap()
    waiting = (await thumbnail_repo.find_by_status(ThumbnailStatus.PENDING)).unwrap()
    by_job = (await thumbnail_repo.find_by_job_id("job-42")).unwrap()

    assert [t.id for t in in_progress] == [processing.id]
    assert [t.id for t in waiting] == [pending.id]
    assert by_job is not None and by_job.id == processing.id

    await thumbnail_repo.soft_delete(processing.id)
    assert (await thumbnail_repo.find_by_job_id("job-42")).unwrap() is None
    assert (await thumbnail_repo.find_by_status(ThumbnailStatus.PROCESSING)).unwrap() == []


@pytest.mark.asyncio
async def test_update_status_writes_only_provided_fields(thumbnail_repo):
    thumbnail = await create(thumbnail_repo)
    await thumbnail_repo.update_status(
        thumbnail.id,
        ThumbnailStatus.FAILED,
        ThumbnailStatusUpdate(status=ThumbnailStatus.FAILED, error_message="decode error"),
    )

    result = await thumbnail_repo.update_status(
        thumbnail.id,
        ThumbnailStatus.PENDING,
        ThumbnailStatusUpdate(status=ThumbnailStatus.PENDING, retry_count=1),
    )

    updated = result.unwrap()
    assert updated.status == ThumbnailStatus.PENDING
    assert updated.retry_count == 1
    assert updated.error_message == "decode error", "Omitted fields must stay untouched"
    assert updated.updated_at >= thumbnail.updated_at


@pytest.mark.asyncio
async def test_update_status_unknown_id_is_database_error(thumbnail_repo):
    result = await thumbnail_repo.update_status("missing", ThumbnailStatus.PROCESSING)

    assert result.is_err()
    assert isinstance(result.unwrap_err(), DatabaseError)


@pytest.mark.asyncio
async def test_concurrent_page_and_count(thumbnail_repo):
    for i in range(3):
        await create(thumbnail_repo, url=f"https://example.com/{i}.png")

    items, total = await asyncio.gather(thumbnail_repo.find_all(), thumbnail_repo.count())

    assert len(items.unwrap()) == total.unwrap() == 3


@pytest.mark.asyncio
async def test_store_failure_returns_database_error(tmp_path):
    """A missing table makes every call fail; failures come back as values."""
    factory = setup_db_session(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}", pool_size=2)
    repo = ThumbnailRepository(factory)

    try:
        results = [
            await repo.create(NewThumbnail(url="https://example.com/a.png")),
            await repo.find_by_id("x"),
            await repo.find_all(),
            await repo.count(),
            await repo.soft_delete("x"),
            await repo.delete("x"),
        ]
    finally:
        await factory.kw["bind"].dispose()

    for result in results:
        assert result.is_err()
        error = result.unwrap_err()
        assert isinstance(error, DatabaseError)
        assert error.detail["error_type"] == "OperationalError"
