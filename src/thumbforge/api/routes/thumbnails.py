"""Thumbnail job API endpoints.

This module implements REST endpoints for thumbnail jobs:
- POST /api/thumbnails - Register a new thumbnail job
- GET /api/thumbnails - Paginated list of jobs (newest first)
- GET /api/thumbnails/{thumbnail_id} - Fetch one job (cached)
- DELETE /api/thumbnails/{thumbnail_id} - Soft delete a job

Business validation lives in ThumbnailService; these handlers only translate
HTTP input and the returned Result.
"""

from uuid import uuid4

from fastapi import APIRouter, Depends, Header, Query, status
from fastapi.responses import JSONResponse

from thumbforge.api.dependencies import get_thumbnail_service, to_response
from thumbforge.services.thumbnails import (
    DEFAULT_PAGE_SIZE,
    CreateThumbnailRequest,
    DeleteResponse,
    ThumbnailListResponse,
    ThumbnailResponse,
    ThumbnailService,
)

router = APIRouter(prefix="/api/thumbnails", tags=["thumbnails"])


def get_request_id(x_request_id: str | None = Header(default=None)) -> str:
    """Use the caller's X-Request-ID or generate one."""
    return x_request_id or str(uuid4())


@router.post(
    "",
    response_model=ThumbnailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Generate thumbnail",
)
async def generate_thumbnail(
    body: CreateThumbnailRequest,
    service: ThumbnailService = Depends(get_thumbnail_service),
    request_id: str = Depends(get_request_id),
) -> JSONResponse:
    """Register a thumbnail job in pending state for the worker to pick up."""
    result = await service.generate_thumbnail(body)
    return to_response(result, status.HTTP_201_CREATED, request_id)


@router.get("", response_model=ThumbnailListResponse, summary="List thumbnails")
async def list_thumbnails(
    page: int = Query(default=1, description="1-based page number"),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, description="Items per page (1-100)"),
    service: ThumbnailService = Depends(get_thumbnail_service),
    request_id: str = Depends(get_request_id),
) -> JSONResponse:
    """List non-deleted thumbnail jobs, newest first."""
    result = await service.list_thumbnails(page=page, page_size=page_size)
    return to_response(result, request_id=request_id)


@router.get("/{thumbnail_id}", response_model=ThumbnailResponse, summary="Get thumbnail")
async def get_thumbnail(
    thumbnail_id: str,
    service: ThumbnailService = Depends(get_thumbnail_service),
    request_id: str = Depends(get_request_id),
) -> JSONResponse:
    """Fetch a thumbnail job by id."""
    result = await service.get_thumbnail_by_id(thumbnail_id)
    return to_response(result, request_id=request_id)


@router.delete("/{thumbnail_id}", response_model=DeleteResponse, summary="Delete thumbnail")
async def delete_thumbnail(
    thumbnail_id: str,
    service: ThumbnailService = Depends(get_thumbnail_service),
    request_id: str = Depends(get_request_id),
) -> JSONResponse:
    """Soft delete a thumbnail job."""
    result = await service.delete_thumbnail(thumbnail_id)
    return to_response(result, request_id=request_id)
