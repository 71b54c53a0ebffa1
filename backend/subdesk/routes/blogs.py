"""
SubDesk Backend — Blog Route Handlers
=======================================

Reads are public (the marketing site renders them); writes need an admin
token. Published posts change rarely, so public reads get a short
Cache-Control.
"""

from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from subdesk.database import get_db_session
from subdesk.schemas.blog import (
    BlogCreateResponse,
    BlogDetailResponse,
    BlogRecordList,
    BlogSummaryList,
    BlogWrite,
)
from subdesk.schemas.common import ErrorResponse, MessageResponse
from subdesk.security import require_admin
from subdesk.services.blog_service import blog_service

router = APIRouter(tags=["Blogs"])

PUBLIC_CACHE = "public, max-age=60"


@router.get("/get-blogs", response_model=BlogSummaryList, summary="Latest three blogs")
async def get_latest_blogs(
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> BlogSummaryList:
    response.headers["Cache-Control"] = PUBLIC_CACHE
    return await blog_service.latest(db)


@router.get("/blogs", response_model=BlogRecordList, summary="All blogs")
async def get_all_blogs(
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> BlogRecordList:
    response.headers["Cache-Control"] = PUBLIC_CACHE
    return await blog_service.list_all(db)


@router.get(
    "/blogs/{blog_id}",
    response_model=BlogDetailResponse,
    responses={404: {"description": "Blog not found", "model": ErrorResponse}},
    summary="One blog with its sections",
)
async def get_blog(
    blog_id: int,
    response: Response,
    db: AsyncSession = Depends(get_db_session),
) -> BlogDetailResponse:
    result = await blog_service.get(db, blog_id)
    response.headers["Cache-Control"] = PUBLIC_CACHE
    return result


@router.post(
    "/add-blog",
    response_model=BlogCreateResponse,
    status_code=201,
    responses={
        400: {"description": "Title or sections missing", "model": ErrorResponse},
        401: {"description": "Missing or invalid token", "model": ErrorResponse},
        409: {"description": "Title already used", "model": ErrorResponse},
    },
    summary="Create a blog",
)
async def add_blog(
    payload: BlogWrite,
    db: AsyncSession = Depends(get_db_session),
    admin: dict = Depends(require_admin),
) -> BlogCreateResponse:
    return await blog_service.create(db, payload)


@router.put(
    "/update-blog/{blog_id}",
    response_model=MessageResponse,
    responses={
        400: {"description": "Title or sections missing", "model": ErrorResponse},
        404: {"description": "Blog not found", "model": ErrorResponse},
    },
    summary="Replace a blog and sync its sections",
)
async def update_blog(
    blog_id: int,
    payload: BlogWrite,
    db: AsyncSession = Depends(get_db_session),
    admin: dict = Depends(require_admin),
) -> MessageResponse:
    return await blog_service.update(db, blog_id, payload)


@router.delete(
    "/delete-blog/{blog_id}",
    response_model=MessageResponse,
    responses={404: {"description": "Blog not found", "model": ErrorResponse}},
    summary="Delete a blog and its sections",
)
async def delete_blog(
    blog_id: int,
    db: AsyncSession = Depends(get_db_session),
    admin: dict = Depends(require_admin),
) -> MessageResponse:
    return await blog_service.delete(db, blog_id)
