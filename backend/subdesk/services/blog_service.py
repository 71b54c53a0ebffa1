"""
SubDesk Backend — Blog Service
================================

What:  CRUD for marketing blog posts and their sections.
Who:   routes/blogs.py.

Section sync on update:
    payload section with an id that belongs to the blog → updated in place
    payload section without an id (or with a foreign id) → inserted
    stored section whose id is absent from the payload   → deleted

    Blog.sections is loaded eagerly (selectin), so the sync only mutates
    an in-memory collection and the delete-orphan cascade issues the DELETEs.
"""

import logging
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from subdesk.exceptions import ConflictError, DatabaseError, NotFoundError, ValidationError
from subdesk.models.blog import Blog, BlogSection
from subdesk.schemas.blog import (
    BlogCreateResponse,
    BlogDetail,
    BlogDetailResponse,
    BlogRecord,
    BlogRecordList,
    BlogSummary,
    BlogSummaryList,
    BlogWrite,
    SectionIn,
    SectionOut,
)
from subdesk.schemas.common import MessageResponse

logger = logging.getLogger(__name__)

LATEST_LIMIT = 3


class BlogService:

    async def latest(self, db: AsyncSession, limit: int = LATEST_LIMIT) -> BlogSummaryList:
        """Newest blogs first, summary fields only."""
        try:
            result = await db.execute(
                select(Blog.id, Blog.title, Blog.image_url, Blog.intro)
                .order_by(Blog.id.desc())
                .limit(limit)
            )
            rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Blog fetch error: %s", str(e), exc_info=True)
            raise DatabaseError(message="Failed to fetch blogs")
        return BlogSummaryList(blogs=[BlogSummary.model_validate(r) for r in rows])

    async def list_all(self, db: AsyncSession) -> BlogRecordList:
        try:
            result = await db.execute(
                select(Blog.id, Blog.title, Blog.image_url, Blog.intro, Blog.created_at)
                .order_by(Blog.id)
            )
            rows = result.all()
        except SQLAlchemyError as e:
            logger.error("Blog fetch error: %s", str(e), exc_info=True)
            raise DatabaseError(message="Failed to fetch blogs")
        return BlogRecordList(blogs=[BlogRecord.model_validate(r) for r in rows])

    async def _get(self, db: AsyncSession, blog_id: int) -> Blog:
        try:
            blog = await db.get(Blog, blog_id)
        except SQLAlchemyError as e:
            logger.error("Database error fetching blog %s: %s", blog_id, str(e))
            raise DatabaseError(message="Database query failed", context={"blog_id": blog_id})
        if blog is None:
            raise NotFoundError(resource="Blog", resource_id=str(blog_id))
        return blog

    async def get(self, db: AsyncSession, blog_id: int) -> BlogDetailResponse:
        blog = await self._get(db, blog_id)
        return BlogDetailResponse(
            blog=BlogDetail(
                id=blog.id,
                title=blog.title,
                image=blog.image_url,
                intro=blog.intro,
                sections=[SectionOut.model_validate(s) for s in blog.sections],
            )
        )

    @staticmethod
    def _require_title(payload: BlogWrite) -> str:
        title = (payload.title or "").strip()
        if not title or payload.sections is None:
            raise ValidationError(message="Title and sections are required")
        return title

    async def _ensure_title_free(
        self, db: AsyncSession, title: str, blog_id: Optional[int] = None
    ) -> None:
        query = select(Blog.id).where(Blog.title == title)
        if blog_id is not None:
            query = query.where(Blog.id != blog_id)
        try:
            result = await db.execute(query)
            clash = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("Database error while checking blog: %s", str(e))
            raise DatabaseError(message="Database error while checking blog")
        if clash is not None:
            raise ConflictError(
                message="Blog with this title already exists",
                context={"title": title},
            )

    async def create(self, db: AsyncSession, payload: BlogWrite) -> BlogCreateResponse:
        """
        Raises:
            ValidationError: missing title, or no sections
            ConflictError:   a blog with the same title exists
        """
        title = self._require_title(payload)
        if not payload.sections:
            raise ValidationError(message="At least one section is required")

        await self._ensure_title_free(db, title)

        blog = Blog(
            title=title,
            image_url=payload.image,
            intro=payload.intro,
            sections=[BlogSection(heading=s.heading, content=s.content) for s in payload.sections],
        )
        try:
            db.add(blog)
            await db.flush()
        except IntegrityError:
            raise ConflictError(message="Blog with this title already exists")
        except SQLAlchemyError as e:
            logger.error("Failed to insert blog: %s", str(e), exc_info=True)
            raise DatabaseError(message="Failed to insert blog")

        logger.info("Blog %s created with %d sections", blog.id, len(payload.sections))
        return BlogCreateResponse(blog_id=blog.id)

    async def update(self, db: AsyncSession, blog_id: int, payload: BlogWrite) -> MessageResponse:
        title = self._require_title(payload)
        blog = await self._get(db, blog_id)
        await self._ensure_title_free(db, title, blog_id=blog_id)

        blog.title = title
        blog.image_url = payload.image
        blog.intro = payload.intro
        self._sync_sections(blog, payload.sections)

        try:
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Failed to update blog %s: %s", blog_id, str(e), exc_info=True)
            raise DatabaseError(message="Failed to update blog")

        logger.info("Blog %s updated (%d sections)", blog_id, len(blog.sections))
        return MessageResponse(message="Blog and sections updated successfully")

    @staticmethod
    def _sync_sections(blog: Blog, incoming: List[SectionIn]) -> None:
        existing = {section.id: section for section in blog.sections}
        keep_ids = {s.id for s in incoming if s.id is not None and s.id in existing}

        for section in list(blog.sections):
            if section.id not in keep_ids:
                blog.sections.remove(section)

        for s in incoming:
            if s.id is not None and s.id in existing:
                existing[s.id].heading = s.heading
                existing[s.id].content = s.content
            else:
                blog.sections.append(BlogSection(heading=s.heading, content=s.content))

    async def delete(self, db: AsyncSession, blog_id: int) -> MessageResponse:
        blog = await self._get(db, blog_id)
        try:
            await db.delete(blog)
            await db.flush()
        except SQLAlchemyError as e:
            logger.error("Failed to delete blog %s: %s", blog_id, str(e))
            raise DatabaseError(message="Failed to delete blog")
        logger.info("Blog %s deleted", blog_id)
        return MessageResponse(message="Blog and related sections deleted successfully")


blog_service = BlogService()
