"""
SubDesk Backend — Blog Schemas
================================

Write payloads are shared by POST /add-blog and PUT /update-blog/{id}.
A section carrying an `id` refers to an existing section; one without an
`id` is new. Title/section presence is checked by BlogService so that a
missing field yields the documented 400 rather than FastAPI's 422.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class SectionIn(BaseModel):
    id: Optional[int] = None
    heading: Optional[str] = None
    content: Optional[str] = None


class BlogWrite(BaseModel):
    title: Optional[str] = None
    image: Optional[str] = Field(default=None, description="Cover image URL")
    intro: Optional[str] = None
    sections: Optional[List[SectionIn]] = None


class BlogSummary(BaseModel):
    id: int
    title: str
    image_url: Optional[str] = None
    intro: Optional[str] = None

    model_config = {"from_attributes": True}


class BlogRecord(BlogSummary):
    created_at: Optional[datetime] = None


class BlogSummaryList(BaseModel):
    blogs: List[BlogSummary]


class BlogRecordList(BaseModel):
    blogs: List[BlogRecord]


class SectionOut(BaseModel):
    id: int
    heading: Optional[str] = None
    content: Optional[str] = None

    model_config = {"from_attributes": True}


class BlogDetail(BaseModel):
    id: int
    title: str
    image: Optional[str] = None
    intro: Optional[str] = None
    sections: List[SectionOut] = Field(default_factory=list)


class BlogDetailResponse(BaseModel):
    blog: BlogDetail


class BlogCreateResponse(BaseModel):
    message: str = Field(default="Blog and sections added successfully")
    blog_id: int = Field(serialization_alias="blogId")
