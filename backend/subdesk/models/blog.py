"""
SubDesk Backend — Blog SQLAlchemy Models
==========================================

What:  `blogs` and `blog_sections` tables behind the marketing blog API.
How:   A blog owns an ordered list of sections (heading + content).
       Sections are deleted with their blog (ON DELETE CASCADE plus the
       ORM delete-orphan cascade, so both raw SQL and ORM deletes agree).
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from subdesk.database import Base


class Blog(Base):
    __tablename__ = "blogs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    intro: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=text("CURRENT_TIMESTAMP"),
    )

    sections: Mapped[List["BlogSection"]] = relationship(
        back_populates="blog",
        cascade="all, delete-orphan",
        order_by="BlogSection.id",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Blog(id={self.id}, title='{self.title}')>"


class BlogSection(Base):
    __tablename__ = "blog_sections"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    blog_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("blogs.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    heading: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    content: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    blog: Mapped[Blog] = relationship(back_populates="sections")

    def __repr__(self) -> str:
        return f"<BlogSection(id={self.id}, blog_id={self.blog_id})>"
