"""
SubDesk Backend — ORM Models
==============================

Importing this package registers every table with Base.metadata, which is
what Alembic's autogenerate and the test suite's create_all rely on.
"""

from subdesk.models.admin import Admin
from subdesk.models.blog import Blog, BlogSection
from subdesk.models.subscriber import Subscriber

__all__ = ["Admin", "Blog", "BlogSection", "Subscriber"]
