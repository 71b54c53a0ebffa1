"""
SubDesk Backend — Pydantic Schemas
====================================

API contracts, kept separate from the ORM models so the JSON shape the
storefront and admin UI expect (e.g. `users`, `blogId`, `Price`) can differ
from column names.
"""
