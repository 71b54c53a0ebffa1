"""Create subscription desk tables

Revision ID: 001
Revises: None
Create Date: 2025-06-01 00:00:00.000000+00:00

Creates subscribers, admins, blogs and blog_sections.

Rollback: downgrade() drops all four tables (destructive).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "subscribers",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=False),
        sa.Column(
            "plan", sa.String(100), nullable=False,
            comment="Plan name as chosen by the customer",
        ),
        sa.Column(
            "plan_kind", sa.String(20), nullable=False,
            server_default=sa.text("'unknown'"),
            comment="Classified plan: monthly, six_month, yearly, free_trial, unknown",
        ),
        sa.Column("price", sa.String(20), nullable=False),
        sa.Column(
            "invoice", sa.String(40), nullable=False,
            comment="Invoice number INV-<epoch ms>-<4 digits>",
        ),
        sa.Column(
            "invoice_status", sa.String(20), nullable=False,
            server_default=sa.text("'pending'"),
            comment="Billing state: Free, pending, paid",
        ),
        sa.Column(
            "created_at", sa.TIMESTAMP(timezone=True), nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at", sa.TIMESTAMP(timezone=True), nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
            comment="When invoice_status was last set by signup or by the operator",
        ),
        sa.Column(
            "reminded_for", sa.Date(), nullable=True,
            comment="Due date the last renewal reminder was sent for",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("phone"),
        sa.UniqueConstraint("invoice"),
    )
    # Reconcile and reminder sweeps filter on status
    op.create_index("idx_subscribers_invoice_status", "subscribers", ["invoice_status"])

    op.create_table(
        "admins",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column(
            "created_at", sa.TIMESTAMP(timezone=True), nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
    )

    op.create_table(
        "blogs",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("image_url", sa.String(1024), nullable=True),
        sa.Column("intro", sa.Text(), nullable=True),
        sa.Column(
            "created_at", sa.TIMESTAMP(timezone=True), nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("title"),
    )

    op.create_table(
        "blog_sections",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("blog_id", sa.Integer(), nullable=False),
        sa.Column("heading", sa.String(255), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["blog_id"], ["blogs.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_blog_sections_blog_id", "blog_sections", ["blog_id"])


def downgrade() -> None:
    op.drop_index("ix_blog_sections_blog_id", table_name="blog_sections")
    op.drop_table("blog_sections")
    op.drop_table("blogs")
    op.drop_table("admins")
    op.drop_index("idx_subscribers_invoice_status", table_name="subscribers")
    op.drop_table("subscribers")
