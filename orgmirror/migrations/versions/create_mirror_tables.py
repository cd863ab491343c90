"""Create mirror tables

Revision ID: mirror_001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.sql import func

revision = "mirror_001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "installations",
        sa.Column("installation_id", sa.Integer, primary_key=True, autoincrement=False),
        sa.Column("owner_login", sa.String(255), nullable=False, index=True),
        sa.Column("payload", sa.JSON, nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "mirrored_repositories",
        sa.Column("installation_id", sa.Integer, primary_key=True),
        sa.Column("name", sa.String(255), primary_key=True),
        sa.Column("repo_id", sa.BigInteger, nullable=True),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("owner", sa.String(255), nullable=True),
        sa.Column("primary_language", sa.String(100), nullable=True),
        sa.Column("languages", sa.JSON, nullable=True),
        sa.Column("color", sa.String(50), nullable=True),
        sa.Column("remote_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payload", sa.JSON, nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "repository_branches",
        sa.Column("installation_id", sa.Integer, primary_key=True),
        sa.Column("repo_name", sa.String(255), primary_key=True),
        sa.Column("full_name", sa.String(255), nullable=True),
        sa.Column("repo_id", sa.BigInteger, nullable=True),
        sa.Column("branches", sa.JSON, nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "mirrored_pull_requests",
        sa.Column("installation_id", sa.Integer, primary_key=True),
        sa.Column("repo_name", sa.String(255), primary_key=True),
        sa.Column("number", sa.Integer, primary_key=True),
        sa.Column("title", sa.Text, nullable=False, server_default=""),
        sa.Column("body", sa.Text, nullable=True),
        sa.Column("state", sa.String(20), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="open"),
        sa.Column("draft", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("changed_files", sa.JSON, nullable=True),
        sa.Column("requested_reviewers", sa.JSON, nullable=True),
        sa.Column("remote_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payload", sa.JSON, nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_mirrored_pull_requests_status", "mirrored_pull_requests", ["status"]
    )
    op.create_table(
        "pull_request_analyses",
        sa.Column("installation_id", sa.Integer, primary_key=True),
        sa.Column("repo_name", sa.String(255), primary_key=True),
        sa.Column("pr_number", sa.Integer, primary_key=True),
        sa.Column("analysis", sa.JSON, nullable=True),
        *_timestamps(),
    )
    op.create_table(
        "org_members",
        sa.Column("installation_id", sa.Integer, primary_key=True),
        sa.Column("login", sa.String(255), primary_key=True),
        sa.Column("member_id", sa.BigInteger, nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("payload", sa.JSON, nullable=True),
        *_timestamps(),
    )


def downgrade() -> None:
    op.drop_table("org_members")
    op.drop_table("pull_request_analyses")
    op.drop_index("ix_mirrored_pull_requests_status", table_name="mirrored_pull_requests")
    op.drop_table("mirrored_pull_requests")
    op.drop_table("repository_branches")
    op.drop_table("mirrored_repositories")
    op.drop_table("installations")
