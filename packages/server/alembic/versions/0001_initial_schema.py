"""Initial schema: sites, memberships, staged assets, templates, invitations.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-16 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = True) -> list[sa.Column]:
    columns = [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]
    if updated:
        columns.append(
            sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()"))
        )
    return columns


# ---------------------------------------------------------------------------
# UPGRADE
# ---------------------------------------------------------------------------


def upgrade() -> None:
    # sites
    op.create_table(
        "sites",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("repo_full_name", sa.Text(), nullable=False),
        sa.Column("default_branch", sa.Text(), nullable=False, server_default="main"),
        sa.Column("github_installation_id", sa.BigInteger(), nullable=True),
        sa.Column("github_app_slug", sa.Text(), nullable=True),
        sa.Column("settings", sa.JSON(), nullable=False, server_default="{}"),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_sites_repo", "sites", ["repo_full_name"])
    op.create_index("idx_sites_created_by", "sites", ["created_by"])

    # site_members
    op.create_table(
        "site_members",
        sa.Column("site_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("sites.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("role", sa.Text(), nullable=False, server_default="manager"),
        sa.CheckConstraint("role IN ('owner', 'manager')", name="site_members_role_check"),
        *_timestamps(updated=False),
    )
    op.create_index("idx_site_members_user", "site_members", ["user_id"])

    # asset_versions — at most one pending row per (site_id, repo_path), kept by the application
    op.create_table(
        "asset_versions",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("site_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("sites.id", ondelete="CASCADE"), nullable=False),
        sa.Column("repo_path", sa.Text(), nullable=False),
        sa.Column("storage_path", sa.Text(), nullable=False),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("file_size_bytes", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("checksum", sa.Text(), nullable=True),
        sa.Column("batch_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'committed', 'discarded')", name="asset_versions_status_check"
        ),
        *_timestamps(),
    )
    op.create_index("idx_asset_versions_lookup", "asset_versions", ["site_id", "repo_path", "status"])
    op.create_index("idx_asset_versions_batch", "asset_versions", ["batch_id"])

    # templates
    op.create_table(
        "templates",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=""),
        sa.Column("repo_full_name", sa.Text(), nullable=False),
        sa.Column("preview_image_url", sa.Text(), nullable=True),
        sa.Column("tags", sa.JSON(), nullable=False, server_default="[]"),
        sa.Column("submitted_by", postgresql.UUID(as_uuid=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_templates_created", "templates", ["created_at"])
    op.create_index("idx_templates_submitted_by", "templates", ["submitted_by"])

    # invitations
    op.create_table(
        "invitations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("site_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("sites.id", ondelete="CASCADE"), nullable=False),
        sa.Column("inviter_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("token", sa.Text(), nullable=False, unique=True),
        sa.Column("invite_code", sa.Text(), nullable=False),
        sa.Column("role", sa.Text(), nullable=False, server_default="manager"),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'expired')", name="invitations_status_check"
        ),
        *_timestamps(),
    )
    op.create_index("idx_invitations_site", "invitations", ["site_id"])
    op.create_index("idx_invitations_code", "invitations", ["invite_code", "status"])

    # activity_log (append-only)
    op.create_table(
        "activity_log",
        sa.Column("id", sa.BigInteger(), sa.Identity(), primary_key=True),
        sa.Column("site_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("sites.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.Text(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False, server_default="{}"),
        *_timestamps(updated=False),
    )
    op.create_index("idx_activity_site", "activity_log", ["site_id", "created_at"])
    op.execute("""
        CREATE OR REPLACE FUNCTION prevent_activity_mutation()
        RETURNS TRIGGER AS $$
        BEGIN
            RAISE EXCEPTION 'activity_log is append-only';
        END;
        $$ LANGUAGE plpgsql;
    """)
    op.execute("""
        CREATE TRIGGER activity_log_immutable
        BEFORE UPDATE ON activity_log
        FOR EACH ROW EXECUTE FUNCTION prevent_activity_mutation();
    """)

    # profiles (mirror of the auth platform's users)
    op.create_table(
        "profiles",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.Text(), nullable=True),
        sa.Column("full_name", sa.Text(), nullable=True),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index("idx_profiles_email", "profiles", ["email"])

    # user_roles
    op.create_table(
        "user_roles",
        sa.Column("user_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("role", sa.Text(), primary_key=True),
    )

    # github_installations
    op.create_table(
        "github_installations",
        sa.Column("installation_id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False, unique=True),
        sa.Column("account_login", sa.Text(), nullable=False),
        sa.Column("account_type", sa.Text(), nullable=False, server_default="User"),
        sa.Column("account_avatar_url", sa.Text(), nullable=True),
        *_timestamps(),
    )


# ---------------------------------------------------------------------------
# DOWNGRADE
# ---------------------------------------------------------------------------


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS activity_log_immutable ON activity_log")
    op.execute("DROP FUNCTION IF EXISTS prevent_activity_mutation()")
    for table in [
        "github_installations",
        "user_roles",
        "profiles",
        "activity_log",
        "invitations",
        "templates",
        "asset_versions",
        "site_members",
        "sites",
    ]:
        op.drop_table(table)
