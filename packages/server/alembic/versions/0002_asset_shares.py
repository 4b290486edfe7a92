"""Guest upload links (asset_shares).

Revision ID: 0002_asset_shares
Revises: 0001_initial_schema
Create Date: 2026-10-20 10:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0002_asset_shares"
down_revision: Union[str, None] = "0001_initial_schema"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "asset_shares",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("site_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("sites.id", ondelete="CASCADE"), nullable=False),
        sa.Column("asset_path", sa.Text(), nullable=False),
        sa.Column("token", sa.Text(), nullable=False, unique=True),
        sa.Column("created_by", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("max_uploads", sa.Integer(), nullable=True),
        sa.Column("upload_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("allowed_extensions", sa.JSON(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("max_uploads IS NULL OR max_uploads > 0", name="asset_shares_max_uploads_check"),
        sa.CheckConstraint("upload_count >= 0", name="asset_shares_upload_count_check"),
    )
    op.create_index("idx_asset_shares_site", "asset_shares", ["site_id"])
    op.create_index("idx_asset_shares_token", "asset_shares", ["token"])


def downgrade() -> None:
    op.drop_index("idx_asset_shares_token", table_name="asset_shares")
    op.drop_index("idx_asset_shares_site", table_name="asset_shares")
    op.drop_table("asset_shares")
