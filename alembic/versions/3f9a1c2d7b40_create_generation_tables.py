"""create_generation_tables

Revision ID: 3f9a1c2d7b40
Revises:
Create Date: 2026-10-18 09:12:41.208113

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f9a1c2d7b40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

request_status = sa.Enum("PENDING", "GENERATING", "COMPLETED", "FAILED", name="requeststatus")
image_status = sa.Enum("GENERATED", "KEPT", "DISCARDED", name="imagestatus")


def upgrade() -> None:
    """Create generation_requests, generated_images and queue_messages."""
    op.create_table(
        "generation_requests",
        sa.Column("request_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("channel_id", sa.String(length=64), nullable=False),
        sa.Column("prompt", sa.String(length=1000), nullable=False),
        sa.Column("enhanced_prompt", sa.String(), nullable=False),
        sa.Column("status", request_status, nullable=False),
        sa.Column("model", sa.String(length=255), nullable=False),
        sa.Column("callback_target", sa.String(length=1024), nullable=False),
        sa.Column("error_message", sa.String(length=1000), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("request_id"),
    )
    op.create_index("ix_generation_requests_user_id", "generation_requests", ["user_id"])
    op.create_index("ix_generation_requests_status", "generation_requests", ["status"])
    op.create_index("ix_generation_requests_expires_at", "generation_requests", ["expires_at"])

    op.create_table(
        "generated_images",
        sa.Column("image_id", sa.String(length=36), nullable=False),
        sa.Column("request_id", sa.String(length=36), nullable=False),
        sa.Column("storage_key", sa.String(length=512), nullable=False),
        sa.Column("status", image_status, nullable=False),
        sa.Column("display_index", sa.Integer(), nullable=False),
        sa.Column("retrieval_url", sa.String(length=2048), nullable=True),
        sa.Column("retrieval_url_expiry", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("image_id", "request_id"),
    )
    op.create_index("ix_generated_images_request_id", "generated_images", ["request_id"])
    op.create_index("ix_generated_images_expires_at", "generated_images", ["expires_at"])

    op.create_table(
        "queue_messages",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("queue_name", sa.String(length=64), nullable=False),
        sa.Column("body", sa.JSON(), nullable=False),
        sa.Column("receive_count", sa.Integer(), nullable=False),
        sa.Column("visible_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("last_error", sa.String(length=1000), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_queue_messages_queue_name", "queue_messages", ["queue_name"])
    op.create_index("ix_queue_messages_visible_at", "queue_messages", ["visible_at"])


def downgrade() -> None:
    """Drop the generation tables and their enum types."""
    op.drop_index("ix_queue_messages_visible_at", table_name="queue_messages")
    op.drop_index("ix_queue_messages_queue_name", table_name="queue_messages")
    op.drop_table("queue_messages")

    op.drop_index("ix_generated_images_expires_at", table_name="generated_images")
    op.drop_index("ix_generated_images_request_id", table_name="generated_images")
    op.drop_table("generated_images")

    op.drop_index("ix_generation_requests_expires_at", table_name="generation_requests")
    op.drop_index("ix_generation_requests_status", table_name="generation_requests")
    op.drop_index("ix_generation_requests_user_id", table_name="generation_requests")
    op.drop_table("generation_requests")

    image_status.drop(op.get_bind(), checkfirst=True)
    request_status.drop(op.get_bind(), checkfirst=True)
