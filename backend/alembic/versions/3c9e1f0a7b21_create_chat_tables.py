"""create chat tables

Revision ID: 3c9e1f0a7b21
Revises:
Create Date: 2026-10-17

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

from config import settings

# revision identifiers, used by Alembic.
revision: str = "3c9e1f0a7b21"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

SCHEMA = settings.DB_SCHEMA


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        server_default=None if nullable else sa.func.now(),
        nullable=nullable,
    )


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("account", sa.String(50), primary_key=True),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("customer_id", sa.String(50), nullable=True),
        sa.Column("profile_image_url", sa.String(500), nullable=True),
        schema=SCHEMA,
        if_not_exists=True,
    )
    op.create_table(
        "chat_groups",
        sa.Column("group_id", sa.String(64), primary_key=True),
        sa.Column("group_name", sa.String(100), nullable=False),
        sa.Column("group_description", sa.Text(), nullable=True),
        sa.Column("created_by", sa.String(50), nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
        schema=SCHEMA,
    )
    op.create_table(
        "messages",
        sa.Column("message_id", sa.String(64), primary_key=True),
        sa.Column("sender_account", sa.String(50), nullable=False),
        sa.Column("receiver_account", sa.String(50), nullable=True),
        sa.Column(
            "group_id",
            sa.String(64),
            sa.ForeignKey(f"{SCHEMA}.chat_groups.group_id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("is_group_message", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("message_type", sa.String(20), nullable=False, server_default="text"),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("image_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "reply_to_message_id",
            sa.String(64),
            sa.ForeignKey(f"{SCHEMA}.messages.message_id", ondelete="SET NULL"),
            nullable=True,
        ),
        _ts("timestamp"),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("read_at", nullable=True),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_messages_pair_timestamp",
        "messages",
        ["sender_account", "receiver_account", "timestamp"],
        schema=SCHEMA,
    )
    op.create_index(
        "ix_messages_group_timestamp", "messages", ["group_id", "timestamp"], schema=SCHEMA
    )
    op.create_table(
        "message_images",
        sa.Column("image_id", sa.String(100), primary_key=True),
        sa.Column(
            "message_id",
            sa.String(64),
            sa.ForeignKey(f"{SCHEMA}.messages.message_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("image_url", sa.Text(), nullable=False),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("image_order", sa.Integer(), nullable=False),
        sa.UniqueConstraint("message_id", "image_order", name="uq_message_image_order"),
        schema=SCHEMA,
    )
    op.create_table(
        "conversations",
        sa.Column("conversation_id", sa.String(128), primary_key=True),
        sa.Column("user_account", sa.String(50), nullable=False),
        sa.Column("contact_account", sa.String(50), nullable=False),
        sa.Column("last_message", sa.Text(), nullable=True),
        _ts("last_message_time", nullable=True),
        sa.Column("unread_count", sa.Integer(), nullable=False, server_default="0"),
        _ts("updated_at"),
        sa.UniqueConstraint("user_account", "contact_account", name="uq_conversation_pair"),
        sa.CheckConstraint("unread_count >= 0", name="ck_conversation_unread_non_negative"),
        schema=SCHEMA,
    )
    op.create_table(
        "group_members",
        sa.Column("member_id", sa.String(64), primary_key=True),
        sa.Column(
            "group_id",
            sa.String(64),
            sa.ForeignKey(f"{SCHEMA}.chat_groups.group_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_account", sa.String(50), nullable=False),
        sa.Column("role", sa.String(10), nullable=False, server_default="member"),
        _ts("joined_at"),
        sa.Column("last_read_message_id", sa.String(64), nullable=True),
        sa.UniqueConstraint("group_id", "user_account", name="uq_group_member"),
        schema=SCHEMA,
    )
    op.create_table(
        "group_conversations",
        sa.Column("conversation_id", sa.String(64), primary_key=True),
        sa.Column(
            "group_id",
            sa.String(64),
            sa.ForeignKey(f"{SCHEMA}.chat_groups.group_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_account", sa.String(50), nullable=False),
        sa.Column("last_message", sa.Text(), nullable=True),
        _ts("last_message_time", nullable=True),
        sa.Column("unread_count", sa.Integer(), nullable=False, server_default="0"),
        _ts("updated_at"),
        sa.UniqueConstraint("group_id", "user_account", name="uq_group_conversation_member"),
        sa.CheckConstraint(
            "unread_count >= 0", name="ck_group_conversation_unread_non_negative"
        ),
        schema=SCHEMA,
    )


def downgrade() -> None:
    op.drop_table("group_conversations", schema=SCHEMA)
    op.drop_table("group_members", schema=SCHEMA)
    op.drop_table("conversations", schema=SCHEMA)
    op.drop_table("message_images", schema=SCHEMA)
    op.drop_index("ix_messages_group_timestamp", table_name="messages", schema=SCHEMA)
    op.drop_index("ix_messages_pair_timestamp", table_name="messages", schema=SCHEMA)
    op.drop_table("messages", schema=SCHEMA)
    op.drop_table("chat_groups", schema=SCHEMA)
