from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base

ADMIN = "admin"
MEMBER = "member"
ROLES = (ADMIN, MEMBER)


class ChatGroup(Base):
    __tablename__ = "chat_groups"

    group_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    group_name: Mapped[str] = mapped_column(String(100), nullable=False)
    group_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[str] = mapped_column(String(50), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class GroupMember(Base):
    __tablename__ = "group_members"
    __table_args__ = (
        UniqueConstraint("group_id", "user_account", name="uq_group_member"),
    )

    member_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    group_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("chat_groups.group_id", ondelete="CASCADE"), nullable=False
    )
    user_account: Mapped[str] = mapped_column(String(50), nullable=False)
    role: Mapped[str] = mapped_column(String(10), default=MEMBER, nullable=False)
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    last_read_message_id: Mapped[str | None] = mapped_column(String(64), nullable=True)


class GroupConversation(Base):
    """Per-member inbox row for a group."""

    __tablename__ = "group_conversations"
    __table_args__ = (
        UniqueConstraint("group_id", "user_account", name="uq_group_conversation_member"),
        CheckConstraint("unread_count >= 0", name="ck_group_conversation_unread_non_negative"),
    )

    conversation_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    group_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("chat_groups.group_id", ondelete="CASCADE"), nullable=False
    )
    user_account: Mapped[str] = mapped_column(String(50), nullable=False)
    last_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_message_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    unread_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
