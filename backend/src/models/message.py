from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base

TEXT = "text"
IMAGE = "image"
MULTI_IMAGE = "multi_image"
REPLY = "reply"


class Message(Base):
    __tablename__ = "messages"

    message_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    sender_account: Mapped[str] = mapped_column(String(50), nullable=False)
    receiver_account: Mapped[str | None] = mapped_column(String(50), nullable=True)
    group_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("chat_groups.group_id", ondelete="CASCADE"), nullable=True
    )
    is_group_message: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    message_type: Mapped[str] = mapped_column(String(20), default=TEXT, nullable=False)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reply_to_message_id: Mapped[str | None] = mapped_column(
        String(64), ForeignKey("messages.message_id", ondelete="SET NULL"), nullable=True
    )
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("ix_messages_pair_timestamp", "sender_account", "receiver_account", "timestamp"),
        Index("ix_messages_group_timestamp", "group_id", "timestamp"),
    )


class MessageImage(Base):
    __tablename__ = "message_images"
    __table_args__ = (
        UniqueConstraint("message_id", "image_order", name="uq_message_image_order"),
    )

    image_id: Mapped[str] = mapped_column(String(100), primary_key=True)
    message_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("messages.message_id", ondelete="CASCADE"), nullable=False
    )
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    thumbnail_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    image_order: Mapped[int] = mapped_column(Integer, nullable=False)
