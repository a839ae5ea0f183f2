from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class Conversation(Base):
    """One user's inbox row for a direct contact. (A, B) and (B, A) are distinct rows."""

    __tablename__ = "conversations"
    __table_args__ = (
        UniqueConstraint("user_account", "contact_account", name="uq_conversation_pair"),
        CheckConstraint("unread_count >= 0", name="ck_conversation_unread_non_negative"),
    )

    conversation_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    user_account: Mapped[str] = mapped_column(String(50), nullable=False)
    contact_account: Mapped[str] = mapped_column(String(50), nullable=False)
    last_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    last_message_time: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    unread_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
