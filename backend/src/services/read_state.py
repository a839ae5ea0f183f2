from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession

from models import Conversation, GroupConversation, Message


class ReadStateService:
    """Read receipts and unread counters. Both calls are idempotent."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def mark_as_read(self, user_account: str, contact_account: str) -> int:
        """Mark everything ``contact_account`` sent to ``user_account`` as read.

        Only unread rows are touched, so ``read_at`` keeps the time of the
        first read. Returns the number of messages that changed state.
        """
        result = await self.db.execute(
            update(Message)
            .where(
                Message.receiver_account == user_account,
                Message.sender_account == contact_account,
                Message.is_read.is_(False),
            )
            .values(is_read=True, read_at=func.current_timestamp())
            .execution_options(synchronize_session=False)
        )
        await self.db.execute(
            update(Conversation)
            .where(
                Conversation.user_account == user_account,
                Conversation.contact_account == contact_account,
            )
            .values(unread_count=0)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def mark_group_as_read(self, group_id: str, user_account: str) -> None:
        # Group read state lives only in the member's summary row.
        await self.db.execute(
            update(GroupConversation)
            .where(
                GroupConversation.group_id == group_id,
                GroupConversation.user_account == user_account,
            )
            .values(unread_count=0, updated_at=func.current_timestamp())
            .execution_options(synchronize_session=False)
        )
