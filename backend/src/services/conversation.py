from datetime import datetime

from sqlalchemy import delete, func, or_, and_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from core import ids
from models import Account, Conversation, GroupConversation, GroupMember, Message

PREVIEW_LENGTH = 100


def preview(text: str | None) -> str:
    return (text or "")[:PREVIEW_LENGTH]


def _direct_upsert(owner: str, contact: str, text: str, message_time: datetime, unread: bool):
    stmt = insert(Conversation).values(
        conversation_id=ids.conversation_id(owner, contact),
        user_account=owner,
        contact_account=contact,
        last_message=text,
        last_message_time=message_time,
        unread_count=1 if unread else 0,
    )
    return stmt.on_conflict_do_update(
        index_elements=["user_account", "contact_account"],
        set_={
            "last_message": stmt.excluded.last_message,
            "last_message_time": stmt.excluded.last_message_time,
            "unread_count": Conversation.unread_count + 1 if unread else 0,
            "updated_at": func.now(),
        },
    )


class ConversationService:
    """Maintains the inbox projections for direct and group conversations.

    The update methods must run on the same session (and therefore the
    same transaction) as the message insert they summarize.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def update_conversations(
        self,
        sender: str,
        receiver: str,
        message: str,
        message_time: datetime,
    ) -> None:
        text = preview(message)
        upserts = [
            # Sender's own view: new preview, nothing unread.
            ((sender, receiver), _direct_upsert(sender, receiver, text, message_time, False)),
            # Receiver's view: one more unread, incremented in SQL.
            ((receiver, sender), _direct_upsert(receiver, sender, text, message_time, True)),
        ]
        # Rows are always locked in (user_account, contact_account) order, so
        # sends in opposite directions on the same pair cannot deadlock.
        for _, stmt in sorted(upserts, key=lambda item: item[0]):
            await self.db.execute(stmt)

    async def update_group_conversations(
        self,
        group_id: str,
        sender: str,
        message: str,
        message_time: datetime,
    ) -> int:
        """Fan one group message out to every current member's projection.

        Members are read at call time. The sender's row gets the new
        preview but no unread increment. Returns the number of rows touched.
        """
        text = preview(message)
        result = await self.db.execute(
            select(GroupMember.user_account)
            .where(GroupMember.group_id == group_id)
            .order_by(GroupMember.user_account)
        )
        members = list(result.scalars().all())

        for account in members:
            is_sender = account == sender
            stmt = insert(GroupConversation).values(
                conversation_id=ids.new_id(ids.GROUP_CONVERSATION),
                group_id=group_id,
                user_account=account,
                last_message=text,
                last_message_time=message_time,
                unread_count=0 if is_sender else 1,
                updated_at=message_time,
            )
            changes = {
                "last_message": stmt.excluded.last_message,
                "last_message_time": stmt.excluded.last_message_time,
                "updated_at": stmt.excluded.updated_at,
            }
            if not is_sender:
                changes["unread_count"] = GroupConversation.unread_count + 1
            stmt = stmt.on_conflict_do_update(
                index_elements=["group_id", "user_account"],
                set_=changes,
            )
            await self.db.execute(stmt)

        return len(members)

    async def get_conversations(self, account: str) -> list[dict]:
        stmt = (
            select(
                Conversation.conversation_id,
                Conversation.user_account,
                Conversation.contact_account,
                Account.description.label("contact_name"),
                Account.profile_image_url.label("contact_image_url"),
                Conversation.last_message,
                Conversation.last_message_time,
                Conversation.unread_count,
                Conversation.updated_at,
            )
            .outerjoin(Account, Conversation.contact_account == Account.account)
            .where(Conversation.user_account == account)
            .order_by(Conversation.last_message_time.desc().nulls_last())
        )
        result = await self.db.execute(stmt)
        return [dict(row) for row in result.mappings().all()]

    async def get_unread_count(self, account: str) -> int:
        total = await self.db.scalar(
            select(func.coalesce(func.sum(Conversation.unread_count), 0)).where(
                Conversation.user_account == account
            )
        )
        return int(total or 0)

    async def delete_conversation(self, user_account: str, contact_account: str) -> int:
        """Drop the user's inbox row and every message between the pair.

        Image rows go with their messages (ON DELETE CASCADE). Returns the
        number of deleted messages.
        """
        await self.db.execute(
            delete(Conversation).where(
                Conversation.user_account == user_account,
                Conversation.contact_account == contact_account,
            )
        )
        result = await self.db.execute(
            delete(Message)
            .where(
                or_(
                    and_(
                        Message.sender_account == user_account,
                        Message.receiver_account == contact_account,
                    ),
                    and_(
                        Message.sender_account == contact_account,
                        Message.receiver_account == user_account,
                    ),
                )
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount
