from sqlalchemy import select
from sqlalchemy.orm import aliased

from core.errors import NotFoundError, PermissionDenied, ValidationError
from models import Account, ChatGroup, GroupMember, Message
from models.message import IMAGE, MULTI_IMAGE, REPLY, TEXT
from services.message import MessageService, SentMessage, validate_text


class GroupMessageService(MessageService):
    """Group sends: same message rows, addressed to a group instead of a receiver."""

    async def send_group_text_message(
        self,
        group_id: str,
        sender: str,
        message: str,
        message_type: str = TEXT,
        reply_to: str | None = None,
    ) -> SentMessage:
        validate_text(message, message_type)
        await self._ensure_member(group_id, sender)
        if reply_to and message_type == TEXT:
            message_type = REPLY
        return await self._insert_message(
            sender_account=sender,
            group_id=group_id,
            is_group_message=True,
            message=message,
            message_type=message_type,
            reply_to_message_id=reply_to,
        )

    async def send_group_image_message(
        self,
        group_id: str,
        sender: str,
        image_url: str,
        caption: str | None = None,
        reply_to: str | None = None,
    ) -> SentMessage:
        await self._ensure_member(group_id, sender)
        return await self._insert_message(
            sender_account=sender,
            group_id=group_id,
            is_group_message=True,
            message=caption or "",
            message_type=IMAGE,
            image_urls=[image_url],
            reply_to_message_id=reply_to,
        )

    async def send_group_multi_image_message(
        self,
        group_id: str,
        sender: str,
        image_urls: list[str],
        caption: str | None = None,
        reply_to: str | None = None,
    ) -> SentMessage:
        if not image_urls:
            raise ValidationError("At least one image is required")
        await self._ensure_member(group_id, sender)
        return await self._insert_message(
            sender_account=sender,
            group_id=group_id,
            is_group_message=True,
            message=caption or "",
            message_type=MULTI_IMAGE,
            image_urls=image_urls,
            reply_to_message_id=reply_to,
        )

    async def get_group_messages(self, group_id: str) -> list[dict]:
        sender = aliased(Account)
        stmt = (
            self._thread_query()
            .add_columns(sender.description.label("sender_name"))
            .outerjoin(sender, Message.sender_account == sender.account)
            .where(Message.group_id == group_id, Message.is_group_message.is_(True))
        )
        result = await self.db.execute(stmt)
        return await self._with_images([dict(row) for row in result.mappings().all()])

    async def _ensure_member(self, group_id: str, account: str) -> None:
        if not account:
            raise ValidationError("senderAccount is required")
        role = await self.db.scalar(
            select(GroupMember.role).where(
                GroupMember.group_id == group_id,
                GroupMember.user_account == account,
            )
        )
        if role is not None:
            return
        group = await self.db.scalar(
            select(ChatGroup.group_id).where(ChatGroup.group_id == group_id)
        )
        if group is None:
            raise NotFoundError("Group not found")
        raise PermissionDenied("Sender is not a member of this group")
